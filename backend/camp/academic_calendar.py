from __future__ import annotations
from bisect import bisect_left
from datetime import date
from enum import Enum
from typing import Iterable, Iterator, List, Optional

from .errors import OutOfRange, ValidationFailure


class Term(str, Enum):
	FALL = "Fall"
	SPRING = "Spring"

	@classmethod
	def parse(cls, text: str) -> "Term":
		for term in cls:
			if term.value.lower() == (text or "").strip().lower():
				return term
		raise ValidationFailure(f"{text!r} is not a valid term")


class AcademicCalendar:
	"""The instructional days of one academic year and its fall/spring divide.

	Any date before `end_fall` belongs to the Fall term; the rest of the
	year is Spring.
	"""

	def __init__(self, days: Iterable[date], end_fall: date, end_spring: Optional[date] = None) -> None:
		self.days: List[date] = sorted(set(days))
		if not self.days:
			raise ValidationFailure("the academic calendar has no instructional days")
		self.end_fall = end_fall
		self.start = self.days[0]
		self.end = end_spring if end_spring is not None else self.days[-1]
		if self.end < self.start:
			raise ValidationFailure(f"year end {self.end} precedes first instructional day {self.start}")

	def __len__(self) -> int:
		return len(self.days)

	def contains(self, day: date) -> bool:
		return self.start <= day <= self.end

	def _check(self, day: date) -> None:
		if not self.contains(day):
			raise OutOfRange(day, self.start, self.end)

	def term_of(self, day: date) -> Term:
		self._check(day)
		return Term.FALL if day < self.end_fall else Term.SPRING

	def instructional_days_remaining(self, from_date: date) -> Iterator[date]:
		self._check(from_date)
		idx = bisect_left(self.days, from_date)
		return (day for day in self.days[idx:] if day <= self.end)
