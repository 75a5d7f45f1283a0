from __future__ import annotations
import csv
import io
from datetime import date
from typing import List, Optional

from .errors import ValidationFailure
from .pace import Goal


def _cell(row: List[str], idx: int) -> Optional[str]:
	if idx >= len(row):
		return None
	value = row[idx].strip()
	return value or None


def _int_cell(row: List[str], idx: int, what: str, prev: Optional[int]) -> int:
	value = _cell(row, idx)
	if value is None:
		if prev is None:
			raise ValidationFailure(f"no {what}")
		return prev
	try:
		return int(value)
	except ValueError:
		raise ValidationFailure(f"unable to parse {value!r} as {what}") from None


def goals_from_csv(text: str) -> List[Goal]:
	"""Read goals from rows shaped like::

	    #uname, sym, seq,    y, m,  d, rev, inc
	    jsmith, pha1,  3, 2022, 9, 10,   x,
	          ,     ,  9,     ,  , 28,    ,  x

	Blank `uname`, `sym`, `y`, `m` and `d` repeat the previous row's value.
	`rev` and `inc` are true when they hold any text. Lines starting with
	``#`` and blank lines are skipped. Goals read here are never done.
	"""
	goals: List[Goal] = []
	prev: Optional[Goal] = None
	reader = csv.reader(io.StringIO(text))
	for row in reader:
		lineno = reader.line_num
		if not row or all(not c.strip() for c in row) or row[0].lstrip().startswith("#"):
			continue
		try:
			uname = _cell(row, 0) or (prev.student if prev else None)
			if uname is None:
				raise ValidationFailure("no uname")
			sym = _cell(row, 1) or (prev.sym if prev else None)
			if sym is None:
				raise ValidationFailure("no course symbol")
			if _cell(row, 2) is None:
				raise ValidationFailure("no chapter number")
			seq = _int_cell(row, 2, "chapter number", None)
			prev_due = prev.due if prev else None
			y = _int_cell(row, 3, "year", prev_due.year if prev_due else None)
			m = _int_cell(row, 4, "month", prev_due.month if prev_due else None)
			d = _int_cell(row, 5, "day", prev_due.day if prev_due else None)
			try:
				due = date(y, m, d)
			except ValueError:
				raise ValidationFailure(f"{y}-{m}-{d} is not a valid date") from None
		except ValidationFailure as e:
			raise ValidationFailure(f"error on line {lineno}: {e.message}") from None
		goal = Goal(
			id=0,
			student=uname,
			sym=sym,
			seq=seq,
			review=_cell(row, 6) is not None,
			incomplete=_cell(row, 7) is not None,
			due=due,
		)
		goals.append(goal)
		prev = goal
	return goals
