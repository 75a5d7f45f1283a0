from __future__ import annotations
import math
from typing import Optional

from .errors import InvalidScore


# Values at or above this are read as percentages.
PERCENT_THRESHOLD = 2.0


def _parse_number(text: str, original: str) -> float:
	chunk = text.strip()
	if not chunk:
		raise InvalidScore(original, "missing a number")
	try:
		value = float(chunk)
	except ValueError:
		raise InvalidScore(original) from None
	if not math.isfinite(value):
		raise InvalidScore(original, "not a finite number")
	if value < 0:
		raise InvalidScore(original, "negative")
	return value


def parse_score(text: str) -> float:
	"""Interpret a teacher-entered mark as a fraction of 1.0.

	Marks are stored verbatim, so this accepts three spellings:

	  * ``"18.5 / 20"``: numerator over denominator
	  * ``"0.82"``: anything below 2.0 is already a fraction
	  * ``"95"``: anything from 2.0 up is a percentage

	The result may exceed 1.0 when extra credit was given.
	"""
	if text is None or not text.strip():
		raise InvalidScore(text, "blank")
	if "/" in text:
		halves = text.split("/")
		if len(halves) != 2:
			raise InvalidScore(text)
		num = _parse_number(halves[0], text)
		den = _parse_number(halves[1], text)
		if den == 0:
			raise InvalidScore(text, "a division by zero")
		return num / den
	value = _parse_number(text, text)
	if value < PERCENT_THRESHOLD:
		return value
	return value / 100.0


def maybe_parse_score(text: Optional[str]) -> Optional[float]:
	"""Like `parse_score`, but ``None`` and blank strings mean no score."""
	if text is None or not text.strip():
		return None
	return parse_score(text)


def as_percent(fraction: float) -> int:
	return round_half_up(100.0 * fraction)


def round_half_up(value: float) -> int:
	# Halves round away from zero, unlike the builtin round().
	return int(math.copysign(math.floor(abs(value) + 0.5), value))
