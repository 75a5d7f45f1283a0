from __future__ import annotations
import logging
import math
from dataclasses import replace
from datetime import date
from typing import List, Sequence

from .academic_calendar import AcademicCalendar
from .errors import ValidationFailure
from .pace import Goal


logger = logging.getLogger(__name__)

ANCHOR_TODAY = "today"
ANCHOR_YEAR_START = "year_start"
ANCHORS = (ANCHOR_TODAY, ANCHOR_YEAR_START)


def _movable(goal: Goal) -> bool:
	return goal.due is not None and goal.done is None


def autopace(
	goals: Sequence[Goal],
	calendar: AcademicCalendar,
	today: date,
	anchor: str = ANCHOR_TODAY,
) -> List[Goal]:
	"""Spread the due dates of scheduled, unfinished goals over the rest of the year.

	Completed goals keep their dates so they stay in the term they were
	graded in, and unscheduled goals come back untouched. The rest keep
	their order; each is placed according to the running share of the
	total weight it closes out, so equal weights give even spacing.
	Raises `OutOfRange` when there is something to place and the anchor
	date lies past the end of the year.
	"""
	if anchor not in ANCHORS:
		raise ValidationFailure(f"unknown autopace anchor {anchor!r}")
	scheduled = [g for g in goals if _movable(g)]
	if not scheduled:
		return list(goals)
	start = calendar.start if anchor == ANCHOR_YEAR_START else max(today, calendar.start)
	days = list(calendar.instructional_days_remaining(start))
	if not days:
		raise ValidationFailure(f"no instructional days remain after {start}")

	weights = [max(g.weight, 0.0) for g in scheduled]
	total = sum(weights)
	if total <= 0:
		weights = [1.0] * len(scheduled)
		total = float(len(scheduled))

	n_days = len(days)
	new_dates = []
	running = 0.0
	for weight in weights:
		running += weight
		# Tolerance keeps float drift from pushing a goal one day late.
		idx = math.ceil(n_days * running / total - 1e-9)
		new_dates.append(days[min(max(idx, 1), n_days) - 1])

	logger.debug("autopaced %d goals over %d days starting %s", len(scheduled), n_days, start)
	dates = iter(new_dates)
	return [replace(g, due=next(dates)) if _movable(g) else g for g in goals]
