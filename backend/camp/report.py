from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .academic_calendar import Term
from .errors import ValidationFailure
from .pace import Goal, PaceSummary, TermSummary
from .scores import as_percent


class MasteryStatus(str, Enum):
	NOT = "Not Mastered"
	MASTERED = "Mastered"
	RETAINED = "Mastered & Retained"

	@classmethod
	def from_key(cls, key: Optional[str]) -> "MasteryStatus":
		key = (key or "").strip()
		if not key:
			return cls.NOT
		if key == "M":
			return cls.MASTERED
		if key == "R":
			return cls.RETAINED
		raise ValidationFailure(f"{key!r} is not a valid mastery status")

	@property
	def key(self) -> Optional[str]:
		return {MasteryStatus.MASTERED: "M", MasteryStatus.RETAINED: "R"}.get(self)


class FactStatus(str, Enum):
	NOT = "Not"
	MASTERED = "Mastered"
	EXCUSED = "Ex"

	@classmethod
	def parse(cls, text: Optional[str]) -> "FactStatus":
		# Anything unrecognized counts as not mastered.
		value = (text or "").strip().lower()
		if value == "mastered":
			return cls.MASTERED
		if value in ("ex", "excused"):
			return cls.EXCUSED
		return cls.NOT


FACT_FAMILIES = ("add", "sub", "mul", "div")


@dataclass
class ReportSidecar:
	"""Report-season data kept alongside a student's pace."""
	facts: Dict[str, FactStatus] = field(default_factory=lambda: {k: FactStatus.NOT for k in FACT_FAMILIES})
	social: Dict[Term, Dict[str, str]] = field(default_factory=dict)
	completed: Dict[Term, str] = field(default_factory=dict)
	mastery: Dict[int, MasteryStatus] = field(default_factory=dict)


# (sym, seq) -> (course title, chapter title, chapter subject)
ChapterTitles = Mapping[Tuple[str, int], Tuple[str, str, Optional[str]]]


def _term_fields(ts: TermSummary) -> Dict[str, Any]:
	prefix = ts.term.value.lower()
	return {
		f"{prefix}_requirement": ts.scheduled_count,
		f"{prefix}_remaining": ts.remaining_count,
		f"{prefix}_complete": ts.done_count,
		f"{prefix}_test": ts.marked(ts.test_average),
		f"{prefix}_exam": ts.exam_percent,
		f"{prefix}_notices": ts.notices,
		f"{prefix}_grade": ts.marked(ts.semester_grade),
		f"{prefix}_letter": ts.letter,
	}


def _goal_row(goal: Goal, summary: PaceSummary, titles: ChapterTitles, sidecar: ReportSidecar) -> Dict[str, Any]:
	course, chapter, subject = titles.get((goal.sym, goal.seq), (goal.sym, f"Chapter {goal.seq}", None))
	score = summary.scores.get(goal.id)
	return {
		"course": course,
		"chapter": chapter,
		"subject": subject or "",
		"review": goal.review,
		"incomplete": goal.incomplete,
		"due": goal.due.isoformat() if goal.due else None,
		"done": goal.done.isoformat() if goal.done else None,
		"tries": goal.tries,
		"score": as_percent(score) if score is not None else None,
		"retention": sidecar.mastery.get(goal.id, MasteryStatus.NOT).value,
	}


def build_report_fields(
	summary: PaceSummary,
	goals: Iterable[Goal],
	term: Term,
	sidecar: ReportSidecar,
	titles: ChapterTitles,
	*,
	student_name: str,
	teacher_name: str,
) -> Dict[str, Any]:
	"""Flatten a pace summary into the fields the report template expects.

	Fall reports list the fall goals; spring reports cover the whole year.
	Numbers are copied from the summary as-is.
	"""
	wanted = {Term.FALL} if term is Term.FALL else {Term.FALL, Term.SPRING}
	rows = [
		_goal_row(goal, summary, titles, sidecar)
		for goal in goals
		if summary.goal_terms.get(goal.id) in wanted
	]
	fields: Dict[str, Any] = {
		"uname": summary.student,
		"student": student_name,
		"teacher": teacher_name,
		"term": term.value,
		"goals": rows,
		"social": dict(sidecar.social.get(term, {})),
		"completed_courses": sidecar.completed.get(term, ""),
	}
	for family in FACT_FAMILIES:
		fields[family] = sidecar.facts.get(family, FactStatus.NOT).value
	for ts in summary.terms.values():
		fields.update(_term_fields(ts))
	return fields
