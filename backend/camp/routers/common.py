from __future__ import annotations
from datetime import date
from functools import lru_cache
from typing import Any, Dict, List, Tuple

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..academic_calendar import AcademicCalendar
from ..models import Student, Teacher
from ..pace import Goal, LetterScale, PaceSnapshot, PaceSummary, aggregate, format_lead
from ..settings import settings
from ..store import load_calendar, load_pace


def get_today() -> date:
	return date.today()


@lru_cache(maxsize=1)
def letter_scale() -> LetterScale:
	return LetterScale(settings.letter_grades)


def student_or_404(db: Session, uname: str) -> Student:
	student = db.get(Student, uname)
	if student is None:
		raise HTTPException(status_code=404, detail=f"{uname!r} is not a student")
	return student


def summarize(db: Session, uname: str, today: date) -> Tuple[Student, PaceSnapshot, AcademicCalendar, PaceSummary]:
	student_or_404(db, uname)
	student, snapshot = load_pace(db, uname)
	calendar = load_calendar(db)
	summary = aggregate(snapshot, calendar, today, letter_scale())
	return student, snapshot, calendar, summary


def _term_payload(ts) -> Dict[str, Any]:
	return {
		"term": ts.term.value,
		"scheduled": ts.scheduled_count,
		"due": ts.due_count,
		"done": ts.done_count,
		"remaining": ts.remaining_count,
		"lead": format_lead(ts.lead),
		"behind": ts.behind,
		"test_average": ts.marked(ts.test_average),
		"exam": ts.exam_percent,
		"exam_fraction": ts.exam_weight,
		"notices": ts.notices,
		"semester_grade": ts.marked(ts.semester_grade),
		"letter": ts.letter,
		"provisional": ts.provisional,
		"lines": [{"label": label, "value": value} for label, value in ts.lines()],
	}


def goal_payload(goal: Goal, summary: PaceSummary) -> Dict[str, Any]:
	return {
		"id": goal.id,
		"sym": goal.sym,
		"seq": goal.seq,
		"rev": goal.review,
		"inc": goal.incomplete,
		"due": goal.due.isoformat() if goal.due else None,
		"done": goal.done.isoformat() if goal.done else None,
		"tries": goal.tries,
		"score": goal.score,
		"weight": goal.weight,
		"status": summary.statuses[goal.id].value,
	}


def pace_payload(student: Student, teacher: Teacher | None, snapshot: PaceSnapshot, summary: PaceSummary) -> Dict[str, Any]:
	numbers = snapshot.numbers
	goals: List[Dict[str, Any]] = [goal_payload(g, summary) for g in snapshot.goals]
	return {
		"uname": student.username,
		"last": student.last,
		"rest": student.rest,
		"teacher": teacher.name if teacher else student.teacher,
		"tuname": student.teacher,
		"fex": numbers.fall_exam,
		"sex": numbers.spring_exam,
		"fex_frac": numbers.fall_exam_fraction,
		"sex_frac": numbers.spring_exam_fraction,
		"fnot": numbers.fall_notices,
		"snot": numbers.spring_notices,
		"n_scheduled": summary.n_scheduled,
		"n_due": summary.n_due,
		"n_done": summary.n_done,
		"lead": format_lead(summary.lead),
		"behind": (summary.lead or 0) < 0,
		"has_review": summary.has_review,
		"has_incomplete": summary.has_incomplete,
		"previously_incomplete": summary.previously_incomplete,
		"fall": _term_payload(summary.fall),
		"spring": _term_payload(summary.spring),
		"goals": goals,
		"issues": [
			{"goal_id": i.goal_id, "term": i.term.value if i.term else None, "field": i.field_name, "message": i.message}
			for i in summary.issues
		],
	}
