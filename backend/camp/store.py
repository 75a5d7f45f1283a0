"""Conversions between database rows and the pure pace/grading types.

Every function takes the request's session, so one request reads one
consistent snapshot of a student's data.
"""
from __future__ import annotations
import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, joinedload

from .academic_calendar import AcademicCalendar, Term
from .errors import ReferentialConflict, ValidationFailure
from .models import (
	CalendarDay, Chapter, Completion, Course, FactSetRow, GoalMastery, GoalRow,
	SocialTrait, SpecialDate, Student,
)
from .pace import Goal, PaceSnapshot, StudentNumbers, chapter_in_use, goal_sort_key
from .report import FACT_FAMILIES, ChapterTitles, FactStatus, MasteryStatus, ReportSidecar


logger = logging.getLogger(__name__)

END_FALL = "end-fall"
END_SPRING = "end-spring"


def load_calendar(db: Session) -> AcademicCalendar:
	days = db.execute(select(CalendarDay.day).order_by(CalendarDay.day)).scalars().all()
	dates = {row.name: row.day for row in db.query(SpecialDate).all()}
	if END_FALL not in dates:
		raise ValidationFailure(f"date {END_FALL!r} has not been set by an admin")
	return AcademicCalendar(days, dates[END_FALL], dates.get(END_SPRING))


def goal_from_row(row: GoalRow) -> Goal:
	chapter = row.chapter
	course = chapter.course
	return Goal(
		id=row.id,
		student=row.student,
		sym=course.sym,
		seq=chapter.seq,
		review=bool(row.review),
		incomplete=bool(row.incomplete),
		due=row.due,
		done=row.done,
		tries=row.tries,
		score=row.score,
		chapter_id=chapter.id,
		weight=chapter.weight if chapter.weight is not None else 1.0,
		level=course.level or 0.0,
	)


def numbers_from_student(row: Student) -> StudentNumbers:
	return StudentNumbers(
		fall_exam=row.fall_exam,
		spring_exam=row.spring_exam,
		fall_exam_fraction=row.fall_exam_fraction,
		spring_exam_fraction=row.spring_exam_fraction,
		fall_notices=row.fall_notices,
		spring_notices=row.spring_notices,
	)


def load_goals(db: Session, username: str) -> List[Goal]:
	rows = (
		db.query(GoalRow)
		.options(joinedload(GoalRow.chapter).joinedload(Chapter.course))
		.filter(GoalRow.student == username)
		.all()
	)
	return sorted((goal_from_row(r) for r in rows), key=goal_sort_key)


def load_pace(db: Session, username: str) -> Tuple[Student, PaceSnapshot]:
	student = db.get(Student, username)
	if student is None:
		raise LookupError(f"{username!r} is not a student")
	snapshot = PaceSnapshot(
		student=username,
		numbers=numbers_from_student(student),
		goals=load_goals(db, username),
	)
	return student, snapshot


def save_due_dates(db: Session, goals: Iterable[Goal]) -> int:
	n = 0
	for goal in goals:
		row = db.get(GoalRow, goal.id)
		if row is None or row.due == goal.due:
			continue
		row.due = goal.due
		n += 1
	return n


def find_chapter(db: Session, sym: str, seq: int) -> Chapter:
	chapter = (
		db.query(Chapter)
		.join(Course)
		.filter(Course.sym == sym, Chapter.seq == seq)
		.first()
	)
	if chapter is None:
		raise ValidationFailure(f"course {sym!r} has no chapter {seq}")
	return chapter


def chapter_titles(db: Session) -> ChapterTitles:
	titles: Dict[Tuple[str, int], Tuple[str, str, Optional[str]]] = {}
	for course in db.query(Course).options(joinedload(Course.chapters)).all():
		for ch in course.chapters:
			titles[(course.sym, ch.seq)] = (course.title, ch.title, ch.subject)
	return titles


def _goals_touching(db: Session, chapter_ids: List[int]) -> List[Goal]:
	if not chapter_ids:
		return []
	rows = db.execute(
		select(GoalRow.id, GoalRow.student, GoalRow.chapter_id).where(GoalRow.chapter_id.in_(chapter_ids))
	).all()
	return [Goal(id=r.id, student=r.student, sym="", seq=0, chapter_id=r.chapter_id) for r in rows]


def delete_chapter(db: Session, chapter: Chapter) -> None:
	if chapter_in_use(_goals_touching(db, [chapter.id]), chapter.id):
		raise ReferentialConflict(f"chapter {chapter.seq} of course {chapter.course.sym!r} is assigned to students")
	db.delete(chapter)


def delete_course(db: Session, course: Course) -> None:
	ids = [ch.id for ch in course.chapters]
	goals = _goals_touching(db, ids)
	used = [ch.seq for ch in course.chapters if chapter_in_use(goals, ch.id)]
	if used:
		raise ReferentialConflict(f"course {course.sym!r} has chapters assigned to students: {used}")
	db.delete(course)


def load_sidecar(db: Session, username: str) -> ReportSidecar:
	sidecar = ReportSidecar()
	facts = db.get(FactSetRow, username)
	if facts is not None:
		sidecar.facts = {k: FactStatus.parse(getattr(facts, k)) for k in FACT_FAMILIES}
	for trait in db.query(SocialTrait).filter(SocialTrait.username == username).all():
		sidecar.social.setdefault(Term.parse(trait.term), {})[trait.trait] = trait.score
	for row in db.query(Completion).filter(Completion.username == username).all():
		sidecar.completed[Term.parse(row.term)] = row.courses
	mastery_rows = (
		db.query(GoalMastery)
		.join(GoalRow, GoalRow.id == GoalMastery.goal_id)
		.filter(GoalRow.student == username)
		.all()
	)
	for row in mastery_rows:
		sidecar.mastery[row.goal_id] = MasteryStatus.from_key(row.status)
	return sidecar


def save_sidecar(db: Session, username: str, sidecar: ReportSidecar) -> None:
	owned = set(db.execute(select(GoalRow.id).where(GoalRow.student == username)).scalars().all())
	stray = [gid for gid in sidecar.mastery if gid not in owned]
	if stray:
		raise ValidationFailure(f"goals {stray} do not belong to {username!r}")

	facts = db.get(FactSetRow, username) or FactSetRow(username=username)
	for family in FACT_FAMILIES:
		setattr(facts, family, sidecar.facts.get(family, FactStatus.NOT).value)
	db.add(facts)

	db.execute(delete(SocialTrait).where(SocialTrait.username == username))
	for term, traits in sidecar.social.items():
		for trait, score in traits.items():
			db.add(SocialTrait(username=username, term=term.value, trait=trait, score=score))

	db.execute(delete(Completion).where(Completion.username == username))
	for term, courses in sidecar.completed.items():
		db.add(Completion(username=username, term=term.value, courses=courses))

	for goal_id, status in sidecar.mastery.items():
		db.merge(GoalMastery(goal_id=goal_id, status=status.key))


def goal_to_row(goal: Goal, chapter: Chapter, row: Optional[GoalRow] = None) -> GoalRow:
	row = row or GoalRow()
	row.student = goal.student
	row.chapter_id = chapter.id
	row.review = goal.review
	row.incomplete = goal.incomplete
	row.due = goal.due
	row.done = goal.done
	row.tries = goal.tries
	row.score = goal.score.strip() if goal.score and goal.score.strip() else None
	return row


def set_calendar(db: Session, days: Iterable[date]) -> Tuple[int, int]:
	n_deleted = db.execute(delete(CalendarDay)).rowcount or 0
	unique = sorted(set(days))
	db.add_all(CalendarDay(day=d) for d in unique)
	return n_deleted, len(unique)
