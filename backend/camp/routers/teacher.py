from __future__ import annotations
import json
import logging
from datetime import date
from typing import Dict, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, Field
from sqlalchemy import delete
from sqlalchemy.orm import Session

from ..academic_calendar import Term
from ..autopace import autopace as autopace_goals
from ..db import get_db
from ..errors import InvalidScore, ValidationFailure
from ..models import AuthUser, GoalRow, ReportDoc, Student, Teacher
from ..pace import Goal, StudentNumbers, validate_goal
from ..renderer_client import ReportRenderer
from ..report import FACT_FAMILIES, FactStatus, MasteryStatus, ReportSidecar, build_report_fields
from ..scores import maybe_parse_score
from ..settings import settings
from ..store import chapter_titles, find_chapter, goal_to_row, load_calendar, load_goals, load_sidecar, save_due_dates, save_sidecar
from ..upload import goals_from_csv
from .auth import User, require_role
from .common import get_today, pace_payload, student_or_404, summarize


router = APIRouter(prefix="/teacher", tags=["teacher"])
logger = logging.getLogger(__name__)

teacher_only = require_role("teacher")


class GoalIn(BaseModel):
	uname: str
	sym: str
	seq: int
	rev: bool = False
	inc: bool = False
	due: Optional[date] = None
	done: Optional[date] = None
	tries: Optional[int] = None
	score: Optional[str] = None


class NumbersIn(BaseModel):
	fex: Optional[str] = None
	sex: Optional[str] = None
	fex_frac: float = Field(default=0.2, ge=0.0, le=1.0)
	sex_frac: float = Field(default=0.2, ge=0.0, le=1.0)
	fnot: int = Field(default=0, ge=0)
	snot: int = Field(default=0, ge=0)


class SidecarIn(BaseModel):
	facts: Dict[str, str] = {}
	fall_social: Dict[str, str] = {}
	spring_social: Dict[str, str] = {}
	fall_complete: str = ""
	spring_complete: str = ""
	# goal id -> "", "M" or "R"
	mastery: Dict[int, Optional[str]] = {}


async def get_renderer():
	try:
		renderer = ReportRenderer()
	except ValueError as e:
		raise HTTPException(status_code=503, detail=str(e))
	try:
		yield renderer
	finally:
		await renderer.aclose()


def _own_student(db: Session, user: User, uname: str) -> Student:
	student = student_or_404(db, uname)
	if student.teacher != user.username:
		raise HTTPException(status_code=403, detail=f"{uname!r} is not your student")
	return student


def _pace_response(db: Session, uname: str, today: date) -> dict:
	student, snapshot, _, summary = summarize(db, uname, today)
	return pace_payload(student, db.get(Teacher, student.teacher), snapshot, summary)


def _goal_from_request(req: GoalIn, goal_id: int = 0) -> Goal:
	goal = Goal(
		id=goal_id,
		student=req.uname,
		sym=req.sym,
		seq=req.seq,
		review=req.rev,
		incomplete=req.inc,
		due=req.due,
		done=req.done,
		tries=req.tries,
		score=req.score,
	)
	validate_goal(goal)
	return goal


def _owned_goal(db: Session, user: User, goal_id: int) -> GoalRow:
	row = db.get(GoalRow, goal_id)
	if row is None:
		raise HTTPException(status_code=404, detail=f"no goal with id {goal_id}")
	_own_student(db, user, row.student)
	return row


@router.get("/paces")
async def paces(user: User = Depends(teacher_only), db: Session = Depends(get_db), today: date = Depends(get_today)):
	students = db.query(Student).filter(Student.teacher == user.username).order_by(Student.last, Student.rest).all()
	return [_pace_response(db, s.username, today) for s in students]


@router.get("/paces/{uname}")
async def pace(uname: str, user: User = Depends(teacher_only), db: Session = Depends(get_db), today: date = Depends(get_today)):
	_own_student(db, user, uname)
	return _pace_response(db, uname, today)


@router.post("/goals", status_code=201)
async def add_goal(req: GoalIn, user: User = Depends(teacher_only), db: Session = Depends(get_db), today: date = Depends(get_today)):
	_own_student(db, user, req.uname)
	goal = _goal_from_request(req)
	chapter = find_chapter(db, goal.sym, goal.seq)
	db.add(goal_to_row(goal, chapter))
	db.commit()
	return _pace_response(db, req.uname, today)


@router.put("/goals/{goal_id}")
async def update_goal(goal_id: int, req: GoalIn, user: User = Depends(teacher_only), db: Session = Depends(get_db), today: date = Depends(get_today)):
	row = _owned_goal(db, user, goal_id)
	if row.student != req.uname:
		raise HTTPException(status_code=400, detail="goals cannot be moved between students")
	goal = _goal_from_request(req, goal_id)
	chapter = find_chapter(db, goal.sym, goal.seq)
	goal_to_row(goal, chapter, row)
	db.commit()
	return _pace_response(db, req.uname, today)


@router.delete("/goals/{goal_id}")
async def delete_goal(goal_id: int, user: User = Depends(teacher_only), db: Session = Depends(get_db), today: date = Depends(get_today)):
	row = _owned_goal(db, user, goal_id)
	uname = row.student
	db.delete(row)
	db.commit()
	return _pace_response(db, uname, today)


@router.delete("/paces/{uname}/goals")
async def clear_goals(uname: str, user: User = Depends(teacher_only), db: Session = Depends(get_db), today: date = Depends(get_today)):
	_own_student(db, user, uname)
	n = db.execute(delete(GoalRow).where(GoalRow.student == uname)).rowcount
	db.commit()
	logger.info("%s cleared %d goals for %r", user.username, n or 0, uname)
	return _pace_response(db, uname, today)


@router.post("/goals/upload", status_code=201)
async def upload_goals(file: UploadFile = File(...), user: User = Depends(teacher_only), db: Session = Depends(get_db)):
	try:
		text = (await file.read()).decode("utf-8")
	except UnicodeDecodeError:
		raise HTTPException(status_code=400, detail="goal file must be UTF-8 text")
	goals = goals_from_csv(text)
	per_student: Dict[str, int] = {}
	for goal in goals:
		_own_student(db, user, goal.student)
		chapter = find_chapter(db, goal.sym, goal.seq)
		db.add(goal_to_row(goal, chapter))
		per_student[goal.student] = per_student.get(goal.student, 0) + 1
	db.commit()
	logger.info("%s uploaded %d goals for %d students", user.username, len(goals), len(per_student))
	return {"inserted": len(goals), "students": per_student}


@router.put("/numbers/{uname}")
async def update_numbers(uname: str, req: NumbersIn, user: User = Depends(teacher_only), db: Session = Depends(get_db), today: date = Depends(get_today)):
	student = _own_student(db, user, uname)
	for label, raw in (("Fall Exam", req.fex), ("Spring Exam", req.sex)):
		try:
			maybe_parse_score(raw)
		except InvalidScore as e:
			raise ValidationFailure(f"{label}: {e.message}") from None
	numbers = StudentNumbers(
		fall_exam=req.fex.strip() if req.fex and req.fex.strip() else None,
		spring_exam=req.sex.strip() if req.sex and req.sex.strip() else None,
		fall_exam_fraction=req.fex_frac,
		spring_exam_fraction=req.sex_frac,
		fall_notices=req.fnot,
		spring_notices=req.snot,
	)
	student.fall_exam = numbers.fall_exam
	student.spring_exam = numbers.spring_exam
	student.fall_exam_fraction = numbers.fall_exam_fraction
	student.spring_exam_fraction = numbers.spring_exam_fraction
	student.fall_notices = numbers.fall_notices
	student.spring_notices = numbers.spring_notices
	db.commit()
	return _pace_response(db, uname, today)


@router.post("/autopace/{uname}")
async def autopace(uname: str, user: User = Depends(teacher_only), db: Session = Depends(get_db), today: date = Depends(get_today)):
	_own_student(db, user, uname)
	calendar = load_calendar(db)
	goals = load_goals(db, uname)
	paced = autopace_goals(goals, calendar, today, settings.autopace_anchor)
	n = save_due_dates(db, paced)
	db.commit()
	logger.info("autopaced %r: %d due dates changed", uname, n)
	return _pace_response(db, uname, today)


def _sidecar_payload(uname: str, sidecar: ReportSidecar) -> dict:
	return {
		"uname": uname,
		"facts": {k: v.value for k, v in sidecar.facts.items()},
		"fall_social": sidecar.social.get(Term.FALL, {}),
		"spring_social": sidecar.social.get(Term.SPRING, {}),
		"fall_complete": sidecar.completed.get(Term.FALL, ""),
		"spring_complete": sidecar.completed.get(Term.SPRING, ""),
		"mastery": {gid: status.key for gid, status in sidecar.mastery.items()},
	}


@router.get("/sidecar/{uname}")
async def show_sidecar(uname: str, user: User = Depends(teacher_only), db: Session = Depends(get_db)):
	_own_student(db, user, uname)
	return _sidecar_payload(uname, load_sidecar(db, uname))


@router.put("/sidecar/{uname}")
async def update_sidecar(uname: str, req: SidecarIn, user: User = Depends(teacher_only), db: Session = Depends(get_db)):
	_own_student(db, user, uname)
	unknown = set(req.facts) - set(FACT_FAMILIES)
	if unknown:
		raise HTTPException(status_code=400, detail=f"unknown fact families: {sorted(unknown)}")
	sidecar = ReportSidecar(
		facts={k: FactStatus.parse(req.facts.get(k)) for k in FACT_FAMILIES},
		social={Term.FALL: dict(req.fall_social), Term.SPRING: dict(req.spring_social)},
		completed={Term.FALL: req.fall_complete, Term.SPRING: req.spring_complete},
		mastery={gid: MasteryStatus.from_key(key) for gid, key in req.mastery.items()},
	)
	save_sidecar(db, uname, sidecar)
	db.commit()
	return _sidecar_payload(uname, load_sidecar(db, uname))


@router.post("/report/{uname}/{term}")
async def render_report(
	uname: str,
	term: str,
	user: User = Depends(teacher_only),
	db: Session = Depends(get_db),
	today: date = Depends(get_today),
	renderer: ReportRenderer = Depends(get_renderer),
):
	term_value = Term.parse(term)
	_own_student(db, user, uname)
	student, snapshot, _, summary = summarize(db, uname, today)
	teacher = db.get(Teacher, student.teacher)
	fields = build_report_fields(
		summary,
		snapshot.goals,
		term_value,
		load_sidecar(db, uname),
		chapter_titles(db),
		student_name=f"{student.rest} {student.last}",
		teacher_name=teacher.name if teacher else student.teacher,
	)
	fields["date"] = today.isoformat()
	fields["teacher_email"] = getattr(db.get(AuthUser, student.teacher), "email", "")
	try:
		doc = await renderer.render(f"report_{term_value.value.lower()}", fields)
	except RuntimeError as e:
		logger.error("error rendering %s report for %r: %s", term_value.value, uname, e)
		raise HTTPException(status_code=502, detail=str(e))
	db.merge(ReportDoc(username=uname, term=term_value.value, fields_json=json.dumps(fields), doc=doc))
	db.commit()
	return Response(content=doc, media_type="application/pdf")


@router.delete("/report/{uname}/{term}")
async def discard_report(uname: str, term: str, user: User = Depends(teacher_only), db: Session = Depends(get_db)):
	term_value = Term.parse(term)
	_own_student(db, user, uname)
	row = db.get(ReportDoc, (uname, term_value.value))
	if row is None:
		raise HTTPException(status_code=404, detail=f"no {term_value.value} report for {uname!r}")
	db.delete(row)
	db.commit()
	return {"ok": True}
