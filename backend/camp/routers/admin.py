from __future__ import annotations
import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..db import get_db
from ..models import ROLES, AuthUser, CalendarDay, Chapter, Course, SpecialDate, Student, Teacher
from ..store import END_FALL, END_SPRING, delete_chapter, delete_course, set_calendar
from .auth import User, hash_password, require_role


router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)

admin_only = require_role("admin")

SPECIAL_DATES = (END_FALL, END_SPRING)


class UserIn(BaseModel):
	username: str
	password: str
	role: str
	email: str = ""
	# teacher
	name: Optional[str] = None
	# student
	last: Optional[str] = None
	rest: Optional[str] = None
	teacher: Optional[str] = None
	parent: Optional[str] = None


class UserUpdate(BaseModel):
	password: Optional[str] = None
	email: Optional[str] = None
	name: Optional[str] = None
	last: Optional[str] = None
	rest: Optional[str] = None
	teacher: Optional[str] = None
	parent: Optional[str] = None


class ChapterIn(BaseModel):
	seq: int
	title: Optional[str] = None
	subject: Optional[str] = None
	weight: Optional[float] = Field(default=None, gt=0)


class CourseIn(BaseModel):
	sym: str
	title: str
	book: str = ""
	level: float = 0.0
	chapters: List[ChapterIn] = []


class CourseUpdate(BaseModel):
	title: Optional[str] = None
	book: Optional[str] = None
	level: Optional[float] = None


class ChapterUpdate(BaseModel):
	title: Optional[str] = None
	subject: Optional[str] = None
	weight: Optional[float] = Field(default=None, gt=0)


class CalendarIn(BaseModel):
	days: List[date]


class DateIn(BaseModel):
	day: date


def _user_payload(row: AuthUser, db: Session) -> dict:
	data = {"username": row.username, "role": row.role, "email": row.email}
	if row.role == "teacher":
		teacher = db.get(Teacher, row.username)
		data["name"] = teacher.name if teacher else ""
	elif row.role == "student":
		student = db.get(Student, row.username)
		if student is not None:
			data.update(last=student.last, rest=student.rest, teacher=student.teacher, parent=student.parent)
	return data


def _course_payload(course: Course) -> dict:
	return {
		"id": course.id,
		"sym": course.sym,
		"title": course.title,
		"book": course.book,
		"level": course.level,
		"chapters": [
			{"id": ch.id, "seq": ch.seq, "title": ch.title, "subject": ch.subject, "weight": ch.weight}
			for ch in course.chapters
		],
	}


def _commit(db: Session, what: str) -> None:
	try:
		db.commit()
	except IntegrityError as e:
		db.rollback()
		logger.error("integrity error while %s: %s", what, e.orig)
		raise HTTPException(status_code=409, detail=f"Conflict while {what}")


def _course_or_404(db: Session, sym: str) -> Course:
	course = db.query(Course).options(joinedload(Course.chapters)).filter(Course.sym == sym).first()
	if course is None:
		raise HTTPException(status_code=404, detail=f"no course with symbol {sym!r}")
	return course


@router.get("/users")
async def list_users(role: Optional[str] = None, user: User = Depends(admin_only), db: Session = Depends(get_db)):
	q = db.query(AuthUser)
	if role:
		q = q.filter(AuthUser.role == role)
	return [_user_payload(row, db) for row in q.order_by(AuthUser.username).all()]


@router.post("/users", status_code=201)
async def add_user(req: UserIn, user: User = Depends(admin_only), db: Session = Depends(get_db)):
	username = (req.username or "").strip()
	if req.role not in ROLES:
		raise HTTPException(status_code=400, detail=f"role must be one of {list(ROLES)}")
	if len(username) < 2 or len(username) > 128:
		raise HTTPException(status_code=400, detail="username must be 2-128 characters")
	if not req.password:
		raise HTTPException(status_code=400, detail="password is required")
	if db.get(AuthUser, username) is not None:
		raise HTTPException(status_code=409, detail="username already exists")
	db.add(AuthUser(username=username, password_hash=hash_password(req.password), role=req.role, email=req.email.strip()))
	# Role rows reference auth_users; write it first
	db.flush()
	if req.role == "teacher":
		db.add(Teacher(username=username, name=(req.name or username).strip()))
	elif req.role == "student":
		if not req.last or not req.rest or not req.teacher:
			raise HTTPException(status_code=400, detail="students need last, rest and teacher")
		if db.get(Teacher, req.teacher) is None:
			raise HTTPException(status_code=400, detail=f"{req.teacher!r} is not a teacher")
		db.add(Student(username=username, last=req.last, rest=req.rest, teacher=req.teacher, parent=req.parent or ""))
	_commit(db, f"adding user {username!r}")
	logger.info("%s added %s %r", user.username, req.role, username)
	return _user_payload(db.get(AuthUser, username), db)


@router.put("/users/{username}")
async def update_user(username: str, req: UserUpdate, user: User = Depends(admin_only), db: Session = Depends(get_db)):
	row = db.get(AuthUser, username)
	if row is None:
		raise HTTPException(status_code=404, detail=f"no user {username!r}")
	if req.password:
		row.password_hash = hash_password(req.password)
	if req.email is not None:
		row.email = req.email.strip()
	if row.role == "teacher" and req.name is not None:
		db.get(Teacher, username).name = req.name
	if row.role == "student":
		student = db.get(Student, username)
		if req.teacher is not None and db.get(Teacher, req.teacher) is None:
			raise HTTPException(status_code=400, detail=f"{req.teacher!r} is not a teacher")
		for attr in ("last", "rest", "teacher", "parent"):
			value = getattr(req, attr)
			if value is not None:
				setattr(student, attr, value)
	_commit(db, f"updating user {username!r}")
	return _user_payload(row, db)


@router.delete("/users/{username}")
async def delete_user(username: str, user: User = Depends(admin_only), db: Session = Depends(get_db)):
	row = db.get(AuthUser, username)
	if row is None:
		raise HTTPException(status_code=404, detail=f"no user {username!r}")
	if username == user.username:
		raise HTTPException(status_code=400, detail="you cannot delete yourself")
	if row.role == "teacher" and db.query(Student).filter(Student.teacher == username).first() is not None:
		raise HTTPException(status_code=409, detail=f"teacher {username!r} still has students")
	db.delete(row)
	_commit(db, f"deleting user {username!r}")
	logger.info("%s deleted user %r", user.username, username)
	return {"ok": True}


@router.get("/courses")
async def list_courses(user: User = Depends(require_role("admin", "boss", "teacher")), db: Session = Depends(get_db)):
	courses = db.query(Course).options(joinedload(Course.chapters)).order_by(Course.level, Course.sym).all()
	return [_course_payload(c) for c in courses]


@router.post("/courses", status_code=201)
async def add_course(req: CourseIn, user: User = Depends(admin_only), db: Session = Depends(get_db)):
	if db.query(Course).filter(Course.sym == req.sym).first() is not None:
		raise HTTPException(status_code=409, detail=f"course symbol {req.sym!r} already exists")
	course = Course(sym=req.sym, title=req.title, book=req.book, level=req.level)
	for ch in req.chapters:
		course.chapters.append(Chapter(seq=ch.seq, title=ch.title or f"Chapter {ch.seq}", subject=ch.subject, weight=ch.weight))
	db.add(course)
	_commit(db, f"adding course {req.sym!r}")
	return _course_payload(_course_or_404(db, req.sym))


@router.put("/courses/{sym}")
async def update_course(sym: str, req: CourseUpdate, user: User = Depends(admin_only), db: Session = Depends(get_db)):
	course = _course_or_404(db, sym)
	for attr in ("title", "book", "level"):
		value = getattr(req, attr)
		if value is not None:
			setattr(course, attr, value)
	_commit(db, f"updating course {sym!r}")
	return _course_payload(course)


@router.delete("/courses/{sym}")
async def remove_course(sym: str, user: User = Depends(admin_only), db: Session = Depends(get_db)):
	course = _course_or_404(db, sym)
	delete_course(db, course)
	_commit(db, f"deleting course {sym!r}")
	return {"ok": True}


@router.post("/courses/{sym}/chapters", status_code=201)
async def add_chapters(sym: str, req: List[ChapterIn], user: User = Depends(admin_only), db: Session = Depends(get_db)):
	course = _course_or_404(db, sym)
	for ch in req:
		course.chapters.append(Chapter(seq=ch.seq, title=ch.title or f"Chapter {ch.seq}", subject=ch.subject, weight=ch.weight))
	_commit(db, f"adding chapters to {sym!r}")
	return _course_payload(_course_or_404(db, sym))


@router.put("/chapters/{chapter_id}")
async def update_chapter(chapter_id: int, req: ChapterUpdate, user: User = Depends(admin_only), db: Session = Depends(get_db)):
	chapter = db.get(Chapter, chapter_id)
	if chapter is None:
		raise HTTPException(status_code=404, detail=f"no chapter with id {chapter_id}")
	for attr in ("title", "subject", "weight"):
		value = getattr(req, attr)
		if value is not None:
			setattr(chapter, attr, value)
	_commit(db, f"updating chapter {chapter_id}")
	return {"id": chapter.id, "seq": chapter.seq, "title": chapter.title, "subject": chapter.subject, "weight": chapter.weight}


@router.delete("/chapters/{chapter_id}")
async def remove_chapter(chapter_id: int, user: User = Depends(admin_only), db: Session = Depends(get_db)):
	chapter = db.get(Chapter, chapter_id)
	if chapter is None:
		raise HTTPException(status_code=404, detail=f"no chapter with id {chapter_id}")
	delete_chapter(db, chapter)
	_commit(db, f"deleting chapter {chapter_id}")
	return {"ok": True}


@router.get("/calendar")
async def get_calendar(user: User = Depends(require_role("admin", "boss", "teacher")), db: Session = Depends(get_db)):
	days = db.query(CalendarDay.day).order_by(CalendarDay.day).all()
	return {"days": [d.day.isoformat() for d in days]}


@router.put("/calendar")
async def update_calendar(req: CalendarIn, user: User = Depends(admin_only), db: Session = Depends(get_db)):
	n_deleted, n_inserted = set_calendar(db, req.days)
	_commit(db, "replacing the calendar")
	logger.info("calendar replaced: %d days removed, %d inserted", n_deleted, n_inserted)
	return {"deleted": n_deleted, "inserted": n_inserted}


@router.get("/dates")
async def get_dates(user: User = Depends(require_role("admin", "boss", "teacher")), db: Session = Depends(get_db)):
	return {row.name: row.day.isoformat() for row in db.query(SpecialDate).all()}


@router.put("/dates/{name}")
async def set_date(name: str, req: DateIn, user: User = Depends(admin_only), db: Session = Depends(get_db)):
	if name not in SPECIAL_DATES:
		raise HTTPException(status_code=400, detail=f"date name must be one of {list(SPECIAL_DATES)}")
	db.merge(SpecialDate(name=name, day=req.day))
	_commit(db, f"setting date {name!r}")
	return {name: req.day.isoformat()}


@router.post("/reset-students")
async def reset_students(user: User = Depends(admin_only), db: Session = Depends(get_db)):
	"""Clear exams and notices ahead of a new academic year."""
	n = db.query(Student).update({
		Student.fall_exam: None,
		Student.spring_exam: None,
		Student.fall_notices: 0,
		Student.spring_notices: 0,
	})
	_commit(db, "resetting students")
	logger.info("%s reset numbers for %d students", user.username, n)
	return {"reset": n}
