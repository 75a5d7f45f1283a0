from __future__ import annotations
from datetime import datetime
from sqlalchemy import (
	Boolean, CheckConstraint, Column, Date, DateTime, Float, ForeignKey, Integer,
	LargeBinary, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from .db import Base


ROLES = ("admin", "boss", "teacher", "student")


class AuthUser(Base):
	__tablename__ = "auth_users"
	# Primary key is username
	username = Column(String(128), primary_key=True, index=True)
	password_hash = Column(String(256), nullable=False)
	role = Column(String(16), nullable=False)
	email = Column(String(256), nullable=False, default="")
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	__table_args__ = (CheckConstraint("role IN ('admin', 'boss', 'teacher', 'student')", name="ck_auth_users_role"),)


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	session_id = Column(String(64), primary_key=True)
	username = Column(String(128), ForeignKey("auth_users.username", ondelete="CASCADE"), nullable=False, index=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	# NULL until the session is first used
	last_activity_at = Column(DateTime, nullable=True)


class Teacher(Base):
	__tablename__ = "teachers"
	username = Column(String(128), ForeignKey("auth_users.username", ondelete="CASCADE"), primary_key=True)
	name = Column(String(256), nullable=False)


class Student(Base):
	__tablename__ = "students"
	username = Column(String(128), ForeignKey("auth_users.username", ondelete="CASCADE"), primary_key=True)
	last = Column(String(128), nullable=False)
	rest = Column(String(128), nullable=False)
	teacher = Column(String(128), ForeignKey("teachers.username"), nullable=False, index=True)
	parent = Column(String(256), nullable=False, default="")
	fall_exam = Column(String(32), nullable=True)
	spring_exam = Column(String(32), nullable=True)
	fall_exam_fraction = Column(Float, nullable=False, default=0.2)
	spring_exam_fraction = Column(Float, nullable=False, default=0.2)
	fall_notices = Column(Integer, nullable=False, default=0)
	spring_notices = Column(Integer, nullable=False, default=0)

	__table_args__ = (
		CheckConstraint("fall_exam_fraction >= 0 AND fall_exam_fraction <= 1", name="ck_students_fall_frac"),
		CheckConstraint("spring_exam_fraction >= 0 AND spring_exam_fraction <= 1", name="ck_students_spring_frac"),
		CheckConstraint("fall_notices >= 0 AND spring_notices >= 0", name="ck_students_notices"),
	)


class Course(Base):
	__tablename__ = "courses"
	id = Column(Integer, primary_key=True, autoincrement=True)
	sym = Column(String(32), unique=True, nullable=False, index=True)
	title = Column(String(256), nullable=False)
	book = Column(String(256), nullable=False, default="")
	# Courses below 9.0 are "general", the rest are high-school level
	level = Column(Float, nullable=False, default=0.0)
	chapters = relationship("Chapter", back_populates="course", order_by="Chapter.seq", cascade="all, delete-orphan")


class Chapter(Base):
	__tablename__ = "chapters"
	id = Column(Integer, primary_key=True, autoincrement=True)
	course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
	seq = Column(Integer, nullable=False)
	title = Column(String(256), nullable=False)
	subject = Column(String(256), nullable=True)
	weight = Column(Float, nullable=True)
	course = relationship("Course", back_populates="chapters")

	__table_args__ = (UniqueConstraint("course_id", "seq", name="uq_chapters_course_seq"),)


class GoalRow(Base):
	__tablename__ = "goals"
	id = Column(Integer, primary_key=True, autoincrement=True)
	student = Column(String(128), ForeignKey("students.username", ondelete="CASCADE"), nullable=False, index=True)
	chapter_id = Column(Integer, ForeignKey("chapters.id"), nullable=False, index=True)
	review = Column(Boolean, nullable=False, default=False)
	incomplete = Column(Boolean, nullable=False, default=False)
	due = Column(Date, nullable=True)
	done = Column(Date, nullable=True)
	tries = Column(Integer, nullable=True)
	score = Column(String(32), nullable=True)
	chapter = relationship("Chapter")


class CalendarDay(Base):
	__tablename__ = "calendar_days"
	day = Column(Date, primary_key=True)


class SpecialDate(Base):
	__tablename__ = "special_dates"
	# "end-fall" and "end-spring"
	name = Column(String(32), primary_key=True)
	day = Column(Date, nullable=False)


class FactSetRow(Base):
	__tablename__ = "fact_sets"
	username = Column(String(128), ForeignKey("students.username", ondelete="CASCADE"), primary_key=True)
	add = Column(String(16), nullable=False, default="Not")
	sub = Column(String(16), nullable=False, default="Not")
	mul = Column(String(16), nullable=False, default="Not")
	div = Column(String(16), nullable=False, default="Not")


class GoalMastery(Base):
	__tablename__ = "goal_mastery"
	goal_id = Column(Integer, ForeignKey("goals.id", ondelete="CASCADE"), primary_key=True)
	# NULL, "M" (mastered) or "R" (mastered and retained)
	status = Column(String(1), nullable=True)


class SocialTrait(Base):
	__tablename__ = "social_traits"
	id = Column(Integer, primary_key=True, autoincrement=True)
	username = Column(String(128), ForeignKey("students.username", ondelete="CASCADE"), nullable=False, index=True)
	term = Column(String(8), nullable=False)
	trait = Column(String(128), nullable=False)
	score = Column(String(8), nullable=False)


class Completion(Base):
	__tablename__ = "completions"
	username = Column(String(128), ForeignKey("students.username", ondelete="CASCADE"), primary_key=True)
	term = Column(String(8), primary_key=True)
	courses = Column(Text, nullable=False, default="")


class ReportDoc(Base):
	__tablename__ = "report_docs"
	username = Column(String(128), ForeignKey("students.username", ondelete="CASCADE"), primary_key=True)
	term = Column(String(8), primary_key=True)
	fields_json = Column(Text, nullable=True)  # JSON snapshot sent to the renderer
	doc = Column(LargeBinary, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
