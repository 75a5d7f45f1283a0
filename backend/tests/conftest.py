from __future__ import annotations
import os

# Must be in place before camp.settings is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ.pop("MAIL_API_KEY", None)
os.environ.pop("RENDERER_URL", None)

from datetime import date, timedelta
from typing import Dict, Iterator, List

import pytest
from fastapi.testclient import TestClient

from camp.db import Base, SessionLocal, engine
from camp.main import app
from camp.models import AuthUser, CalendarDay, Chapter, Course, SpecialDate, Student, Teacher
from camp.routers.auth import hash_password
from camp.routers.boss import get_mailer
from camp.routers.common import get_today
from camp.routers.teacher import get_renderer


PASSWORD = "correct horse"
PASSWORD_HASH = hash_password(PASSWORD)

TODAY = date(2023, 10, 2)
FIRST_DAY = date(2023, 8, 28)
END_FALL = date(2024, 1, 8)
LAST_DAY = date(2024, 5, 31)


def school_days(first: date = FIRST_DAY, last: date = LAST_DAY) -> List[date]:
	days = []
	day = first
	while day <= last:
		if day.weekday() < 5:
			days.append(day)
		day += timedelta(days=1)
	return days


class FakeRenderer:
	def __init__(self) -> None:
		self.calls = []

	async def render(self, template: str, fields: Dict) -> bytes:
		self.calls.append((template, fields))
		return b"%PDF-1.4 " + fields["uname"].encode()


class FakeMailer:
	def __init__(self) -> None:
		self.sent = []

	async def send(self, to: str, subject: str, text: str) -> None:
		self.sent.append((to, subject, text))


def _seed() -> None:
	db = SessionLocal()
	try:
		for username, role, email in (
			("root", "admin", "root@school.test"),
			("boss", "boss", "boss@school.test"),
			("tina", "teacher", "tina@school.test"),
			("ted", "teacher", "ted@school.test"),
			("sam", "student", ""),
			("sue", "student", ""),
		):
			db.add(AuthUser(username=username, password_hash=PASSWORD_HASH, role=role, email=email))
		db.flush()
		db.add_all([Teacher(username="tina", name="Tina Teach"), Teacher(username="ted", name="Ted Tutor")])
		db.flush()
		db.add_all([
			Student(username="sam", last="Smith", rest="Sam", teacher="tina", parent="parent@home.test"),
			Student(username="sue", last="Stone", rest="Sue", teacher="ted", parent=""),
		])
		course = Course(sym="pha1", title="Physics A", book="Physics", level=9.0)
		for seq in range(1, 5):
			course.chapters.append(Chapter(seq=seq, title=f"Motion {seq}"))
		db.add(course)
		db.add(Course(sym="alg", title="Algebra", level=8.0, chapters=[Chapter(seq=1, title="Numbers")]))
		db.add_all(CalendarDay(day=d) for d in school_days())
		db.add_all([SpecialDate(name="end-fall", day=END_FALL), SpecialDate(name="end-spring", day=LAST_DAY)])
		db.commit()
	finally:
		db.close()


@pytest.fixture()
def db() -> Iterator:
	Base.metadata.drop_all(bind=engine)
	Base.metadata.create_all(bind=engine)
	_seed()
	session = SessionLocal()
	try:
		yield session
	finally:
		session.close()


@pytest.fixture()
def renderer() -> FakeRenderer:
	return FakeRenderer()


@pytest.fixture()
def mailer() -> FakeMailer:
	return FakeMailer()


@pytest.fixture()
def client(db, renderer, mailer) -> Iterator[TestClient]:
	app.dependency_overrides[get_today] = lambda: TODAY
	app.dependency_overrides[get_renderer] = lambda: renderer
	app.dependency_overrides[get_mailer] = lambda: mailer
	try:
		yield TestClient(app)
	finally:
		app.dependency_overrides.clear()


@pytest.fixture()
def login(client):
	def _login(username: str, password: str = PASSWORD) -> Dict[str, str]:
		r = client.post("/auth/token", data={"username": username, "password": password})
		assert r.status_code == 200, r.text
		return {"Authorization": f"Bearer {r.json()['access_token']}"}
	return _login
