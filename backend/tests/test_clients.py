import asyncio
import json
from datetime import date

import httpx
import pytest

from camp.academic_calendar import AcademicCalendar
from camp.mailer import Mailer, compose_parent_email
from camp.pace import Goal, LetterScale, PaceSnapshot, StudentNumbers, aggregate
from camp.renderer_client import ReportRenderer
from camp.settings import DEFAULT_LETTER_GRADES

from conftest import END_FALL, LAST_DAY, school_days


def _summary(goals, today):
	calendar = AcademicCalendar(school_days(), END_FALL, LAST_DAY)
	return aggregate(PaceSnapshot("sam", StudentNumbers(), goals), calendar, today, LetterScale(DEFAULT_LETTER_GRADES))


def test_parent_email_reports_counts_and_promptness() -> None:
	goals = [
		Goal(id=1, student="sam", sym="pha1", seq=1, due=date(2023, 9, 15), done=date(2023, 9, 14), score="90"),
		Goal(id=2, student="sam", sym="pha1", seq=2, due=date(2023, 9, 18)),
		Goal(id=3, student="sam", sym="pha1", seq=3, due=date(2023, 10, 18)),
	]
	text = compose_parent_email(
		_summary(goals, date(2023, 9, 20)),
		student_name="Sam Smith",
		teacher_name="Tina Teach",
		teacher_email="tina@school.test",
		today=date(2023, 9, 20),
		service_uri="https://camp.school.test",
	)
	assert text.startswith("Progress report for Sam Smith, as of September 20, 2023.")
	assert "2 goals whose due dates have passed" in text
	assert "has completed 1 of 3 scheduled goals" in text
	assert "last completed a goal 6 days ago, on September 14, 2023 (one day early)" in text
	assert "https://camp.school.test by logging in as sam" in text
	assert "Tina Teach at tina@school.test" in text


def test_parent_email_without_completed_goals() -> None:
	goals = [Goal(id=1, student="sam", sym="pha1", seq=1, due=date(2023, 9, 15))]
	text = compose_parent_email(
		_summary(goals, date(2023, 9, 20)),
		student_name="Sam Smith",
		teacher_name="Tina Teach",
		teacher_email="tina@school.test",
		today=date(2023, 9, 20),
	)
	assert "1 goal whose due date has passed" in text
	assert "last completed" not in text


def test_mailer_posts_one_message_to_every_recipient() -> None:
	seen = []

	def handler(request: httpx.Request) -> httpx.Response:
		seen.append(request)
		return httpx.Response(202)

	async def run():
		mailer = Mailer("key-123", base_url="https://mail.test/v3/mail/send", transport=httpx.MockTransport(handler))
		try:
			await mailer.send("mom@home.test, dad@home.test", "Progress", "hello")
		finally:
			await mailer.aclose()

	asyncio.run(run())
	assert len(seen) == 1
	assert seen[0].headers["Authorization"] == "Bearer key-123"
	body = json.loads(seen[0].content)
	assert body["personalizations"] == [{"to": [{"email": "mom@home.test"}, {"email": "dad@home.test"}]}]
	assert body["subject"] == "Progress"
	assert body["content"] == [{"type": "text/plain", "value": "hello"}]


def test_mailer_failures_surface_as_runtime_errors() -> None:
	async def run():
		mailer = Mailer("key-123", base_url="https://mail.test/send", transport=httpx.MockTransport(lambda r: httpx.Response(500, text="boom")))
		try:
			await mailer.send("mom@home.test", "Progress", "hello")
		finally:
			await mailer.aclose()

	with pytest.raises(RuntimeError, match="status 500"):
		asyncio.run(run())


def test_mailer_needs_a_key() -> None:
	with pytest.raises(ValueError):
		Mailer()


def test_renderer_returns_document_bytes() -> None:
	seen = []

	def handler(request: httpx.Request) -> httpx.Response:
		seen.append(json.loads(request.content))
		return httpx.Response(200, content=b"%PDF-1.4 doc")

	async def run():
		renderer = ReportRenderer("https://render.test/render", transport=httpx.MockTransport(handler))
		try:
			return await renderer.render("report_fall", {"uname": "sam"})
		finally:
			await renderer.aclose()

	assert asyncio.run(run()) == b"%PDF-1.4 doc"
	assert seen == [{"template": "report_fall", "fields": {"uname": "sam"}}]


def test_renderer_rejects_empty_documents() -> None:
	async def run():
		renderer = ReportRenderer("https://render.test/render", transport=httpx.MockTransport(lambda r: httpx.Response(200)))
		try:
			await renderer.render("report_fall", {})
		finally:
			await renderer.aclose()

	with pytest.raises(RuntimeError, match="empty"):
		asyncio.run(run())


def test_renderer_needs_a_url() -> None:
	with pytest.raises(ValueError):
		ReportRenderer()
