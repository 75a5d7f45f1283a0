from __future__ import annotations
import logging
import httpx
from datetime import date
from typing import Any, Dict, Optional

from .pace import PaceSummary
from .settings import settings


logger = logging.getLogger(__name__)


def _days_phrase(delta: int) -> str:
	if delta >= 2:
		return f"in {delta} days"
	if delta == 1:
		return "tomorrow"
	if delta == 0:
		return "today"
	if delta == -1:
		return "yesterday"
	return f"{-delta} days ago"


def _promptness(early_by: Optional[int]) -> str:
	if early_by is None:
		return "unscheduled"
	if early_by >= 2:
		return f"{early_by} days early"
	if early_by == 1:
		return "one day early"
	if early_by == 0:
		return "on time"
	if early_by == -1:
		return "one day late"
	return f"{-early_by} days late"


def compose_parent_email(
	summary: PaceSummary,
	*,
	student_name: str,
	teacher_name: str,
	teacher_email: str,
	today: date,
	service_uri: Optional[str] = None,
) -> str:
	"""Plain-text progress note sent to a student's parents."""
	if summary.n_due == 1:
		due_phrase = "1 goal whose due date has"
	else:
		due_phrase = f"{summary.n_due} goals whose due dates have"

	last_done = ""
	goal = summary.last_completed
	if goal is not None:
		early_by = (goal.due - goal.done).days if goal.due else None
		last_done = (
			f"\nYour student last completed a goal {_days_phrase((goal.done - today).days)}, "
			f"on {goal.done.strftime('%B %d, %Y')} ({_promptness(early_by)}).\n"
		)

	return (
		f"Progress report for {student_name}, as of {today.strftime('%B %d, %Y')}.\n\n"
		f"{student_name} has {due_phrase} passed, and has completed {summary.n_done} "
		f"of {summary.n_scheduled} scheduled goals.\n"
		f"{last_done}\n"
		f"You can view the full pace calendar at {service_uri or settings.school_uri} "
		f"by logging in as {summary.student}.\n\n"
		f"Questions can be directed to {teacher_name} at {teacher_email}.\n"
	)


class Mailer:
	"""Sends mail through a SendGrid-compatible v3 HTTP API."""

	def __init__(self, api_key: Optional[str] = None, *, base_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
		self.api_key = api_key or settings.mail_api_key
		if not self.api_key:
			raise ValueError("MAIL_API_KEY is not configured")
		self.base_url = base_url or settings.mail_api_url
		self._client = httpx.AsyncClient(timeout=30, transport=transport)

	@staticmethod
	def _payload(to: str, subject: str, text: str) -> Dict[str, Any]:
		recipients = [{"email": addr.strip()} for addr in to.split(",") if addr.strip()]
		return {
			"personalizations": [{"to": recipients}],
			"from": {"email": settings.mail_from, "name": settings.school_name},
			"subject": subject,
			"content": [{"type": "text/plain", "value": text}],
		}

	async def send(self, to: str, subject: str, text: str) -> None:
		if not to or not to.strip():
			raise ValueError("no recipient address")
		headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
		try:
			r = await self._client.post(self.base_url, headers=headers, json=self._payload(to, subject, text))
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			logger.error("mail API answered %s: %s", http_err.response.status_code, http_err.response.text[:500])
			raise RuntimeError(f"Mail API failed with status {http_err.response.status_code}") from http_err
		except httpx.RequestError as net_err:
			logger.error("unable to reach mail API: %s", net_err)
			raise RuntimeError(f"Mail API unreachable: {net_err}") from net_err

	async def aclose(self) -> None:
		await self._client.aclose()
