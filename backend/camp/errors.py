from __future__ import annotations


class CampError(Exception):
	"""Base class for errors raised by the pace/grading core."""

	status_code = 400

	def __init__(self, message: str) -> None:
		super().__init__(message)
		self.message = message


class InvalidScore(CampError):
	def __init__(self, text: str | None, reason: str = "not a valid score") -> None:
		super().__init__(f"{text!r} is {reason}")
		self.text = text


class OutOfRange(CampError):
	"""A date falls outside the configured academic year."""

	status_code = 422

	def __init__(self, day, start, end) -> None:
		super().__init__(f"{day} is outside the academic year ({start} to {end})")
		self.day = day
		self.start = start
		self.end = end


class ReferentialConflict(CampError):
	status_code = 409


class ValidationFailure(CampError):
	pass
