from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .academic_calendar import AcademicCalendar, Term
from .errors import InvalidScore, OutOfRange, ValidationFailure
from .scores import as_percent, maybe_parse_score, parse_score, round_half_up


INCOMPLETE_MARK = " (I)"


@dataclass
class Goal:
	"""One assigned chapter on a student's pace.

	`weight` and `level` come from the chapter and course the goal points at;
	they are filled in when the goal is loaded, not stored with the goal.
	"""
	id: int
	student: str
	sym: str
	seq: int
	review: bool = False
	incomplete: bool = False
	due: Optional[date] = None
	done: Optional[date] = None
	tries: Optional[int] = None
	score: Optional[str] = None
	chapter_id: Optional[int] = None
	weight: float = 1.0
	level: float = 0.0


def goal_sort_key(goal: Goal) -> Tuple:
	# Scheduled goals first by due date, then finished extras by done date,
	# then by course level and chapter number.
	return (
		goal.due is None,
		goal.due or date.min,
		goal.done is None,
		goal.done or date.min,
		goal.level,
		goal.seq,
	)


class GoalStatus(str, Enum):
	DONE = "done"
	LATE = "late"
	OVERDUE = "overdue"
	YET = "yet"


def goal_status(goal: Goal, today: date) -> GoalStatus:
	if goal.due is not None:
		if goal.done is not None:
			return GoalStatus.LATE if goal.done > goal.due else GoalStatus.DONE
		return GoalStatus.OVERDUE if today > goal.due else GoalStatus.YET
	return GoalStatus.DONE if goal.done is not None else GoalStatus.YET


@dataclass
class StudentNumbers:
	fall_exam: Optional[str] = None
	spring_exam: Optional[str] = None
	fall_exam_fraction: float = 0.2
	spring_exam_fraction: float = 0.2
	fall_notices: int = 0
	spring_notices: int = 0

	def __post_init__(self) -> None:
		for name in ("fall_exam_fraction", "spring_exam_fraction"):
			value = getattr(self, name)
			if not 0.0 <= value <= 1.0:
				raise ValidationFailure(f"{name} must be between 0 and 1, not {value}")
		for name in ("fall_notices", "spring_notices"):
			value = getattr(self, name)
			if int(value) != value or value < 0:
				raise ValidationFailure(f"{name} must be a non-negative integer, not {value}")

	def exam(self, term: Term) -> Optional[str]:
		return self.fall_exam if term is Term.FALL else self.spring_exam

	def exam_fraction(self, term: Term) -> float:
		return self.fall_exam_fraction if term is Term.FALL else self.spring_exam_fraction

	def notices(self, term: Term) -> int:
		return self.fall_notices if term is Term.FALL else self.spring_notices


@dataclass
class PaceSnapshot:
	"""Everything about one student's year needed to compute grades."""
	student: str
	numbers: StudentNumbers
	goals: List[Goal] = field(default_factory=list)


@dataclass(frozen=True)
class Issue:
	"""A malformed record skipped during aggregation."""
	message: str
	goal_id: Optional[int] = None
	term: Optional[Term] = None
	field_name: Optional[str] = None


class LetterScale:
	"""Maps a rounded percent onto a letter grade.

	Built from ``(letter, minimum_percent)`` pairs; the cutoffs must be
	strictly decreasing.
	"""

	def __init__(self, cutoffs: Iterable[Sequence]) -> None:
		pairs = [(str(letter), float(low)) for letter, low in cutoffs]
		if not pairs:
			raise ValidationFailure("letter grade scale is empty")
		lows = [low for _, low in pairs]
		if any(a <= b for a, b in zip(lows, lows[1:])):
			raise ValidationFailure("letter grade cutoffs must be strictly decreasing")
		self.cutoffs = pairs

	def letter_for(self, percent: float) -> str:
		for letter, low in self.cutoffs:
			if percent >= low:
				return letter
		return self.cutoffs[-1][0]


@dataclass
class TermSummary:
	term: Term
	scheduled_count: int = 0
	due_count: int = 0
	done_count: int = 0
	scheduled_done_count: int = 0
	total_weight: float = 0.0
	due_weight: float = 0.0
	done_weight: float = 0.0
	test_fraction: Optional[float] = None
	exam_fraction_value: Optional[float] = None
	exam_weight: float = 0.0
	notices: int = 0
	semester_fraction: Optional[float] = None
	semester_grade: Optional[int] = None
	letter: Optional[str] = None
	provisional: bool = False
	last_done_id: Optional[int] = None

	@property
	def remaining_count(self) -> int:
		return self.scheduled_count - self.scheduled_done_count

	@property
	def lead(self) -> Optional[int]:
		return _lead(self.done_weight, self.due_weight, self.total_weight)

	@property
	def behind(self) -> bool:
		lead = self.lead
		return lead is not None and lead < 0

	@property
	def test_average(self) -> Optional[int]:
		if self.test_fraction is None:
			return None
		return as_percent(self.test_fraction)

	@property
	def exam_percent(self) -> Optional[int]:
		if self.exam_fraction_value is None:
			return None
		return as_percent(self.exam_fraction_value)

	def marked(self, value: Optional[int]) -> Optional[str]:
		if value is None:
			return None
		return f"{value}{INCOMPLETE_MARK}" if self.provisional else str(value)

	def lines(self) -> List[Tuple[str, str]]:
		"""Summary rows shown after the term's last completed goal."""
		rows: List[Tuple[str, str]] = []
		if self.test_fraction is None:
			return rows
		rows.append((f"{self.term.value} Test Average", self.marked(self.test_average)))
		if self.exam_percent is None:
			return rows
		rows.append(("Exam Score", str(self.exam_percent)))
		if self.notices:
			rows.append(("Notices", f"-{self.notices}"))
		rows.append((f"{self.term.value} Semester Grade", self.marked(self.semester_grade)))
		return rows


def _lead(done_weight: float, due_weight: float, total_weight: float) -> Optional[int]:
	if total_weight <= 0:
		return None
	return round_half_up(100.0 * (done_weight - due_weight) / total_weight)


def format_lead(lead: Optional[int]) -> str:
	if lead is None:
		return ""
	return f"+{lead}" if lead >= 0 else str(lead)


@dataclass
class PaceSummary:
	student: str
	today: date
	terms: Dict[Term, TermSummary]
	n_scheduled: int = 0
	n_due: int = 0
	n_done: int = 0
	weight_scheduled: float = 0.0
	weight_due: float = 0.0
	weight_done: float = 0.0
	has_review: bool = False
	has_incomplete: bool = False
	previously_incomplete: bool = False
	last_completed: Optional[Goal] = None
	statuses: Dict[int, GoalStatus] = field(default_factory=dict)
	scores: Dict[int, float] = field(default_factory=dict)
	goal_terms: Dict[int, Term] = field(default_factory=dict)
	issues: List[Issue] = field(default_factory=list)

	@property
	def lead(self) -> Optional[int]:
		return _lead(self.weight_done, self.weight_due, self.weight_scheduled)

	@property
	def fall(self) -> TermSummary:
		return self.terms[Term.FALL]

	@property
	def spring(self) -> TermSummary:
		return self.terms[Term.SPRING]


def _term_of_goal(goal: Goal, calendar: AcademicCalendar, issues: List[Issue]) -> Optional[Term]:
	anchor = goal.due or goal.done
	if anchor is None:
		return None
	try:
		return calendar.term_of(anchor)
	except OutOfRange as exc:
		issues.append(Issue(exc.message, goal_id=goal.id, field_name="due" if goal.due else "done"))
		return None


def _goal_score(goal: Goal, issues: List[Issue]) -> Optional[float]:
	if goal.done is None:
		if goal.score is not None and goal.score.strip():
			issues.append(Issue("goal has a score but no completion date", goal_id=goal.id, field_name="score"))
		return None
	try:
		score = maybe_parse_score(goal.score)
	except InvalidScore as exc:
		issues.append(Issue(exc.message, goal_id=goal.id, field_name="score"))
		return None
	if score is None:
		issues.append(Issue("goal has a completion date but no score", goal_id=goal.id, field_name="score"))
	return score


def _grade_term(
	ts: TermSummary,
	scores: List[float],
	numbers: StudentNumbers,
	letters: LetterScale,
	issues: List[Issue],
) -> None:
	ts.notices = numbers.notices(ts.term)
	ts.exam_weight = numbers.exam_fraction(ts.term)
	raw_exam = numbers.exam(ts.term)
	try:
		ts.exam_fraction_value = maybe_parse_score(raw_exam)
	except InvalidScore as exc:
		issues.append(Issue(exc.message, term=ts.term, field_name=f"{ts.term.value.lower()}_exam"))
	if not scores:
		return
	ts.test_fraction = sum(scores) / len(scores)
	if ts.exam_fraction_value is None:
		return
	frac = ts.exam_weight
	ts.semester_fraction = ts.exam_fraction_value * frac + ts.test_fraction * (1.0 - frac)
	ts.semester_grade = round_half_up(100.0 * ts.semester_fraction - ts.notices)
	ts.letter = letters.letter_for(ts.semester_grade)


def aggregate(
	snapshot: PaceSnapshot,
	calendar: AcademicCalendar,
	today: date,
	letters: LetterScale,
) -> PaceSummary:
	"""Compute per-term counts, averages and grades for one student.

	Malformed goals and exam marks end up in `PaceSummary.issues`; they
	never abort the computation.
	"""
	terms = {term: TermSummary(term=term) for term in Term}
	summary = PaceSummary(student=snapshot.student, today=today, terms=terms)
	term_scores: Dict[Term, List[float]] = {term: [] for term in Term}

	for goal in snapshot.goals:
		summary.statuses[goal.id] = goal_status(goal, today)
		summary.has_review = summary.has_review or goal.review
		summary.has_incomplete = summary.has_incomplete or goal.incomplete
		if goal.due is not None:
			summary.n_scheduled += 1
			summary.weight_scheduled += goal.weight
			if goal.due <= today:
				summary.n_due += 1
				summary.weight_due += goal.weight
		if goal.done is not None:
			summary.n_done += 1
			summary.weight_done += goal.weight
			if summary.last_completed is None or goal.done >= summary.last_completed.done:
				summary.last_completed = goal
		elif goal.incomplete:
			summary.previously_incomplete = True

		score = _goal_score(goal, summary.issues)
		if score is not None:
			summary.scores[goal.id] = score

		term = _term_of_goal(goal, calendar, summary.issues)
		if term is None:
			continue
		summary.goal_terms[goal.id] = term
		ts = terms[term]
		if goal.due is not None:
			ts.scheduled_count += 1
			ts.total_weight += goal.weight
			if goal.due <= today:
				ts.due_count += 1
				ts.due_weight += goal.weight
		if goal.done is not None:
			ts.done_count += 1
			ts.done_weight += goal.weight
			ts.last_done_id = goal.id
			if goal.due is not None:
				ts.scheduled_done_count += 1
			if score is not None:
				term_scores[term].append(score)
		elif goal.incomplete:
			ts.provisional = True

	for term, ts in terms.items():
		_grade_term(ts, term_scores[term], snapshot.numbers, letters, summary.issues)

	return summary


def chapter_in_use(goals: Iterable[Goal], chapter_id: int) -> bool:
	return any(goal.chapter_id == chapter_id for goal in goals)


def validate_goal(goal: Goal) -> None:
	"""Reject goals whose completion fields contradict each other."""
	has_score = goal.score is not None and bool(goal.score.strip())
	if goal.done is not None and not has_score:
		raise ValidationFailure(f"goal {goal.id}: a completed goal needs a score")
	if has_score and goal.done is None:
		raise ValidationFailure(f"goal {goal.id}: a score needs a completion date")
	if has_score:
		parse_score(goal.score)
	if goal.tries is not None and goal.tries < 1:
		raise ValidationFailure(f"goal {goal.id}: tries must be at least 1")
	if goal.done is not None and goal.tries is None:
		goal.tries = 1
