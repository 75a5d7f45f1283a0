from datetime import date

import pytest

from camp.academic_calendar import AcademicCalendar, Term
from camp.errors import ValidationFailure
from camp.pace import Goal, LetterScale, PaceSnapshot, StudentNumbers, aggregate
from camp.report import FactStatus, MasteryStatus, ReportSidecar, build_report_fields
from camp.settings import DEFAULT_LETTER_GRADES

from conftest import END_FALL, LAST_DAY, school_days


TODAY = date(2024, 3, 1)
TITLES = {
	("pha1", 1): ("Physics A", "Motion", "Kinematics"),
	("pha1", 2): ("Physics A", "Forces", None),
}


@pytest.fixture()
def summary_and_goals():
	goals = [
		Goal(id=1, student="sam", sym="pha1", seq=1, due=date(2023, 9, 15), done=date(2023, 9, 14), tries=2, score="18/20"),
		Goal(id=2, student="sam", sym="pha1", seq=2, due=date(2024, 2, 15), done=date(2024, 2, 16), tries=1, score="80"),
		Goal(id=3, student="sam", sym="pha1", seq=3, due=date(2024, 4, 15)),
	]
	snapshot = PaceSnapshot("sam", StudentNumbers(fall_exam="88", fall_notices=1, spring_exam="0.7"), goals)
	calendar = AcademicCalendar(school_days(), END_FALL, LAST_DAY)
	return aggregate(snapshot, calendar, TODAY, LetterScale(DEFAULT_LETTER_GRADES)), goals


def _fields(summary, goals, term, sidecar=None):
	return build_report_fields(
		summary, goals, term, sidecar or ReportSidecar(), TITLES,
		student_name="Sam Smith", teacher_name="Tina Teach",
	)


def test_fall_report_lists_fall_goals_only(summary_and_goals) -> None:
	summary, goals = summary_and_goals
	fields = _fields(summary, goals, Term.FALL)
	assert fields["term"] == "Fall"
	assert [row["chapter"] for row in fields["goals"]] == ["Motion"]
	row = fields["goals"][0]
	assert row["course"] == "Physics A"
	assert row["subject"] == "Kinematics"
	assert row["score"] == 90
	assert row["tries"] == 2
	assert row["retention"] == "Not Mastered"


def test_spring_report_covers_the_year(summary_and_goals) -> None:
	summary, goals = summary_and_goals
	fields = _fields(summary, goals, Term.SPRING)
	assert [row["chapter"] for row in fields["goals"]] == ["Motion", "Forces", "Chapter 3"]
	assert fields["goals"][2]["course"] == "pha1"
	assert fields["goals"][2]["score"] is None


def test_term_numbers_are_copied_from_the_summary(summary_and_goals) -> None:
	summary, goals = summary_and_goals
	fields = _fields(summary, goals, Term.SPRING)
	assert fields["fall_requirement"] == 1
	assert fields["fall_remaining"] == 0
	assert fields["fall_test"] == "90"
	assert fields["fall_exam"] == 88
	assert fields["fall_notices"] == 1
	assert fields["fall_grade"] == "89"
	assert fields["fall_letter"] == "B"
	assert fields["spring_requirement"] == 2
	assert fields["spring_remaining"] == 1
	assert fields["spring_complete"] == 1
	assert fields["spring_test"] == "80"
	# 0.7 * 0.2 + 0.8 * 0.8 = 0.78
	assert fields["spring_grade"] == "78"
	assert fields["spring_letter"] == "C"


def test_sidecar_data_reaches_the_fields(summary_and_goals) -> None:
	summary, goals = summary_and_goals
	sidecar = ReportSidecar(
		facts={"add": FactStatus.MASTERED, "sub": FactStatus.EXCUSED},
		social={Term.FALL: {"Respect": "4"}},
		completed={Term.FALL: "Physics A"},
		mastery={1: MasteryStatus.RETAINED},
	)
	fields = _fields(summary, goals, Term.FALL, sidecar)
	assert fields["add"] == "Mastered"
	assert fields["sub"] == "Ex"
	assert fields["mul"] == "Not"
	assert fields["social"] == {"Respect": "4"}
	assert fields["completed_courses"] == "Physics A"
	assert fields["goals"][0]["retention"] == "Mastered & Retained"


def test_status_keys() -> None:
	assert MasteryStatus.from_key("M") is MasteryStatus.MASTERED
	assert MasteryStatus.from_key("R").key == "R"
	assert MasteryStatus.from_key(None).key is None
	with pytest.raises(ValidationFailure):
		MasteryStatus.from_key("X")
	assert FactStatus.parse("excused") is FactStatus.EXCUSED
	assert FactStatus.parse("MASTERED") is FactStatus.MASTERED
	assert FactStatus.parse("maybe") is FactStatus.NOT
