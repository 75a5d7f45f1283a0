from datetime import date

import pytest

from camp.errors import ValidationFailure
from camp.upload import goals_from_csv


def test_blank_cells_repeat_the_previous_row() -> None:
	text = (
		"#uname, sym, seq,    y, m,  d, rev, inc\n"
		"jsmith, pha1,  3, 2022, 9, 10,   x,\n"
		"      ,     ,  9,     ,  , 28,    ,  x\n"
		"\n"
		"ajones, alg,   1, 2022, 10, 3,    ,\n"
	)
	goals = goals_from_csv(text)
	assert [(g.student, g.sym, g.seq, g.due) for g in goals] == [
		("jsmith", "pha1", 3, date(2022, 9, 10)),
		("jsmith", "pha1", 9, date(2022, 9, 28)),
		("ajones", "alg", 1, date(2022, 10, 3)),
	]
	assert [(g.review, g.incomplete) for g in goals] == [(True, False), (False, True), (False, False)]
	assert all(g.done is None and g.score is None for g in goals)


def test_short_rows_leave_flags_off() -> None:
	goals = goals_from_csv("jsmith,pha1,3,2022,9,10\n")
	assert goals[0].review is False
	assert goals[0].incomplete is False


@pytest.mark.parametrize(
	("text", "message"),
	[
		(",pha1,3,2022,9,10\n", "error on line 1: no uname"),
		("jsmith,pha1,3,2022,9,10\n,,x,,,\n", "error on line 2: unable to parse 'x' as chapter number"),
		("jsmith,pha1,,2022,9,10\n", "error on line 1: no chapter number"),
		("jsmith,pha1,3,,9,10\n", "error on line 1: no year"),
		("jsmith,pha1,3,2022,2,30\n", "error on line 1: 2022-2-30 is not a valid date"),
	],
)
def test_bad_rows_name_their_line(text, message) -> None:
	with pytest.raises(ValidationFailure) as info:
		goals_from_csv(text)
	assert info.value.message == message
