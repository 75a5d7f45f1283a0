from __future__ import annotations
from datetime import date
from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..scores import as_percent
from ..store import chapter_titles
from .auth import User, require_role
from .common import get_today, summarize


router = APIRouter(prefix="/student", tags=["student"])


@router.get("/pace")
async def my_pace(user: User = Depends(require_role("student")), db: Session = Depends(get_db), today: date = Depends(get_today)):
	student, snapshot, _, summary = summarize(db, user.username, today)
	titles = chapter_titles(db)
	closing = {ts.last_done_id: ts for ts in summary.terms.values() if ts.last_done_id is not None}

	# Goal rows, with each term's summary lines after its last completed goal
	rows: List[Dict[str, Any]] = []
	for goal in snapshot.goals:
		course, chapter, subject = titles.get((goal.sym, goal.seq), (goal.sym, f"Chapter {goal.seq}", None))
		score = summary.scores.get(goal.id)
		rows.append({
			"kind": "goal",
			"course": course,
			"chapter": chapter,
			"subject": subject or "",
			"rev": goal.review,
			"inc": goal.incomplete,
			"due": goal.due.isoformat() if goal.due else None,
			"done": goal.done.isoformat() if goal.done else None,
			"tries": goal.tries,
			"score": as_percent(score) if score is not None else None,
			"status": summary.statuses[goal.id].value,
		})
		ts = closing.get(goal.id)
		if ts is not None:
			rows.extend({"kind": "summary", "label": label, "value": value} for label, value in ts.lines())

	return {
		"uname": student.username,
		"name": f"{student.rest} {student.last}",
		"n_scheduled": summary.n_scheduled,
		"n_due": summary.n_due,
		"n_done": summary.n_done,
		"rows": rows,
	}
