from __future__ import annotations
import io
import logging
import zipfile
from datetime import date
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..academic_calendar import Term
from ..db import get_db
from ..errors import CampError
from ..mailer import Mailer, compose_parent_email
from ..models import AuthUser, ReportDoc, Student, Teacher
from ..settings import settings
from .auth import User, require_role
from .common import get_today, pace_payload, student_or_404, summarize


router = APIRouter(prefix="/boss", tags=["boss"])
logger = logging.getLogger(__name__)

boss_only = require_role("boss")


class EmailEnvelope(BaseModel):
	uname: str
	student_name: str | None = None
	text: str


async def get_mailer():
	try:
		mailer = Mailer()
	except ValueError as e:
		raise HTTPException(status_code=503, detail=str(e))
	try:
		yield mailer
	finally:
		await mailer.aclose()


def _email_for(db: Session, uname: str, today: date) -> EmailEnvelope:
	student, _, _, summary = summarize(db, uname, today)
	teacher = db.get(Teacher, student.teacher)
	teacher_account = db.get(AuthUser, student.teacher)
	name = f"{student.rest} {student.last}"
	text = compose_parent_email(
		summary,
		student_name=name,
		teacher_name=teacher.name if teacher else student.teacher,
		teacher_email=teacher_account.email if teacher_account else "",
		today=today,
	)
	return EmailEnvelope(uname=uname, student_name=name, text=text)


def _subject(name: str) -> str:
	return f"{settings.school_name} progress report for {name}"


@router.get("/paces")
async def all_paces(user: User = Depends(boss_only), db: Session = Depends(get_db), today: date = Depends(get_today)):
	"""Every student's pace, grouped under their teacher."""
	grouped: Dict[str, dict] = {}
	for teacher in db.query(Teacher).order_by(Teacher.name).all():
		grouped[teacher.username] = {"teacher": teacher.name, "paces": []}
	students = db.query(Student).order_by(Student.last, Student.rest).all()
	for student in students:
		_, snapshot, _, summary = summarize(db, student.username, today)
		teacher = db.get(Teacher, student.teacher)
		grouped[student.teacher]["paces"].append(pace_payload(student, teacher, snapshot, summary))
	return list(grouped.values())


@router.get("/email/{uname}", response_model=EmailEnvelope)
async def compose_email(uname: str, user: User = Depends(boss_only), db: Session = Depends(get_db), today: date = Depends(get_today)):
	student_or_404(db, uname)
	return _email_for(db, uname, today)


@router.post("/email")
async def send_email(req: EmailEnvelope, user: User = Depends(boss_only), db: Session = Depends(get_db), mailer: Mailer = Depends(get_mailer)):
	student = student_or_404(db, req.uname)
	if not student.parent.strip():
		raise HTTPException(status_code=400, detail=f"no parent address on record for {req.uname!r}")
	name = req.student_name or f"{student.rest} {student.last}"
	try:
		await mailer.send(student.parent, _subject(name), req.text)
	except RuntimeError as e:
		raise HTTPException(status_code=502, detail=str(e))
	logger.info("%s emailed parents of %r", user.username, req.uname)
	return {"ok": True}


@router.post("/email-all")
async def email_all(user: User = Depends(boss_only), db: Session = Depends(get_db), today: date = Depends(get_today), mailer: Mailer = Depends(get_mailer)):
	"""Send the generated email to every parent on record; failures are reported, not fatal."""
	sent: List[str] = []
	failures: List[Dict[str, str]] = []
	for student in db.query(Student).order_by(Student.username).all():
		if not student.parent.strip():
			failures.append({"uname": student.username, "error": "no parent address"})
			continue
		try:
			envelope = _email_for(db, student.username, today)
			await mailer.send(student.parent, _subject(envelope.student_name), envelope.text)
		except (CampError, RuntimeError) as e:
			logger.error("unable to email parents of %r: %s", student.username, e)
			failures.append({"uname": student.username, "error": str(e)})
			continue
		sent.append(student.username)
	return {"sent": sent, "failures": failures}


@router.get("/report/{uname}/{term}")
async def download_report(uname: str, term: str, user: User = Depends(boss_only), db: Session = Depends(get_db)):
	term_value = Term.parse(term)
	student_or_404(db, uname)
	row = db.get(ReportDoc, (uname, term_value.value))
	if row is None or row.doc is None:
		raise HTTPException(status_code=404, detail=f"no {term_value.value} report for {uname!r}")
	filename = f"{uname}_{term_value.value.lower()}.pdf"
	return Response(content=row.doc, media_type="application/pdf", headers={"Content-Disposition": f'attachment; filename="{filename}"'})


@router.get("/archive/{term}")
async def download_archive(term: str, user: User = Depends(boss_only), db: Session = Depends(get_db)):
	term_value = Term.parse(term)
	rows = db.query(ReportDoc).filter(ReportDoc.term == term_value.value, ReportDoc.doc.isnot(None)).order_by(ReportDoc.username).all()
	if not rows:
		raise HTTPException(status_code=404, detail=f"no {term_value.value} reports have been rendered")
	buffer = io.BytesIO()
	with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
		for row in rows:
			archive.writestr(f"{row.username}_{term_value.value.lower()}.pdf", row.doc)
	filename = f"reports_{term_value.value.lower()}.zip"
	return Response(content=buffer.getvalue(), media_type="application/zip", headers={"Content-Disposition": f'attachment; filename="{filename}"'})
