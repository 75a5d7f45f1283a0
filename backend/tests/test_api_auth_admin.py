from datetime import datetime, timedelta

from camp.cleanup import purge_stale_sessions
from camp.models import AuthSession, AuthUser, Student


def test_login_and_me(client, login) -> None:
	r = client.post("/auth/token", data={"username": "tina", "password": "correct horse"})
	assert r.status_code == 200
	assert r.json()["role"] == "teacher"

	me = client.get("/auth/me", headers=login("tina"))
	assert me.json() == {"username": "tina", "role": "teacher"}


def test_bad_password_is_rejected(client) -> None:
	r = client.post("/auth/token", data={"username": "tina", "password": "nope"})
	assert r.status_code == 401


def test_logout_revokes_the_session(client, login) -> None:
	headers = login("sam")
	assert client.post("/auth/logout", headers=headers).json() == {"ok": True}
	assert client.get("/auth/me", headers=headers).status_code == 401


def test_roles_are_enforced(client, login) -> None:
	assert client.get("/teacher/paces", headers=login("sam")).status_code == 403
	assert client.get("/admin/users", headers=login("tina")).status_code == 403
	assert client.get("/boss/paces", headers=login("tina")).status_code == 403
	assert client.get("/admin/users").status_code == 401


def test_health(client) -> None:
	body = client.get("/health").json()
	assert body["status"] == "ok"
	assert body["renderer_configured"] is False


def test_admin_manages_users(client, login, db) -> None:
	headers = login("root")
	r = client.post("/admin/users", headers=headers, json={
		"username": "max", "password": "pw", "role": "student",
		"last": "Moss", "rest": "Max", "teacher": "tina", "parent": "moss@home.test",
	})
	assert r.status_code == 201, r.text
	assert r.json()["teacher"] == "tina"

	assert client.post("/admin/users", headers=headers, json={"username": "max", "password": "pw", "role": "student"}).status_code == 409
	assert client.post("/admin/users", headers=headers, json={"username": "zed", "password": "pw", "role": "janitor"}).status_code == 400
	assert client.post("/admin/users", headers=headers, json={
		"username": "zed", "password": "pw", "role": "student", "last": "Z", "rest": "Zed", "teacher": "nobody",
	}).status_code == 400

	r = client.put("/admin/users/max", headers=headers, json={"teacher": "ted"})
	assert r.json()["teacher"] == "ted"

	students = client.get("/admin/users", headers=headers, params={"role": "student"}).json()
	assert [s["username"] for s in students] == ["max", "sam", "sue"]

	assert client.delete("/admin/users/max", headers=headers).status_code == 200
	db.expire_all()
	assert db.get(Student, "max") is None


def test_teacher_with_students_cannot_be_deleted(client, login) -> None:
	r = client.delete("/admin/users/tina", headers=login("root"))
	assert r.status_code == 409


def test_course_and_chapter_deletes_respect_goals(client, login) -> None:
	admin = login("root")
	r = client.post("/teacher/goals", headers=login("tina"), json={"uname": "sam", "sym": "pha1", "seq": 2, "due": "2023-09-15"})
	assert r.status_code == 201, r.text

	r = client.delete("/admin/courses/pha1", headers=admin)
	assert r.status_code == 409
	assert "[2]" in r.json()["detail"]

	courses = {c["sym"]: c for c in client.get("/admin/courses", headers=admin).json()}
	chapters = {ch["seq"]: ch["id"] for ch in courses["pha1"]["chapters"]}
	assert client.delete(f"/admin/chapters/{chapters[2]}", headers=admin).status_code == 409
	assert client.delete(f"/admin/chapters/{chapters[3]}", headers=admin).status_code == 200
	assert client.delete("/admin/courses/alg", headers=admin).status_code == 200

	remaining = client.get("/admin/courses", headers=admin).json()
	assert [c["sym"] for c in remaining] == ["pha1"]
	assert [ch["seq"] for ch in remaining[0]["chapters"]] == [1, 2, 4]


def test_admin_manages_courses(client, login) -> None:
	admin = login("root")
	r = client.post("/admin/courses", headers=admin, json={
		"sym": "chem", "title": "Chemistry", "level": 10,
		"chapters": [{"seq": 1, "title": "Atoms", "weight": 2}, {"seq": 2}],
	})
	assert r.status_code == 201, r.text
	assert [(ch["seq"], ch["title"], ch["weight"]) for ch in r.json()["chapters"]] == [(1, "Atoms", 2.0), (2, "Chapter 2", None)]
	assert client.post("/admin/courses", headers=admin, json={"sym": "chem", "title": "Again"}).status_code == 409
	assert client.post("/admin/courses/chem/chapters", headers=admin, json=[{"seq": 1}]).status_code == 409

	r = client.put("/admin/courses/chem", headers=admin, json={"title": "Chemistry I"})
	assert r.json()["title"] == "Chemistry I"
	chapter_id = r.json()["chapters"][1]["id"]
	r = client.put(f"/admin/chapters/{chapter_id}", headers=admin, json={"weight": 0.5})
	assert r.json()["weight"] == 0.5


def test_admin_sets_calendar_and_dates(client, login) -> None:
	admin = login("root")
	r = client.put("/admin/calendar", headers=admin, json={"days": ["2023-09-05", "2023-09-04", "2023-09-05"]})
	assert r.json()["inserted"] == 2
	assert client.get("/admin/calendar", headers=login("tina")).json() == {"days": ["2023-09-04", "2023-09-05"]}

	assert client.put("/admin/dates/end-fall", headers=admin, json={"day": "2024-01-15"}).status_code == 200
	assert client.get("/admin/dates", headers=admin).json()["end-fall"] == "2024-01-15"
	assert client.put("/admin/dates/summer", headers=admin, json={"day": "2024-07-01"}).status_code == 400


def test_reset_students_clears_numbers(client, login, db) -> None:
	r = client.put("/teacher/numbers/sam", headers=login("tina"), json={"fex": "88", "fnot": 2})
	assert r.status_code == 200, r.text
	assert client.post("/admin/reset-students", headers=login("root")).json() == {"reset": 2}
	db.expire_all()
	sam = db.get(Student, "sam")
	assert sam.fall_exam is None
	assert sam.fall_notices == 0


def test_stale_sessions_are_purged(db) -> None:
	now = datetime(2024, 1, 10)
	db.add_all([
		AuthSession(session_id="old", username="sam", created_at=now - timedelta(days=30), last_activity_at=now - timedelta(days=8)),
		AuthSession(session_id="fresh", username="sam", created_at=now - timedelta(days=30), last_activity_at=now - timedelta(days=1)),
		AuthSession(session_id="unused", username="sam", created_at=now - timedelta(days=9), last_activity_at=None),
	])
	db.commit()
	assert db.get(AuthSession, "unused").last_activity_at is None
	assert purge_stale_sessions(db, now=now) == 2
	assert [s.session_id for s in db.query(AuthSession).all()] == ["fresh"]
	assert db.get(AuthUser, "sam") is not None
