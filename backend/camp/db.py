from __future__ import annotations
from sqlalchemy import create_engine, event, inspect
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from .settings import settings


DATABASE_URL = settings.database_url or "sqlite:///./camp.db"

_engine_kwargs = {}
if DATABASE_URL.startswith("sqlite"):
	_engine_kwargs["connect_args"] = {"check_same_thread": False}
	# An in-memory database lives only as long as its one connection
	if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
		_engine_kwargs["poolclass"] = StaticPool

engine = create_engine(DATABASE_URL, future=True, **_engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


if DATABASE_URL.startswith("sqlite"):
	@event.listens_for(engine, "connect")
	def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
		cursor = dbapi_connection.cursor()
		cursor.execute("PRAGMA foreign_keys=ON")
		cursor.close()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Best-effort lightweight migrations for development (SQLite-friendly)
def ensure_schema() -> None:
	try:
		inspector = inspect(engine)
		tables = set(inspector.get_table_names())
	except Exception:
		return
	if "students" in tables:
		cols = {c["name"] for c in inspector.get_columns("students")}
		with engine.begin() as conn:
			if "parent" not in cols:
				conn.exec_driver_sql("ALTER TABLE students ADD COLUMN parent VARCHAR(256) DEFAULT '' NOT NULL")
	if "auth_sessions" in tables:
		cols = {c["name"] for c in inspector.get_columns("auth_sessions")}
		with engine.begin() as conn:
			if "last_activity_at" not in cols:
				conn.exec_driver_sql("ALTER TABLE auth_sessions ADD COLUMN last_activity_at DATETIME")
