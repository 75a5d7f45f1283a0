import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from .db import Base, SessionLocal, engine, ensure_schema
from .cleanup import purge_stale_sessions
from .errors import CampError
from .settings import settings
from .routers import health
from .routers import auth
from .routers import admin
from .routers import boss
from .routers import teacher
from .routers import student

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Camp API")
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(boss.router)
app.include_router(teacher.router)
app.include_router(student.router)


@app.exception_handler(CampError)
async def camp_error_handler(request: Request, exc: CampError):
	return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/", include_in_schema=False)
async def redirect_root_to_docs():
	return RedirectResponse(url="/docs")


def _purge_once() -> None:
	db = SessionLocal()
	try:
		purge_stale_sessions(db)
	except Exception:
		db.rollback()
		logger.exception("session cleanup failed")
	finally:
		db.close()


async def _cleanup_watcher():
	# Daily, after the pass made at startup
	while True:
		await asyncio.sleep(24 * 60 * 60)
		_purge_once()


@app.on_event("startup")
async def startup_event():
	Base.metadata.create_all(bind=engine)
	ensure_schema()
	db = SessionLocal()
	try:
		auth.ensure_seed_admin(db)
	finally:
		db.close()
	_purge_once()
	asyncio.create_task(_cleanup_watcher())
