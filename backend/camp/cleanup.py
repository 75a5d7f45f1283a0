from __future__ import annotations
import logging
from datetime import datetime, timedelta
from sqlalchemy import delete, or_
from sqlalchemy.orm import Session

from .models import AuthSession
from .settings import settings


logger = logging.getLogger(__name__)


def purge_stale_sessions(db: Session, now: datetime | None = None) -> int:
	threshold = (now or datetime.utcnow()) - timedelta(days=settings.session_max_age_days)
	# Sessions that never saw a request fall back to their creation time
	res = db.execute(
		delete(AuthSession).where(
			or_(
				AuthSession.last_activity_at < threshold,
				(AuthSession.last_activity_at.is_(None)) & (AuthSession.created_at < threshold),
			)
		)
	)
	db.commit()
	removed = res.rowcount or 0
	if removed:
		logger.info("purged %d idle sessions", removed)
	return removed
