"""
CigroTrack
AI Quota — per-user request limits for the AI assist endpoints.

Limits:
    - 10 requests per rolling minute (counted since the previous request)
    - 100 requests per UTC day, reset at the next UTC midnight

The check and the increment are one conditional UPDATE: if the WHERE
clause rejects the row (limit reached) no row is changed and the request
is refused. Two concurrent requests can therefore never both take the
last slot.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import and_, case, or_, select, update
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import RateLimitError
from app.models import db, utcnow
from app.models.ai import AIRateLimit
from app.utils.helpers import as_utc

logger = logging.getLogger(__name__)

MINUTE_LIMIT = 10
DAILY_LIMIT = 100
MINUTE_WINDOW = timedelta(seconds=60)

DAILY_LIMIT_MESSAGE = "Daily AI request limit exceeded. Please try again tomorrow."
MINUTE_LIMIT_MESSAGE = "Too many requests. Please wait a minute and try again."


def next_utc_midnight(now: datetime) -> datetime:
    """Compute next reset datetime (midnight UTC next day)."""
    next_day = now + timedelta(days=1)
    return next_day.replace(hour=0, minute=0, second=0, microsecond=0)


def _ensure_row(user_id: str, now: datetime) -> None:
    """Create the user's quota row on first use and roll the daily window."""
    exists = db.session.execute(
        select(AIRateLimit.id).where(AIRateLimit.user_id == user_id)
    ).scalar_one_or_none()
    if exists is None:
        db.session.add(AIRateLimit(
            user_id=user_id,
            minute_count=0,
            daily_count=0,
            daily_reset_at=next_utc_midnight(now),
        ))
        try:
            db.session.commit()
        except IntegrityError:
            # Another request created it first
            db.session.rollback()
        return

    db.session.execute(
        update(AIRateLimit)
        .where(AIRateLimit.user_id == user_id, AIRateLimit.daily_reset_at <= now)
        .values(daily_count=0, daily_reset_at=next_utc_midnight(now))
        .execution_options(synchronize_session=False)
    )


def consume(user_id: str) -> None:
    """
    Take one request from the user's quota or raise RateLimitError (429).

    The per-minute counter keeps growing while requests arrive less than
    60 seconds apart and restarts at 1 otherwise.
    """
    now = utcnow()
    _ensure_row(user_id, now)
    db.session.commit()
    window_start = now - MINUTE_WINDOW
    recent = and_(
        AIRateLimit.last_request_at.isnot(None),
        AIRateLimit.last_request_at > window_start,
    )

    result = db.session.execute(
        update(AIRateLimit)
        .where(
            AIRateLimit.user_id == user_id,
            AIRateLimit.daily_count < DAILY_LIMIT,
            or_(~recent, AIRateLimit.minute_count < MINUTE_LIMIT),
        )
        .values(
            minute_count=case((recent, AIRateLimit.minute_count + 1), else_=1),
            daily_count=AIRateLimit.daily_count + 1,
            last_request_at=now,
        )
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        daily_count = db.session.execute(
            select(AIRateLimit.daily_count).where(AIRateLimit.user_id == user_id)
        ).scalar_one()
        message = DAILY_LIMIT_MESSAGE if daily_count >= DAILY_LIMIT else MINUTE_LIMIT_MESSAGE
        logger.info("AI quota refused user=%s daily_count=%s", user_id, daily_count)
        raise RateLimitError(message, code="AI_RATE_LIMIT")

    db.session.commit()


def status(user_id: str) -> dict:
    """Current counters for the user, creating the quota row if needed."""
    now = utcnow()
    _ensure_row(user_id, now)
    db.session.commit()
    row = db.session.execute(
        select(AIRateLimit).where(AIRateLimit.user_id == user_id)
    ).scalar_one()
    db.session.refresh(row)
    last = as_utc(row.last_request_at)
    return row.to_dict(
        minute_limit=MINUTE_LIMIT,
        daily_limit=DAILY_LIMIT,
        minute_active=last is not None and last > now - MINUTE_WINDOW,
    )
