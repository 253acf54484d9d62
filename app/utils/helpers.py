"""Shared utility functions for services and blueprints.

as_utc:             normalise naive datetimes coming back from SQLite
parse_datetime:     ISO date / datetime input → aware UTC datetime
commit:             commit the session, IntegrityError → ConflictError
require_text / optional_text / validate_color:  input validation
"""

import logging
import re
from datetime import date, datetime, time, timezone

from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConflictError, ValidationError
from app.models import db

logger = logging.getLogger(__name__)


def as_utc(value):
    """Attach UTC to a naive datetime (SQLite drops tzinfo on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value, field="date"):
    """Parse an ISO date or datetime string to an aware UTC datetime.

    Accepts:
    - YYYY-MM-DD (midnight UTC)
    - YYYY-MM-DDTHH:MM:SS[.ffffff][+HH:MM|Z]

    Returns None for empty input; raises ValidationError on garbage.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError:
        pass
    try:
        return datetime.combine(date.fromisoformat(text), time.min, tzinfo=timezone.utc)
    except ValueError as exc:
        raise ValidationError(f"Invalid {field}. Use ISO 8601 (YYYY-MM-DD).") from exc


def commit():
    """Commit the current SQLAlchemy session.

    IntegrityError → ConflictError (409). Anything else is rolled back and
    re-raised for the generic 500 handler.
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        raise ConflictError("Duplicate or constraint violation") from exc
    except Exception:
        db.session.rollback()
        raise


_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


def require_text(value, label, max_len, min_len=1):
    """Trimmed string whose length is within [min_len, max_len]."""
    text = value.strip() if isinstance(value, str) else ""
    if not (min_len <= len(text) <= max_len):
        raise ValidationError(f"{label} must be between {min_len} and {max_len} characters")
    return text


def optional_text(value, label, max_len):
    """Trimmed string or None; blank input becomes None."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{label} must be a string")
    text = value.strip()
    if len(text) > max_len:
        raise ValidationError(f"{label} must be {max_len} characters or less")
    return text or None


def validate_color(value, default):
    if value in (None, ""):
        return default
    if not isinstance(value, str) or not _HEX_COLOR.match(value):
        raise ValidationError("Color must be a hex value like #RRGGBB")
    return value.upper()
