"""
CigroTrack
SQLAlchemy models package.

All models share the single ``db`` instance defined here. Primary keys are
UUID strings generated application-side so SQLite (dev/test) and
PostgreSQL (production) behave the same.
"""

import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def new_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso(value):
    """Serialize a datetime for JSON, treating naive values as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()
