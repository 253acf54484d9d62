"""
CigroTrack
AI assist models.

Models:
    - AISummary: cached issue summary, one per issue
    - AIRateLimit: per-user request quota counters (per minute / per day)
"""

from app.models import db, iso, new_uuid, utcnow

STUB_MODEL_VERSION = "stub-1"


class AISummary(db.Model):
    __tablename__ = "ai_summaries"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    issue_id = db.Column(
        db.String(36), db.ForeignKey("issues.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    summary = db.Column(db.Text, nullable=False)
    model_version = db.Column(db.String(50), default=STUB_MODEL_VERSION)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)


class AIRateLimit(db.Model):
    """
    Per-user AI quota.

    Counters are only ever changed through single conditional UPDATE
    statements (see app.ai.quota), never read-modify-write in Python.
    """

    __tablename__ = "ai_rate_limits"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    minute_count = db.Column(db.Integer, nullable=False, default=0)
    daily_count = db.Column(db.Integer, nullable=False, default=0)
    last_request_at = db.Column(db.DateTime(timezone=True), nullable=True)
    daily_reset_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self, minute_limit, daily_limit, minute_active=True):
        return {
            "user_id": self.user_id,
            "requests_this_minute": self.minute_count if minute_active else 0,
            "requests_today": self.daily_count,
            "minute_limit": minute_limit,
            "daily_limit": daily_limit,
            "remaining_today": max(0, daily_limit - self.daily_count),
            "last_request_at": iso(self.last_request_at),
            "daily_reset_at": iso(self.daily_reset_at),
        }
