"""
CigroTrack
Notification domain model.

Models:
    - Notification: in-app notification addressed to one user
"""

from app.models import db, iso, new_uuid, utcnow

# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_TYPES = {
    "issue_assigned",
    "comment_added",
    "due_date_approaching",
    "due_date_today",
    "team_invite",
    "role_changed",
}


class Notification(db.Model):
    """
    In-app notification entity.

    One record per recipient per event.
    """

    __tablename__ = "notifications"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    type = db.Column(db.String(50), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=True)
    link = db.Column(db.String(500), nullable=True)
    metadata_ = db.Column("metadata", db.JSON, nullable=True)
    read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        db.Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "link": self.link,
            "metadata": self.metadata_,
            "read": self.read,
            "created_at": iso(self.created_at),
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"
