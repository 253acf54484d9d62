"""
CigroTrack
Kanban board configuration models.

Models:
    - CustomStatus: extra board column defined per project
    - WipLimit: max issues allowed in a column (NULL = unlimited)
"""

from app.models import db, iso, new_uuid, utcnow

DEFAULT_STATUS_COLOR = "#6B7280"
MIN_WIP_LIMIT = 1
MAX_WIP_LIMIT = 50


class CustomStatus(db.Model):
    __tablename__ = "custom_statuses"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False,
    )
    name = db.Column(db.String(30), nullable=False)
    color = db.Column(db.String(7), nullable=False, default=DEFAULT_STATUS_COLOR)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.UniqueConstraint("project_id", "name", name="uq_custom_status_project_name"),
        db.Index("ix_custom_statuses_project_order", "project_id", "order_index"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "color": self.color,
            "order": self.order_index,
            "created_at": iso(self.created_at),
        }


class WipLimit(db.Model):
    __tablename__ = "wip_limits"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    status = db.Column(db.String(50), nullable=False)
    limit_value = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.UniqueConstraint("project_id", "status", name="uq_wip_limit_project_status"),
        db.CheckConstraint(
            "limit_value IS NULL OR (limit_value >= 1 AND limit_value <= 50)",
            name="ck_wip_limit_range",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "status": self.status,
            "limit": self.limit_value,
        }
