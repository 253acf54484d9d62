"""
CigroTrack
Project domain models.

Models:
    - Project: a board of issues inside a team (max 15 live per team)
    - ProjectFavorite: per-user star on a project
"""

from app.models import db, iso, new_uuid, utcnow
from app.models.soft_delete import SoftDeleteMixin

PROJECT_ACTIVE = "active"
PROJECT_ARCHIVED = "archived"
PROJECT_STATUSES = (PROJECT_ACTIVE, PROJECT_ARCHIVED)


class Project(SoftDeleteMixin, db.Model):
    __tablename__ = "projects"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    team_id = db.Column(
        db.String(36), db.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False,
    )
    owner_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default=PROJECT_ACTIVE)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.Index("ix_projects_team_status", "team_id", "status"),
        db.CheckConstraint("status IN ('active','archived')", name="ck_project_status"),
    )

    team = db.relationship("Team")

    def to_dict(self, is_favorite=None):
        d = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "team_id": self.team_id,
            "team": {"id": self.team.id, "name": self.team.name} if self.team else None,
            "owner_id": self.owner_id,
            "status": self.status,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if is_favorite is not None:
            d["is_favorite"] = is_favorite
        return d

    def __repr__(self):
        return f"<Project {self.id}: {self.name}>"


class ProjectFavorite(db.Model):
    __tablename__ = "project_favorites"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "project_id", name="uq_project_favorite"),
    )
