"""
CigroTrack
Team domain models.

Models:
    - Team: a workspace owning projects
    - TeamMember: user ↔ team link with an OWNER/ADMIN/MEMBER role
    - TeamInvite: pending email invitation (7-day expiry)
    - TeamActivity: append-only activity log
"""

from app.models import db, iso, new_uuid, utcnow
from app.models.soft_delete import SoftDeleteMixin

# ── Constants ────────────────────────────────────────────────────────────────

ROLE_OWNER = "OWNER"
ROLE_ADMIN = "ADMIN"
ROLE_MEMBER = "MEMBER"
TEAM_ROLES = (ROLE_OWNER, ROLE_ADMIN, ROLE_MEMBER)

INVITE_PENDING = "pending"
INVITE_ACCEPTED = "accepted"
INVITE_EXPIRED = "expired"
INVITE_STATUSES = (INVITE_PENDING, INVITE_ACCEPTED, INVITE_EXPIRED)

ACTIVITY_TARGET_TYPES = {"member", "project", "team", "issue"}


class Team(SoftDeleteMixin, db.Model):
    __tablename__ = "teams"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    name = db.Column(db.String(50), nullable=False)
    owner_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    members = db.relationship(
        "TeamMember", back_populates="team", lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "owner_id": self.owner_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Team {self.id}: {self.name}>"


class TeamMember(db.Model):
    __tablename__ = "team_members"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    team_id = db.Column(
        db.String(36), db.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    role = db.Column(db.String(10), nullable=False, default=ROLE_MEMBER)
    joined_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        db.UniqueConstraint("team_id", "user_id", name="uq_team_member"),
        db.CheckConstraint("role IN ('OWNER','ADMIN','MEMBER')", name="ck_team_member_role"),
    )

    team = db.relationship("Team", back_populates="members")
    user = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "team_id": self.team_id,
            "user_id": self.user_id,
            "user": self.user.to_summary() if self.user else None,
            "role": self.role,
            "joined_at": iso(self.joined_at),
        }


class TeamInvite(db.Model):
    __tablename__ = "team_invites"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    team_id = db.Column(
        db.String(36), db.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    email = db.Column(db.String(255), nullable=False, index=True)
    role = db.Column(db.String(10), nullable=False, default=ROLE_MEMBER)
    invited_by = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=INVITE_PENDING)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        # One pending invite per (team, email)
        db.Index(
            "uq_team_invites_pending", "team_id", "email", unique=True,
            postgresql_where=db.text("status = 'pending'"),
            sqlite_where=db.text("status = 'pending'"),
        ),
        db.CheckConstraint(
            "status IN ('pending','accepted','expired')", name="ck_team_invite_status",
        ),
    )

    team = db.relationship("Team")
    inviter = db.relationship("User", foreign_keys=[invited_by])

    def to_dict(self, include_team=False):
        d = {
            "id": self.id,
            "team_id": self.team_id,
            "email": self.email,
            "role": self.role,
            "invited_by": self.invited_by,
            "expires_at": iso(self.expires_at),
            "status": self.status,
            "created_at": iso(self.created_at),
        }
        if include_team:
            d["team"] = self.team.to_dict() if self.team else None
            d["invited_by_user"] = self.inviter.to_summary() if self.inviter else None
        return d


class TeamActivity(db.Model):
    __tablename__ = "team_activity"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    team_id = db.Column(
        db.String(36), db.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    action = db.Column(db.String(255), nullable=False)
    target_type = db.Column(db.String(20), nullable=False)
    target_id = db.Column(db.String(36), nullable=True)
    target_name = db.Column(db.String(255), nullable=True)
    metadata_ = db.Column("metadata", db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        db.Index("ix_team_activity_team_created", "team_id", "created_at"),
        db.CheckConstraint(
            "target_type IN ('member','project','team','issue')",
            name="ck_team_activity_target_type",
        ),
    )

    user = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "team_id": self.team_id,
            "user_id": self.user_id,
            "user": self.user.to_summary() if self.user else None,
            "action": self.action,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "target_name": self.target_name,
            "metadata": self.metadata_,
            "created_at": iso(self.created_at),
        }
