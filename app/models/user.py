"""
CigroTrack
User account models.

Models:
    - User: an account, email/password or Google sign-in
    - PasswordResetToken: one-hour single-use reset token (hash only)
"""

from app.models import db, iso, new_uuid, utcnow
from app.models.soft_delete import SoftDeleteMixin

AUTH_PROVIDERS = {"email", "google"}


class User(SoftDeleteMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    name = db.Column(db.String(50), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(256))  # NULL for Google accounts
    avatar = db.Column(db.String(500))
    auth_provider = db.Column(db.String(20), nullable=False, default="email")
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.CheckConstraint("auth_provider IN ('email','google')", name="ck_users_auth_provider"),
    )

    def to_summary(self):
        """Compact form embedded in members, activity and comments."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "avatar": self.avatar,
        }

    def to_dict(self):
        d = self.to_summary()
        d.update({
            "auth_provider": self.auth_provider,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        })
        return d

    def __repr__(self):
        return f"<User {self.email}>"


class PasswordResetToken(db.Model):
    __tablename__ = "password_reset_tokens"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    token_hash = db.Column(db.String(64), nullable=False, unique=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    user = db.relationship("User")
