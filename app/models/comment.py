"""
CigroTrack
Comment model — discussion thread on an issue.
"""

from app.models import db, iso, new_uuid, utcnow
from app.models.soft_delete import SoftDeleteMixin


class Comment(SoftDeleteMixin, db.Model):
    __tablename__ = "comments"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    issue_id = db.Column(
        db.String(36), db.ForeignKey("issues.id", ondelete="CASCADE"), nullable=False,
    )
    author_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.Index("ix_comments_issue_created", "issue_id", "created_at"),
    )

    author = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "issue_id": self.issue_id,
            "author_id": self.author_id,
            "author": self.author.to_summary() if self.author else None,
            "content": self.content,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
