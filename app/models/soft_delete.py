"""
Soft delete support.

Users, teams, projects, issues and comments are never physically removed;
they get a ``deleted_at`` timestamp and drop out of every default query.

Usage:
    class Issue(SoftDeleteMixin, db.Model):
        ...

    issue.soft_delete()
    db.session.commit()

    select(Issue).where(Issue.not_deleted())
"""

from app.models import db, utcnow


class SoftDeleteMixin:
    """Adds ``deleted_at`` plus query helpers to a model."""

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, default=None, index=True)

    def soft_delete(self):
        self.deleted_at = utcnow()

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @classmethod
    def not_deleted(cls):
        """SQL expression matching rows that are still live."""
        return cls.deleted_at.is_(None)
