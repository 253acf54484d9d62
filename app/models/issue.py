"""
CigroTrack
Issue domain models.

Models:
    - Issue: a kanban card (max 200 live per project)
    - Label: project-scoped tag; IssueLabel links at most 5 per issue
    - Subtask: checklist item (max 20 per issue, hard-deleted)
    - IssueChangeHistory: field-level audit of issue edits
"""

from app.models import db, iso, new_uuid, utcnow
from app.models.soft_delete import SoftDeleteMixin

PRIORITY_HIGH = "HIGH"
PRIORITY_MEDIUM = "MEDIUM"
PRIORITY_LOW = "LOW"
ISSUE_PRIORITIES = (PRIORITY_HIGH, PRIORITY_MEDIUM, PRIORITY_LOW)

DEFAULT_STATUS = "Backlog"
DONE_STATUS = "Done"
DEFAULT_STATUSES = ("Backlog", "In Progress", DONE_STATUS)

DEFAULT_LABEL_COLOR = "#6B7280"


class Label(db.Model):
    __tablename__ = "labels"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name = db.Column(db.String(50), nullable=False)
    color = db.Column(db.String(7), nullable=False, default=DEFAULT_LABEL_COLOR)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        db.UniqueConstraint("project_id", "name", name="uq_label_project_name"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "project_id": self.project_id,
        }


class IssueLabel(db.Model):
    __tablename__ = "issue_labels"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    issue_id = db.Column(
        db.String(36), db.ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    label_id = db.Column(
        db.String(36), db.ForeignKey("labels.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        db.UniqueConstraint("issue_id", "label_id", name="uq_issue_label"),
    )


class Subtask(db.Model):
    __tablename__ = "subtasks"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    issue_id = db.Column(
        db.String(36), db.ForeignKey("issues.id", ondelete="CASCADE"), nullable=False,
    )
    title = db.Column(db.String(200), nullable=False)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.Index("ix_subtasks_issue_order", "issue_id", "order_index"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "issue_id": self.issue_id,
            "title": self.title,
            "completed": self.completed,
            "order": self.order_index,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class Issue(SoftDeleteMixin, db.Model):
    __tablename__ = "issues"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False,
    )
    reporter_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    assignee_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(50), nullable=False, default=DEFAULT_STATUS)
    priority = db.Column(db.String(10), nullable=False, default=PRIORITY_MEDIUM)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.Index("ix_issues_project_status_order", "project_id", "status", "order_index"),
        db.CheckConstraint("priority IN ('HIGH','MEDIUM','LOW')", name="ck_issue_priority"),
    )

    project = db.relationship("Project")
    reporter = db.relationship("User", foreign_keys=[reporter_id])
    assignee = db.relationship("User", foreign_keys=[assignee_id])
    labels = db.relationship(
        "Label", secondary="issue_labels", viewonly=True, order_by="Label.name",
    )
    subtasks = db.relationship(
        "Subtask", order_by="Subtask.order_index", cascade="all, delete-orphan",
    )

    def to_dict(self, include_children=True):
        d = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "project_id": self.project_id,
            "reporter_id": self.reporter_id,
            "assignee_id": self.assignee_id,
            "assignee": self.assignee.to_summary() if self.assignee else None,
            "status": self.status,
            "priority": self.priority,
            "due_date": iso(self.due_date),
            "order": self.order_index,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_children:
            d["labels"] = [lb.to_dict() for lb in self.labels]
            d["subtasks"] = [s.to_dict() for s in self.subtasks]
        return d

    def __repr__(self):
        return f"<Issue {self.id}: {self.title[:40]}>"


class IssueChangeHistory(db.Model):
    __tablename__ = "issue_change_history"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    issue_id = db.Column(
        db.String(36), db.ForeignKey("issues.id", ondelete="CASCADE"), nullable=False,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    field_name = db.Column(db.String(50), nullable=False)
    old_value = db.Column(db.Text, nullable=True)
    new_value = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        db.Index("ix_issue_history_issue_created", "issue_id", "created_at"),
    )

    user = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "issue_id": self.issue_id,
            "user": self.user.to_summary() if self.user else None,
            "field_name": self.field_name,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "created_at": iso(self.created_at),
        }
