"""
CigroTrack
Issue Service — issues, issue labels, subtasks and change history.

Rules:
  - A project holds at most 200 live issues; the project row is locked,
    then counted and inserted in one transaction.
  - New issues go to the bottom of their column: order = max + 1 within
    (project, status), 0 for an empty column.
  - At most 5 labels and 20 subtasks per issue.
  - Edits to title, description, status, priority, assignee and due date
    are written to issue_change_history in the same transaction.
  - Changing the description drops the cached AI summary.
"""

from __future__ import annotations

import logging

from sqlalchemy import asc, case, delete, desc, func, or_, select

from app.core.exceptions import LimitExceededError, NotFoundError, PermissionDenied, ValidationError
from app.models import db, iso
from app.models.ai import AISummary
from app.models.issue import (
    DEFAULT_STATUS,
    ISSUE_PRIORITIES,
    PRIORITY_HIGH,
    PRIORITY_LOW,
    PRIORITY_MEDIUM,
    Issue,
    IssueChangeHistory,
    IssueLabel,
    Label,
    Subtask,
)
from app.models.project import Project
from app.models.team import ROLE_ADMIN, ROLE_OWNER
from app.models.user import User
from app.services.kanban_service import validate_status
from app.services.notification import NotificationService, issue_link
from app.services.permission_service import (
    get_accessible_issue,
    get_accessible_project,
    get_membership,
    get_team_role,
)
from app.services.team_service import log_activity
from app.utils.helpers import commit, optional_text, parse_datetime, require_text

logger = logging.getLogger(__name__)

MAX_ISSUES_PER_PROJECT = 200
MAX_LABELS_PER_ISSUE = 5
MAX_SUBTASKS_PER_ISSUE = 20
MAX_TITLE = 200
MAX_DESCRIPTION = 5000
MAX_SUBTASK_TITLE = 200
DEFAULT_PAGE_SIZE = 50
SEARCH_LIMIT = 50

SORT_FIELDS = ("created_at", "due_date", "priority", "updated_at")
TRACKED_FIELDS = ("title", "description", "status", "priority", "assignee_id", "due_date")

_PRIORITY_RANK = case(
    {PRIORITY_HIGH: 3, PRIORITY_MEDIUM: 2, PRIORITY_LOW: 1},
    value=Issue.priority,
    else_=0,
)


# ── Validation helpers ───────────────────────────────────────────────────────


def _validate_priority(priority) -> str:
    if priority not in ISSUE_PRIORITIES:
        raise ValidationError("Priority must be HIGH, MEDIUM or LOW", code="INVALID_PRIORITY")
    return priority


def _validate_assignee(project: Project, assignee_id):
    if not assignee_id:
        return None
    if not isinstance(assignee_id, str):
        raise ValidationError("Assignee must be a member of the team", code="INVALID_ASSIGNEE")
    if get_membership(project.team_id, assignee_id) is None:
        raise ValidationError("Assignee must be a member of the team", code="INVALID_ASSIGNEE")
    return assignee_id


def _project_labels(project_id, label_ids) -> list[Label]:
    """Resolve label ids, all of which must belong to the project."""
    if any(not isinstance(i, str) or not i for i in label_ids or []):
        raise ValidationError("Label ids must be strings", code="INVALID_LABEL")
    ids = list(dict.fromkeys(label_ids or []))
    if not ids:
        return []
    labels = db.session.execute(
        select(Label).where(Label.id.in_(ids), Label.project_id == project_id)
    ).scalars().all()
    if len(labels) != len(ids):
        raise ValidationError("Label does not belong to this project", code="INVALID_LABEL")
    return labels


def _next_order(project_id, status) -> int:
    current = db.session.execute(
        select(func.max(Issue.order_index)).where(
            Issue.project_id == project_id, Issue.status == status, Issue.not_deleted(),
        )
    ).scalar_one()
    return 0 if current is None else current + 1


def _notify_assignee(issue: Issue, actor: User) -> None:
    if not issue.assignee_id or issue.assignee_id == actor.id:
        return
    NotificationService.notify(
        user_id=issue.assignee_id,
        type="issue_assigned",
        title=f"You were assigned: {issue.title}",
        message=f"{actor.name} assigned you an issue",
        link=issue_link(issue),
        metadata={"issue_id": issue.id, "project_id": issue.project_id},
    )


# ── CRUD ──────────────────────────────────────────────────────────────────────


def create_issue(project_id, data: dict, user: User) -> dict:
    if not project_id:
        raise ValidationError("project_id is required", code="MISSING_PROJECT_ID")
    project = get_accessible_project(project_id, user.id)
    title = require_text(data.get("title"), "Issue title", MAX_TITLE)
    description = optional_text(data.get("description"), "Issue description", MAX_DESCRIPTION)
    priority = _validate_priority(data.get("priority") or PRIORITY_MEDIUM)
    status = validate_status(project.id, data.get("status") or DEFAULT_STATUS)
    assignee_id = _validate_assignee(project, data.get("assignee_id"))
    due_date = parse_datetime(data.get("due_date"), "due_date")
    label_ids = data.get("labels") or []
    if not isinstance(label_ids, list):
        raise ValidationError("labels must be a list of label ids")
    if any(not isinstance(i, str) for i in label_ids):
        raise ValidationError("Label ids must be strings", code="INVALID_LABEL")
    if len(set(label_ids)) > MAX_LABELS_PER_ISSUE:
        raise LimitExceededError(f"Maximum {MAX_LABELS_PER_ISSUE} labels allowed per issue")
    labels = _project_labels(project.id, label_ids)

    # Serialize creates for this project until commit
    db.session.execute(select(Project.id).where(Project.id == project.id).with_for_update())
    count = db.session.execute(
        select(func.count(Issue.id)).where(Issue.project_id == project.id, Issue.not_deleted())
    ).scalar_one()
    if count >= MAX_ISSUES_PER_PROJECT:
        db.session.rollback()
        raise LimitExceededError(
            f"Project has reached the maximum of {MAX_ISSUES_PER_PROJECT} issues",
        )

    issue = Issue(
        project_id=project.id,
        reporter_id=user.id,
        assignee_id=assignee_id,
        title=title,
        description=description,
        status=status,
        priority=priority,
        due_date=due_date,
        order_index=_next_order(project.id, status),
    )
    db.session.add(issue)
    db.session.flush()
    for label in labels:
        db.session.add(IssueLabel(issue_id=issue.id, label_id=label.id))
    log_activity(project.team_id, user.id, f"created issue {title}", "issue", issue.id, title,
                 {"project_id": project.id})
    _notify_assignee(issue, user)
    commit()
    db.session.refresh(issue)
    logger.info("Issue created id=%s project=%s", issue.id, project.id)
    return issue.to_dict()


def get_issues(project_id, user: User, filters: dict | None = None, sort_by="created_at",
               sort_order="desc", page=1, limit=DEFAULT_PAGE_SIZE) -> tuple[list[dict], int]:
    """
    Filtered, sorted, paginated issue list for one project.

    Filters (all optional):
        status, priority, labels   lists, match any
        assignee_id, reporter_id   exact
        search                     case-insensitive title substring
        has_due_date               bool
        due_date_from, due_date_to inclusive bounds
    """
    if not project_id:
        raise ValidationError("project_id is required", code="MISSING_PROJECT_ID")
    project = get_accessible_project(project_id, user.id)
    filters = filters or {}

    q = select(Issue).where(Issue.project_id == project.id, Issue.not_deleted())
    if filters.get("status"):
        q = q.where(Issue.status.in_(filters["status"]))
    if filters.get("priority"):
        q = q.where(Issue.priority.in_(filters["priority"]))
    if filters.get("assignee_id"):
        q = q.where(Issue.assignee_id == filters["assignee_id"])
    if filters.get("reporter_id"):
        q = q.where(Issue.reporter_id == filters["reporter_id"])
    if filters.get("search"):
        q = q.where(Issue.title.ilike(f"%{filters['search']}%"))
    if filters.get("has_due_date") is not None:
        q = q.where(Issue.due_date.isnot(None) if filters["has_due_date"]
                    else Issue.due_date.is_(None))
    if filters.get("due_date_from"):
        q = q.where(Issue.due_date >= parse_datetime(filters["due_date_from"], "due_date_from"))
    if filters.get("due_date_to"):
        q = q.where(Issue.due_date <= parse_datetime(filters["due_date_to"], "due_date_to"))
    if filters.get("labels"):
        q = q.where(Issue.id.in_(
            select(IssueLabel.issue_id).where(IssueLabel.label_id.in_(filters["labels"]))
        ))

    if sort_by not in SORT_FIELDS:
        raise ValidationError(f"sort_by must be one of: {', '.join(SORT_FIELDS)}")
    direction = asc if sort_order == "asc" else desc
    sort_col = _PRIORITY_RANK if sort_by == "priority" else getattr(Issue, sort_by)

    total = db.session.execute(select(func.count()).select_from(q.subquery())).scalar_one()
    issues = db.session.execute(
        q.order_by(direction(sort_col), Issue.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return [i.to_dict() for i in issues], total


def get_issue(issue_id, user: User) -> dict:
    return get_accessible_issue(issue_id, user.id).to_dict()


def _history_value(field, value):
    if value is None:
        return None
    if field == "due_date":
        return iso(value)
    return str(value)


def update_issue(issue_id, data: dict, user: User) -> dict:
    """Partial update; tracked field changes are recorded in the history."""
    issue = get_accessible_issue(issue_id, user.id)
    project = issue.project
    changes = {}

    if "title" in data:
        changes["title"] = require_text(data.get("title"), "Issue title", MAX_TITLE)
    if "description" in data:
        changes["description"] = optional_text(data.get("description"), "Issue description",
                                               MAX_DESCRIPTION)
    if "status" in data:
        changes["status"] = validate_status(project.id, data.get("status"))
    if "priority" in data:
        changes["priority"] = _validate_priority(data.get("priority"))
    if "assignee_id" in data:
        changes["assignee_id"] = _validate_assignee(project, data.get("assignee_id"))
    if "due_date" in data:
        changes["due_date"] = parse_datetime(data.get("due_date"), "due_date")
    if "order" in data:
        order = data.get("order")
        if not isinstance(order, int) or isinstance(order, bool) or order < 0:
            raise ValidationError("order must be a non-negative integer")
        issue.order_index = order

    old_assignee = issue.assignee_id
    for field in TRACKED_FIELDS:
        if field not in changes:
            continue
        old = _history_value(field, getattr(issue, field))
        new = _history_value(field, changes[field])
        if old == new:
            continue
        setattr(issue, field, changes[field])
        db.session.add(IssueChangeHistory(
            issue_id=issue.id, user_id=user.id, field_name=field,
            old_value=old, new_value=new,
        ))
        if field == "description":
            db.session.execute(delete(AISummary).where(AISummary.issue_id == issue.id))

    if issue.assignee_id != old_assignee:
        _notify_assignee(issue, user)
    commit()
    db.session.refresh(issue)
    return issue.to_dict()


def assign_issue(issue_id, assignee_id, user: User) -> dict:
    return update_issue(issue_id, {"assignee_id": assignee_id}, user)


def update_priority(issue_id, priority, user: User) -> dict:
    return update_issue(issue_id, {"priority": _validate_priority(priority)}, user)


def update_status(issue_id, status, user: User) -> dict:
    return update_issue(issue_id, {"status": status}, user)


def get_issue_history(issue_id, user: User) -> list[dict]:
    issue = get_accessible_issue(issue_id, user.id)
    rows = db.session.execute(
        select(IssueChangeHistory)
        .where(IssueChangeHistory.issue_id == issue.id)
        .order_by(IssueChangeHistory.created_at.desc())
    ).scalars().all()
    return [h.to_dict() for h in rows]


def delete_issue(issue_id, user: User) -> None:
    """Soft delete. Allowed for the reporter, the project owner and team OWNER/ADMIN."""
    issue = get_accessible_issue(issue_id, user.id)
    project = issue.project
    allowed = (
        issue.reporter_id == user.id
        or project.owner_id == user.id
        or get_team_role(project.team_id, user.id) in (ROLE_OWNER, ROLE_ADMIN)
    )
    if not allowed:
        raise PermissionDenied("Insufficient permissions to delete issue")
    issue.soft_delete()
    log_activity(project.team_id, user.id, f"deleted issue {issue.title}", "issue",
                 issue.id, issue.title, {"project_id": project.id})
    commit()
    logger.info("Issue soft-deleted id=%s by=%s", issue.id, user.id)


def search_issues(project_id, query, user: User) -> list[dict]:
    """Title or description match, newest first, at most 50."""
    if not project_id:
        raise ValidationError("project_id is required", code="MISSING_PROJECT_ID")
    project = get_accessible_project(project_id, user.id)
    text = (query or "").strip()
    if not text:
        return []
    pattern = f"%{text}%"
    issues = db.session.execute(
        select(Issue)
        .where(
            Issue.project_id == project.id,
            Issue.not_deleted(),
            or_(Issue.title.ilike(pattern), Issue.description.ilike(pattern)),
        )
        .order_by(Issue.created_at.desc())
        .limit(SEARCH_LIMIT)
    ).scalars().all()
    return [i.to_dict() for i in issues]


# ── Issue labels ──────────────────────────────────────────────────────────────


def _label_ids(issue_id) -> set[str]:
    return set(db.session.execute(
        select(IssueLabel.label_id).where(IssueLabel.issue_id == issue_id)
    ).scalars().all())


def add_label(issue_id, label_id, user: User) -> dict:
    """Attach a label; attaching one that is already there is a no-op."""
    if not label_id:
        raise ValidationError("label_id is required", code="MISSING_LABEL_ID")
    return add_labels(issue_id, [label_id], user)


def add_labels(issue_id, label_ids, user: User) -> dict:
    issue = get_accessible_issue(issue_id, user.id)
    if not isinstance(label_ids, list) or not label_ids:
        raise ValidationError("label_ids must be a non-empty list", code="MISSING_LABEL_ID")
    labels = _project_labels(issue.project_id, label_ids)
    existing = _label_ids(issue.id)
    new = [lb for lb in labels if lb.id not in existing]
    if len(existing) + len(new) > MAX_LABELS_PER_ISSUE:
        raise LimitExceededError(f"Maximum {MAX_LABELS_PER_ISSUE} labels allowed per issue")
    for label in new:
        db.session.add(IssueLabel(issue_id=issue.id, label_id=label.id))
    commit()
    db.session.refresh(issue)
    return issue.to_dict()


def remove_label(issue_id, label_id, user: User) -> None:
    issue = get_accessible_issue(issue_id, user.id)
    result = db.session.execute(
        delete(IssueLabel).where(IssueLabel.issue_id == issue.id, IssueLabel.label_id == label_id)
    )
    if result.rowcount == 0:
        raise NotFoundError("Label", label_id)
    commit()


# ── Subtasks ──────────────────────────────────────────────────────────────────


def _get_subtask(issue_id, subtask_id, user: User) -> Subtask:
    issue = get_accessible_issue(issue_id, user.id)
    subtask = db.session.get(Subtask, subtask_id) if subtask_id else None
    if subtask is None or subtask.issue_id != issue.id:
        raise NotFoundError("Subtask", subtask_id)
    return subtask


def create_subtask(issue_id, data: dict, user: User) -> dict:
    issue = get_accessible_issue(issue_id, user.id)
    title = require_text(data.get("title"), "Subtask title", MAX_SUBTASK_TITLE)
    count = db.session.execute(
        select(func.count(Subtask.id)).where(Subtask.issue_id == issue.id)
    ).scalar_one()
    if count >= MAX_SUBTASKS_PER_ISSUE:
        raise LimitExceededError(f"Maximum {MAX_SUBTASKS_PER_ISSUE} subtasks allowed per issue")
    subtask = Subtask(
        issue_id=issue.id,
        title=title,
        completed=bool(data.get("completed", False)),
        order_index=count,
    )
    db.session.add(subtask)
    commit()
    return subtask.to_dict()


def update_subtask(issue_id, subtask_id, data: dict, user: User) -> dict:
    subtask = _get_subtask(issue_id, subtask_id, user)
    if "title" in data:
        subtask.title = require_text(data.get("title"), "Subtask title", MAX_SUBTASK_TITLE)
    if "completed" in data:
        subtask.completed = bool(data["completed"])
    if "order" in data:
        order = data.get("order")
        if not isinstance(order, int) or isinstance(order, bool) or order < 0:
            raise ValidationError("order must be a non-negative integer")
        subtask.order_index = order
    commit()
    return subtask.to_dict()


def delete_subtask(issue_id, subtask_id, user: User) -> None:
    subtask = _get_subtask(issue_id, subtask_id, user)
    db.session.delete(subtask)
    commit()
