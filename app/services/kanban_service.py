"""
CigroTrack
Kanban Service — custom board columns, WIP limits and card ordering.

Rules:
  - Custom status names are 1–30 characters, unique per project and may
    not shadow a default column (Backlog, In Progress, Done).
  - Renaming a custom status moves its issues and WIP limit along; deleting
    one sends its issues back to Backlog.
  - WIP limits are 1–50 or null (unlimited), one per (project, status).
    They are advisory: check_wip_limit reports, moves are never blocked.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, func, select, update

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.issue import DEFAULT_STATUS, DEFAULT_STATUSES, Issue, IssueChangeHistory
from app.models.kanban import DEFAULT_STATUS_COLOR, MAX_WIP_LIMIT, MIN_WIP_LIMIT, CustomStatus, WipLimit
from app.models.user import User
from app.services.permission_service import get_accessible_project
from app.utils.helpers import commit, require_text, validate_color

logger = logging.getLogger(__name__)

MAX_STATUS_NAME = 30


def validate_status(project_id, status) -> str:
    """A default column name or one of the project's custom statuses."""
    if not isinstance(status, str) or not status.strip():
        raise ValidationError("Status is required", code="MISSING_STATUS")
    status = status.strip()
    if status in DEFAULT_STATUSES:
        return status
    custom = db.session.execute(
        select(CustomStatus.id).where(
            CustomStatus.project_id == project_id, CustomStatus.name == status,
        )
    ).first()
    if custom is None:
        raise ValidationError(f'Unknown status "{status}"', code="INVALID_STATUS")
    return status


def _get_status(status_id, user: User) -> CustomStatus:
    cs = db.session.get(CustomStatus, status_id) if status_id else None
    if cs is None:
        raise NotFoundError("Status", status_id)
    try:
        get_accessible_project(cs.project_id, user.id)
    except NotFoundError:
        raise NotFoundError("Status", status_id) from None
    return cs


def _check_name_free(project_id, name, exclude_id=None) -> None:
    if name in DEFAULT_STATUSES:
        raise ConflictError(f'"{name}" is a default status', code="STATUS_EXISTS")
    q = select(CustomStatus.id).where(
        CustomStatus.project_id == project_id, CustomStatus.name == name,
    )
    if exclude_id:
        q = q.where(CustomStatus.id != exclude_id)
    if db.session.execute(q).first():
        raise ConflictError(f'Status "{name}" already exists', code="STATUS_EXISTS")


# ── Custom statuses ───────────────────────────────────────────────────────────


def get_custom_statuses(project_id, user: User) -> list[dict]:
    project = get_accessible_project(project_id, user.id)
    rows = db.session.execute(
        select(CustomStatus)
        .where(CustomStatus.project_id == project.id)
        .order_by(CustomStatus.order_index.asc())
    ).scalars().all()
    return [cs.to_dict() for cs in rows]


def create_custom_status(project_id, data: dict, user: User) -> dict:
    project = get_accessible_project(project_id, user.id)
    name = require_text(data.get("name"), "Status name", MAX_STATUS_NAME)
    color = validate_color(data.get("color"), DEFAULT_STATUS_COLOR)
    _check_name_free(project.id, name)

    current = db.session.execute(
        select(func.max(CustomStatus.order_index)).where(CustomStatus.project_id == project.id)
    ).scalar_one()
    cs = CustomStatus(
        project_id=project.id,
        name=name,
        color=color,
        order_index=0 if current is None else current + 1,
    )
    db.session.add(cs)
    commit()
    logger.info("Custom status created project=%s name=%s", project.id, name)
    return cs.to_dict()


def update_custom_status(status_id, data: dict, user: User) -> dict:
    cs = _get_status(status_id, user)
    if "name" in data:
        new_name = require_text(data.get("name"), "Status name", MAX_STATUS_NAME)
        if new_name != cs.name:
            _check_name_free(cs.project_id, new_name, exclude_id=cs.id)
            old_name = cs.name
            db.session.execute(
                update(Issue)
                .where(Issue.project_id == cs.project_id, Issue.status == old_name)
                .values(status=new_name)
                .execution_options(synchronize_session=False)
            )
            db.session.execute(
                update(WipLimit)
                .where(WipLimit.project_id == cs.project_id, WipLimit.status == old_name)
                .values(status=new_name)
                .execution_options(synchronize_session=False)
            )
            cs.name = new_name
    if "color" in data:
        cs.color = validate_color(data.get("color"), cs.color)
    if "order" in data:
        order = data.get("order")
        if not isinstance(order, int) or isinstance(order, bool) or order < 0:
            raise ValidationError("order must be a non-negative integer")
        cs.order_index = order
    commit()
    return cs.to_dict()


def delete_custom_status(status_id, user: User) -> None:
    cs = _get_status(status_id, user)
    db.session.execute(
        update(Issue)
        .where(Issue.project_id == cs.project_id, Issue.status == cs.name)
        .values(status=DEFAULT_STATUS)
        .execution_options(synchronize_session=False)
    )
    db.session.execute(
        delete(WipLimit).where(WipLimit.project_id == cs.project_id, WipLimit.status == cs.name)
    )
    db.session.delete(cs)
    commit()
    logger.info("Custom status deleted project=%s name=%s", cs.project_id, cs.name)


# ── WIP limits ────────────────────────────────────────────────────────────────


def get_wip_limits(project_id, user: User) -> list[dict]:
    project = get_accessible_project(project_id, user.id)
    rows = db.session.execute(
        select(WipLimit).where(WipLimit.project_id == project.id).order_by(WipLimit.status)
    ).scalars().all()
    return [w.to_dict() for w in rows]


def set_wip_limit(project_id, status, limit, user: User) -> dict:
    """Create or update the limit for one column; None means unlimited."""
    project = get_accessible_project(project_id, user.id)
    status = validate_status(project.id, status)
    if limit is not None and (
        not isinstance(limit, int) or isinstance(limit, bool)
        or not MIN_WIP_LIMIT <= limit <= MAX_WIP_LIMIT
    ):
        raise ValidationError(
            f"WIP limit must be between {MIN_WIP_LIMIT} and {MAX_WIP_LIMIT} or null for unlimited",
        )

    wip = db.session.execute(
        select(WipLimit).where(WipLimit.project_id == project.id, WipLimit.status == status)
    ).scalar_one_or_none()
    if wip is None:
        wip = WipLimit(project_id=project.id, status=status)
        db.session.add(wip)
    wip.limit_value = limit
    commit()
    return wip.to_dict()


def check_wip_limit(project_id, status, user: User) -> dict:
    project = get_accessible_project(project_id, user.id)
    current = db.session.execute(
        select(func.count(Issue.id)).where(
            Issue.project_id == project.id, Issue.status == status, Issue.not_deleted(),
        )
    ).scalar_one()
    limit = db.session.execute(
        select(WipLimit.limit_value).where(
            WipLimit.project_id == project.id, WipLimit.status == status,
        )
    ).scalar_one_or_none()
    return {
        "exceeded": limit is not None and current >= limit,
        "current": current,
        "limit": limit,
    }


# ── Card ordering ─────────────────────────────────────────────────────────────


def update_issue_order(project_id, updates, user: User) -> list[dict]:
    """
    Apply a batch of drag-and-drop moves in one transaction.

    Args:
        updates: [{"issue_id": ..., "status": ..., "order": int}, ...]
    """
    project = get_accessible_project(project_id, user.id)
    if not isinstance(updates, list) or not updates:
        raise ValidationError("updates must be a non-empty list", code="INVALID_UPDATES")

    issue_ids = []
    for item in updates:
        if (
            not isinstance(item, dict)
            or not isinstance(item.get("issue_id"), str)
            or not item["issue_id"]
            or not isinstance(item.get("order"), int)
            or isinstance(item.get("order"), bool)
            or item["order"] < 0
        ):
            raise ValidationError(
                "Each update needs issue_id, status and a non-negative order",
                code="INVALID_UPDATES",
            )
        issue_ids.append(item["issue_id"])

    issues = {
        i.id: i for i in db.session.execute(
            select(Issue).where(
                Issue.id.in_(issue_ids), Issue.project_id == project.id, Issue.not_deleted(),
            )
        ).scalars().all()
    }
    missing = [iid for iid in issue_ids if iid not in issues]
    if missing:
        raise ValidationError(
            "All issues must belong to this project", code="INVALID_UPDATES",
            details={"issue_ids": missing},
        )

    for item in updates:
        issue = issues[item["issue_id"]]
        status = validate_status(project.id, item.get("status") or issue.status)
        if status != issue.status:
            db.session.add(IssueChangeHistory(
                issue_id=issue.id, user_id=user.id, field_name="status",
                old_value=issue.status, new_value=status,
            ))
            issue.status = status
        issue.order_index = item["order"]
    commit()
    logger.info("Reordered %d issues in project=%s", len(updates), project.id)
    return [issues[iid].to_dict(include_children=False) for iid in dict.fromkeys(issue_ids)]
