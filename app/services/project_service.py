"""
CigroTrack
Project Service — projects, favorites, board data and labels.

Rules:
  - A team holds at most 15 live projects. The team row is locked, then
    counted and inserted in the same transaction, so two concurrent
    creates can not both take the last slot.
  - Only the project owner may update, archive or delete a project.
  - Labels are project-scoped; names are unique per project.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, func, select

from app.core.exceptions import ConflictError, LimitExceededError, NotFoundError, PermissionDenied, ValidationError
from app.models import db
from app.models.issue import DEFAULT_LABEL_COLOR, DEFAULT_STATUS, DEFAULT_STATUSES, Issue, IssueLabel, Label
from app.models.kanban import CustomStatus, WipLimit
from app.models.project import PROJECT_ARCHIVED, PROJECT_STATUSES, Project, ProjectFavorite
from app.models.team import Team
from app.models.user import User
from app.services.permission_service import (
    get_accessible_project,
    require_team_member,
    user_team_ids,
)
from app.services.team_service import log_activity
from app.utils.helpers import commit, optional_text, require_text, validate_color

logger = logging.getLogger(__name__)

MAX_PROJECTS_PER_TEAM = 15
MAX_PROJECT_NAME = 100
MAX_PROJECT_DESCRIPTION = 2000
MAX_LABEL_NAME = 50


def _favorite_ids(user_id: str) -> set[str]:
    return set(db.session.execute(
        select(ProjectFavorite.project_id).where(ProjectFavorite.user_id == user_id)
    ).scalars().all())


def _require_owner(project: Project, user: User, verb: str) -> None:
    if project.owner_id != user.id:
        raise PermissionDenied(f"Only project owner can {verb} project")


# ── CRUD ──────────────────────────────────────────────────────────────────────


def create_project(team_id, data: dict, user: User) -> dict:
    """Create a project, enforcing the per-team limit atomically."""
    if not team_id:
        raise ValidationError("team_id is required", code="MISSING_FIELDS")
    require_team_member(team_id, user.id)
    name = require_text(data.get("name"), "Project name", MAX_PROJECT_NAME)
    description = optional_text(data.get("description"), "Project description",
                                MAX_PROJECT_DESCRIPTION)

    # Serialize creates for this team until commit
    db.session.execute(select(Team.id).where(Team.id == team_id).with_for_update())
    count = db.session.execute(
        select(func.count(Project.id)).where(Project.team_id == team_id, Project.not_deleted())
    ).scalar_one()
    if count >= MAX_PROJECTS_PER_TEAM:
        db.session.rollback()
        raise LimitExceededError(
            f"Team has reached the maximum of {MAX_PROJECTS_PER_TEAM} projects",
        )

    project = Project(team_id=team_id, owner_id=user.id, name=name, description=description)
    db.session.add(project)
    db.session.flush()
    log_activity(team_id, user.id, f"created project {name}", "project", project.id, name)
    commit()
    logger.info("Project created id=%s team=%s", project.id, team_id)
    return project.to_dict(is_favorite=False)


def get_projects(user: User, team_id=None, status=None) -> list[dict]:
    """A team's projects, or projects across all of the user's teams."""
    if team_id:
        require_team_member(team_id, user.id)
        team_ids = [team_id]
    else:
        team_ids = user_team_ids(user.id)
    if not team_ids:
        return []

    q = select(Project).where(Project.team_id.in_(team_ids), Project.not_deleted())
    if status:
        if status not in PROJECT_STATUSES:
            raise ValidationError("status must be active or archived")
        q = q.where(Project.status == status)
    projects = db.session.execute(q.order_by(Project.created_at.desc())).scalars().all()
    favorites = _favorite_ids(user.id)
    return [p.to_dict(is_favorite=p.id in favorites) for p in projects]


def get_project(project_id, user: User) -> dict:
    project = get_accessible_project(project_id, user.id)
    return project.to_dict(is_favorite=project.id in _favorite_ids(user.id))


def update_project(project_id, data: dict, user: User) -> dict:
    project = get_accessible_project(project_id, user.id)
    _require_owner(project, user, "update")
    if "name" in data:
        project.name = require_text(data.get("name"), "Project name", MAX_PROJECT_NAME)
    if "description" in data:
        project.description = optional_text(data.get("description"), "Project description",
                                            MAX_PROJECT_DESCRIPTION)
    if "status" in data:
        if data["status"] not in PROJECT_STATUSES:
            raise ValidationError("status must be active or archived")
        project.status = data["status"]
    log_activity(project.team_id, user.id, f"updated project {project.name}", "project",
                 project.id, project.name)
    commit()
    return project.to_dict(is_favorite=project.id in _favorite_ids(user.id))


def archive_project(project_id, user: User) -> dict:
    project = get_accessible_project(project_id, user.id)
    _require_owner(project, user, "archive")
    project.status = PROJECT_ARCHIVED
    log_activity(project.team_id, user.id, f"archived project {project.name}", "project",
                 project.id, project.name)
    commit()
    return project.to_dict(is_favorite=project.id in _favorite_ids(user.id))


def delete_project(project_id, user: User) -> None:
    project = get_accessible_project(project_id, user.id)
    _require_owner(project, user, "delete")
    project.soft_delete()
    log_activity(project.team_id, user.id, f"deleted project {project.name}", "project",
                 project.id, project.name)
    commit()
    logger.info("Project soft-deleted id=%s by=%s", project.id, user.id)


# ── Favorites ─────────────────────────────────────────────────────────────────


def toggle_favorite(project_id, user: User) -> dict:
    project = get_accessible_project(project_id, user.id)
    existing = db.session.execute(
        select(ProjectFavorite).where(
            ProjectFavorite.user_id == user.id, ProjectFavorite.project_id == project.id,
        )
    ).scalar_one_or_none()
    if existing is not None:
        db.session.delete(existing)
        is_favorite = False
    else:
        db.session.add(ProjectFavorite(user_id=user.id, project_id=project.id))
        is_favorite = True
    commit()
    return {"is_favorite": is_favorite}


def get_favorite_projects(user: User) -> list[dict]:
    team_ids = user_team_ids(user.id)
    if not team_ids:
        return []
    projects = db.session.execute(
        select(Project)
        .join(ProjectFavorite, ProjectFavorite.project_id == Project.id)
        .where(
            ProjectFavorite.user_id == user.id,
            Project.team_id.in_(team_ids),
            Project.not_deleted(),
        )
        .order_by(ProjectFavorite.created_at.desc())
    ).scalars().all()
    return [p.to_dict(is_favorite=True) for p in projects]


# ── Board ─────────────────────────────────────────────────────────────────────


def get_board_data(project_id, user: User) -> dict:
    """
    Issues grouped into kanban columns.

    Returns:
        {"columns": [{"status", "issues"}, ...], "statuses": [...], "wip_limits": [...]}
        Columns run default statuses first, then custom ones by order_index;
        every column appears even when empty. Statuses found only on issues
        are appended last.
    """
    project = get_accessible_project(project_id, user.id)
    statuses = db.session.execute(
        select(CustomStatus)
        .where(CustomStatus.project_id == project.id)
        .order_by(CustomStatus.order_index.asc())
    ).scalars().all()
    wip_limits = db.session.execute(
        select(WipLimit).where(WipLimit.project_id == project.id)
    ).scalars().all()
    issues = db.session.execute(
        select(Issue)
        .where(Issue.project_id == project.id, Issue.not_deleted())
        .order_by(Issue.order_index.asc(), Issue.created_at.desc())
    ).scalars().all()

    columns: dict[str, list] = {name: [] for name in DEFAULT_STATUSES}
    for cs in statuses:
        columns.setdefault(cs.name, [])
    for issue in issues:
        columns.setdefault(issue.status or DEFAULT_STATUS, []).append(issue.to_dict())

    return {
        "columns": [{"status": name, "issues": items} for name, items in columns.items()],
        "statuses": [s.to_dict() for s in statuses],
        "wip_limits": [w.to_dict() for w in wip_limits],
    }


# ── Labels ────────────────────────────────────────────────────────────────────


def get_labels(project_id, user: User) -> list[dict]:
    project = get_accessible_project(project_id, user.id)
    labels = db.session.execute(
        select(Label).where(Label.project_id == project.id).order_by(Label.name.asc())
    ).scalars().all()
    return [lb.to_dict() for lb in labels]


def create_label(project_id, data: dict, user: User) -> dict:
    project = get_accessible_project(project_id, user.id)
    name = require_text(data.get("name"), "Label name", MAX_LABEL_NAME)
    color = validate_color(data.get("color"), DEFAULT_LABEL_COLOR)
    duplicate = db.session.execute(
        select(Label.id).where(Label.project_id == project.id, Label.name == name)
    ).first()
    if duplicate:
        raise ConflictError(f'Label "{name}" already exists in this project', code="LABEL_EXISTS")
    label = Label(project_id=project.id, name=name, color=color)
    db.session.add(label)
    commit()
    return label.to_dict()


def delete_label(project_id, label_id, user: User) -> None:
    project = get_accessible_project(project_id, user.id)
    label = db.session.get(Label, label_id) if label_id else None
    if label is None or label.project_id != project.id:
        raise NotFoundError("Label", label_id)
    db.session.execute(delete(IssueLabel).where(IssueLabel.label_id == label.id))
    db.session.delete(label)
    commit()
