"""
CigroTrack
Dashboard Service — project, personal and team statistics.

All figures are computed over live (non-deleted) issues in live projects
the caller can see. Days are UTC calendar days.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, time, timedelta, timezone

from sqlalchemy import select

from app.core.exceptions import ValidationError
from app.models import db, utcnow
from app.models.comment import Comment
from app.models.issue import DONE_STATUS, ISSUE_PRIORITIES, Issue
from app.models.project import PROJECT_ACTIVE, Project
from app.models.team import Team, TeamMember
from app.models.user import User
from app.services.permission_service import (
    get_accessible_project,
    require_team_member,
    user_team_ids,
)
from app.utils.helpers import as_utc

logger = logging.getLogger(__name__)

RECENT_WINDOW = timedelta(days=7)
DUE_SOON_WINDOW = timedelta(days=7)
PROJECT_LIST_LIMIT = 5
RECENT_COMMENT_LIMIT = 5
PERIOD_DAYS = {"7days": 7, "30days": 30, "90days": 90}


def _day_bounds(now: datetime) -> tuple[datetime, datetime]:
    start = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def _counts(values) -> list[dict]:
    return [{"status": k, "count": v} for k, v in Counter(values).items()]


# ── Project ───────────────────────────────────────────────────────────────────


def get_project_dashboard(project_id, user: User) -> dict:
    project = get_accessible_project(project_id, user.id)
    now = utcnow()
    live = (Issue.project_id == project.id, Issue.not_deleted())

    rows = db.session.execute(select(Issue.status, Issue.priority).where(*live)).all()
    total = len(rows)
    done = sum(1 for status, _ in rows if status == DONE_STATUS)
    by_priority = Counter(priority for _, priority in rows)

    recent = db.session.execute(
        select(Issue)
        .where(*live, Issue.created_at >= now - RECENT_WINDOW)
        .order_by(Issue.created_at.desc())
        .limit(PROJECT_LIST_LIMIT)
    ).scalars().all()
    due_soon = db.session.execute(
        select(Issue)
        .where(*live, Issue.due_date.isnot(None),
               Issue.due_date >= now, Issue.due_date <= now + DUE_SOON_WINDOW)
        .order_by(Issue.due_date.asc())
        .limit(PROJECT_LIST_LIMIT)
    ).scalars().all()

    return {
        "project_id": project.id,
        "total_issues": total,
        "issue_count_by_status": _counts(status for status, _ in rows),
        "completion_rate": done / total if total else 0,
        "issue_count_by_priority": [
            {"priority": p, "count": by_priority.get(p, 0)} for p in ISSUE_PRIORITIES
        ],
        "recently_created_issues": [i.to_dict() for i in recent],
        "issues_due_soon": [i.to_dict() for i in due_soon],
    }


# ── Personal ──────────────────────────────────────────────────────────────────


def get_personal_dashboard(user: User) -> dict:
    now = utcnow()
    day_start, day_end = _day_bounds(now)
    team_ids = user_team_ids(user.id)
    visible_projects = (
        select(Project.id).where(Project.team_id.in_(team_ids), Project.not_deleted())
    )

    assigned = db.session.execute(
        select(Issue)
        .where(
            Issue.assignee_id == user.id,
            Issue.not_deleted(),
            Issue.project_id.in_(visible_projects),
        )
        .order_by(Issue.order_index.asc(), Issue.created_at.desc())
    ).scalars().all() if team_ids else []

    grouped: dict[str, list] = {}
    for issue in assigned:
        grouped.setdefault(issue.status, []).append(issue.to_dict())

    due_soon, due_today = [], []
    for issue in sorted((i for i in assigned if i.due_date is not None),
                        key=lambda i: as_utc(i.due_date)):
        due = as_utc(issue.due_date)
        if now <= due <= now + DUE_SOON_WINDOW:
            due_soon.append(issue.to_dict())
        if day_start <= due < day_end:
            due_today.append(issue.to_dict())

    comments = db.session.execute(
        select(Comment)
        .join(Issue, Issue.id == Comment.issue_id)
        .where(
            Comment.author_id == user.id,
            Comment.not_deleted(),
            Issue.not_deleted(),
            Issue.project_id.in_(visible_projects),
        )
        .order_by(Comment.created_at.desc())
        .limit(RECENT_COMMENT_LIMIT)
    ).scalars().all() if team_ids else []

    teams_and_projects = []
    if team_ids:
        teams = db.session.execute(
            select(Team).where(Team.id.in_(team_ids)).order_by(Team.created_at.desc())
        ).scalars().all()
        for team in teams:
            projects = db.session.execute(
                select(Project)
                .where(Project.team_id == team.id, Project.not_deleted(),
                       Project.status == PROJECT_ACTIVE)
                .order_by(Project.created_at.desc())
            ).scalars().all()
            teams_and_projects.append({
                "team": team.to_dict(),
                "projects": [p.to_dict() for p in projects],
            })

    return {
        "assigned_issues": [{"status": s, "issues": items} for s, items in grouped.items()],
        "total_assigned_count": len(assigned),
        "issues_due_soon": due_soon,
        "issues_due_today": due_today,
        "recent_comments": [c.to_dict() for c in comments],
        "teams_and_projects": teams_and_projects,
    }


# ── Team ──────────────────────────────────────────────────────────────────────


def get_team_statistics(team_id, period, user: User) -> dict:
    """
    Trends and per-member workload for a team's active projects.

    Completion is dated by ``updated_at`` of issues currently in Done.
    """
    if period not in PERIOD_DAYS:
        raise ValidationError("period must be 7days, 30days or 90days", code="INVALID_PERIOD")
    require_team_member(team_id, user.id)
    start = utcnow() - timedelta(days=PERIOD_DAYS[period])

    projects = db.session.execute(
        select(Project)
        .where(Project.team_id == team_id, Project.not_deleted(), Project.status == PROJECT_ACTIVE)
        .order_by(Project.created_at.desc())
    ).scalars().all()
    project_ids = [p.id for p in projects]

    issues = db.session.execute(
        select(Issue).where(
            Issue.project_id.in_(project_ids),
            Issue.not_deleted(),
            Issue.created_at >= start,
        )
    ).scalars().all() if project_ids else []

    created = Counter(as_utc(i.created_at).date().isoformat() for i in issues)
    completed = Counter(
        as_utc(i.updated_at).date().isoformat() for i in issues if i.status == DONE_STATUS
    )
    assigned_per = Counter(i.assignee_id for i in issues if i.assignee_id)
    completed_per = Counter(
        i.assignee_id for i in issues if i.assignee_id and i.status == DONE_STATUS
    )

    members = db.session.execute(
        select(User)
        .join(TeamMember, TeamMember.user_id == User.id)
        .where(TeamMember.team_id == team_id)
    ).scalars().all()
    summaries = {m.id: m.to_summary() for m in members}

    def per_member(counter):
        return [
            {"member": summaries.get(uid, {"id": uid}), "count": n}
            for uid, n in counter.most_common()
        ]

    status_per_project = []
    for project in projects:
        statuses = db.session.execute(
            select(Issue.status).where(Issue.project_id == project.id, Issue.not_deleted())
        ).scalars().all()
        status_per_project.append({
            "project": {"id": project.id, "name": project.name},
            "status_counts": _counts(statuses),
        })

    return {
        "period": period,
        "issue_creation_trend": [{"date": d, "count": n} for d, n in sorted(created.items())],
        "issue_completion_trend": [{"date": d, "count": n} for d, n in sorted(completed.items())],
        "assigned_issues_per_member": per_member(assigned_per),
        "completed_issues_per_member": per_member(completed_per),
        "issue_status_per_project": status_per_project,
    }
