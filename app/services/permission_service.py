"""
Permission Service — team-membership access control.

Every team-owned row (projects, issues, comments, board config) is only
visible to members of the owning team. Lookups for non-members raise
NotFoundError rather than PermissionDenied so a 404 never confirms that a
foreign resource exists. Role checks (OWNER/ADMIN/MEMBER) raise
PermissionDenied once membership is established.
"""

import logging

from sqlalchemy import select

from app.core.exceptions import NotFoundError, PermissionDenied
from app.models import db
from app.models.comment import Comment
from app.models.issue import Issue
from app.models.project import Project
from app.models.team import Team, TeamMember

logger = logging.getLogger(__name__)


def get_membership(team_id: str, user_id: str) -> TeamMember | None:
    return db.session.execute(
        select(TeamMember).where(
            TeamMember.team_id == team_id,
            TeamMember.user_id == user_id,
        )
    ).scalar_one_or_none()


def get_team_role(team_id: str, user_id: str) -> str | None:
    member = get_membership(team_id, user_id)
    return member.role if member else None


def user_team_ids(user_id: str) -> list[str]:
    """Ids of live teams the user belongs to."""
    rows = db.session.execute(
        select(Team.id)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .where(TeamMember.user_id == user_id, Team.not_deleted())
    ).scalars().all()
    return list(rows)


def require_team_member(team_id: str, user_id: str) -> tuple[Team, TeamMember]:
    """Return (team, membership) or raise NotFoundError."""
    team = db.session.get(Team, team_id) if isinstance(team_id, str) and team_id else None
    if team is None or team.is_deleted:
        raise NotFoundError("Team", team_id)
    member = get_membership(team_id, user_id)
    if member is None:
        logger.warning("User %s denied access to team %s: not a member", user_id, team_id)
        raise NotFoundError("Team", team_id)
    return team, member


def require_team_role(team_id: str, user_id: str, roles, message: str) -> tuple[Team, TeamMember]:
    """Like require_team_member, plus the member's role must be in ``roles``."""
    team, member = require_team_member(team_id, user_id)
    if member.role not in roles:
        raise PermissionDenied(message)
    return team, member


def get_accessible_project(project_id: str, user_id: str) -> Project:
    """Live project in a team the user belongs to."""
    project = db.session.get(Project, project_id) if isinstance(project_id, str) and project_id else None
    if project is None or project.is_deleted:
        raise NotFoundError("Project", project_id)
    try:
        require_team_member(project.team_id, user_id)
    except NotFoundError:
        raise NotFoundError("Project", project_id) from None
    return project


def get_accessible_issue(issue_id: str, user_id: str) -> Issue:
    """Live issue in a live project the user can see."""
    issue = db.session.get(Issue, issue_id) if isinstance(issue_id, str) and issue_id else None
    if issue is None or issue.is_deleted:
        raise NotFoundError("Issue", issue_id)
    try:
        get_accessible_project(issue.project_id, user_id)
    except NotFoundError:
        raise NotFoundError("Issue", issue_id) from None
    return issue


def get_accessible_comment(comment_id: str, user_id: str) -> Comment:
    comment = db.session.get(Comment, comment_id) if isinstance(comment_id, str) and comment_id else None
    if comment is None or comment.is_deleted:
        raise NotFoundError("Comment", comment_id)
    try:
        get_accessible_issue(comment.issue_id, user_id)
    except NotFoundError:
        raise NotFoundError("Comment", comment_id) from None
    return comment
