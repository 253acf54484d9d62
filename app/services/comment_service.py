"""
CigroTrack
Comment Service — discussion threads on issues.

Comments are trimmed, 1–1000 characters, listed oldest first and
soft-deleted. Only the author may edit or delete a comment. A new comment
notifies the issue's reporter and assignee (never the author).
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select

from app.core.exceptions import PermissionDenied, ValidationError
from app.models import db
from app.models.comment import Comment
from app.models.user import User
from app.services.notification import NotificationService, issue_link
from app.services.permission_service import get_accessible_comment, get_accessible_issue
from app.utils.helpers import commit, require_text

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 1000
DEFAULT_PAGE_SIZE = 50


def _content(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Comment content is required", code="MISSING_CONTENT")
    return require_text(value, "Comment", MAX_COMMENT_LENGTH)


def create_comment(issue_id, content, user: User) -> dict:
    if not issue_id:
        raise ValidationError("issue_id is required", code="MISSING_ISSUE_ID")
    if not isinstance(issue_id, str):
        raise ValidationError("issue_id must be a string", code="MISSING_ISSUE_ID")
    issue = get_accessible_issue(issue_id, user.id)
    comment = Comment(issue_id=issue.id, author_id=user.id, content=_content(content))
    db.session.add(comment)
    db.session.flush()

    recipients = {issue.reporter_id, issue.assignee_id} - {None, user.id}
    for recipient in sorted(recipients):
        NotificationService.notify(
            user_id=recipient,
            type="comment_added",
            title=f"New comment on {issue.title}",
            message=comment.content[:200],
            link=issue_link(issue),
            metadata={"issue_id": issue.id, "comment_id": comment.id},
        )
    commit()
    logger.info("Comment created id=%s issue=%s", comment.id, issue.id)
    return comment.to_dict()


def get_comments(issue_id, user: User, page=1, limit=DEFAULT_PAGE_SIZE) -> tuple[list[dict], int]:
    if not issue_id:
        raise ValidationError("issue_id is required", code="MISSING_ISSUE_ID")
    issue = get_accessible_issue(issue_id, user.id)
    where = (Comment.issue_id == issue.id, Comment.not_deleted())
    total = db.session.execute(select(func.count(Comment.id)).where(*where)).scalar_one()
    comments = db.session.execute(
        select(Comment)
        .where(*where)
        .order_by(Comment.created_at.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return [c.to_dict() for c in comments], total


def update_comment(comment_id, content, user: User) -> dict:
    comment = get_accessible_comment(comment_id, user.id)
    if comment.author_id != user.id:
        raise PermissionDenied("Only comment author can update comment")
    comment.content = _content(content)
    commit()
    return comment.to_dict()


def delete_comment(comment_id, user: User) -> None:
    comment = get_accessible_comment(comment_id, user.id)
    if comment.author_id != user.id:
        raise PermissionDenied("Only comment author can delete comment")
    comment.soft_delete()
    commit()
