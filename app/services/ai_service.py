"""
CigroTrack
AI Service — issue summaries, suggestions and comment digests.

The generators are deterministic placeholders behind the real plumbing:
issue access checks, input validation, the per-user quota
(app.ai.quota) and the per-issue summary cache. A cached summary is
returned without consuming quota.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.ai import quota
from app.core.exceptions import ValidationError
from app.models import db
from app.models.ai import STUB_MODEL_VERSION, AISummary
from app.models.comment import Comment
from app.models.user import User
from app.services.permission_service import get_accessible_issue

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 10
MIN_COMMENTS_FOR_SUMMARY = 5

SUGGESTION_TEXT = (
    "Suggested approach: Review the issue details and consider standard "
    "troubleshooting steps."
)
COMMENT_SUMMARY_TEXT = "Summary of comments on this issue..."


def _description(issue, description, purpose: str) -> str:
    text = description if isinstance(description, str) and description.strip() else issue.description
    text = (text or "").strip()
    if len(text) < MIN_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters for AI {purpose}",
            code="DESCRIPTION_TOO_SHORT",
        )
    return text


def _require_title(title) -> None:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("title is required", code="MISSING_TITLE")


def generate_summary(issue_id, user: User, description=None) -> dict:
    issue = get_accessible_issue(issue_id, user.id)
    text = _description(issue, description, "summary")

    cached = db.session.execute(
        select(AISummary).where(AISummary.issue_id == issue.id)
    ).scalar_one_or_none()
    if cached is not None:
        return {"summary": cached.summary, "cached": True}

    quota.consume(user.id)
    summary = f"Summary of issue: {text[:100]}..."
    db.session.add(AISummary(issue_id=issue.id, summary=summary, model_version=STUB_MODEL_VERSION))
    try:
        db.session.commit()
    except IntegrityError:
        # A concurrent request cached it first; keep theirs
        db.session.rollback()
    logger.info("AI summary generated issue=%s user=%s", issue.id, user.id)
    return {"summary": summary, "cached": False}


def generate_suggestion(issue_id, user: User, description=None) -> dict:
    issue = get_accessible_issue(issue_id, user.id)
    _description(issue, description, "suggestion")
    quota.consume(user.id)
    return {"suggestion": SUGGESTION_TEXT}


def auto_label(issue_id, user: User, title=None) -> dict:
    """Suggested label names. The placeholder model suggests none."""
    get_accessible_issue(issue_id, user.id)
    _require_title(title)
    quota.consume(user.id)
    return {"labels": []}


def detect_duplicates(issue_id, user: User, title=None) -> dict:
    """Ids of likely duplicate issues. The placeholder model finds none."""
    get_accessible_issue(issue_id, user.id)
    _require_title(title)
    quota.consume(user.id)
    return {"duplicates": []}


def summarize_comments(issue_id, user: User) -> dict:
    issue = get_accessible_issue(issue_id, user.id)
    count = db.session.execute(
        select(func.count(Comment.id)).where(Comment.issue_id == issue.id, Comment.not_deleted())
    ).scalar_one()
    if count < MIN_COMMENTS_FOR_SUMMARY:
        raise ValidationError(
            f"At least {MIN_COMMENTS_FOR_SUMMARY} comments are required for comment summary",
            code="INSUFFICIENT_COMMENTS",
        )
    quota.consume(user.id)
    return {"summary": COMMENT_SUMMARY_TEXT, "comment_count": count}


def rate_limit_status(user: User) -> dict:
    return quota.status(user.id)
