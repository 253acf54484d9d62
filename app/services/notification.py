"""
CigroTrack
Notification Service.

Central service for creating and querying in-app notifications.
Other services call ``NotificationService.notify`` as a side effect of
their own operation; it never raises, so a bad notification can not
fail the assignment/comment/invite that triggered it.
"""

import logging
from datetime import datetime, time, timedelta, timezone

from sqlalchemy import func, select

from app.core.exceptions import NotFoundError
from app.models import db, utcnow
from app.models.issue import Issue
from app.models.notification import NOTIFICATION_TYPES, Notification
from app.utils.helpers import as_utc, commit

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50
DUE_SOON_WINDOW = timedelta(hours=24)


def issue_link(issue) -> str:
    return f"/projects/{issue.project_id}/issues/{issue.id}"


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def notify(*, user_id, type, title, message=None, link=None, metadata=None):
        """
        Queue a notification on the current session (caller commits).

        Returns:
            The Notification, or None when the input was unusable.
        """
        try:
            if not user_id:
                raise ValueError("user_id is required")
            if type not in NOTIFICATION_TYPES:
                raise ValueError(f"unknown notification type {type!r}")
            title = (title or "").strip()
            if not title:
                raise ValueError("title is required")
            notif = Notification(
                user_id=user_id,
                type=type,
                title=title[:255],
                message=message,
                link=link,
                metadata_=metadata,
            )
            db.session.add(notif)
            return notif
        except ValueError as exc:
            logger.error("Notification skipped (non-blocking): %s", exc)
            return None

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_user(user_id, read=None, limit=DEFAULT_LIST_LIMIT):
        """Notifications for a user, newest first, optionally filtered by read flag."""
        q = select(Notification).where(Notification.user_id == user_id)
        if read is not None:
            q = q.where(Notification.read.is_(bool(read)))
        q = q.order_by(Notification.created_at.desc()).limit(limit)
        return db.session.execute(q).scalars().all()

    @staticmethod
    def unread_count(user_id):
        """Return count of unread notifications."""
        return db.session.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.read.is_(False),
            )
        ).scalar_one()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def _get_owned(notification_id, user_id):
        notif = db.session.get(Notification, notification_id)
        # Someone else's notification is reported as missing
        if notif is None or notif.user_id != user_id:
            raise NotFoundError("Notification", notification_id)
        return notif

    @staticmethod
    def mark_read(notification_id, user_id):
        """Mark a single notification as read."""
        notif = NotificationService._get_owned(notification_id, user_id)
        notif.read = True
        commit()
        return notif

    @staticmethod
    def mark_all_read(user_id):
        """Mark all of a user's notifications as read. Returns the number changed."""
        count = Notification.query.filter_by(user_id=user_id, read=False).update(
            {"read": True}, synchronize_session="fetch",
        )
        commit()
        return count

    @staticmethod
    def delete(notification_id, user_id):
        notif = NotificationService._get_owned(notification_id, user_id)
        db.session.delete(notif)
        commit()

    # ── Scheduled: due-date reminders ─────────────────────────────────────

    @staticmethod
    def notify_due_dates(now: datetime | None = None) -> dict:
        """
        Create due_date_today / due_date_approaching notifications.

        Looks at live, assigned issues due within the next 24 hours and
        notifies each assignee once per issue, type and UTC day.

        Returns:
            {"due_date_today": n, "due_date_approaching": m}
        """
        now = as_utc(now) or utcnow()
        day_start = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)
        day_end = day_start + timedelta(days=1)

        issues = db.session.execute(
            select(Issue).where(
                Issue.not_deleted(),
                Issue.assignee_id.isnot(None),
                Issue.due_date.isnot(None),
                Issue.due_date >= now,
                Issue.due_date < now + DUE_SOON_WINDOW,
            )
        ).scalars().all()

        counts = {"due_date_today": 0, "due_date_approaching": 0}
        for issue in issues:
            due = as_utc(issue.due_date)
            ntype = "due_date_today" if due < day_end else "due_date_approaching"
            link = issue_link(issue)
            already = db.session.execute(
                select(func.count(Notification.id)).where(
                    Notification.user_id == issue.assignee_id,
                    Notification.type == ntype,
                    Notification.link == link,
                    Notification.created_at >= day_start,
                )
            ).scalar_one()
            if already:
                continue
            title = (f"Issue due today: {issue.title}" if ntype == "due_date_today"
                     else f"Issue due soon: {issue.title}")
            NotificationService.notify(
                user_id=issue.assignee_id,
                type=ntype,
                title=title,
                message=f"Due {due.isoformat()}",
                link=link,
                metadata={"issue_id": issue.id, "project_id": issue.project_id},
            )
            counts[ntype] += 1

        commit()
        logger.info("Due-date notifications created: %s", counts)
        return counts
