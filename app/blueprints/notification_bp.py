"""
CigroTrack
Notification Blueprint — the caller's in-app inbox.

Endpoints:
  GET    /api/notifications?read=true|false&limit
  GET    /api/notifications/unread-count
  PUT    /api/notifications/<id>/read
  PUT    /api/notifications/read-all
  DELETE /api/notifications/<id>
"""

from flask import Blueprint, request

from app.blueprints import MAX_PAGE_SIZE, bool_arg, current_user
from app.core.exceptions import ValidationError
from app.middleware.jwt_auth import authenticate
from app.services.notification import DEFAULT_LIST_LIMIT, NotificationService
from app.utils.errors import api_success

notification_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")
notification_bp.before_request(authenticate)


@notification_bp.route("", methods=["GET"])
def list_notifications():
    try:
        limit = int(request.args.get("limit", DEFAULT_LIST_LIMIT))
    except ValueError as exc:
        raise ValidationError("limit must be an integer") from exc
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    items = NotificationService.list_for_user(current_user().id, read=bool_arg("read"), limit=limit)
    return api_success([n.to_dict() for n in items])


@notification_bp.route("/unread-count", methods=["GET"])
def unread_count():
    return api_success({"count": NotificationService.unread_count(current_user().id)})


@notification_bp.route("/read-all", methods=["PUT"])
def mark_all_read():
    count = NotificationService.mark_all_read(current_user().id)
    return api_success({"updated": count}, message="All notifications marked as read")


@notification_bp.route("/<notification_id>/read", methods=["PUT"])
def mark_read(notification_id):
    notif = NotificationService.mark_read(notification_id, current_user().id)
    return api_success(notif.to_dict())


@notification_bp.route("/<notification_id>", methods=["DELETE"])
def delete_notification(notification_id):
    NotificationService.delete(notification_id, current_user().id)
    return api_success(message="Notification deleted successfully")
