"""
CigroTrack
Kanban Blueprint — custom columns, WIP limits and card ordering.

Endpoints:
  GET    /api/kanban/projects/<pid>/statuses
  POST   /api/kanban/projects/<pid>/statuses
  PUT    /api/kanban/statuses/<id>
  DELETE /api/kanban/statuses/<id>
  GET    /api/kanban/projects/<pid>/wip-limits
  PUT    /api/kanban/projects/<pid>/wip-limits              — body: status, limit
  GET    /api/kanban/projects/<pid>/wip-limits/<status>/check
  PUT    /api/kanban/projects/<pid>/issues/order            — body: updates[]
"""

from flask import Blueprint

from app.blueprints import current_user, json_body
from app.middleware.jwt_auth import authenticate
from app.services import kanban_service
from app.utils.errors import E, api_error, api_success

kanban_bp = Blueprint("kanban", __name__, url_prefix="/api/kanban")
kanban_bp.before_request(authenticate)


# ═══════════════════════════════════════════════════════════════
# Custom statuses
# ═══════════════════════════════════════════════════════════════
@kanban_bp.route("/projects/<project_id>/statuses", methods=["GET"])
def list_statuses(project_id):
    return api_success(kanban_service.get_custom_statuses(project_id, current_user()))


@kanban_bp.route("/projects/<project_id>/statuses", methods=["POST"])
def create_status(project_id):
    data = json_body()
    if not data.get("name"):
        return api_error(E.MISSING_FIELDS, "Status name is required")
    status = kanban_service.create_custom_status(project_id, data, current_user())
    return api_success(status, status=201)


@kanban_bp.route("/statuses/<status_id>", methods=["PUT"])
def update_status(status_id):
    return api_success(kanban_service.update_custom_status(status_id, json_body(), current_user()))


@kanban_bp.route("/statuses/<status_id>", methods=["DELETE"])
def delete_status(status_id):
    kanban_service.delete_custom_status(status_id, current_user())
    return api_success(message="Status deleted successfully")


# ═══════════════════════════════════════════════════════════════
# WIP limits
# ═══════════════════════════════════════════════════════════════
@kanban_bp.route("/projects/<project_id>/wip-limits", methods=["GET"])
def list_wip_limits(project_id):
    return api_success(kanban_service.get_wip_limits(project_id, current_user()))


@kanban_bp.route("/projects/<project_id>/wip-limits", methods=["PUT"])
def set_wip_limit(project_id):
    """Body: { "status": "In Progress", "limit": 5 | null }"""
    data = json_body()
    if not data.get("status") or "limit" not in data:
        return api_error(E.MISSING_FIELDS, "status and limit are required")
    wip = kanban_service.set_wip_limit(project_id, data["status"], data["limit"], current_user())
    return api_success(wip)


@kanban_bp.route("/projects/<project_id>/wip-limits/<path:status>/check", methods=["GET"])
def check_wip_limit(project_id, status):
    return api_success(kanban_service.check_wip_limit(project_id, status, current_user()))


# ═══════════════════════════════════════════════════════════════
# Ordering
# ═══════════════════════════════════════════════════════════════
@kanban_bp.route("/projects/<project_id>/issues/order", methods=["PUT"])
def update_order(project_id):
    """Body: { "updates": [{"issue_id": ..., "status": ..., "order": 0}, ...] }"""
    data = json_body()
    issues = kanban_service.update_issue_order(project_id, data.get("updates"), current_user())
    return api_success(issues, message="Issue order updated successfully")
