"""
CigroTrack
Issue Blueprint — issues, their labels, subtasks and change history.

Endpoints:
  POST   /api/issues                               — create (body: project_id, title, ...)
  GET    /api/issues?project_id&filters&sort_by&sort_order&page&limit
  GET    /api/issues/search?project_id&q
  GET    /api/issues/<id>
  PUT    /api/issues/<id>                          — partial update
  DELETE /api/issues/<id>                          — soft delete
  PUT    /api/issues/<id>/assign                   — body: assignee_id (null unassigns)
  PUT    /api/issues/<id>/priority
  PUT    /api/issues/<id>/status
  GET    /api/issues/<id>/history
  POST   /api/issues/<id>/labels                   — body: label_id or label_ids
  DELETE /api/issues/<id>/labels/<label_id>
  POST   /api/issues/<id>/subtasks
  PUT    /api/issues/<id>/subtasks/<subtask_id>
  DELETE /api/issues/<id>/subtasks/<subtask_id>
"""

from flask import Blueprint, request

from app.blueprints import bool_arg, current_user, json_body, list_arg, page_args
from app.middleware.jwt_auth import authenticate
from app.services import issue_service
from app.utils.errors import E, api_error, api_paginated, api_success

issue_bp = Blueprint("issues", __name__, url_prefix="/api/issues")
issue_bp.before_request(authenticate)


def _list_filters() -> dict:
    args = request.args
    filters = {
        "status": list_arg("status"),
        "priority": list_arg("priority"),
        "labels": list_arg("labels"),
        "assignee_id": args.get("assignee_id"),
        "reporter_id": args.get("reporter_id"),
        "search": args.get("search"),
        "has_due_date": bool_arg("has_due_date"),
        "due_date_from": args.get("due_date_from"),
        "due_date_to": args.get("due_date_to"),
    }
    return {k: v for k, v in filters.items() if v not in (None, "", [])}


# ═══════════════════════════════════════════════════════════════
# Issues
# ═══════════════════════════════════════════════════════════════
@issue_bp.route("", methods=["POST"])
def create_issue():
    data = json_body()
    if not data.get("title") or not data.get("project_id"):
        return api_error(E.MISSING_FIELDS, "Title and project_id are required")
    issue = issue_service.create_issue(data["project_id"], data, current_user())
    return api_success(issue, status=201)


@issue_bp.route("", methods=["GET"])
def list_issues():
    page, limit = page_args(default_limit=issue_service.DEFAULT_PAGE_SIZE)
    items, total = issue_service.get_issues(
        request.args.get("project_id"),
        current_user(),
        filters=_list_filters(),
        sort_by=request.args.get("sort_by", "created_at"),
        sort_order=request.args.get("sort_order", "desc"),
        page=page,
        limit=limit,
    )
    return api_paginated(items, page=page, limit=limit, total=total)


@issue_bp.route("/search", methods=["GET"])
def search_issues():
    project_id = request.args.get("project_id")
    query = request.args.get("q")
    if not project_id or not query:
        return api_error(E.MISSING_FIELDS, "project_id and q are required")
    return api_success(issue_service.search_issues(project_id, query, current_user()))


@issue_bp.route("/<issue_id>", methods=["GET"])
def get_issue(issue_id):
    return api_success(issue_service.get_issue(issue_id, current_user()))


@issue_bp.route("/<issue_id>", methods=["PUT"])
def update_issue(issue_id):
    return api_success(issue_service.update_issue(issue_id, json_body(), current_user()))


@issue_bp.route("/<issue_id>", methods=["DELETE"])
def delete_issue(issue_id):
    issue_service.delete_issue(issue_id, current_user())
    return api_success(message="Issue deleted successfully")


@issue_bp.route("/<issue_id>/assign", methods=["PUT"])
def assign_issue(issue_id):
    data = json_body()
    issue = issue_service.assign_issue(issue_id, data.get("assignee_id") or None, current_user())
    return api_success(issue)


@issue_bp.route("/<issue_id>/priority", methods=["PUT"])
def update_priority(issue_id):
    data = json_body()
    return api_success(issue_service.update_priority(issue_id, data.get("priority"), current_user()))


@issue_bp.route("/<issue_id>/status", methods=["PUT"])
def update_status(issue_id):
    data = json_body()
    return api_success(issue_service.update_status(issue_id, data.get("status"), current_user()))


@issue_bp.route("/<issue_id>/history", methods=["GET"])
def issue_history(issue_id):
    return api_success(issue_service.get_issue_history(issue_id, current_user()))


# ═══════════════════════════════════════════════════════════════
# Labels
# ═══════════════════════════════════════════════════════════════
@issue_bp.route("/<issue_id>/labels", methods=["POST"])
def add_label(issue_id):
    data = json_body()
    if "label_ids" in data:
        issue = issue_service.add_labels(issue_id, data.get("label_ids"), current_user())
    else:
        issue = issue_service.add_label(issue_id, data.get("label_id"), current_user())
    return api_success(issue, message="Label added successfully")


@issue_bp.route("/<issue_id>/labels/<label_id>", methods=["DELETE"])
def remove_label(issue_id, label_id):
    issue_service.remove_label(issue_id, label_id, current_user())
    return api_success(message="Label removed successfully")


# ═══════════════════════════════════════════════════════════════
# Subtasks
# ═══════════════════════════════════════════════════════════════
@issue_bp.route("/<issue_id>/subtasks", methods=["POST"])
def create_subtask(issue_id):
    data = json_body()
    if not data.get("title"):
        return api_error(E.MISSING_FIELDS, "Title is required")
    return api_success(issue_service.create_subtask(issue_id, data, current_user()), status=201)


@issue_bp.route("/<issue_id>/subtasks/<subtask_id>", methods=["PUT"])
def update_subtask(issue_id, subtask_id):
    subtask = issue_service.update_subtask(issue_id, subtask_id, json_body(), current_user())
    return api_success(subtask)


@issue_bp.route("/<issue_id>/subtasks/<subtask_id>", methods=["DELETE"])
def delete_subtask(issue_id, subtask_id):
    issue_service.delete_subtask(issue_id, subtask_id, current_user())
    return api_success(message="Subtask deleted successfully")
