"""
CigroTrack
Comment Blueprint.

Endpoints:
  POST   /api/comments                    — body: issue_id, content
  GET    /api/comments?issue_id&page&limit
  PUT    /api/comments/<id>               — author only
  DELETE /api/comments/<id>               — author only, soft delete
"""

from flask import Blueprint, request

from app.blueprints import current_user, json_body, page_args
from app.middleware.jwt_auth import authenticate
from app.services import comment_service
from app.utils.errors import api_paginated, api_success

comment_bp = Blueprint("comments", __name__, url_prefix="/api/comments")
comment_bp.before_request(authenticate)


@comment_bp.route("", methods=["POST"])
def create_comment():
    data = json_body()
    comment = comment_service.create_comment(data.get("issue_id"), data.get("content"), current_user())
    return api_success(comment, status=201)


@comment_bp.route("", methods=["GET"])
def list_comments():
    page, limit = page_args(default_limit=comment_service.DEFAULT_PAGE_SIZE)
    items, total = comment_service.get_comments(
        request.args.get("issue_id"), current_user(), page, limit,
    )
    return api_paginated(items, page=page, limit=limit, total=total)


@comment_bp.route("/<comment_id>", methods=["PUT"])
def update_comment(comment_id):
    data = json_body()
    return api_success(comment_service.update_comment(comment_id, data.get("content"), current_user()))


@comment_bp.route("/<comment_id>", methods=["DELETE"])
def delete_comment(comment_id):
    comment_service.delete_comment(comment_id, current_user())
    return api_success(message="Comment deleted successfully")
