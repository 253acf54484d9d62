"""
CigroTrack
AI Blueprint — issue assistance behind the per-user quota.

Endpoints:
  POST /api/ai/issues/<id>/summary            — body: description (optional)
  POST /api/ai/issues/<id>/suggestion         — body: description (optional)
  POST /api/ai/issues/<id>/auto-label         — body: title
  POST /api/ai/issues/<id>/duplicates         — body: title
  POST /api/ai/issues/<id>/comments/summary
  GET  /api/ai/rate-limit                     — remaining quota

Quota exhaustion returns 429 AI_RATE_LIMIT.
"""

from flask import Blueprint

from app.blueprints import current_user, json_body
from app.middleware.jwt_auth import authenticate
from app.services import ai_service
from app.utils.errors import api_success

ai_bp = Blueprint("ai", __name__, url_prefix="/api/ai")
ai_bp.before_request(authenticate)


@ai_bp.route("/issues/<issue_id>/summary", methods=["POST"])
def summary(issue_id):
    data = json_body()
    return api_success(ai_service.generate_summary(issue_id, current_user(), data.get("description")))


@ai_bp.route("/issues/<issue_id>/suggestion", methods=["POST"])
def suggestion(issue_id):
    data = json_body()
    return api_success(ai_service.generate_suggestion(issue_id, current_user(), data.get("description")))


@ai_bp.route("/issues/<issue_id>/auto-label", methods=["POST"])
def auto_label(issue_id):
    data = json_body()
    return api_success(ai_service.auto_label(issue_id, current_user(), data.get("title")))


@ai_bp.route("/issues/<issue_id>/duplicates", methods=["POST"])
def duplicates(issue_id):
    data = json_body()
    return api_success(ai_service.detect_duplicates(issue_id, current_user(), data.get("title")))


@ai_bp.route("/issues/<issue_id>/comments/summary", methods=["POST"])
def comment_summary(issue_id):
    return api_success(ai_service.summarize_comments(issue_id, current_user()))


@ai_bp.route("/rate-limit", methods=["GET"])
def rate_limit():
    return api_success(ai_service.rate_limit_status(current_user()))
