"""
CigroTrack
Dashboard Blueprint.

Endpoints:
  GET /api/dashboard/projects/<project_id>
  GET /api/dashboard/personal
  GET /api/dashboard/teams/<team_id>/statistics?period=7days|30days|90days
"""

from flask import Blueprint, request

from app.blueprints import current_user
from app.middleware.jwt_auth import authenticate
from app.services import dashboard_service
from app.utils.errors import api_success

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")
dashboard_bp.before_request(authenticate)


@dashboard_bp.route("/projects/<project_id>", methods=["GET"])
def project_dashboard(project_id):
    return api_success(dashboard_service.get_project_dashboard(project_id, current_user()))


@dashboard_bp.route("/personal", methods=["GET"])
def personal_dashboard():
    return api_success(dashboard_service.get_personal_dashboard(current_user()))


@dashboard_bp.route("/teams/<team_id>/statistics", methods=["GET"])
def team_statistics(team_id):
    period = request.args.get("period", "30days")
    return api_success(dashboard_service.get_team_statistics(team_id, period, current_user()))
