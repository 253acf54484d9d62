"""
CigroTrack
Project Blueprint — projects, favorites, the kanban board and labels.

Endpoints:
  POST   /api/projects                          — create (body: team_id, name, description)
  GET    /api/projects?team_id&status           — list
  GET    /api/projects/favorites
  GET    /api/projects/<id>
  PUT    /api/projects/<id>                     — owner only
  DELETE /api/projects/<id>                     — owner only, soft delete
  POST   /api/projects/<id>/archive             — owner only
  POST   /api/projects/<id>/favorite            — toggle
  GET    /api/projects/<id>/board
  GET    /api/projects/<id>/labels
  POST   /api/projects/<id>/labels
  DELETE /api/projects/<id>/labels/<label_id>
"""

from flask import Blueprint, request

from app.blueprints import current_user, json_body
from app.middleware.jwt_auth import authenticate
from app.services import project_service
from app.utils.errors import api_success

project_bp = Blueprint("projects", __name__, url_prefix="/api/projects")
project_bp.before_request(authenticate)


# ═══════════════════════════════════════════════════════════════
# Projects
# ═══════════════════════════════════════════════════════════════
@project_bp.route("", methods=["POST"])
def create_project():
    data = json_body()
    project = project_service.create_project(data.get("team_id"), data, current_user())
    return api_success(project, status=201)


@project_bp.route("", methods=["GET"])
def list_projects():
    projects = project_service.get_projects(
        current_user(),
        team_id=request.args.get("team_id"),
        status=request.args.get("status"),
    )
    return api_success(projects)


@project_bp.route("/favorites", methods=["GET"])
def favorite_projects():
    return api_success(project_service.get_favorite_projects(current_user()))


@project_bp.route("/<project_id>", methods=["GET"])
def get_project(project_id):
    return api_success(project_service.get_project(project_id, current_user()))


@project_bp.route("/<project_id>", methods=["PUT"])
def update_project(project_id):
    return api_success(project_service.update_project(project_id, json_body(), current_user()))


@project_bp.route("/<project_id>", methods=["DELETE"])
def delete_project(project_id):
    project_service.delete_project(project_id, current_user())
    return api_success(message="Project deleted successfully")


@project_bp.route("/<project_id>/archive", methods=["POST"])
def archive_project(project_id):
    project = project_service.archive_project(project_id, current_user())
    return api_success(project, message="Project archived successfully")


@project_bp.route("/<project_id>/favorite", methods=["POST"])
def toggle_favorite(project_id):
    return api_success(project_service.toggle_favorite(project_id, current_user()))


@project_bp.route("/<project_id>/board", methods=["GET"])
def board(project_id):
    return api_success(project_service.get_board_data(project_id, current_user()))


# ═══════════════════════════════════════════════════════════════
# Labels
# ═══════════════════════════════════════════════════════════════
@project_bp.route("/<project_id>/labels", methods=["GET"])
def list_labels(project_id):
    return api_success(project_service.get_labels(project_id, current_user()))


@project_bp.route("/<project_id>/labels", methods=["POST"])
def create_label(project_id):
    """Body: { "name": "...", "color": "#RRGGBB" }"""
    label = project_service.create_label(project_id, json_body(), current_user())
    return api_success(label, status=201)


@project_bp.route("/<project_id>/labels/<label_id>", methods=["DELETE"])
def delete_label(project_id, label_id):
    project_service.delete_label(project_id, label_id, current_user())
    return api_success(message="Label deleted successfully")
