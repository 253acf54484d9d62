"""
CigroTrack
Team Blueprint — teams, invitations, members and the activity feed.

Endpoints:
  POST   /api/teams                                 — create team
  GET    /api/teams                                 — my teams
  GET    /api/teams/invites                         — my pending invites
  POST   /api/teams/invites/<id>/accept|decline|resend
  GET    /api/teams/<id>                            — team detail
  PUT    /api/teams/<id>                            — rename (OWNER/ADMIN)
  DELETE /api/teams/<id>                            — soft delete (OWNER)
  POST   /api/teams/<id>/invite                     — invite by email
  GET    /api/teams/<id>/invites                    — pending invites
  DELETE /api/teams/<id>/invites/<invite_id>        — revoke
  GET    /api/teams/<id>/members
  PUT    /api/teams/<id>/members/<member_id>/role
  DELETE /api/teams/<id>/members/<member_id>
  POST   /api/teams/<id>/leave
  GET    /api/teams/<id>/activity?page&limit
"""

from flask import Blueprint

from app.blueprints import current_user, json_body, page_args
from app.middleware.jwt_auth import authenticate
from app.models.team import ROLE_MEMBER
from app.services import team_service
from app.utils.errors import E, api_error, api_paginated, api_success

team_bp = Blueprint("teams", __name__, url_prefix="/api/teams")
team_bp.before_request(authenticate)


# ═══════════════════════════════════════════════════════════════
# Teams
# ═══════════════════════════════════════════════════════════════
@team_bp.route("", methods=["POST"])
def create_team():
    data = json_body()
    if not data.get("name"):
        return api_error(E.MISSING_FIELDS, "Team name is required")
    return api_success(team_service.create_team(data["name"], current_user()), status=201)


@team_bp.route("", methods=["GET"])
def list_teams():
    return api_success(team_service.get_teams(current_user()))


@team_bp.route("/<team_id>", methods=["GET"])
def get_team(team_id):
    return api_success(team_service.get_team(team_id, current_user()))


@team_bp.route("/<team_id>", methods=["PUT"])
def update_team(team_id):
    data = json_body()
    return api_success(team_service.update_team(team_id, data.get("name"), current_user()))


@team_bp.route("/<team_id>", methods=["DELETE"])
def delete_team(team_id):
    team_service.delete_team(team_id, current_user())
    return api_success(message="Team deleted successfully")


# ═══════════════════════════════════════════════════════════════
# Invitations
# ═══════════════════════════════════════════════════════════════
@team_bp.route("/invites", methods=["GET"])
def my_invites():
    return api_success(team_service.get_user_pending_invites(current_user()))


@team_bp.route("/invites/<invite_id>/accept", methods=["POST"])
def accept_invite(invite_id):
    member = team_service.accept_invite(invite_id, current_user())
    return api_success(member, message="Invitation accepted successfully")


@team_bp.route("/invites/<invite_id>/resend", methods=["POST"])
def resend_invite(invite_id):
    invite = team_service.resend_invite(invite_id, current_user())
    return api_success(invite, message="Invitation resent successfully")


@team_bp.route("/invites/<invite_id>/decline", methods=["POST"])
def decline_invite(invite_id):
    team_service.decline_invite(invite_id, current_user())
    return api_success(message="Invitation declined successfully")


@team_bp.route("/<team_id>/invite", methods=["POST"])
def invite_member(team_id):
    """Body: { "email": "...", "role": "ADMIN" | "MEMBER" }"""
    data = json_body()
    if not data.get("email"):
        return api_error(E.MISSING_FIELDS, "Email is required")
    invite = team_service.invite_member(
        team_id, data["email"], data.get("role") or ROLE_MEMBER, current_user(),
    )
    return api_success(invite, status=201)


@team_bp.route("/<team_id>/invites", methods=["GET"])
def team_invites(team_id):
    return api_success(team_service.get_team_invites(team_id, current_user()))


@team_bp.route("/<team_id>/invites/<invite_id>", methods=["DELETE"])
def revoke_invite(team_id, invite_id):
    team_service.revoke_invite(team_id, invite_id, current_user())
    return api_success(message="Invitation revoked successfully")


# ═══════════════════════════════════════════════════════════════
# Members
# ═══════════════════════════════════════════════════════════════
@team_bp.route("/<team_id>/members", methods=["GET"])
def list_members(team_id):
    return api_success(team_service.get_members(team_id, current_user()))


@team_bp.route("/<team_id>/members/<member_id>/role", methods=["PUT"])
def change_role(team_id, member_id):
    data = json_body()
    member = team_service.change_member_role(team_id, member_id, data.get("role"), current_user())
    return api_success(member, message="Role changed successfully")


@team_bp.route("/<team_id>/members/<member_id>", methods=["DELETE"])
def remove_member(team_id, member_id):
    team_service.remove_member(team_id, member_id, current_user())
    return api_success(message="Member removed successfully")


@team_bp.route("/<team_id>/leave", methods=["POST"])
def leave_team(team_id):
    team_service.leave_team(team_id, current_user())
    return api_success(message="Left team successfully")


@team_bp.route("/<team_id>/activity", methods=["GET"])
def team_activity(team_id):
    page, limit = page_args(default_limit=team_service.DEFAULT_ACTIVITY_LIMIT)
    items, total = team_service.get_activity(team_id, current_user(), page, limit)
    return api_paginated(items, page=page, limit=limit, total=total)
