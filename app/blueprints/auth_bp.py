"""
CigroTrack
Auth Blueprint — account and session endpoints.

Public:
  POST   /api/auth/signup            — name + email + password → session
  POST   /api/auth/login             — email + password → session
  POST   /api/auth/google            — Google ID token → session
  POST   /api/auth/forgot-password   — email a reset link (neutral reply)
  POST   /api/auth/reset-password    — token + new password
  POST   /api/auth/logout            — clear the session cookie

Authenticated:
  GET    /api/auth/me
  PUT    /api/auth/profile
  POST   /api/auth/change-password
  DELETE /api/auth/account

The session token is set as an httpOnly cookie and also returned in the
body for clients that prefer the Authorization header.
"""

from flask import Blueprint, current_app, request

from app.blueprints import current_user, json_body
from app.middleware.jwt_auth import require_user
from app.services import auth_service
from app.services.jwt_service import generate_access_token, get_access_expires
from app.utils.errors import E, api_error, api_success

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

_PUBLIC_ENDPOINTS = frozenset({
    "auth.signup", "auth.login", "auth.google_login",
    "auth.forgot_password", "auth.reset_password", "auth.logout",
})


@auth_bp.before_request
def _authenticate():
    if request.method == "OPTIONS" or request.endpoint in _PUBLIC_ENDPOINTS:
        return None
    require_user()
    return None


def _set_auth_cookie(response, token: str):
    cfg = current_app.config
    samesite = cfg.get("AUTH_COOKIE_SAMESITE", "Lax")
    response.set_cookie(
        cfg.get("AUTH_COOKIE_NAME", "auth_token"),
        token,
        max_age=get_access_expires(),
        httponly=True,
        # Browsers drop SameSite=None cookies that are not Secure
        secure=cfg.get("AUTH_COOKIE_SECURE", False) or samesite == "None",
        samesite=samesite,
        path="/",
    )
    return response


def _clear_auth_cookie(response):
    cfg = current_app.config
    response.delete_cookie(
        cfg.get("AUTH_COOKIE_NAME", "auth_token"),
        path="/",
        httponly=True,
        secure=cfg.get("AUTH_COOKIE_SECURE", False),
        samesite=cfg.get("AUTH_COOKIE_SAMESITE", "Lax"),
    )
    return response


def _session_response(user, status=200):
    token = generate_access_token(user.id)
    response, code = api_success({"user": user.to_dict(), "token": token}, status=status)
    return _set_auth_cookie(response, token), code


# ═══════════════════════════════════════════════════════════════
# Sign-up / sign-in
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/signup", methods=["POST"])
def signup():
    """Body: { "name": "...", "email": "...", "password": "..." }"""
    data = json_body()
    if not data.get("name") or not data.get("email") or not data.get("password"):
        return api_error(E.MISSING_FIELDS, "Name, email, and password are required")
    user = auth_service.signup(data["name"], data["email"], data["password"])
    return _session_response(user, status=201)


@auth_bp.route("/login", methods=["POST"])
def login():
    """Body: { "email": "...", "password": "..." }"""
    data = json_body()
    if not data.get("email") or not data.get("password"):
        return api_error(E.MISSING_FIELDS, "Email and password are required")
    user = auth_service.login(data["email"], data["password"])
    return _session_response(user)


@auth_bp.route("/google", methods=["POST"])
def google_login():
    """Body: { "id_token": "..." }"""
    data = json_body()
    user = auth_service.google_login(data.get("id_token") or data.get("credential"))
    return _session_response(user)


@auth_bp.route("/logout", methods=["POST"])
def logout():
    response, code = api_success(message="Logged out successfully")
    return _clear_auth_cookie(response), code


@auth_bp.route("/me", methods=["GET"])
def me():
    return api_success(current_user().to_dict())


# ═══════════════════════════════════════════════════════════════
# Password reset
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/forgot-password", methods=["POST"])
def forgot_password():
    data = json_body()
    if not data.get("email"):
        return api_error(E.MISSING_FIELDS, "Email is required")
    auth_service.request_password_reset(data["email"])
    return api_success(message=auth_service.FORGOT_PASSWORD_MESSAGE)


@auth_bp.route("/reset-password", methods=["POST"])
def reset_password():
    """Body: { "token": "...", "new_password": "..." }"""
    data = json_body()
    password = data.get("new_password") or data.get("password")
    if not data.get("token") or not password:
        return api_error(E.MISSING_FIELDS, "Token and new password are required")
    auth_service.reset_password(data["token"], password)
    return api_success(message="Password reset successfully")


# ═══════════════════════════════════════════════════════════════
# Account
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/profile", methods=["PUT"])
def update_profile():
    user = auth_service.update_profile(current_user(), json_body())
    return api_success(user.to_dict())


@auth_bp.route("/change-password", methods=["POST"])
def change_password():
    """Body: { "current_password": "...", "new_password": "..." }"""
    data = json_body()
    if not data.get("current_password") or not data.get("new_password"):
        return api_error(E.MISSING_FIELDS, "Current and new password are required")
    auth_service.change_password(current_user(), data["current_password"], data["new_password"])
    return api_success(message="Password changed successfully")


@auth_bp.route("/account", methods=["DELETE"])
def delete_account():
    auth_service.delete_account(current_user())
    response, code = api_success(message="Account deleted successfully")
    return _clear_auth_cookie(response), code
