"""
JWT Auth Middleware — resolves the session token and enforces login.

Token lookup order:
  1. ``auth_token`` httpOnly cookie
  2. ``Authorization: Bearer <token>`` header

``init_jwt_middleware`` runs before every request and only *parses*: it
sets ``g.jwt_user_id`` / ``g.jwt_error`` and never blocks. Blueprints that
need a user call ``require_user`` (usually as a blueprint-level
``before_request``), which loads ``g.current_user`` or raises 401.
"""

import logging

import jwt as pyjwt
from flask import current_app, g, request

from app.core.exceptions import AuthenticationError
from app.models import db
from app.models.user import User
from app.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)


def get_token_from_request() -> str | None:
    """Cookie first, then Bearer header."""
    cookie_token = request.cookies.get(current_app.config.get("AUTH_COOKIE_NAME", "auth_token"))
    if cookie_token:
        return cookie_token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_error = None
        g.current_user = None

        if not request.path.startswith("/api/"):
            return

        token = get_token_from_request()
        if not token:
            return

        try:
            payload = decode_access_token(token)
            g.jwt_user_id = payload.get("sub")
        except pyjwt.ExpiredSignatureError:
            g.jwt_error = "expired"
        except pyjwt.InvalidTokenError:
            g.jwt_error = "invalid"


def require_user() -> User:
    """Return the authenticated, non-deleted user or raise AuthenticationError.

    Suitable as ``bp.before_request(require_user)``: returning None from
    a before_request hook lets the request continue.
    """
    user = getattr(g, "current_user", None)
    if user is not None:
        return user

    if getattr(g, "jwt_error", None):
        raise AuthenticationError("Invalid or expired token", code="INVALID_TOKEN")
    user_id = getattr(g, "jwt_user_id", None)
    if not user_id:
        raise AuthenticationError("No token provided", code="NO_TOKEN")

    user = db.session.get(User, user_id)
    if user is None or user.is_deleted:
        logger.info("Token for missing user id=%s", user_id)
        raise AuthenticationError("User not found", code="USER_NOT_FOUND")

    g.current_user = user
    return user


def authenticate():
    """before_request adapter: enforce login, let the request proceed."""
    if request.method == "OPTIONS":
        return None
    require_user()
    return None
