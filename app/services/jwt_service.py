"""
Session tokens (HS256).

A session is a single signed token carrying the user id in ``sub``. It
travels in the httpOnly ``auth_token`` cookie, and API clients may send
the same value as ``Authorization: Bearer <token>``. Lifetime is
JWT_ACCESS_EXPIRES seconds (one day by default); there is no refresh
token, clients sign in again.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

ALGORITHM = "HS256"
SESSION_TOKEN_TYPE = "access"
DEFAULT_ACCESS_EXPIRES = 24 * 60 * 60


def _signing_key() -> str:
    cfg = current_app.config
    return cfg.get("JWT_SECRET_KEY") or cfg["SECRET_KEY"]


def get_access_expires() -> int:
    """Session lifetime in seconds; also used as the cookie max-age."""
    return int(current_app.config.get("JWT_ACCESS_EXPIRES") or DEFAULT_ACCESS_EXPIRES)


def generate_access_token(user_id: str) -> str:
    issued = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "type": SESSION_TOKEN_TYPE,
        "jti": uuid.uuid4().hex,
        "iat": issued,
        "exp": issued + timedelta(seconds=get_access_expires()),
    }
    return jwt.encode(claims, _signing_key(), algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature, expiry and token type.

    Lets ``jwt.ExpiredSignatureError`` / ``jwt.InvalidTokenError``
    propagate; the auth middleware maps them to error codes.
    """
    claims = jwt.decode(
        token, _signing_key(), algorithms=[ALGORITHM],
        options={"require": ["sub", "exp"]},
    )
    if claims.get("type") != SESSION_TOKEN_TYPE:
        raise jwt.InvalidTokenError("not a session token")
    return claims
