"""
CigroTrack
Auth Service — accounts, sign-in and password management.

Rules:
  - Emails are validated with email_validator and stored lower-cased.
  - Passwords are bcrypt-hashed (app.utils.crypto); Google accounts have
    no password and can not use the password endpoints.
  - Reset tokens are random, stored as SHA-256 hashes and valid for one
    hour. The forgot-password endpoint never reveals whether an email is
    registered.
"""

from __future__ import annotations

import logging
from datetime import timedelta

import httpx
from email_validator import EmailNotValidError, validate_email
from flask import current_app
from sqlalchemy import func, select

from app.core.exceptions import (
    AuthenticationError,
    ConflictError,
    ValidationError,
)
from app.models import db, utcnow
from app.models.team import Team
from app.models.user import PasswordResetToken, User
from app.services.email_service import EmailService
from app.utils.crypto import generate_token, hash_password, hash_token, verify_password
from app.utils.helpers import as_utc, commit, optional_text, require_text

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72
MAX_NAME_LENGTH = 50
FORGOT_PASSWORD_MESSAGE = "If an account exists for that email, a reset link has been sent."


def normalize_email(email) -> str:
    """Validate syntax (no DNS lookup) and lower-case the whole address."""
    if not isinstance(email, str) or not email.strip():
        raise ValidationError("Email is required")
    try:
        valid = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}") from e
    return valid.normalized.lower()


def _validate_password(password) -> str:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            code="WEAK_PASSWORD",
        )
    # bcrypt only accepts up to 72 bytes
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(
            f"Password must be at most {MAX_PASSWORD_BYTES} bytes",
            code="WEAK_PASSWORD",
        )
    return password


def get_user_by_email(email: str) -> User | None:
    """Any user row (deleted or not) holding this email."""
    return db.session.execute(
        select(User).where(func.lower(User.email) == email.lower())
    ).scalar_one_or_none()


# ═══════════════════════════════════════════════════════════════
# Sign-up / sign-in
# ═══════════════════════════════════════════════════════════════
def signup(name, email, password) -> User:
    name = require_text(name, "Name", MAX_NAME_LENGTH)
    email = normalize_email(email)
    _validate_password(password)

    # Deleted accounts keep their email reserved
    if get_user_by_email(email) is not None:
        raise ConflictError("Email already registered", code="EMAIL_EXISTS")

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        auth_provider="email",
    )
    db.session.add(user)
    commit()
    logger.info("User signed up id=%s", user.id)
    return user


def login(email, password) -> User:
    if not isinstance(email, str) or not isinstance(password, str):
        raise AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS")
    user = get_user_by_email(email.strip())
    if (
        user is None
        or user.is_deleted
        or not verify_password(password, user.password_hash)
    ):
        logger.info("Failed login for email=%s", email.strip().lower())
        raise AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS")
    return user


def verify_google_token(id_token: str) -> dict:
    """
    Verify a Google ID token with Google's tokeninfo endpoint.

    Returns the token claims; raises AuthenticationError when Google
    rejects the token, the audience does not match GOOGLE_CLIENT_ID, or
    the email is not verified.
    """
    cfg = current_app.config
    try:
        resp = httpx.get(
            cfg["GOOGLE_TOKENINFO_URL"],
            params={"id_token": id_token},
            timeout=10,
        )
        resp.raise_for_status()
        claims = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Google token verification failed: %s", e)
        raise AuthenticationError("Google authentication failed", code="GOOGLE_AUTH_FAILED") from e

    client_id = cfg.get("GOOGLE_CLIENT_ID")
    if client_id and claims.get("aud") != client_id:
        logger.warning("Google token audience mismatch aud=%s", claims.get("aud"))
        raise AuthenticationError("Google authentication failed", code="GOOGLE_AUTH_FAILED")
    if not claims.get("email") or str(claims.get("email_verified")).lower() != "true":
        raise AuthenticationError("Google account email is not verified", code="GOOGLE_AUTH_FAILED")
    return claims


def google_login(id_token) -> User:
    """Sign in with Google, creating the account on first use."""
    if not isinstance(id_token, str) or not id_token.strip():
        raise ValidationError("id_token is required", code="MISSING_TOKEN")
    claims = verify_google_token(id_token.strip())
    email = claims["email"].lower()

    user = get_user_by_email(email)
    if user is not None:
        if user.is_deleted:
            raise AuthenticationError("Account has been deleted", code="GOOGLE_AUTH_FAILED")
        if not user.avatar and claims.get("picture"):
            user.avatar = claims["picture"]
            commit()
        return user

    name = (claims.get("name") or email.split("@")[0])[:MAX_NAME_LENGTH]
    user = User(
        name=name,
        email=email,
        avatar=claims.get("picture"),
        auth_provider="google",
    )
    db.session.add(user)
    commit()
    logger.info("Google user created id=%s", user.id)
    return user


# ═══════════════════════════════════════════════════════════════
# Password reset
# ═══════════════════════════════════════════════════════════════
def request_password_reset(email) -> None:
    """Store a one-hour reset token and email the link. Silent for unknown emails."""
    try:
        email = normalize_email(email)
    except ValidationError:
        return
    user = get_user_by_email(email)
    if user is None or user.is_deleted or user.auth_provider != "email":
        logger.info("Password reset requested for unknown email")
        return

    token = generate_token()
    expires = current_app.config.get("PASSWORD_RESET_EXPIRES", 3600)
    db.session.add(PasswordResetToken(
        user_id=user.id,
        token_hash=hash_token(token),
        expires_at=utcnow() + timedelta(seconds=expires),
    ))
    commit()

    frontend = EmailService.frontend_url()
    EmailService.send_from_template(
        to_email=user.email,
        to_name=user.name,
        template_name="password_reset",
        context={
            "name": user.name,
            "reset_link": f"{frontend}/auth/reset-password?token={token}",
        },
    )
    logger.info("Password reset token issued user=%s", user.id)


def reset_password(token, new_password) -> None:
    if not isinstance(token, str) or not token:
        raise ValidationError("Invalid or expired reset token", code="INVALID_RESET_TOKEN")
    _validate_password(new_password)

    row = db.session.execute(
        select(PasswordResetToken).where(PasswordResetToken.token_hash == hash_token(token))
    ).scalar_one_or_none()
    if (
        row is None
        or row.used_at is not None
        or as_utc(row.expires_at) <= utcnow()
        or row.user is None
        or row.user.is_deleted
    ):
        raise ValidationError("Invalid or expired reset token", code="INVALID_RESET_TOKEN")

    row.used_at = utcnow()
    row.user.password_hash = hash_password(new_password)
    commit()
    logger.info("Password reset completed user=%s", row.user_id)


# ═══════════════════════════════════════════════════════════════
# Profile
# ═══════════════════════════════════════════════════════════════
def update_profile(user: User, data: dict) -> User:
    if "name" in data:
        user.name = require_text(data.get("name"), "Name", MAX_NAME_LENGTH)
    if "avatar" in data:
        user.avatar = optional_text(data.get("avatar"), "Avatar", 500)
    commit()
    return user


def change_password(user: User, current_password, new_password) -> None:
    if user.auth_provider != "email":
        raise ValidationError(
            "Password can not be changed for Google accounts", code="OAUTH_ACCOUNT",
        )
    if not verify_password(current_password or "", user.password_hash):
        raise ValidationError("Current password is incorrect", code="INVALID_PASSWORD")
    _validate_password(new_password)
    user.password_hash = hash_password(new_password)
    commit()
    logger.info("Password changed user=%s", user.id)


def delete_account(user: User) -> None:
    """Soft-delete the account unless the user still owns a live team."""
    owned = db.session.execute(
        select(func.count(Team.id)).where(Team.owner_id == user.id, Team.not_deleted())
    ).scalar_one()
    if owned:
        raise ConflictError(
            "Transfer or delete the teams you own before deleting your account",
            code="OWNS_TEAMS",
        )
    user.soft_delete()
    commit()
    logger.info("Account deleted user=%s", user.id)

