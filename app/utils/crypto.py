"""
Crypto utilities — bcrypt password hashing and opaque token helpers.

Password hashes are bcrypt ($2b$, 12 rounds). Reset tokens are random
URL-safe strings; only their SHA-256 digest is stored.
"""

import hashlib
import secrets

import bcrypt


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password with bcrypt (12 rounds)."""
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str | None) -> bool:
    """Verify a plain-text password against its bcrypt hash."""
    if not password_hash or not plain_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )
    except ValueError:
        # Malformed hash in the DB
        return False


def generate_token() -> str:
    """Random URL-safe token for emailed links (password reset)."""
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a token; only the digest is stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
