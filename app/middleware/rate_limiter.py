"""
Per-blueprint Flask-Limiter rules.

The shared ``limiter`` has no default limit; each entry in RULES binds a
limit string to one blueprint. AI calls are keyed by user because the
database quota in app.ai.quota is per user as well; auth endpoints are
keyed by client address. Limits can be overridden with RATELIMIT_AI /
RATELIMIT_AUTH and are switched off entirely under TESTING.
"""

import logging

from flask import g, request

logger = logging.getLogger(__name__)

AI_LIMIT = "10/minute"
AUTH_LIMIT = "30/minute"

EXEMPT_BLUEPRINTS = ("health",)


def rate_limit_key():
    user_id = getattr(g, "jwt_user_id", None)
    return f"user:{user_id}" if user_id else (request.remote_addr or "unknown")


def _rules(app):
    """(blueprint name, limit, key function or None for remote address)."""
    return (
        ("ai", app.config.get("RATELIMIT_AI", AI_LIMIT), rate_limit_key),
        ("auth", app.config.get("RATELIMIT_AUTH", AUTH_LIMIT), None),
    )


def init_rate_limits(app, limiter):
    if app.config.get("TESTING"):
        logger.debug("Rate limits skipped under TESTING")
        return

    applied = []
    for name, limit, key_func in _rules(app):
        bp = app.blueprints.get(name)
        if bp is None:
            continue
        if key_func is None:
            limiter.limit(limit)(bp)
        else:
            limiter.limit(limit, key_func=key_func)(bp)
        applied.append(f"{name}={limit}")

    for name in EXEMPT_BLUEPRINTS:
        if name in app.blueprints:
            limiter.exempt(app.blueprints[name])

    logger.info("Rate limits: %s", ", ".join(applied) or "none")
