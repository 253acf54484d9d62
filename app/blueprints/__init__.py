"""
CigroTrack
Blueprint registry and shared request helpers.
"""

from flask import g, request

from app.core.exceptions import ValidationError

MAX_PAGE_SIZE = 100


def json_body() -> dict:
    """Request JSON as a dict ({} when absent)."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def current_user():
    """The user loaded by the blueprint's authenticate hook."""
    return g.current_user


def page_args(default_limit=50, max_limit=MAX_PAGE_SIZE) -> tuple[int, int]:
    """Parse ``page`` / ``limit`` query params.

    Returns:
        (page, limit) with page >= 1 and 1 <= limit <= max_limit
    """
    try:
        page = int(request.args.get("page", 1))
        limit = int(request.args.get("limit", default_limit))
    except (TypeError, ValueError) as exc:
        raise ValidationError("page and limit must be integers") from exc
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    return page, min(limit, max_limit)


def list_arg(name) -> list[str]:
    """Repeated or comma-separated query param (``?status=a&status=b`` or ``?status=a,b``)."""
    values = []
    for raw in request.args.getlist(name) + request.args.getlist(f"{name}[]"):
        values.extend(v.strip() for v in raw.split(",") if v.strip())
    return values


def bool_arg(name):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    return raw.lower() in ("1", "true", "yes")
