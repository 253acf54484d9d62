"""Standardised API envelopes.

Usage
-----
    from app.utils.errors import api_error, api_success, E

    return api_error(E.NOT_FOUND, "Issue not found")
    return api_success(issue.to_dict(), status=201)
    return api_paginated(items, page=1, limit=20, total=57)
"""

from __future__ import annotations

import math

from flask import jsonify


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants.

    Services raise ``app.core.exceptions`` types that carry one of these;
    routes use them directly for request-shape errors.
    """

    # Request shape – HTTP 400
    MISSING_FIELDS = "MISSING_FIELDS"
    VALIDATION = "VALIDATION_ERROR"
    INVALID_PERIOD = "INVALID_PERIOD"
    INVALID_PRIORITY = "INVALID_PRIORITY"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    UNSUPPORTED_MEDIA = "UNSUPPORTED_MEDIA_TYPE"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"

    # Auth – HTTP 401 / 403
    UNAUTHORIZED = "UNAUTHORIZED"
    NO_TOKEN = "NO_TOKEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"

    # Lookup / state – HTTP 404 / 405 / 409
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    CONFLICT = "CONFLICT"

    # Throttling – HTTP 429
    RATE_LIMITED = "RATE_LIMITED"

    # Server – HTTP 500
    INTERNAL = "INTERNAL_ERROR"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.MISSING_FIELDS: 400,
    E.VALIDATION: 400,
    E.INVALID_PERIOD: 400,
    E.INVALID_PRIORITY: 400,
    E.LIMIT_EXCEEDED: 400,
    E.UNSUPPORTED_MEDIA: 415,
    E.PAYLOAD_TOO_LARGE: 413,
    E.UNAUTHORIZED: 401,
    E.NO_TOKEN: 401,
    E.INVALID_TOKEN: 401,
    E.USER_NOT_FOUND: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.METHOD_NOT_ALLOWED: 405,
    E.CONFLICT: 409,
    E.RATE_LIMITED: 429,
    E.INTERNAL: 500,
}


def api_error(code: str, message: str, *, status: int | None = None):
    """Return the standard JSON error envelope.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """
    http_status = status or _DEFAULT_STATUS.get(code, 400)
    body = {
        "success": False,
        "error": {"message": message, "code": code},
    }
    return jsonify(body), http_status


def api_success(data=None, *, status: int = 200, message: str | None = None):
    """Return ``{"success": true, "data": ...}`` (``data`` omitted when None)."""
    body: dict = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return jsonify(body), status


def pagination_meta(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }


def api_paginated(items: list, *, page: int, limit: int, total: int):
    """Success envelope plus ``pagination`` block."""
    return jsonify({
        "success": True,
        "data": items,
        "pagination": pagination_meta(page, limit, total),
    }), 200
