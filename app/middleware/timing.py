"""
Request id and duration.

Each request gets an id (the caller's X-Request-ID, or a fresh 12-char
hex value) which is echoed back and attached to log records through
logging_config.RequestContextFilter. One access line is logged per
request: DEBUG normally, WARNING above SLOW_REQUEST_MS, ERROR for 5xx.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 1000

# Polled by load balancers / the SPA on boot
_QUIET_PATHS = frozenset({"/health", "/api"})


def _access_level(status: int, elapsed_ms: float) -> int:
    if status >= 500:
        return logging.ERROR
    if elapsed_ms > SLOW_REQUEST_MS:
        return logging.WARNING
    return logging.DEBUG


def init_request_timing(app: Flask):
    @app.before_request
    def _begin():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        g.request_start = time.perf_counter()

    @app.after_request
    def _finish(response):
        started = g.get("request_start")
        if started is None:
            return response

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Request-Duration-Ms"] = f"{elapsed_ms:.1f}"

        if request.path not in _QUIET_PATHS:
            args = request.view_args or {}
            logger.log(
                _access_level(response.status_code, elapsed_ms),
                "%s %s -> %d in %.0fms",
                request.method, request.path, response.status_code, elapsed_ms,
                extra={
                    "method": request.method,
                    "path": request.path,
                    "status": response.status_code,
                    "duration_ms": round(elapsed_ms, 1),
                    "remote_addr": request.remote_addr,
                    "project_id": args.get("project_id") or request.args.get("project_id"),
                    "team_id": args.get("team_id"),
                },
            )
        return response
