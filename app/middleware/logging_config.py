"""
Structured logging configuration.

Every record emitted while a request is active is stamped with the
request id and the authenticated user id, so service-level lines
("Issue created ...") can be joined with the access line written by the
timing middleware.

- Development: coloured single-line format, request id in brackets
- Production:  one JSON object per line
- Level:       LOG_LEVEL env variable (DEBUG in dev, INFO in prod)
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Request attributes copied into JSON output when present on the record
CONTEXT_KEYS = (
    "request_id",
    "user_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "project_id",
    "team_id",
)

_QUIET_LOGGERS = ("werkzeug", "sqlalchemy.engine", "httpx", "httpcore", "flask_limiter")


class RequestContextFilter(logging.Filter):
    """Attach request_id / user_id from ``flask.g`` to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = getattr(g, "request_id", None)
            if getattr(record, "user_id", None) is None:
                record.user_id = getattr(g, "jwt_user_id", None)
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in CONTEXT_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        rid = getattr(record, "request_id", None)
        prefix = f"[{rid}] " if rid else ""
        line = f"{color}{stamp} {record.levelname:<7}{self.RESET} {prefix}{record.name}: {record.getMessage()}"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """
    Install one stderr handler on the root logger.

    Called first in create_app so extension setup is logged with the
    final format. Repeated calls (one app per test session, CLI + app)
    replace the handler instead of stacking a second one.
    """
    testing = app.config.get("TESTING", False)
    production = not app.debug and not testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if production else "DEBUG").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if production else ReadableFormatter())
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "json" if production else "readable")
