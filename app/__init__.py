"""
CigroTrack
Flask application factory.

    from app import create_app
    app = create_app()            # APP_ENV, falling back to "development"
    app = create_app("testing")
"""

import logging
import os

import click
from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import event
from sqlalchemy.engine import Engine
from werkzeug.exceptions import HTTPException

from app.config import config
from app.core.exceptions import AppError
from app.middleware.jwt_auth import init_jwt_middleware
from app.middleware.logging_config import configure_logging
from app.middleware.rate_limiter import init_rate_limits
from app.middleware.security_headers import init_security_headers
from app.middleware.timing import init_request_timing
from app.models import db
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

migrate = Migrate()
# Limits are attached per blueprint in init_rate_limits
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)

_HTTP_CODES = {
    404: E.NOT_FOUND,
    405: E.METHOD_NOT_ALLOWED,
    413: E.PAYLOAD_TOO_LARGE,
    415: E.UNSUPPORTED_MEDIA,
    429: E.RATE_LIMITED,
}

_JSON_METHODS = frozenset({"POST", "PUT", "PATCH"})


@event.listens_for(Engine, "connect")
def _sqlite_foreign_keys(dbapi_conn, _record):
    """ON DELETE CASCADE / SET NULL only work on SQLite with this pragma."""
    if "sqlite" in type(dbapi_conn).__module__:
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()


def create_app(config_name=None):
    """Build a configured application for ``config_name`` (see app.config)."""
    config_name = config_name or os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())
    if not app.config["TESTING"]:
        os.makedirs(app.instance_path, exist_ok=True)

    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    origins = [o.strip() for o in app.config.get("CORS_ORIGINS", "").split(",") if o.strip()]
    CORS(app, origins=origins, supports_credentials=True)

    # Hook order matters: timing assigns the request id the other hooks log with
    init_security_headers(app)
    init_request_timing(app)
    init_jwt_middleware(app)
    app.before_request(_require_json_body)

    with app.app_context():
        from app.models import ai, comment, issue, kanban, notification, project, team, user  # noqa: F401
        db.create_all()

    _register_blueprints(app)
    _register_cli(app)
    _register_error_handlers(app)
    init_rate_limits(app, limiter)

    logger.debug("CigroTrack app created (config=%s)", config_name)
    return app


def _require_json_body():
    if request.method in _JSON_METHODS and request.path.startswith("/api/"):
        if request.get_data(cache=True) and "json" not in (request.content_type or ""):
            abort(415, description="Content-Type must be application/json")


def _register_blueprints(app):
    from app.blueprints.ai_bp import ai_bp
    from app.blueprints.auth_bp import auth_bp
    from app.blueprints.comment_bp import comment_bp
    from app.blueprints.dashboard_bp import dashboard_bp
    from app.blueprints.health_bp import health_bp
    from app.blueprints.issue_bp import issue_bp
    from app.blueprints.kanban_bp import kanban_bp
    from app.blueprints.notification_bp import notification_bp
    from app.blueprints.project_bp import project_bp
    from app.blueprints.team_bp import team_bp

    for bp in (health_bp, auth_bp, team_bp, project_bp, issue_bp, comment_bp,
               kanban_bp, dashboard_bp, notification_bp, ai_bp):
        app.register_blueprint(bp)


def _register_cli(app):
    @app.cli.command("expire-invites")
    def expire_invites_cmd():
        """Flip pending invites past expires_at to EXPIRED."""
        from app.services.team_service import expire_invites
        click.echo(f"Expired {expire_invites()} invites.")

    @app.cli.command("notify-due-dates")
    def notify_due_dates_cmd():
        """Send due-today / due-soon reminders to assignees."""
        from app.services.notification import NotificationService
        counts = NotificationService.notify_due_dates()
        click.echo(", ".join(f"{kind}: {n}" for kind, n in counts.items()))


def _register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(e):
        if e.status_code >= 500:
            logger.error("AppError %s: %s", e.code, e.message)
        else:
            logger.info("%s %s -> %d %s", request.method, request.path, e.status_code, e.code)
        return api_error(e.code, e.message, status=e.status_code)

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        code = _HTTP_CODES.get(e.code, E.VALIDATION if e.code < 500 else E.INTERNAL)
        messages = {404: "Route not found", 429: "Too many requests"}
        return api_error(code, messages.get(e.code) or e.description or e.name, status=e.code)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        db.session.rollback()
        return api_error(E.INTERNAL, str(e) if app.debug else "Internal server error", status=500)
