"""
CigroTrack
Environment-specific settings, selected by APP_ENV (see create_app).
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

_DEFAULT_FRONTEND = "http://localhost:3000"


def _env_int(name, default):
    return int(os.getenv(name, str(default)))


def _env_bool(name, default):
    return os.getenv(name, "true" if default else "false").strip().lower() in ("1", "true", "yes")


def _database_url(default=None):
    # SQLAlchemy 2 only accepts the postgresql:// scheme
    raw = os.getenv("DATABASE_URL", "")
    if raw.startswith("postgres://"):
        raw = "postgresql://" + raw[len("postgres://"):]
    return raw or default


class Config:
    # Random per process unless set; sessions do not survive restarts in dev
    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    DEBUG = False
    TESTING = False

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True, "pool_recycle": 300}

    # Session token / cookie
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ACCESS_EXPIRES = _env_int("JWT_ACCESS_EXPIRES", 24 * 3600)
    AUTH_COOKIE_NAME = "auth_token"
    AUTH_COOKIE_SECURE = False
    AUTH_COOKIE_SAMESITE = "Lax"

    PASSWORD_RESET_EXPIRES = _env_int("PASSWORD_RESET_EXPIRES", 3600)
    FRONTEND_URL = os.getenv("FRONTEND_URL", _DEFAULT_FRONTEND)

    GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
    GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"

    # Flask-Limiter storage and per-blueprint limits
    REDIS_URL = os.getenv("REDIS_URL", "memory://")
    RATELIMIT_AI = os.getenv("RATELIMIT_AI", "10/minute")
    RATELIMIT_AUTH = os.getenv("RATELIMIT_AUTH", "30/minute")

    # Comma separated; must be explicit because the SPA sends credentials
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", FRONTEND_URL)

    MAX_CONTENT_LENGTH = 2 * 1024 * 1024

    # SMTP; unset MAIL_SERVER means mails are only logged
    MAIL_SERVER = os.getenv("MAIL_SERVER")
    MAIL_PORT = _env_int("MAIL_PORT", 587)
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", True)
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "CigroTrack <no-reply@cigrotrack.local>")


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(
        "sqlite:///" + os.path.join(basedir, "instance", "cigrotrack_dev.db")
    )


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RATELIMIT_ENABLED = False
    MAIL_SERVER = None


class ProductionConfig(Config):
    SQLALCHEMY_DATABASE_URI = _database_url()
    # Frontend and API live on different sites
    AUTH_COOKIE_SECURE = True
    AUTH_COOKIE_SAMESITE = "None"
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": _env_int("DB_POOL_SIZE", 5),
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
        "connect_args": {"options": "-c statement_timeout=30000"},
    }

    def __init__(self):
        missing = [name for name, ok in (
            ("DATABASE_URL", self.SQLALCHEMY_DATABASE_URI),
            ("SECRET_KEY", os.getenv("SECRET_KEY")),
        ) if not ok]
        if missing:
            raise RuntimeError(f"Missing required production settings: {', '.join(missing)}")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
