"""
OKR Tracker
Flask Application Factory.

Usage:
    from okr_tracker import create_app
    app = create_app()           # defaults to APP_ENV, else "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from okr_tracker.config import config
from okr_tracker.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from okr_tracker.middleware.jwt_auth import init_jwt_middleware
from okr_tracker.middleware.logging_config import configure_logging
from okr_tracker.middleware.rate_limiter import init_rate_limits
from okr_tracker.middleware.timing import init_request_timing
from okr_tracker.models import db
from okr_tracker.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # limits are applied per blueprint
    storage_uri=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
)

# Multipart uploads are capped by MAX_IMPORT_BYTES instead of MAX_JSON_BYTES
_UPLOAD_PREFIXES = ("/api/v1/import/",)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── JWT auth middleware (sets g.current_user / g.actor) ──────────────
    init_jwt_middleware(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    @app.before_request
    def _guard_request():
        is_upload = request.path.startswith(_UPLOAD_PREFIXES)
        max_len = app.config["MAX_IMPORT_BYTES"] if is_upload else app.config.get("MAX_JSON_BYTES")
        if max_len and request.content_length and request.content_length > max_len:
            abort(413, description="Request body too large")
        # Content-Type validation for mutating methods
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if is_upload and "multipart/form-data" in ct:
                return None
            if request.content_length and "json" not in ct:
                abort(415, description="Content-Type must be application/json")
        return None

    # ── Import all models so Alembic can detect them ─────────────────────
    from okr_tracker.models import auth as _auth_models            # noqa: F401
    from okr_tracker.models import hierarchy as _hierarchy_models  # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from okr_tracker.blueprints.account_bp import account_bp
    from okr_tracker.blueprints.admin_bp import admin_bp
    from okr_tracker.blueprints.archive_bp import archive_bp
    from okr_tracker.blueprints.health_bp import health_bp
    from okr_tracker.blueprints.hierarchy_bp import hierarchy_bp
    from okr_tracker.blueprints.import_bp import import_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(account_bp)
    app.register_blueprint(hierarchy_bp)
    app.register_blueprint(archive_bp)
    app.register_blueprint(import_bp)
    app.register_blueprint(admin_bp)

    # ── Domain error handlers ────────────────────────────────────────────
    @app.errorhandler(NotFoundError)
    def handle_not_found(e):
        db.session.rollback()
        return api_error(E.NOT_FOUND, str(e))

    @app.errorhandler(InvalidStateError)
    def handle_invalid_state(e):
        db.session.rollback()
        return api_error(E.CONFLICT_STATE, e.message)

    @app.errorhandler(ValidationError)
    def handle_validation(e):
        db.session.rollback()
        return api_error(E.VALIDATION_INVALID, e.message, details=e.details or None)

    # ── HTTP error handlers ──────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.METHOD_NOT_ALLOWED, "Method not allowed")

    @app.errorhandler(413)
    def too_large(e):
        return api_error(E.PAYLOAD_TOO_LARGE, "Request body too large")

    @app.errorhandler(415)
    def unsupported_media_type(e):
        return api_error(E.UNSUPPORTED_MEDIA_TYPE, e.description)

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests", details={"limit": str(e.description)})

    @app.errorhandler(500)
    def server_error(e):
        db.session.rollback()
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("recompute-project")
    @click.argument("project_id", type=int)
    def recompute_project_cmd(project_id):
        """Recompute progress for one project."""
        from okr_tracker.services.progress_service import recompute_project
        project = recompute_project(project_id)
        db.session.commit()
        logger.info("Recomputed project %s: progress=%s", project.id, project.progress)

    @app.cli.command("recompute-all")
    def recompute_all_cmd():
        """Recompute progress for every project."""
        from okr_tracker.services.progress_service import recompute_all_projects
        result = recompute_all_projects()
        db.session.commit()
        logger.info("Recomputed %s projects.", result["project_count"])

    @app.cli.command("seed-roles")
    def seed_roles_cmd():
        """Create the default system roles (ADMIN, MANAGER, VIEWER)."""
        from okr_tracker.services.user_service import seed_default_roles
        count = seed_default_roles()
        db.session.commit()
        logger.info("Seeded %s new roles.", count)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
