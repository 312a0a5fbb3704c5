"""
Health check blueprint (no auth, no rate limit).

Endpoints:
    GET /api/v1/health        — database round trip + schema presence, 503 when degraded
    GET /api/v1/health/ready  — process is up
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from okr_tracker.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")

# A deploy that skipped `flask db upgrade` answers SELECT 1 but has none of these.
REQUIRED_TABLES = (
    "projects",
    "strategic_initiatives",
    "goals",
    "objectives",
    "key_results",
    "action_items",
    "app_users",
    "roles",
    "user_projects",
)


def _database_check():
    t0 = time.perf_counter()
    db.session.execute(db.text("SELECT 1"))
    latency = round((time.perf_counter() - t0) * 1000, 1)
    missing = sorted(set(REQUIRED_TABLES) - set(inspect(db.engine).get_table_names()))
    if missing:
        return {"status": "error", "latency_ms": latency, "missing_tables": missing}
    return {"status": "ok", "latency_ms": latency}


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


@health_bp.route("", methods=["GET"])
def live():
    try:
        database = _database_check()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Health check: database unreachable: %s", exc)
        database = {"status": "error", "detail": str(exc)}

    healthy = database["status"] == "ok"
    if not healthy and "missing_tables" in database:
        logger.error("Health check: schema incomplete, missing %s", database["missing_tables"])

    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "checks": {
            "database": database,
            "app": {
                "name": "OKR Tracker",
                "debug": current_app.debug,
                "testing": current_app.testing,
            },
        },
    }), 200 if healthy else 503
