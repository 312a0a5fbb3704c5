"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in okr_tracker/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from okr_tracker.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)


def rate_limit_key():
    """Rate limit key: resolved user email if available, else remote IP."""
    actor = getattr(g, "actor", None)
    if actor and actor != "system":
        return f"user:{actor}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits:
        - Hierarchy import:  IMPORT_RATE_LIMIT (default 10 per minute)
        - Write blueprints:  120/minute
        - Health check:      exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    import_limit = app.config.get("IMPORT_RATE_LIMIT", "10 per minute")
    bp = app.blueprints.get("import_bp")
    if bp:
        limiter.limit(import_limit, key_func=rate_limit_key)(bp)

    for bp_name in ("hierarchy_bp", "archive_bp", "admin_bp"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit("120/minute", key_func=rate_limit_key)(bp)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured — import: %s, write: 120/min", import_limit)
