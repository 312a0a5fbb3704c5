"""
JWT Auth Middleware — resolves the request identity, sets g.current_user / g.actor.

Priority order:
  1. JWT (Authorization: Bearer <token>)  →  active User matched by email claim
  2. X-User: <email> header               →  only when API_AUTH_ENABLED is false
  3. nothing                              →  g.current_user = None, g.actor = "system"

With API_AUTH_ENABLED true, /api/v1 requests without a resolvable user are
rejected with 401 (health endpoint excepted).
"""

import logging

import jwt as pyjwt
from flask import current_app, g, request

from okr_tracker.models.auth import User
from okr_tracker.services.jwt_service import decode_access_token, identity_from_claims
from okr_tracker.utils.errors import E, api_error

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
)


def _auth_enabled() -> bool:
    return str(current_app.config.get("API_AUTH_ENABLED", "true")).lower() == "true"


def _find_user(identifier: str | None):
    if not identifier:
        return None
    user = User.query.filter_by(email=identifier).first()
    if user is None:
        user = User.query.filter_by(login=identifier).first()
    if user is None or not user.is_active:
        return None
    return user


def _user_from_bearer(auth_header: str):
    token = auth_header[7:]  # Strip "Bearer "
    try:
        payload = decode_access_token(token)
    except pyjwt.ExpiredSignatureError:
        logger.info("Rejected expired bearer token on %s", request.path)
        return None
    except pyjwt.InvalidTokenError:
        logger.info("Rejected invalid bearer token on %s", request.path)
        return None
    return _find_user(identity_from_claims(payload))


def init_jwt_middleware(app):
    """Register identity resolution as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.current_user = None
        g.actor = SYSTEM_ACTOR

        # Skip non-API routes and health checks
        path = request.path
        if not path.startswith("/api/v1/"):
            return None
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return None

        user = None
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            user = _user_from_bearer(auth_header)
        elif not _auth_enabled():
            user = _find_user(request.headers.get("X-User", "").strip())

        if user is not None:
            g.current_user = user
            g.actor = user.email
            return None

        if _auth_enabled() and request.method != "OPTIONS":
            return api_error(E.UNAUTHORIZED, "Authentication required")
        return None
