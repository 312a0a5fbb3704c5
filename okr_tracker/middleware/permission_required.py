"""
Permission Decorators — RBAC decorators for route protection.

Checks the request user's permissions (union over active roles) before
allowing access to an endpoint.

Usage:
    @bp.route("/hierarchy/projects", methods=["POST"])
    @require_permission("MANAGE_STRATEGY")
    def create_project():
        ...

    @bp.route("/archive", methods=["GET"])
    @require_any_permission("VIEW_STRATEGY", "MANAGE_STRATEGY")
    def list_archive():
        ...

A request without a resolved user gets 401; a user lacking the
permission gets 403.
"""

import functools
import logging

from flask import g

from okr_tracker.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def has_any_permission(user, codenames) -> bool:
    return bool(user.permissions & set(codenames))


def require_permission(codename: str):
    """
    Decorator: require the request user to have a specific permission.

    Args:
        codename: Permission codename, e.g. "MANAGE_STRATEGY"
    """
    return require_any_permission(codename)


def require_any_permission(*codenames: str):
    """
    Decorator: require the request user to have at least ONE of the listed permissions.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return api_error(E.UNAUTHORIZED, "Authentication required")

            if not has_any_permission(user, codenames):
                logger.warning(
                    "User %s denied: missing any of %s on %s",
                    user.email, codenames, f.__name__,
                )
                return api_error(
                    E.FORBIDDEN, "Permission denied",
                    details={"required_any": list(codenames)},
                )

            return f(*args, **kwargs)
        return decorated
    return decorator


def require_login(f):
    """Decorator: require a resolved user, any permissions."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if getattr(g, "current_user", None) is None:
            return api_error(E.UNAUTHORIZED, "Authentication required")
        return f(*args, **kwargs)
    return decorated
