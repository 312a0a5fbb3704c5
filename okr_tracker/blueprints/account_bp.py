"""
Account Blueprint — the request user's own profile.

Endpoints:
  GET /api/v1/me   — User, permissions and accessible project ids
"""

from flask import Blueprint, g, jsonify

from okr_tracker.middleware.permission_required import require_login
from okr_tracker.services.access_service import accessible_project_ids, build_access_profile

account_bp = Blueprint("account_bp", __name__, url_prefix="/api/v1")


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/me
# ═══════════════════════════════════════════════════════════════
@account_bp.route("/me", methods=["GET"])
@require_login
def me():
    """Current user profile."""
    user = g.current_user
    return jsonify({
        "user": user.to_dict(include_roles=True),
        "permissions": sorted(user.permissions),
        "can_view_all_projects": build_access_profile(user).can_view_all,
        "accessible_project_ids": sorted(accessible_project_ids(user)),
    }), 200
