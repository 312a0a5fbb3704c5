"""
Archive Blueprint — soft-deleted hierarchy nodes and their restore.

Endpoints:
  GET  /api/v1/archive                         — Inactive nodes (?level=goals)
  POST /api/v1/archive/restore/<level>/<id>    — Restore a node and its cascade
"""

import logging

from flask import Blueprint, g, jsonify, request

from okr_tracker.blueprints import project_access_denied
from okr_tracker.middleware.permission_required import require_any_permission, require_permission
from okr_tracker.models.auth import PERM_MANAGE_STRATEGY, PERM_VIEW_STRATEGY
from okr_tracker.services import hierarchy_service
from okr_tracker.services.access_service import accessible_project_ids, build_access_profile
from okr_tracker.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

archive_bp = Blueprint("archive_bp", __name__, url_prefix="/api/v1/archive")


@archive_bp.route("", methods=["GET"])
@require_any_permission(PERM_VIEW_STRATEGY, PERM_MANAGE_STRATEGY)
def list_archive():
    """Inactive nodes in projects the caller may see, top level first."""
    user = g.current_user
    # VIEW_ALL_PROJECTS users see archived projects too, which are not
    # part of their (active-only) accessible set.
    project_ids = None if build_access_profile(user).can_view_all else accessible_project_ids(user)
    items = hierarchy_service.list_archived(request.args.get("level"), project_ids=project_ids)
    return jsonify({
        "items": [dict(n.to_dict(), closed_via=n.closed_via) for n in items],
        "total": len(items),
    }), 200


@archive_bp.route("/restore/<slug>/<int:node_id>", methods=["POST"])
@require_permission(PERM_MANAGE_STRATEGY)
def restore_item(slug, node_id):
    node = hierarchy_service.get_node(slug, node_id)
    denied = project_access_denied(hierarchy_service.owning_project_id(node))
    if denied:
        return denied

    node = hierarchy_service.restore_node(slug, node_id, g.actor)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(node.to_dict()), 200
