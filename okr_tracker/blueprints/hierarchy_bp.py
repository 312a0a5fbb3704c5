"""
Hierarchy Blueprint — strategy tree CRUD and recalculation.

Endpoints:
  GET    /api/v1/hierarchy/projects                              — Visible projects
  POST   /api/v1/hierarchy/projects                              — Create project
  GET    /api/v1/hierarchy/projects/<id>                         — Project with full tree
  POST   /api/v1/hierarchy/projects/<id>/recalculate             — Force recompute
  POST   /api/v1/hierarchy/<parent-level>/<id>/<child-level>     — Add child
  PUT    /api/v1/hierarchy/<level>/<id>                          — Partial update
  DELETE /api/v1/hierarchy/<level>/<id>                          — Soft delete (cascades)

Level slugs: projects, initiatives, goals, objectives, key-results, action-items
"""

import logging

from flask import Blueprint, g, jsonify

from okr_tracker.blueprints import json_body, project_access_denied
from okr_tracker.core.exceptions import ValidationError
from okr_tracker.middleware.permission_required import require_any_permission, require_permission
from okr_tracker.models.auth import (
    ACCESS_OWNER,
    PERM_MANAGE_STRATEGY,
    PERM_VIEW_STRATEGY,
)
from okr_tracker.models.hierarchy import LEVEL_PROJECT
from okr_tracker.services import hierarchy_service
from okr_tracker.services.access_service import access_level_for, assign_user_to_project
from okr_tracker.services.progress_service import recompute_project
from okr_tracker.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

hierarchy_bp = Blueprint("hierarchy_bp", __name__, url_prefix="/api/v1/hierarchy")


# ═══════════════════════════════════════════════════════════════
# Projects
# ═══════════════════════════════════════════════════════════════
@hierarchy_bp.route("/projects", methods=["GET"])
@require_any_permission(PERM_VIEW_STRATEGY, PERM_MANAGE_STRATEGY)
def list_projects():
    """Active projects the caller may see; [] when none."""
    projects = hierarchy_service.list_projects_for_user(g.current_user)
    return jsonify([p.to_dict() for p in projects]), 200


@hierarchy_bp.route("/projects/<int:project_id>", methods=["GET"])
@require_any_permission(PERM_VIEW_STRATEGY, PERM_MANAGE_STRATEGY)
def get_project(project_id):
    project = hierarchy_service.get_project_tree(project_id)
    denied = project_access_denied(project.id)
    if denied:
        return denied
    data = project.to_dict(include_children=True)
    data["access_level"] = access_level_for(g.current_user, project.id)
    return jsonify(data), 200


@hierarchy_bp.route("/projects", methods=["POST"])
@require_permission(PERM_MANAGE_STRATEGY)
def create_project():
    project = hierarchy_service.create_node(LEVEL_PROJECT, None, json_body(), g.actor)
    # The creator owns what they create, even without a role scope on it.
    if access_level_for(g.current_user, project.id) is None:
        assign_user_to_project(g.current_user.id, project.id, ACCESS_OWNER, g.actor)

    err = db_commit_or_error()
    if err:
        return err
    return jsonify(project.to_dict()), 201


@hierarchy_bp.route("/projects/<int:project_id>/recalculate", methods=["POST"])
@require_permission(PERM_MANAGE_STRATEGY)
def recalculate_project(project_id):
    denied = project_access_denied(project_id)
    if denied:
        return denied
    project = recompute_project(project_id)
    err = db_commit_or_error()
    if err:
        return err
    logger.info("Project %s recalculated by %s", project_id, g.actor)
    return jsonify(project.to_dict(include_children=True)), 200


# ═══════════════════════════════════════════════════════════════
# Any level
# ═══════════════════════════════════════════════════════════════
@hierarchy_bp.route("/<parent_slug>/<int:parent_id>/<child_slug>", methods=["POST"])
@require_permission(PERM_MANAGE_STRATEGY)
def create_child(parent_slug, parent_id, child_slug):
    parent_level = hierarchy_service.resolve_level(parent_slug)
    child_level = hierarchy_service.resolve_level(child_slug)
    if hierarchy_service.CHILD_OF.get(parent_level) != child_level:
        raise ValidationError(
            f"A {child_slug} cannot be added under {parent_slug}",
            details={"level": child_slug},
        )

    parent = hierarchy_service.get_node(parent_level, parent_id)
    denied = project_access_denied(hierarchy_service.owning_project_id(parent))
    if denied:
        return denied

    node = hierarchy_service.create_node(child_level, parent_id, json_body(), g.actor)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(node.to_dict()), 201


@hierarchy_bp.route("/<slug>/<int:node_id>", methods=["PUT"])
@require_permission(PERM_MANAGE_STRATEGY)
def update_node(slug, node_id):
    node = hierarchy_service.get_node(slug, node_id)
    denied = project_access_denied(hierarchy_service.owning_project_id(node))
    if denied:
        return denied

    node = hierarchy_service.update_node(slug, node_id, json_body(), g.actor)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(node.to_dict()), 200


@hierarchy_bp.route("/<slug>/<int:node_id>", methods=["DELETE"])
@require_permission(PERM_MANAGE_STRATEGY)
def delete_node(slug, node_id):
    """Soft delete; the node and its descendants move to the archive."""
    node = hierarchy_service.get_node(slug, node_id)
    denied = project_access_denied(hierarchy_service.owning_project_id(node))
    if denied:
        return denied

    node = hierarchy_service.set_node_active(slug, node_id, False, g.actor)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(node.to_dict()), 200
