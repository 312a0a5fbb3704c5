"""
Admin Blueprint — users, roles and project access administration.

API Endpoints (JSON):
  GET    /api/v1/admin/users                          — List users (?active=true, limit/offset)
  POST   /api/v1/admin/users                          — Create user
  PUT    /api/v1/admin/users/<id>                     — Update user
  GET    /api/v1/admin/users/<uid>/projects           — Directly assigned projects
  POST   /api/v1/admin/users/<uid>/projects/<pid>     — Assign (body: access_level)
  DELETE /api/v1/admin/users/<uid>/projects/<pid>     — Unassign
  GET    /api/v1/admin/roles                          — List roles + permissions
  POST   /api/v1/admin/roles                          — Create role
  PUT    /api/v1/admin/roles/<id>                     — Update role
  GET    /api/v1/admin/roles/<rid>/projects           — Role project scope
  POST   /api/v1/admin/roles/<rid>/projects/<pid>     — Add project to scope
  DELETE /api/v1/admin/roles/<rid>/projects/<pid>     — Remove project from scope
  GET    /api/v1/admin/projects                       — All projects, for assignment pickers

User endpoints require MANAGE_USERS, role endpoints MANAGE_ROLES.
"""

import logging

from flask import Blueprint, g, jsonify, request

from okr_tracker.blueprints import json_body, paginate_query
from okr_tracker.middleware.permission_required import require_any_permission, require_permission
from okr_tracker.models.auth import ACCESS_MEMBER, PERM_MANAGE_ROLES, PERM_MANAGE_USERS
from okr_tracker.models.hierarchy import Project
from okr_tracker.services import access_service, user_service
from okr_tracker.utils.errors import E, api_error
from okr_tracker.utils.helpers import db_commit_or_error, parse_bool

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin_bp", __name__, url_prefix="/api/v1/admin")


# ═══════════════════════════════════════════════════════════════
# API: Users
# ═══════════════════════════════════════════════════════════════
@admin_bp.route("/users", methods=["GET"])
@require_permission(PERM_MANAGE_USERS)
def api_list_users():
    include_inactive = not parse_bool(request.args.get("active"))
    users, total = paginate_query(user_service.users_query(include_inactive))
    return jsonify({"items": [u.to_dict() for u in users], "total": total}), 200


@admin_bp.route("/users", methods=["POST"])
@require_permission(PERM_MANAGE_USERS)
def api_create_user():
    user = user_service.create_user(json_body())
    err = db_commit_or_error()
    if err:
        return err
    logger.info("User %s created by %s", user.email, g.actor)
    return jsonify(user.to_dict()), 201


@admin_bp.route("/users/<int:user_id>", methods=["PUT"])
@require_permission(PERM_MANAGE_USERS)
def api_update_user(user_id):
    user = user_service.update_user(user_id, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(user.to_dict()), 200


# ── Direct project assignments ───────────────────────────────────────────
@admin_bp.route("/users/<int:user_id>/projects", methods=["GET"])
@require_permission(PERM_MANAGE_USERS)
def api_user_projects(user_id):
    projects = access_service.get_user_projects(user_id)
    return jsonify([p.to_dict() for p in projects]), 200


@admin_bp.route("/users/<int:user_id>/projects/<int:project_id>", methods=["POST"])
@require_permission(PERM_MANAGE_USERS)
def api_assign_user(user_id, project_id):
    data = json_body()
    row = access_service.assign_user_to_project(
        user_id, project_id,
        access_level=data.get("access_level") or ACCESS_MEMBER,
        assigned_by=g.actor,
    )
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(row.to_dict()), 201


@admin_bp.route("/users/<int:user_id>/projects/<int:project_id>", methods=["DELETE"])
@require_permission(PERM_MANAGE_USERS)
def api_unassign_user(user_id, project_id):
    if not access_service.remove_user_from_project(user_id, project_id):
        return api_error(E.NOT_FOUND, "Assignment not found")
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Assignment removed"}), 200


# ═══════════════════════════════════════════════════════════════
# API: Roles
# ═══════════════════════════════════════════════════════════════
@admin_bp.route("/roles", methods=["GET"])
@require_permission(PERM_MANAGE_ROLES)
def api_list_roles():
    return jsonify([r.to_dict() for r in user_service.list_roles()]), 200


@admin_bp.route("/roles", methods=["POST"])
@require_permission(PERM_MANAGE_ROLES)
def api_create_role():
    role = user_service.create_role(json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(role.to_dict()), 201


@admin_bp.route("/roles/<int:role_id>", methods=["PUT"])
@require_permission(PERM_MANAGE_ROLES)
def api_update_role(role_id):
    data = json_body()
    role = user_service.update_role(role_id, data)
    if data.get("project_ids") is not None:
        role = access_service.update_role_project_scoping(role_id, data["project_ids"])
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(role.to_dict()), 200


# ── Role project scope ───────────────────────────────────────────────────
@admin_bp.route("/roles/<int:role_id>/projects", methods=["GET"])
@require_permission(PERM_MANAGE_ROLES)
def api_role_projects(role_id):
    projects = access_service.get_role_scoped_projects(role_id)
    return jsonify([p.to_dict() for p in projects]), 200


@admin_bp.route("/roles/<int:role_id>/projects/<int:project_id>", methods=["POST"])
@require_permission(PERM_MANAGE_ROLES)
def api_scope_role(role_id, project_id):
    access_service.add_project_to_role(role_id, project_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"role_id": role_id, "project_id": project_id}), 201


@admin_bp.route("/roles/<int:role_id>/projects/<int:project_id>", methods=["DELETE"])
@require_permission(PERM_MANAGE_ROLES)
def api_unscope_role(role_id, project_id):
    if not access_service.remove_project_from_role(role_id, project_id):
        return api_error(E.NOT_FOUND, "Project is not in this role's scope")
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Project removed from role scope"}), 200


# ═══════════════════════════════════════════════════════════════
# API: Projects (picker)
# ═══════════════════════════════════════════════════════════════
@admin_bp.route("/projects", methods=["GET"])
@require_any_permission(PERM_MANAGE_USERS, PERM_MANAGE_ROLES)
def api_all_projects():
    projects = Project.query_active().order_by(Project.id).all()
    return jsonify([{"id": p.id, "title": p.title} for p in projects]), 200
