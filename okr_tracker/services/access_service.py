"""
Project Access Service — which projects a user may see, and at what level.

Inputs per user:
  - active roles: permission codenames + explicit project scope (role_projects)
  - direct assignments: user_projects rows with an access level
  - primary_project_id (kept for backward compatibility)

Evaluation is deterministic and deny-by-default:
  - VIEW_ALL_PROJECTS on any active role → every active project
  - otherwise the union of direct assignments, explicit role scopes and the
    primary project
  - a role with an EMPTY scope grants nothing; it is not a global role.
    The same rule applies to the access-level lookup, so a project is
    visible exactly when it has an access level.

The resolver itself is pure (`resolve_accessible_projects`,
`resolve_access_level` over an `AccessProfile`); the DB-facing wrappers
build the profile from a `User` row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from okr_tracker.core.exceptions import NotFoundError, ValidationError
from okr_tracker.models import db
from okr_tracker.models.auth import (
    ACCESS_LEVELS,
    ACCESS_MEMBER,
    ACCESS_VIEWER,
    PERM_VIEW_ALL_PROJECTS,
    Role,
    RoleProject,
    User,
    UserProject,
)
from okr_tracker.models.hierarchy import Project

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoleGrant:
    """An active role as seen by the resolver."""

    name: str
    permissions: frozenset[str] = frozenset()
    scoped_project_ids: frozenset[int] = frozenset()


@dataclass(frozen=True)
class AccessProfile:
    """Everything the resolver needs to know about one user."""

    email: str
    roles: tuple[RoleGrant, ...] = ()
    assignments: dict[int, str] = field(default_factory=dict)
    primary_project_id: int | None = None

    @property
    def can_view_all(self) -> bool:
        return any(PERM_VIEW_ALL_PROJECTS in r.permissions for r in self.roles)


# ── Pure resolver ───────────────────────────────────────────────────────────

def resolve_accessible_projects(profile: AccessProfile, active_project_ids) -> frozenset[int]:
    """Project ids the profile may read or act on; empty means nothing."""
    if profile.can_view_all:
        return frozenset(active_project_ids)

    ids = set(profile.assignments)
    for role in profile.roles:
        ids |= role.scoped_project_ids
    if profile.primary_project_id is not None:
        ids.add(profile.primary_project_id)
    return frozenset(ids)


def resolve_access_level(profile: AccessProfile, project_id: int) -> str | None:
    """
    Most specific access level for one project, or None for no access.

    Order: direct assignment level → role scope containing the project
    (MEMBER) → VIEW_ALL_PROJECTS (VIEWER) → primary project (VIEWER).
    """
    direct = profile.assignments.get(project_id)
    if direct is not None:
        return direct
    if any(project_id in r.scoped_project_ids for r in profile.roles):
        return ACCESS_MEMBER
    if profile.can_view_all:
        return ACCESS_VIEWER
    if profile.primary_project_id == project_id:
        return ACCESS_VIEWER
    return None


# ── DB-backed wrappers ──────────────────────────────────────────────────────

def build_access_profile(user: User) -> AccessProfile:
    """Snapshot a user's roles, scopes and assignments into an AccessProfile."""
    roles = tuple(
        RoleGrant(
            name=r.name,
            permissions=frozenset(r.permission_set),
            scoped_project_ids=frozenset(r.scoped_project_ids),
        )
        for r in user.roles
        if r.is_active
    )
    assignments = {a.project_id: a.access_level for a in user.project_assignments}
    return AccessProfile(
        email=user.email,
        roles=roles,
        assignments=assignments,
        primary_project_id=user.primary_project_id,
    )


def _active_project_ids() -> list[int]:
    rows = db.session.query(Project.id).filter(Project.is_active.is_(True)).all()
    return [r[0] for r in rows]


def accessible_project_ids(user: User) -> frozenset[int]:
    profile = build_access_profile(user)
    active_ids = _active_project_ids() if profile.can_view_all else ()
    ids = resolve_accessible_projects(profile, active_ids)
    logger.debug("Accessible projects for %s: %s", user.email, sorted(ids))
    return ids


def access_level_for(user: User, project_id: int) -> str | None:
    return resolve_access_level(build_access_profile(user), project_id)


def can_access_project(user: User, project_id: int) -> bool:
    return project_id in accessible_project_ids(user)


# ── Assignment administration ───────────────────────────────────────────────

def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(resource="User", resource_id=user_id)
    return user


def _get_role(role_id: int) -> Role:
    role = db.session.get(Role, role_id)
    if role is None:
        raise NotFoundError(resource="Role", resource_id=role_id)
    return role


def _get_project(project_id: int) -> Project:
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def _validate_level(access_level: str) -> str:
    level = str(access_level or "").strip().upper()
    if level not in ACCESS_LEVELS:
        raise ValidationError(
            f"Invalid access level {access_level!r}",
            details={"access_level": f"must be one of {', '.join(ACCESS_LEVELS)}"},
        )
    return level


def assign_user_to_project(
    user_id: int, project_id: int, access_level: str = ACCESS_MEMBER, assigned_by: str = "system",
) -> UserProject:
    """Create or update a direct assignment (upsert on user/project)."""
    level = _validate_level(access_level)
    _get_user(user_id)
    _get_project(project_id)

    row = UserProject.query.filter_by(user_id=user_id, project_id=project_id).first()
    if row is None:
        row = UserProject(user_id=user_id, project_id=project_id)
        db.session.add(row)
    row.access_level = level
    row.assigned_by = assigned_by
    db.session.flush()
    logger.info(
        "Assigned user=%s to project=%s level=%s by=%s", user_id, project_id, level, assigned_by,
    )
    return row


def remove_user_from_project(user_id: int, project_id: int) -> bool:
    deleted = UserProject.query.filter_by(user_id=user_id, project_id=project_id).delete()
    db.session.flush()
    return bool(deleted)


def update_user_project_assignments(
    user_id: int, project_ids, access_level: str = ACCESS_MEMBER, assigned_by: str = "system",
) -> list[UserProject]:
    """Replace all of a user's direct assignments with `project_ids`."""
    level = _validate_level(access_level)
    user = _get_user(user_id)
    wanted = sorted(set(project_ids))
    for pid in wanted:
        _get_project(pid)

    # Keep surviving rows so the (user, project) unique key is never re-inserted
    kept = {a.project_id: a for a in user.project_assignments if a.project_id in wanted}
    for pid in wanted:
        row = kept.get(pid)
        if row is None:
            row = kept[pid] = UserProject(project_id=pid)
        row.access_level = level
        row.assigned_by = assigned_by
    user.project_assignments = [kept[pid] for pid in wanted]
    db.session.flush()
    return list(user.project_assignments)


def get_user_projects(user_id: int) -> list[Project]:
    """Active projects directly assigned to a user."""
    _get_user(user_id)
    return (
        Project.query
        .join(UserProject, UserProject.project_id == Project.id)
        .filter(UserProject.user_id == user_id, Project.is_active.is_(True))
        .order_by(Project.id)
        .all()
    )


def add_project_to_role(role_id: int, project_id: int) -> RoleProject:
    _get_role(role_id)
    _get_project(project_id)
    row = RoleProject.query.filter_by(role_id=role_id, project_id=project_id).first()
    if row is None:
        row = RoleProject(role_id=role_id, project_id=project_id)
        db.session.add(row)
        db.session.flush()
    return row


def remove_project_from_role(role_id: int, project_id: int) -> bool:
    deleted = RoleProject.query.filter_by(role_id=role_id, project_id=project_id).delete()
    db.session.flush()
    return bool(deleted)


def update_role_project_scoping(role_id: int, project_ids) -> Role:
    """Replace a role's explicit project scope with `project_ids`."""
    role = _get_role(role_id)
    wanted = sorted(set(project_ids))
    for pid in wanted:
        _get_project(pid)

    kept = {s.project_id: s for s in role.project_scopes if s.project_id in wanted}
    role.project_scopes = [kept.get(pid) or RoleProject(project_id=pid) for pid in wanted]
    db.session.flush()
    logger.info("Role %s scoped to %d projects", role_id, len(wanted))
    return role


def get_role_scoped_projects(role_id: int) -> list[Project]:
    """Active projects in a role's explicit scope."""
    _get_role(role_id)
    return (
        Project.query
        .join(RoleProject, RoleProject.project_id == Project.id)
        .filter(RoleProject.role_id == role_id, Project.is_active.is_(True))
        .order_by(Project.id)
        .all()
    )
