"""
User Service — user and role CRUD, default role seeding.

Transaction policy: flush() only; callers commit.
"""

import logging

from email_validator import EmailNotValidError, validate_email

from okr_tracker.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from okr_tracker.models import db
from okr_tracker.models.auth import (
    PERM_MANAGE_STRATEGY,
    PERM_VIEW_DASHBOARD,
    PERM_VIEW_STRATEGY,
    PERMISSIONS,
    Role,
    User,
)

logger = logging.getLogger(__name__)

DEFAULT_ROLES = {
    "ADMIN": (
        "Full access to every project and to administration",
        PERMISSIONS,
    ),
    "MANAGER": (
        "Edits strategy in assigned projects",
        (PERM_VIEW_DASHBOARD, PERM_VIEW_STRATEGY, PERM_MANAGE_STRATEGY),
    ),
    "VIEWER": (
        "Read-only access to assigned projects",
        (PERM_VIEW_DASHBOARD, PERM_VIEW_STRATEGY),
    ),
}

_USER_FIELDS = ("login", "first_name", "last_name", "group_no", "avatar", "primary_project_id")


def _normalize_email(email: str) -> str:
    try:
        return validate_email(email or "", check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": str(e)}) from e


def _roles_by_ids(role_ids) -> list[Role]:
    roles = []
    for role_id in role_ids:
        role = db.session.get(Role, role_id)
        if role is None:
            raise NotFoundError(resource="Role", resource_id=role_id)
        roles.append(role)
    return roles


def _check_permissions(codenames) -> list[str]:
    unknown = sorted(set(codenames) - set(PERMISSIONS))
    if unknown:
        raise ValidationError(
            f"Unknown permissions: {', '.join(unknown)}",
            details={"permissions": f"must be among {', '.join(PERMISSIONS)}"},
        )
    return list(codenames)


# ═══════════════════════════════════════════════════════════════
# Users
# ═══════════════════════════════════════════════════════════════
def users_query(include_inactive: bool = True):
    """Users ordered by id; callers paginate."""
    query = User.query
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.id)


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(resource="User", resource_id=user_id)
    return user


def create_user(data: dict) -> User:
    """Create a user; `role_ids` optional."""
    email = _normalize_email(data.get("email"))
    if User.query.filter_by(email=email).first():
        raise InvalidStateError(f"User with email {email} already exists")

    user = User(email=email, is_active=True)
    for field in _USER_FIELDS:
        if data.get(field) is not None:
            setattr(user, field, data[field])
    if not user.login:
        user.login = email
    user.roles = _roles_by_ids(data.get("role_ids") or [])

    db.session.add(user)
    db.session.flush()
    logger.info("Created user id=%s email=%s", user.id, email)
    return user


def update_user(user_id: int, data: dict) -> User:
    """Partial update; None values leave fields unchanged."""
    user = get_user(user_id)
    if data.get("email") is not None:
        email = _normalize_email(data["email"])
        clash = User.query.filter(User.email == email, User.id != user_id).first()
        if clash:
            raise InvalidStateError(f"User with email {email} already exists")
        user.email = email
    for field in _USER_FIELDS:
        if data.get(field) is not None:
            setattr(user, field, data[field])
    if data.get("is_active") is not None:
        user.is_active = bool(data["is_active"])
    if data.get("role_ids") is not None:
        user.roles = _roles_by_ids(data["role_ids"])
    db.session.flush()
    return user


# ═══════════════════════════════════════════════════════════════
# Roles
# ═══════════════════════════════════════════════════════════════
def list_roles() -> list[Role]:
    return Role.query.order_by(Role.id).all()


def create_role(data: dict) -> Role:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    if Role.query.filter_by(name=name).first():
        raise InvalidStateError(f"Role {name!r} already exists")

    role = Role(
        name=name,
        description=data.get("description"),
        is_system=False,
        is_active=True,
    )
    role.set_permissions(_check_permissions(data.get("permissions") or []))
    db.session.add(role)
    db.session.flush()
    logger.info("Created role id=%s name=%s", role.id, name)
    return role


def update_role(role_id: int, data: dict) -> Role:
    role = db.session.get(Role, role_id)
    if role is None:
        raise NotFoundError(resource="Role", resource_id=role_id)
    if role.is_system and data.get("name") not in (None, role.name):
        raise InvalidStateError("System roles cannot be renamed")

    if data.get("name") is not None:
        role.name = data["name"].strip()
    if data.get("description") is not None:
        role.description = data["description"]
    if data.get("is_active") is not None:
        role.is_active = bool(data["is_active"])
    if data.get("permissions") is not None:
        role.set_permissions(_check_permissions(data["permissions"]))
    db.session.flush()
    return role


def seed_default_roles() -> int:
    """Create the system roles that are missing. Returns the number created."""
    created = 0
    for name, (description, permissions) in DEFAULT_ROLES.items():
        if Role.query.filter_by(name=name).first():
            continue
        role = Role(name=name, description=description, is_system=True, is_active=True)
        role.set_permissions(permissions)
        db.session.add(role)
        created += 1
    db.session.flush()
    return created

