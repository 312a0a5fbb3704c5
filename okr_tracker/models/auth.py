"""
Auth Models — users, roles, role permissions, role project scopes,
user ↔ project assignments.

Roles carry a set of permission codenames and an optional set of scoped
project ids.  Users hold roles and may be assigned directly to projects
with an explicit access level.
"""

from datetime import datetime, timezone

from okr_tracker.models import db

# ── Permission codenames ────────────────────────────────────────────────
PERM_VIEW_DASHBOARD = "VIEW_DASHBOARD"
PERM_VIEW_STRATEGY = "VIEW_STRATEGY"
PERM_MANAGE_STRATEGY = "MANAGE_STRATEGY"
PERM_MANAGE_USERS = "MANAGE_USERS"
PERM_MANAGE_ROLES = "MANAGE_ROLES"
PERM_VIEW_ALL_PROJECTS = "VIEW_ALL_PROJECTS"

PERMISSIONS = (
    PERM_VIEW_DASHBOARD,
    PERM_VIEW_STRATEGY,
    PERM_MANAGE_STRATEGY,
    PERM_MANAGE_USERS,
    PERM_MANAGE_ROLES,
    PERM_VIEW_ALL_PROJECTS,
)

# ── Access levels (direct user ↔ project assignment) ────────────────────
ACCESS_OWNER = "OWNER"
ACCESS_MANAGER = "MANAGER"
ACCESS_MEMBER = "MEMBER"
ACCESS_VIEWER = "VIEWER"

ACCESS_LEVELS = (ACCESS_OWNER, ACCESS_MANAGER, ACCESS_MEMBER, ACCESS_VIEWER)


user_roles = db.Table(
    "user_roles",
    db.Column("user_id", db.Integer, db.ForeignKey("app_users.id", ondelete="CASCADE"), primary_key=True),
    db.Column("role_id", db.Integer, db.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


# ═══════════════════════════════════════════════════════════════
# 1. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "app_users"  # 'user' is reserved in PostgreSQL

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(200), nullable=False, unique=True)
    login = db.Column(db.String(200), unique=True)
    first_name = db.Column(db.String(100))
    last_name = db.Column(db.String(100))
    group_no = db.Column(db.String(50))
    avatar = db.Column(db.String(10))
    primary_project_id = db.Column(db.Integer, nullable=True)  # backward compatibility
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    roles = db.relationship("Role", secondary=user_roles, back_populates="users", order_by="Role.id")
    project_assignments = db.relationship(
        "UserProject", back_populates="user", cascade="all, delete-orphan",
        order_by="UserProject.project_id",
    )

    @property
    def permissions(self) -> set[str]:
        """Union of permissions across the user's active roles."""
        perms = set()
        for role in self.roles:
            if role.is_active:
                perms |= role.permission_set
        return perms

    @property
    def assigned_project_ids(self) -> list[int]:
        return [a.project_id for a in self.project_assignments]

    def to_dict(self, include_roles=True):
        d = {
            "id": self.id,
            "email": self.email,
            "login": self.login,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "group_no": self.group_no,
            "avatar": self.avatar,
            "primary_project_id": self.primary_project_id,
            "is_active": self.is_active,
            "assigned_project_ids": self.assigned_project_ids,
        }
        if include_roles:
            d["roles"] = [r.to_dict() for r in self.roles]
        return d

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email}>"


# ═══════════════════════════════════════════════════════════════
# 2. ROLES
# ═══════════════════════════════════════════════════════════════
class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    description = db.Column(db.Text)
    is_system = db.Column(db.Boolean, default=False)  # True = seeded, not editable by admins
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    users = db.relationship("User", secondary=user_roles, back_populates="roles")
    role_permissions = db.relationship(
        "RolePermission", back_populates="role", cascade="all, delete-orphan",
    )
    project_scopes = db.relationship(
        "RoleProject", back_populates="role", cascade="all, delete-orphan",
    )

    @property
    def permission_set(self) -> set[str]:
        return {rp.permission for rp in self.role_permissions}

    @property
    def scoped_project_ids(self) -> set[int]:
        return {rp.project_id for rp in self.project_scopes}

    def set_permissions(self, codenames):
        wanted = set(codenames)
        self.role_permissions = [rp for rp in self.role_permissions if rp.permission in wanted]
        have = self.permission_set
        for codename in sorted(wanted - have):
            self.role_permissions.append(RolePermission(permission=codename))

    def to_dict(self, include_permissions=True):
        d = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_system": self.is_system,
            "is_active": self.is_active,
            "scoped_project_ids": sorted(self.scoped_project_ids),
        }
        if include_permissions:
            d["permissions"] = sorted(self.permission_set)
        return d


# ═══════════════════════════════════════════════════════════════
# 3. ROLE_PERMISSIONS
# ═══════════════════════════════════════════════════════════════
class RolePermission(db.Model):
    __tablename__ = "role_permissions"

    id = db.Column(db.Integer, primary_key=True)
    role_id = db.Column(
        db.Integer, db.ForeignKey("roles.id", ondelete="CASCADE"), nullable=False
    )
    permission = db.Column(db.String(50), nullable=False)  # e.g. "MANAGE_STRATEGY"

    __table_args__ = (
        db.UniqueConstraint("role_id", "permission", name="uq_role_permission"),
    )

    role = db.relationship("Role", back_populates="role_permissions")


# ═══════════════════════════════════════════════════════════════
# 4. ROLE_PROJECTS (role scope allow-list)
# ═══════════════════════════════════════════════════════════════
class RoleProject(db.Model):
    __tablename__ = "role_projects"

    id = db.Column(db.Integer, primary_key=True)
    role_id = db.Column(
        db.Integer, db.ForeignKey("roles.id", ondelete="CASCADE"), nullable=False
    )
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (
        db.UniqueConstraint("role_id", "project_id", name="uq_role_project"),
        db.Index("ix_role_projects_role", "role_id"),
    )

    role = db.relationship("Role", back_populates="project_scopes")


# ═══════════════════════════════════════════════════════════════
# 5. USER_PROJECTS (direct assignment with access level)
# ═══════════════════════════════════════════════════════════════
class UserProject(db.Model):
    __tablename__ = "user_projects"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("app_users.id", ondelete="CASCADE"), nullable=False
    )
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    access_level = db.Column(db.String(20), nullable=False, default=ACCESS_MEMBER)
    assigned_by = db.Column(db.String(200))
    assigned_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("user_id", "project_id", name="uq_user_project"),
        db.Index("ix_user_projects_user", "user_id"),
        db.Index("ix_user_projects_project", "project_id"),
    )

    user = db.relationship("User", back_populates="project_assignments")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "project_id": self.project_id,
            "access_level": self.access_level,
            "assigned_by": self.assigned_by,
            "assigned_at": self.assigned_at.isoformat() if self.assigned_at else None,
        }
