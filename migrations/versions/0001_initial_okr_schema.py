"""initial_okr_schema

Create the strategy hierarchy (projects → action items) and the
users / roles / project access tables.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns():
    return [
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(length=200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_by", sa.String(length=200), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closed_by", sa.String(length=200), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_via", sa.String(length=60), nullable=True),
    ]


def _node_columns():
    return [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        *_audit_columns(),
    ]


# level table -> (parent table, FK column)
_HIERARCHY = (
    ("projects", None, None),
    ("strategic_initiatives", "projects", "project_id"),
    ("goals", "strategic_initiatives", "initiative_id"),
    ("objectives", "goals", "goal_id"),
    ("key_results", "objectives", "objective_id"),
    ("action_items", "key_results", "key_result_id"),
)

_EXTRA_COLUMNS = {
    "objectives": lambda: [
        sa.Column("assignee", sa.String(length=200), nullable=True),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("quarter", sa.String(length=2), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
    ],
    "key_results": lambda: [
        sa.Column("assignee", sa.String(length=200), nullable=True),
        sa.Column("metric_start", sa.Float(), nullable=True),
        sa.Column("metric_target", sa.Float(), nullable=True),
        sa.Column("metric_current", sa.Float(), nullable=True),
        sa.Column("unit", sa.String(length=30), nullable=True),
        sa.Column("manual_progress_set", sa.Boolean(), nullable=False, server_default=sa.false()),
    ],
    "action_items": lambda: [
        sa.Column("assignee", sa.String(length=200), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
    ],
}


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    # ── Strategy hierarchy ───────────────────────────────────────────────
    for table, parent, fk in _HIERARCHY:
        if table in existing_tables:
            continue
        columns = _node_columns()
        constraints = [sa.PrimaryKeyConstraint("id")]
        if parent:
            columns.append(sa.Column(fk, sa.Integer(), nullable=True))
            constraints.append(sa.ForeignKeyConstraint([fk], [f"{parent}.id"], ondelete="CASCADE"))
        columns.extend(_EXTRA_COLUMNS.get(table, lambda: [])())
        op.create_table(table, *columns, *constraints)
        op.create_index(f"ix_{table}_is_active", table, ["is_active"])
        if fk:
            op.create_index(f"ix_{table}_{fk}", table, [fk])

    # ── Users & roles ────────────────────────────────────────────────────
    if "app_users" not in existing_tables:
        op.create_table(
            "app_users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("login", sa.String(length=200), nullable=True),
            sa.Column("first_name", sa.String(length=100), nullable=True),
            sa.Column("last_name", sa.String(length=100), nullable=True),
            sa.Column("group_no", sa.String(length=50), nullable=True),
            sa.Column("avatar", sa.String(length=10), nullable=True),
            sa.Column("primary_project_id", sa.Integer(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
            sa.UniqueConstraint("login"),
        )

    if "roles" not in existing_tables:
        op.create_table(
            "roles",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_system", sa.Boolean(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )

    if "user_roles" not in existing_tables:
        op.create_table(
            "user_roles",
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("role_id", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["app_users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("user_id", "role_id"),
        )

    if "role_permissions" not in existing_tables:
        op.create_table(
            "role_permissions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("role_id", sa.Integer(), nullable=False),
            sa.Column("permission", sa.String(length=50), nullable=False),
            sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("role_id", "permission", name="uq_role_permission"),
        )

    # ── Project access ───────────────────────────────────────────────────
    if "role_projects" not in existing_tables:
        op.create_table(
            "role_projects",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("role_id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("role_id", "project_id", name="uq_role_project"),
        )
        op.create_index("ix_role_projects_role", "role_projects", ["role_id"])

    if "user_projects" not in existing_tables:
        op.create_table(
            "user_projects",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("access_level", sa.String(length=20), nullable=False),
            sa.Column("assigned_by", sa.String(length=200), nullable=True),
            sa.Column("assigned_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["user_id"], ["app_users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("user_id", "project_id", name="uq_user_project"),
        )
        op.create_index("ix_user_projects_user", "user_projects", ["user_id"])
        op.create_index("ix_user_projects_project", "user_projects", ["project_id"])


def downgrade():
    for table in ("user_projects", "role_projects", "role_permissions", "user_roles", "roles", "app_users"):
        op.drop_table(table)
    for table, _parent, _fk in reversed(_HIERARCHY):
        op.drop_table(table)
