"""
Shared pytest fixtures for the OKR Tracker test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_role / make_user: committed RBAC rows
    - admin / admin_headers: a user holding the seeded ADMIN role
    - chain: one active node per level, Project → ActionItem
"""

import pytest

from okr_tracker import create_app
from okr_tracker.models import db as _db
from okr_tracker.models.auth import Role, User
from okr_tracker.models.hierarchy import (
    LEVEL_ACTION_ITEM,
    LEVEL_GOAL,
    LEVEL_INITIATIVE,
    LEVEL_KEY_RESULT,
    LEVEL_OBJECTIVE,
    LEVEL_PROJECT,
)
from okr_tracker.services import hierarchy_service
from okr_tracker.services.user_service import seed_default_roles


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── RBAC fixtures ────────────────────────────────────────────────────────


@pytest.fixture()
def make_role():
    """Factory: make_role("PLANNER", ["VIEW_STRATEGY"], project_ids=[1])."""
    def _make(name, permissions=(), project_ids=(), is_active=True):
        from okr_tracker.models.auth import RoleProject

        role = Role(name=name, is_system=False, is_active=is_active)
        role.set_permissions(permissions)
        role.project_scopes = [RoleProject(project_id=pid) for pid in project_ids]
        _db.session.add(role)
        _db.session.commit()
        return role
    return _make


@pytest.fixture()
def make_user():
    """Factory: make_user("a@example.com", roles=[role], primary_project_id=None)."""
    def _make(email, roles=(), primary_project_id=None, is_active=True):
        user = User(
            email=email, login=email, is_active=is_active,
            primary_project_id=primary_project_id,
        )
        user.roles = list(roles)
        _db.session.add(user)
        _db.session.commit()
        return user
    return _make


@pytest.fixture()
def admin(make_user):
    seed_default_roles()
    _db.session.commit()
    return make_user("admin@example.com", roles=[Role.query.filter_by(name="ADMIN").one()])


@pytest.fixture()
def admin_headers(admin):
    return {"X-User": admin.email}


# ── Hierarchy fixtures ───────────────────────────────────────────────────


@pytest.fixture()
def chain():
    """One active node per level, single-child all the way down.

    Returns a dict level → id.
    """
    ids = {}
    parent_id = None
    for level in (
        LEVEL_PROJECT, LEVEL_INITIATIVE, LEVEL_GOAL,
        LEVEL_OBJECTIVE, LEVEL_KEY_RESULT, LEVEL_ACTION_ITEM,
    ):
        node = hierarchy_service.create_node(level, parent_id, {"title": level}, "tester")
        ids[level] = parent_id = node.id
    _db.session.commit()
    return ids
