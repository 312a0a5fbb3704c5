"""
OKR Tracker
Tests — Admin API (users, roles, project access).
"""

import pytest

from okr_tracker.models.auth import PERM_MANAGE_ROLES, PERM_VIEW_STRATEGY
from okr_tracker.models.hierarchy import LEVEL_PROJECT
from okr_tracker.models import db as _db
from okr_tracker.services.hierarchy_service import create_node

BASE = "/api/v1/admin"


@pytest.fixture()
def project_ids():
    ids = [create_node(LEVEL_PROJECT, None, {"title": t}, "t").id for t in ("One", "Two")]
    _db.session.commit()
    return ids


# ═════════════════════════════════════════════════════════════════════════════
# USERS
# ═════════════════════════════════════════════════════════════════════════════

class TestUsers:
    def test_create_and_list(self, client, admin_headers):
        res = client.post(f"{BASE}/users", json={
            "email": "New.Person@Example.com", "first_name": "New",
        }, headers=admin_headers)

        assert res.status_code == 201
        user = res.get_json()
        assert user["email"] == "New.Person@example.com"
        assert user["login"] == user["email"]

        listing = client.get(f"{BASE}/users", headers=admin_headers).get_json()
        assert listing["total"] == 2
        assert [u["email"] for u in listing["items"]] == ["admin@example.com", user["email"]]

    def test_list_paginates(self, client, admin_headers, make_user):
        for n in range(3):
            make_user(f"user{n}@example.com")
        listing = client.get(f"{BASE}/users", headers=admin_headers,
                             query_string={"limit": 2, "offset": 1}).get_json()
        assert listing["total"] == 4
        assert [u["email"] for u in listing["items"]] == ["user0@example.com", "user1@example.com"]

    def test_invalid_email(self, client, admin_headers):
        res = client.post(f"{BASE}/users", json={"email": "not-an-email"}, headers=admin_headers)
        assert res.status_code == 400

    def test_duplicate_email(self, client, admin_headers):
        res = client.post(f"{BASE}/users", json={"email": "admin@example.com"},
                          headers=admin_headers)
        assert res.status_code == 409

    def test_update_user_roles_and_deactivate(self, client, admin_headers, make_user, make_role):
        role = make_role("READER", [PERM_VIEW_STRATEGY])
        user = make_user("u@example.com")

        res = client.put(f"{BASE}/users/{user.id}", json={
            "role_ids": [role.id], "last_name": "Doe", "is_active": False,
        }, headers=admin_headers)

        body = res.get_json()
        assert res.status_code == 200
        assert [r["name"] for r in body["roles"]] == ["READER"]
        assert body["last_name"] == "Doe"
        assert body["is_active"] is False

        active = client.get(f"{BASE}/users", headers=admin_headers,
                            query_string={"active": "true"}).get_json()
        assert "u@example.com" not in [u["email"] for u in active["items"]]

    def test_update_unknown_role(self, client, admin_headers, make_user):
        user = make_user("u@example.com")
        res = client.put(f"{BASE}/users/{user.id}", json={"role_ids": [999]},
                         headers=admin_headers)
        assert res.status_code == 404

    def test_project_assignment_lifecycle(self, client, admin_headers, make_user, project_ids):
        user = make_user("u@example.com")
        p1, _p2 = project_ids
        url = f"{BASE}/users/{user.id}/projects/{p1}"

        res = client.post(url, json={"access_level": "manager"}, headers=admin_headers)
        assert res.status_code == 201
        assert res.get_json()["access_level"] == "MANAGER"
        assert res.get_json()["assigned_by"] == "admin@example.com"

        listed = client.get(f"{BASE}/users/{user.id}/projects", headers=admin_headers).get_json()
        assert [p["id"] for p in listed] == [p1]

        assert client.delete(url, headers=admin_headers).status_code == 200
        assert client.delete(url, headers=admin_headers).status_code == 404

    def test_invalid_access_level(self, client, admin_headers, make_user, project_ids):
        user = make_user("u@example.com")
        res = client.post(f"{BASE}/users/{user.id}/projects/{project_ids[0]}",
                          json={"access_level": "GOD"}, headers=admin_headers)
        assert res.status_code == 400
        assert "access_level" in res.get_json()["details"]


# ═════════════════════════════════════════════════════════════════════════════
# ROLES
# ═════════════════════════════════════════════════════════════════════════════

class TestRoles:
    def test_seeded_roles_listed(self, client, admin_headers):
        roles = client.get(f"{BASE}/roles", headers=admin_headers).get_json()
        assert [r["name"] for r in roles] == ["ADMIN", "MANAGER", "VIEWER"]
        assert all(r["is_system"] for r in roles)

    def test_create_role(self, client, admin_headers):
        res = client.post(f"{BASE}/roles", json={
            "name": "PLANNER", "permissions": ["VIEW_STRATEGY", "MANAGE_STRATEGY"],
        }, headers=admin_headers)
        assert res.status_code == 201
        assert res.get_json()["permissions"] == ["MANAGE_STRATEGY", "VIEW_STRATEGY"]

    def test_unknown_permission(self, client, admin_headers):
        res = client.post(f"{BASE}/roles", json={"name": "X", "permissions": ["FLY"]},
                          headers=admin_headers)
        assert res.status_code == 400

    def test_system_role_cannot_be_renamed(self, client, admin_headers):
        viewer = next(
            r for r in client.get(f"{BASE}/roles", headers=admin_headers).get_json()
            if r["name"] == "VIEWER"
        )
        res = client.put(f"{BASE}/roles/{viewer['id']}", json={"name": "READER"},
                         headers=admin_headers)
        assert res.status_code == 409

    def test_update_role_scope(self, client, admin_headers, make_role, project_ids):
        role = make_role("PLANNER", [PERM_VIEW_STRATEGY])
        p1, p2 = project_ids

        res = client.put(f"{BASE}/roles/{role.id}", json={"project_ids": [p1, p2]},
                         headers=admin_headers)
        assert res.get_json()["scoped_project_ids"] == [p1, p2]

        assert client.delete(f"{BASE}/roles/{role.id}/projects/{p1}",
                             headers=admin_headers).status_code == 200
        listed = client.get(f"{BASE}/roles/{role.id}/projects", headers=admin_headers).get_json()
        assert [p["id"] for p in listed] == [p2]

        assert client.post(f"{BASE}/roles/{role.id}/projects/{p1}",
                           headers=admin_headers).status_code == 201

    def test_roles_need_manage_roles(self, client, make_role, make_user):
        role = make_role("USERS_ONLY", ["MANAGE_USERS"])
        user = make_user("u@example.com", roles=[role])
        res = client.get(f"{BASE}/roles", headers={"X-User": user.email})
        assert res.status_code == 403


class TestProjectPicker:
    def test_either_admin_permission(self, client, make_role, make_user, project_ids):
        role = make_role("ROLE_ADMIN", [PERM_MANAGE_ROLES])
        user = make_user("r@example.com", roles=[role])

        res = client.get(f"{BASE}/projects", headers={"X-User": user.email})
        assert res.status_code == 200
        assert [p["title"] for p in res.get_json()] == ["One", "Two"]
