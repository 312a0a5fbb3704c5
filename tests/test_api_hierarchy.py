"""
OKR Tracker
Tests — Hierarchy API.

Covers:
    - project list / create / tree / recalculate
    - add child at every level, level pairing validation
    - partial update, lock flag, validation errors
    - soft delete with cascade
    - permission and project visibility checks
"""

import pytest

from okr_tracker.models.auth import PERM_MANAGE_STRATEGY, PERM_VIEW_STRATEGY

BASE = "/api/v1/hierarchy"


def _post(client, url, headers, payload):
    res = client.post(url, json=payload, headers=headers)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


def _build_tree(client, headers):
    """Project → … → KeyResult via the API. Returns dict slug → id."""
    ids = {"projects": _post(client, f"{BASE}/projects", headers, {"title": "Platform"})["id"]}
    parent = "projects"
    for child in ("initiatives", "goals", "objectives", "key-results"):
        ids[child] = _post(
            client, f"{BASE}/{parent}/{ids[parent]}/{child}", headers, {"title": child},
        )["id"]
        parent = child
    return ids


@pytest.fixture()
def manager(make_role, make_user):
    role = make_role("MANAGER", [PERM_VIEW_STRATEGY, PERM_MANAGE_STRATEGY])
    return make_user("manager@example.com", roles=[role])


@pytest.fixture()
def viewer(make_role, make_user):
    role = make_role("VIEWER", [PERM_VIEW_STRATEGY])
    return make_user("viewer@example.com", roles=[role])


# ═════════════════════════════════════════════════════════════════════════════
# PROJECTS
# ═════════════════════════════════════════════════════════════════════════════

class TestProjects:
    def test_requires_identity(self, client):
        res = client.get(f"{BASE}/projects")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_unknown_user_is_anonymous(self, client):
        res = client.get(f"{BASE}/projects", headers={"X-User": "ghost@example.com"})
        assert res.status_code == 401

    def test_create_and_list(self, client, admin_headers):
        project = _post(client, f"{BASE}/projects", admin_headers,
                        {"title": "Platform", "description": "2026"})

        assert project["type"] == "Project"
        assert project["created_by"] == "admin@example.com"

        res = client.get(f"{BASE}/projects", headers=admin_headers)
        assert res.status_code == 200
        assert [p["title"] for p in res.get_json()] == ["Platform"]

    def test_creator_without_scope_becomes_owner(self, client, manager):
        headers = {"X-User": manager.email}
        project = _post(client, f"{BASE}/projects", headers, {"title": "Mine"})

        res = client.get(f"{BASE}/projects/{project['id']}", headers=headers)
        assert res.status_code == 200
        assert res.get_json()["access_level"] == "OWNER"
        assert [p["id"] for p in client.get(f"{BASE}/projects", headers=headers).get_json()] == [
            project["id"]
        ]

    def test_view_only_user_cannot_create(self, client, viewer):
        res = client.post(f"{BASE}/projects", json={"title": "x"},
                          headers={"X-User": viewer.email})
        assert res.status_code == 403
        assert res.get_json()["details"]["required_any"] == [PERM_MANAGE_STRATEGY]

    def test_user_without_access_sees_nothing(self, client, admin_headers, viewer):
        project = _post(client, f"{BASE}/projects", admin_headers, {"title": "Hidden"})
        headers = {"X-User": viewer.email}

        assert client.get(f"{BASE}/projects", headers=headers).get_json() == []
        res = client.get(f"{BASE}/projects/{project['id']}", headers=headers)
        assert res.status_code == 403

    def test_missing_project(self, client, admin_headers):
        res = client.get(f"{BASE}/projects/999", headers=admin_headers)
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_title_required(self, client, admin_headers):
        res = client.post(f"{BASE}/projects", json={}, headers=admin_headers)
        assert res.status_code == 400
        assert res.get_json()["details"] == {"title": "required"}

    def test_non_json_body_rejected(self, client, admin_headers):
        res = client.post(f"{BASE}/projects", data="title=x", headers=admin_headers,
                          content_type="text/plain")
        assert res.status_code == 415

    def test_recalculate(self, client, admin_headers):
        ids = _build_tree(client, admin_headers)
        res = client.post(f"{BASE}/projects/{ids['projects']}/recalculate", headers=admin_headers)
        assert res.status_code == 200
        assert res.get_json()["initiatives"][0]["goals"][0]["title"] == "goals"


# ═════════════════════════════════════════════════════════════════════════════
# CHILDREN & UPDATES
# ═════════════════════════════════════════════════════════════════════════════

class TestTree:
    def test_action_items_roll_up_to_project(self, client, admin_headers):
        ids = _build_tree(client, admin_headers)
        kr_url = f"{BASE}/key-results/{ids['key-results']}/action-items"
        _post(client, kr_url, admin_headers, {"title": "done", "is_completed": True})
        _post(client, kr_url, admin_headers, {"title": "open"})

        tree = client.get(f"{BASE}/projects/{ids['projects']}", headers=admin_headers).get_json()

        assert tree["progress"] == 50
        kr = tree["initiatives"][0]["goals"][0]["objectives"][0]["key_results"][0]
        assert kr["progress"] == 50
        assert [ai["is_completed"] for ai in kr["action_items"]] == [True, False]

    def test_wrong_child_level(self, client, admin_headers):
        ids = _build_tree(client, admin_headers)
        res = client.post(f"{BASE}/projects/{ids['projects']}/goals",
                          json={"title": "x"}, headers=admin_headers)
        assert res.status_code == 400

    def test_unknown_level_slug(self, client, admin_headers):
        res = client.put(f"{BASE}/portfolios/1", json={"title": "x"}, headers=admin_headers)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_update_locks_key_result(self, client, admin_headers):
        ids = _build_tree(client, admin_headers)
        res = client.put(f"{BASE}/key-results/{ids['key-results']}",
                         json={"progress": 70, "title": None}, headers=admin_headers)

        body = res.get_json()
        assert res.status_code == 200
        assert body["progress"] == 70
        assert body["manual_progress_set"] is True
        assert body["title"] == "key-results"

    def test_update_validation_details(self, client, admin_headers):
        ids = _build_tree(client, admin_headers)
        res = client.put(f"{BASE}/objectives/{ids['objectives']}",
                         json={"progress": 150, "quarter": "Q9"}, headers=admin_headers)
        assert res.status_code == 400
        assert set(res.get_json()["details"]) == {"progress", "quarter"}

    def test_child_under_deleted_parent_conflicts(self, client, admin_headers):
        ids = _build_tree(client, admin_headers)
        client.delete(f"{BASE}/goals/{ids['goals']}", headers=admin_headers)

        res = client.post(f"{BASE}/goals/{ids['goals']}/objectives",
                          json={"title": "late"}, headers=admin_headers)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"

    def test_delete_cascades(self, client, admin_headers):
        ids = _build_tree(client, admin_headers)

        res = client.delete(f"{BASE}/initiatives/{ids['initiatives']}", headers=admin_headers)

        assert res.status_code == 200
        assert res.get_json()["is_active"] is False
        tree = client.get(f"{BASE}/projects/{ids['projects']}", headers=admin_headers).get_json()
        goal = tree["initiatives"][0]["goals"][0]
        assert goal["is_active"] is False
        assert goal["closed_by"] == "admin@example.com"

    def test_scoped_manager_cannot_touch_other_projects(
        self, client, admin_headers, make_role, make_user,
    ):
        ids = _build_tree(client, admin_headers)
        other = _post(client, f"{BASE}/projects", admin_headers, {"title": "Other"})
        role = make_role("PLANNER", [PERM_VIEW_STRATEGY, PERM_MANAGE_STRATEGY],
                         project_ids=[other["id"]])
        planner = make_user("planner@example.com", roles=[role])

        res = client.put(f"{BASE}/goals/{ids['goals']}", json={"title": "x"},
                         headers={"X-User": planner.email})
        assert res.status_code == 403
        assert res.get_json()["details"] == {"project_id": ids["projects"]}
