"""
OKR Tracker
Tests — Archive API (soft-deleted nodes and restore).
"""

from okr_tracker.models.auth import PERM_MANAGE_STRATEGY, PERM_VIEW_STRATEGY
from okr_tracker.models.hierarchy import (
    LEVEL_GOAL,
    LEVEL_KEY_RESULT,
    LEVEL_OBJECTIVE,
    LEVEL_PROJECT,
)
from okr_tracker.models import db as _db
from okr_tracker.services import hierarchy_service

BASE = "/api/v1/archive"


def _archive(client, headers, **params):
    res = client.get(BASE, headers=headers, query_string=params)
    assert res.status_code == 200
    return res.get_json()


class TestArchiveList:
    def test_lists_cascade_with_marker(self, client, admin_headers, chain):
        client.delete(f"/api/v1/hierarchy/objectives/{chain[LEVEL_OBJECTIVE]}",
                      headers=admin_headers)

        body = _archive(client, admin_headers)

        assert body["total"] == 3
        objective, kr, _ai = body["items"]
        assert objective["closed_via"] is None
        assert kr["closed_via"] == f"objective:{chain[LEVEL_OBJECTIVE]}"

    def test_filter_by_level(self, client, admin_headers, chain):
        client.delete(f"/api/v1/hierarchy/goals/{chain[LEVEL_GOAL]}", headers=admin_headers)

        body = _archive(client, admin_headers, level="key-results")
        assert [i["id"] for i in body["items"]] == [chain[LEVEL_KEY_RESULT]]

    def test_archived_project_visible_to_view_all(self, client, admin_headers, chain):
        client.delete(f"/api/v1/hierarchy/projects/{chain[LEVEL_PROJECT]}", headers=admin_headers)

        body = _archive(client, admin_headers, level="projects")
        assert [i["id"] for i in body["items"]] == [chain[LEVEL_PROJECT]]

    def test_only_accessible_projects_listed(self, client, chain, make_role, make_user):
        hierarchy_service.set_node_active(LEVEL_GOAL, chain[LEVEL_GOAL], False, "tester")
        other = hierarchy_service.create_node(LEVEL_PROJECT, None, {"title": "Other"}, "t")
        _db.session.commit()
        role = make_role("PLANNER", [PERM_VIEW_STRATEGY], project_ids=[other.id])
        user = make_user("planner@example.com", roles=[role])

        assert _archive(client, {"X-User": user.email})["items"] == []


class TestArchiveRestore:
    def test_restore_cascade(self, client, admin_headers, chain):
        client.delete(f"/api/v1/hierarchy/goals/{chain[LEVEL_GOAL]}", headers=admin_headers)

        res = client.post(f"{BASE}/restore/goals/{chain[LEVEL_GOAL]}", headers=admin_headers)

        assert res.status_code == 200
        assert res.get_json()["is_active"] is True
        assert _archive(client, admin_headers)["total"] == 0

    def test_restore_under_archived_parent_conflicts(self, client, admin_headers, chain):
        client.delete(f"/api/v1/hierarchy/key-results/{chain[LEVEL_KEY_RESULT]}",
                      headers=admin_headers)
        client.delete(f"/api/v1/hierarchy/objectives/{chain[LEVEL_OBJECTIVE]}",
                      headers=admin_headers)

        res = client.post(f"{BASE}/restore/key-results/{chain[LEVEL_KEY_RESULT]}",
                          headers=admin_headers)
        assert res.status_code == 409

    def test_restore_needs_manage_permission(self, client, chain, make_role, make_user):
        role = make_role("READER", [PERM_VIEW_STRATEGY], project_ids=[chain[LEVEL_PROJECT]])
        user = make_user("reader@example.com", roles=[role])

        res = client.post(f"{BASE}/restore/goals/{chain[LEVEL_GOAL]}",
                          headers={"X-User": user.email})
        assert res.status_code == 403

    def test_restore_missing_node(self, client, admin_headers):
        res = client.post(f"{BASE}/restore/goals/999", headers=admin_headers)
        assert res.status_code == 404

    def test_restore_with_manage_but_no_project_access(
        self, client, chain, make_role, make_user,
    ):
        hierarchy_service.set_node_active(LEVEL_GOAL, chain[LEVEL_GOAL], False, "tester")
        _db.session.commit()
        role = make_role("PLANNER", [PERM_MANAGE_STRATEGY])
        user = make_user("planner@example.com", roles=[role])

        res = client.post(f"{BASE}/restore/goals/{chain[LEVEL_GOAL]}",
                          headers={"X-User": user.email})
        assert res.status_code == 403
