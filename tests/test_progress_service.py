"""
OKR Tracker
Tests — progress roll-up.

Covers:
    - pure rules: rounding, averaging, metric ratio
    - KeyResult progress sources (lock, action items, metrics, stored value)
    - whole-project recomputation through all six levels
    - idempotence
"""

import pytest

from okr_tracker.core.exceptions import NotFoundError
from okr_tracker.models import db as _db
from okr_tracker.models.hierarchy import (
    LEVEL_ACTION_ITEM,
    LEVEL_GOAL,
    LEVEL_INITIATIVE,
    LEVEL_KEY_RESULT,
    LEVEL_OBJECTIVE,
    LEVEL_PROJECT,
    MODEL_BY_LEVEL,
    KeyResult,
    Project,
)
from okr_tracker.services.hierarchy_service import create_node, set_node_active
from okr_tracker.services.progress_service import (
    average_progress,
    key_result_progress,
    metric_progress,
    recompute_all_projects,
    recompute_project,
    round_half_up,
)


def _objective_under_new_project(title="P"):
    """Project → Initiative → Goal → Objective, returns (project_id, objective_id)."""
    project = create_node(LEVEL_PROJECT, None, {"title": title}, "tester")
    initiative = create_node(LEVEL_INITIATIVE, project.id, {"title": "I"}, "tester")
    goal = create_node(LEVEL_GOAL, initiative.id, {"title": "G"}, "tester")
    objective = create_node(LEVEL_OBJECTIVE, goal.id, {"title": "O"}, "tester")
    return project.id, objective.id


def _progress(level, node_id):
    return _db.session.get(MODEL_BY_LEVEL[level], node_id).progress


# ═════════════════════════════════════════════════════════════════════════════
# PURE RULES
# ═════════════════════════════════════════════════════════════════════════════

class TestRounding:
    @pytest.mark.parametrize("value,expected", [(0.5, 1), (2.5, 3), (49.49, 49), (99.5, 100)])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_average_of_nothing_is_zero(self):
        assert average_progress([]) == 0

    def test_average_rounds_half_up(self):
        assert average_progress([33, 34]) == 34
        assert average_progress([0, 1]) == 1

    def test_average_is_clamped(self):
        assert average_progress([150, 150]) == 100


class TestMetricProgress:
    def test_ratio_between_start_and_target(self):
        assert metric_progress(10, 110, 35) == 25

    def test_zero_range_is_zero_whatever_current(self):
        assert metric_progress(50, 50, 10) == 0
        assert metric_progress(50, 50, 500) == 0
        assert metric_progress(50, 50, None) == 0

    def test_start_defaults_to_zero(self):
        assert metric_progress(None, 200, 50) == 25

    def test_overshoot_and_undershoot_are_clamped(self):
        assert metric_progress(0, 100, 250) == 100
        assert metric_progress(10, 110, 0) == 0

    def test_decreasing_target(self):
        assert metric_progress(100, 0, 25) == 75

    def test_unusable_metrics(self):
        assert metric_progress(0, None, 10) is None
        assert metric_progress(0, 100, None) is None


class TestKeyResultProgress:
    def test_manual_lock_keeps_stored_value(self):
        kr = KeyResult(progress=40, manual_progress_set=True, metric_start=0,
                       metric_target=100, metric_current=90)
        assert key_result_progress(kr) == 40

    def test_stored_value_kept_without_items_or_metrics(self):
        kr = KeyResult(progress=65, manual_progress_set=False)
        assert key_result_progress(kr) == 65


# ═════════════════════════════════════════════════════════════════════════════
# PROJECT RECOMPUTATION
# ═════════════════════════════════════════════════════════════════════════════

class TestRecomputeProject:
    def test_unknown_project_raises(self):
        with pytest.raises(NotFoundError):
            recompute_project(999)

    def test_half_done_key_result_propagates_to_every_level(self, chain):
        create_node(LEVEL_ACTION_ITEM, chain[LEVEL_KEY_RESULT],
                    {"title": "done", "is_completed": True}, "tester")

        recompute_project(chain[LEVEL_PROJECT])

        for level in (LEVEL_KEY_RESULT, LEVEL_OBJECTIVE, LEVEL_GOAL,
                      LEVEL_INITIATIVE, LEVEL_PROJECT):
            assert _progress(level, chain[level]) == 50, level

    def test_metric_key_result(self):
        project_id, objective_id = _objective_under_new_project()
        kr = create_node(LEVEL_KEY_RESULT, objective_id, {
            "title": "Activation",
            "metric_start": 10, "metric_target": 110, "metric_current": 35,
        }, "tester")

        assert _progress(LEVEL_KEY_RESULT, kr.id) == 25
        assert _progress(LEVEL_PROJECT, project_id) == 25

    def test_zero_range_metric_does_not_raise(self):
        _project_id, objective_id = _objective_under_new_project()
        kr = create_node(LEVEL_KEY_RESULT, objective_id, {
            "title": "Flat", "progress": 70,
            "metric_start": 50, "metric_target": 50, "metric_current": 80,
        }, "tester")

        assert _progress(LEVEL_KEY_RESULT, kr.id) == 0

    def test_null_metric_current_yields_zero(self):
        _project_id, objective_id = _objective_under_new_project()
        kr = create_node(LEVEL_KEY_RESULT, objective_id, {
            "title": "Unmeasured",
            "metric_start": 0, "metric_target": 100, "metric_current": None,
        }, "tester")

        assert _progress(LEVEL_KEY_RESULT, kr.id) == 0

    def test_all_action_items_removed_collapses_key_result(self, chain):
        kr = _db.session.get(KeyResult, chain[LEVEL_KEY_RESULT])
        kr.metric_target = 100.0
        kr.metric_current = 80.0
        set_node_active(LEVEL_ACTION_ITEM, chain[LEVEL_ACTION_ITEM], False, "tester")

        assert _progress(LEVEL_KEY_RESULT, chain[LEVEL_KEY_RESULT]) == 0

    def test_empty_levels_yield_zero(self):
        project = create_node(LEVEL_PROJECT, None, {"title": "Empty", "progress": 80}, "tester")
        assert _progress(LEVEL_PROJECT, project.id) == 0

    def test_deactivated_initiative_no_longer_counts(self):
        project = create_node(LEVEL_PROJECT, None, {"title": "Two tracks"}, "tester")
        create_node(LEVEL_INITIATIVE, project.id, {"title": "A"}, "tester")
        b = create_node(LEVEL_INITIATIVE, project.id, {"title": "B"}, "tester")
        goal = create_node(LEVEL_GOAL, b.id, {"title": "B goal"}, "tester")
        objective = create_node(LEVEL_OBJECTIVE, goal.id, {"title": "B objective"}, "tester")
        kr = create_node(LEVEL_KEY_RESULT, objective.id, {"title": "B kr"}, "tester")
        create_node(LEVEL_ACTION_ITEM, kr.id, {"title": "done", "progress": 100}, "tester")

        assert _progress(LEVEL_INITIATIVE, b.id) == 100
        assert _progress(LEVEL_PROJECT, project.id) == 50

        set_node_active(LEVEL_INITIATIVE, b.id, False, "tester")

        assert _progress(LEVEL_PROJECT, project.id) == 0

    def test_recompute_is_idempotent(self, chain):
        create_node(LEVEL_ACTION_ITEM, chain[LEVEL_KEY_RESULT],
                    {"title": "third", "progress": 35}, "tester")

        def snapshot():
            return {
                level: _progress(level, node_id) for level, node_id in chain.items()
            }

        recompute_project(chain[LEVEL_PROJECT])
        first = snapshot()
        recompute_project(chain[LEVEL_PROJECT])
        assert snapshot() == first

    def test_recompute_all_projects(self, chain):
        create_node(LEVEL_PROJECT, None, {"title": "Second"}, "tester")
        result = recompute_all_projects()
        assert result == {"project_count": Project.query.count()}
        assert result["project_count"] == 2
