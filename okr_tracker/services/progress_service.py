"""
Progress Roll-up Engine

Recomputes completion percentages bottom-up through a project's hierarchy:
  ActionItem.progress → KeyResult.progress
  KeyResult → Objective → Goal → StrategicInitiative → Project

Key Rules:
  - Only active children count; an empty active set yields 0, never "unchanged"
  - Means are rounded half-up to an integer
  - KeyResult with manual_progress_set keeps its stored value
  - KeyResult with active action items → mean of their progress
  - KeyResult whose action items are all inactive → 0
  - KeyResult without action items → metric ratio if usable, else stored value
  - A whole project is recomputed at once, never a partial subtree

Usage:
    from okr_tracker.services.progress_service import recompute_project

    project = recompute_project(project_id)
"""

import logging
import math

from okr_tracker.core.exceptions import NotFoundError
from okr_tracker.models import db
from okr_tracker.models.hierarchy import Project

logger = logging.getLogger(__name__)


# ── Pure rules ──────────────────────────────────────────────────────────────

def round_half_up(value: float) -> int:
    """Round a non-negative mean to the nearest int, .5 going up."""
    return int(math.floor(value + 0.5))


def clamp_progress(value: int) -> int:
    return max(0, min(100, value))


def safe_progress(progress) -> int:
    return progress if progress is not None else 0


def average_progress(values) -> int:
    """Rounded mean of child progress values; 0 for an empty sequence."""
    values = list(values)
    if not values:
        return 0
    return clamp_progress(round_half_up(sum(values) / len(values)))


def metric_progress(start, target, current) -> int | None:
    """
    Progress from a KeyResult's metric triple.

    Returns:
        0 when target == start (zero range, regardless of current),
        the clamped ratio as an int percentage when target and current are set,
        None when the metrics are not usable.
    """
    if target is None:
        return None
    start = start if start is not None else 0.0
    span = target - start
    if span == 0:
        return 0
    if current is None:
        return None
    ratio = (current - start) / span
    ratio = max(0.0, min(1.0, ratio))
    return round_half_up(ratio * 100)


def key_result_progress(kr) -> int:
    """
    Progress for a single KeyResult from its own state and its action items.

    Does not mutate the KeyResult.
    """
    if kr.manual_progress_set:
        return safe_progress(kr.progress)

    items = [ai for ai in kr.action_items if ai is not None]
    active = [ai for ai in items if ai.is_active]
    if active:
        return average_progress(safe_progress(ai.progress) for ai in active)
    if items:
        # Every action item was removed: collapse to 0.
        return 0

    from_metrics = metric_progress(kr.metric_start, kr.metric_target, kr.metric_current)
    if from_metrics is not None:
        return from_metrics
    return safe_progress(kr.progress)


# ── Per-level roll-up ───────────────────────────────────────────────────────

def _roll_objective(objective) -> int:
    values = []
    for kr in objective.key_results:
        if not kr.is_active:
            continue
        kr.progress = key_result_progress(kr)
        values.append(kr.progress)
    objective.progress = average_progress(values)
    return objective.progress


def _roll_goal(goal) -> int:
    values = [_roll_objective(o) for o in goal.objectives if o.is_active]
    goal.progress = average_progress(values)
    return goal.progress


def _roll_initiative(initiative) -> int:
    values = [_roll_goal(g) for g in initiative.goals if g.is_active]
    initiative.progress = average_progress(values)
    return initiative.progress


def _roll_project(project) -> int:
    values = [_roll_initiative(i) for i in project.initiatives if i.is_active]
    project.progress = average_progress(values)
    return project.progress


# ── Public API ──────────────────────────────────────────────────────────────

def recompute_project(project_id: int) -> Project:
    """
    Recompute progress for every active node of a project, leaves to root.

    Pending session changes are flushed and the session expired first so the
    whole subtree is re-read from a single snapshot.  Idempotent: a second
    call with no intervening mutation yields the same numbers.  Does not
    commit.

    Raises:
        NotFoundError: if the project does not exist.
    """
    logger.debug("Recalculate project start: project_id=%s", project_id)
    db.session.flush()
    db.session.expire_all()

    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError(resource="Project", resource_id=project_id)

    _roll_project(project)
    db.session.flush()

    logger.debug(
        "Recalculate project end: project_id=%s progress=%s", project_id, project.progress,
    )
    return project


def recompute_all_projects() -> dict:
    """
    Full recalculation of every project.
    Useful after bulk data import or corrections.

    Returns:
        dict with counts: project_count
    """
    ids = [pid for (pid,) in db.session.query(Project.id).order_by(Project.id).all()]
    for pid in ids:
        recompute_project(pid)
    return {"project_count": len(ids)}
