"""
Cascade Lifecycle — soft-delete / restore propagated down the hierarchy.

Deactivating a node stamps it (closed_by / closed_at) and then every
currently-active descendant, level by level, depth-first:
    Initiative → Goal → Objective → KeyResult → ActionItem
Each descendant closed this way records the root in `closed_via`.

Restoring a node clears its stamp and re-activates exactly the descendants
whose `closed_via` names that node.  Descendants that were closed on their
own (or by a different root) stay closed.

This module neither commits nor recomputes progress: the caller wraps the
cascade and the follow-up `recompute_project` in one unit of work.

Usage:
    from okr_tracker.services.cascade_service import set_active

    changed = set_active(goal, False, actor="alice@example.com")
"""

import logging
from datetime import datetime, timezone

from okr_tracker.models.hierarchy import (
    LEVEL_GOAL,
    LEVEL_INITIATIVE,
    LEVEL_KEY_RESULT,
    LEVEL_OBJECTIVE,
    LEVEL_PROJECT,
    LEVEL_ACTION_ITEM,
)

logger = logging.getLogger(__name__)


# ── One walker per level; each knows only its own child collection ──────────

def _walk_project(project, visit):
    for initiative in project.initiatives:
        if visit(initiative):
            _walk_initiative(initiative, visit)


def _walk_initiative(initiative, visit):
    for goal in initiative.goals:
        if visit(goal):
            _walk_goal(goal, visit)


def _walk_goal(goal, visit):
    for objective in goal.objectives:
        if visit(objective):
            _walk_objective(objective, visit)


def _walk_objective(objective, visit):
    for kr in objective.key_results:
        if visit(kr):
            _walk_key_result(kr, visit)


def _walk_key_result(kr, visit):
    for ai in kr.action_items:
        visit(ai)


def _walk_action_item(ai, visit):
    """Action items are leaves."""


_WALKERS = {
    LEVEL_PROJECT: _walk_project,
    LEVEL_INITIATIVE: _walk_initiative,
    LEVEL_GOAL: _walk_goal,
    LEVEL_OBJECTIVE: _walk_objective,
    LEVEL_KEY_RESULT: _walk_key_result,
    LEVEL_ACTION_ITEM: _walk_action_item,
}


# ── Public API ──────────────────────────────────────────────────────────────

def deactivate(node, actor: str, *, when: datetime | None = None) -> list:
    """Soft-delete `node` and every active descendant. Returns changed nodes."""
    when = when or datetime.now(timezone.utc)
    root_key = node.node_key
    changed = []

    if node.is_active:
        node.soft_delete(actor, when=when)
        node.updated_by = actor
        changed.append(node)

    def visit(child):
        if child.is_active:
            child.soft_delete(actor, when=when, via=root_key)
            child.updated_by = actor
            changed.append(child)
        # Keep walking: no active node may remain under a closed ancestor.
        return True

    _WALKERS[node.LEVEL](node, visit)
    logger.info(
        "Cascade deactivate root=%s actor=%s closed=%d", root_key, actor, len(changed),
    )
    return changed


def restore(node, actor: str) -> list:
    """Restore `node` and the descendants its own cascade closed. Returns changed nodes."""
    root_key = node.node_key
    changed = []

    if not node.is_active:
        node.restore()
        node.updated_by = actor
        changed.append(node)

    def visit(child):
        if not child.is_active and child.closed_via == root_key:
            child.restore()
            child.updated_by = actor
            changed.append(child)
        # Only descend through nodes that are active again.
        return child.is_active

    _WALKERS[node.LEVEL](node, visit)
    logger.info(
        "Cascade restore root=%s actor=%s restored=%d", root_key, actor, len(changed),
    )
    return changed


def set_active(node, active: bool, actor: str, *, when: datetime | None = None) -> list:
    """
    Apply an activation flag to `node` and cascade it to its descendants.

    Args:
        node: Any hierarchy model instance.
        active: False to soft-delete, True to restore.
        actor: Audit identity stamped as closed_by / updated_by.
        when: Closing timestamp (defaults to now, UTC).

    Returns:
        Every node whose flag changed, root first.
    """
    if active:
        return restore(node, actor)
    return deactivate(node, actor, when=when)
