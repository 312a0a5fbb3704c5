"""Hierarchy service layer — create / update / activate nodes at any level.

Transaction policy: methods use flush(), never commit().
Caller (route handler, import, CLI) is responsible for db.session.commit().

Every mutation follows the same sequence:
    apply the write → cascade (activation toggles only) → recompute_project

Key Result lock transitions are decided explicitly by
`decide_lock_transition`; Action Item edits always unlock the owning KR.
"""
import logging

from okr_tracker.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from okr_tracker.models import db
from okr_tracker.models.hierarchy import (
    LEVEL_ACTION_ITEM,
    LEVEL_GOAL,
    LEVEL_INITIATIVE,
    LEVEL_KEY_RESULT,
    LEVEL_OBJECTIVE,
    LEVEL_PROJECT,
    LEVELS,
    MODEL_BY_LEVEL,
    PARENT_OF,
    QUARTERS,
    Project,
)
from okr_tracker.services import cascade_service
from okr_tracker.services.access_service import accessible_project_ids
from okr_tracker.services.progress_service import recompute_project
from okr_tracker.utils.helpers import parse_bool, parse_date_input

logger = logging.getLogger(__name__)

# URL slug → level name
LEVEL_SLUGS = {
    "projects": LEVEL_PROJECT,
    "initiatives": LEVEL_INITIATIVE,
    "goals": LEVEL_GOAL,
    "objectives": LEVEL_OBJECTIVE,
    "key-results": LEVEL_KEY_RESULT,
    "action-items": LEVEL_ACTION_ITEM,
}

# parent level → child level
CHILD_OF = {parent: child for child, (parent, _fk, _rel) in PARENT_OF.items()}

EDITABLE_FIELDS = {
    LEVEL_PROJECT: ("title", "description", "progress"),
    LEVEL_INITIATIVE: ("title", "description", "progress"),
    LEVEL_GOAL: ("title", "description", "progress"),
    LEVEL_OBJECTIVE: (
        "title", "description", "assignee", "year", "quarter", "due_date", "progress",
    ),
    LEVEL_KEY_RESULT: (
        "title", "description", "assignee", "metric_start", "metric_target",
        "metric_current", "unit", "progress",
    ),
    LEVEL_ACTION_ITEM: (
        "title", "description", "assignee", "due_date", "progress", "is_completed",
    ),
}

METRIC_FIELDS = ("metric_start", "metric_target", "metric_current")

# KR lock transitions
LOCK = "lock"
UNLOCK = "unlock"
KEEP = "keep"


# ── Field coercion ──────────────────────────────────────────────────────────


def _text(value):
    return str(value).strip()


def _progress(value):
    if isinstance(value, bool):
        raise ValueError("must be an integer between 0 and 100")
    number = int(value)
    if number != float(value) or not 0 <= number <= 100:
        raise ValueError("must be an integer between 0 and 100")
    return number


def _integer(value):
    if isinstance(value, bool):
        raise ValueError("must be an integer")
    return int(value)


def _number(value):
    if isinstance(value, bool):
        raise ValueError("must be a number")
    return float(value)


def _quarter(value):
    quarter = str(value).strip().upper()
    if quarter not in QUARTERS:
        raise ValueError(f"must be one of {', '.join(QUARTERS)}")
    return quarter


def _flag(value):
    flag = parse_bool(value)
    if flag is None:
        raise ValueError("must be a boolean")
    return flag


_COERCE = {
    "title": _text,
    "description": _text,
    "assignee": _text,
    "unit": _text,
    "progress": _progress,
    "year": _integer,
    "quarter": _quarter,
    "due_date": parse_date_input,
    "metric_start": _number,
    "metric_target": _number,
    "metric_current": _number,
    "is_completed": _flag,
}


def _clean_fields(level, fields):
    """Coerce the editable fields present in `fields`; None values are dropped."""
    values = {}
    errors = {}
    for name in EDITABLE_FIELDS[level]:
        raw = fields.get(name)
        if raw is None:
            continue
        try:
            values[name] = _COERCE[name](raw)
        except (TypeError, ValueError) as exc:
            errors[name] = str(exc)
    if errors:
        raise ValidationError("Invalid field values", details=errors)
    return values


def _active_flag(fields):
    raw = fields.get("is_active")
    if raw is None:
        return None
    try:
        return _flag(raw)
    except ValueError as exc:
        raise ValidationError("Invalid field values", details={"is_active": str(exc)}) from exc


# ── Lookups ─────────────────────────────────────────────────────────────────


def resolve_level(name):
    """Accept a URL slug ('key-results') or a level name ('key_result')."""
    level = LEVEL_SLUGS.get(name, name)
    if level not in MODEL_BY_LEVEL:
        raise ValidationError(
            f"Unknown hierarchy level {name!r}",
            details={"level": f"must be one of {', '.join(LEVEL_SLUGS)}"},
        )
    return level


def get_node(level, node_id):
    level = resolve_level(level)
    model = MODEL_BY_LEVEL[level]
    node = db.session.get(model, node_id)
    if node is None:
        raise NotFoundError(resource=model.TYPE_NAME, resource_id=node_id)
    return node


def owning_project_id(node):
    """Id of the project at the root of `node`'s chain, or None if unattached."""
    project = node.owning_project
    return project.id if project is not None else None


def _parent_of(node):
    if node.LEVEL == LEVEL_PROJECT:
        return None
    _parent_level, _fk, rel = PARENT_OF[node.LEVEL]
    return getattr(node, rel)


def _recompute_owner(node):
    project_id = owning_project_id(node)
    if project_id is None:
        db.session.flush()
        return None
    return recompute_project(project_id)


# ── Lock / completion rules ─────────────────────────────────────────────────


def decide_lock_transition(kr, changes):
    """
    Decide what an update does to a Key Result's manual progress lock.

    Args:
        kr: The KeyResult before `changes` are applied.
        changes: Cleaned update values (None already dropped).

    Returns:
        UNLOCK if any metric value changes (this wins over a progress edit),
        LOCK if only the progress value changes,
        KEEP otherwise.
    """
    metrics_changed = any(
        name in changes and changes[name] != getattr(kr, name) for name in METRIC_FIELDS
    )
    if metrics_changed:
        return UNLOCK
    if "progress" in changes and changes["progress"] != kr.progress:
        return LOCK
    return KEEP


def _apply_lock(kr, transition):
    if transition == LOCK:
        kr.manual_progress_set = True
    elif transition == UNLOCK:
        kr.manual_progress_set = False


def _apply_completion(ai, progress, is_completed):
    """Keep is_completed and progress == 100 equivalent on an Action Item.

    A positive progress is authoritative; otherwise an explicit
    is_completed drives progress to 100 / 0.
    """
    if progress is not None and progress > 0:
        ai.progress = progress
        ai.is_completed = progress >= 100
    elif is_completed is not None:
        ai.is_completed = is_completed
        ai.progress = 100 if is_completed else 0
    elif progress == 0:
        ai.progress = 0
        ai.is_completed = False


# ── Create / update ─────────────────────────────────────────────────────────


def create_node(level, parent_id, fields, actor):
    """Add a node under `parent_id` (Projects have no parent) and recompute.

    Raises:
        ValidationError: unknown level, missing title, bad field value.
        NotFoundError: parent does not exist.
        InvalidStateError: parent is soft-deleted.
    """
    level = resolve_level(level)
    fields = fields or {}
    values = _clean_fields(level, fields)
    if not values.get("title"):
        raise ValidationError("title is required", details={"title": "required"})

    model = MODEL_BY_LEVEL[level]
    progress = values.pop("progress", None)
    is_completed = values.pop("is_completed", None)
    node = model(**values, progress=0, created_by=actor, updated_by=actor)

    if level == LEVEL_ACTION_ITEM:
        _apply_completion(node, progress, bool(is_completed))
    elif progress is not None:
        node.progress = progress

    if level != LEVEL_PROJECT:
        parent_level, _fk, rel = PARENT_OF[level]
        parent = get_node(parent_level, parent_id)
        if not parent.is_active:
            raise InvalidStateError(
                f"Cannot add a {model.TYPE_NAME} under inactive "
                f"{parent.TYPE_NAME} id={parent.id}"
            )
        setattr(node, rel, parent)
        if level == LEVEL_ACTION_ITEM:
            _apply_lock(parent, UNLOCK)

    db.session.add(node)
    db.session.flush()
    logger.info("Created %s by=%s", node.node_key, actor)

    _recompute_owner(node)
    return node


def update_node(level, node_id, fields, actor):
    """Partial update: only non-None fields overwrite. Recomputes the owner.

    An `is_active` value in `fields` is routed through the cascade.
    """
    level = resolve_level(level)
    fields = fields or {}
    node = get_node(level, node_id)
    values = _clean_fields(level, fields)
    active = _active_flag(fields)

    if level == LEVEL_KEY_RESULT:
        transition = decide_lock_transition(node, values)
        for name, value in values.items():
            setattr(node, name, value)
        _apply_lock(node, transition)
        if transition != KEEP:
            logger.info("KeyResult id=%s lock transition=%s", node.id, transition)
    elif level == LEVEL_ACTION_ITEM:
        progress = values.pop("progress", None)
        is_completed = values.pop("is_completed", None)
        for name, value in values.items():
            setattr(node, name, value)
        _apply_completion(node, progress, is_completed)
        if node.key_result is not None:
            _apply_lock(node.key_result, UNLOCK)
    else:
        for name, value in values.items():
            setattr(node, name, value)

    node.updated_by = actor

    if active is not None:
        _toggle(node, active, actor)

    _recompute_owner(node)
    return node


# ── Activation ──────────────────────────────────────────────────────────────


def _toggle(node, active, actor):
    if active:
        parent = _parent_of(node)
        if parent is not None and not parent.is_active:
            raise InvalidStateError(
                f"Cannot restore {node.TYPE_NAME} id={node.id}: "
                f"parent {parent.TYPE_NAME} id={parent.id} is inactive"
            )
    if node.LEVEL == LEVEL_ACTION_ITEM and node.key_result is not None:
        _apply_lock(node.key_result, UNLOCK)
    return cascade_service.set_active(node, active, actor)


def set_node_active(level, node_id, active, actor):
    """Soft-delete or restore a node with its cascade, then recompute."""
    node = get_node(level, node_id)
    changed = _toggle(node, active, actor)
    logger.info(
        "%s %s by=%s changed=%d",
        "Restored" if active else "Deactivated", node.node_key, actor, len(changed),
    )
    _recompute_owner(node)
    return node


def restore_node(level, node_id, actor):
    return set_node_active(level, node_id, True, actor)


# ── Reads ───────────────────────────────────────────────────────────────────


def list_projects_for_user(user):
    """Active projects visible to `user`; empty list when nothing is visible."""
    ids = accessible_project_ids(user)
    if not ids:
        return []
    return (
        Project.query_active()
        .filter(Project.id.in_(ids))
        .order_by(Project.id)
        .all()
    )


def get_project_tree(project_id):
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def list_archived(level=None, project_ids=None):
    """Soft-deleted nodes, top level first.

    Args:
        level: Restrict to one level (slug or level name).
        project_ids: Restrict to nodes owned by these projects.
    """
    levels = (resolve_level(level),) if level else LEVELS
    items = []
    for lvl in levels:
        model = MODEL_BY_LEVEL[lvl]
        for node in model.query_deleted().order_by(model.id).all():
            if project_ids is not None and owning_project_id(node) not in project_ids:
                continue
            items.append(node)
    return items
