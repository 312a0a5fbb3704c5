"""
Hierarchy Import Service

CSV-based bulk creation of a whole strategy tree, one row per leaf.

Features:
  - 24 fixed columns (Project … Action Item), header row required,
    header names matched case-insensitively
  - Each level is matched by title under its current parent, created if
    missing; a change of title at one level resets every level below it
  - Action items are always created (they are never matched)
  - Template CSV generation
  - Touched projects are recomputed once at the end

Import state lives in an `ImportCursor` that `apply_row` takes and returns,
so two imports never share position.
"""

import csv
import io
import logging
from dataclasses import dataclass, replace

from okr_tracker.models import db
from okr_tracker.models.hierarchy import (
    ActionItem,
    Goal,
    KeyResult,
    Objective,
    Project,
    StrategicInitiative,
)
from okr_tracker.services.progress_service import recompute_project
from okr_tracker.utils.helpers import parse_bool, parse_date_input, parse_float, parse_int

logger = logging.getLogger(__name__)


class ImportFormatError(Exception):
    """CSV cannot be read as a hierarchy import."""
    def __init__(self, message, status_code=400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


# ═══════════════════════════════════════════════════════════════
# CSV Template
# ═══════════════════════════════════════════════════════════════

CSV_HEADERS = [
    "Project Title", "Project Description",
    "Initiative Title", "Initiative Description",
    "Goal Title", "Goal Description",
    "Objective Title", "Objective Description", "Objective Assignee",
    "Objective Year", "Objective Quarter", "Objective Due Date",
    "KR Title", "KR Description", "KR Assignee",
    "KR Metric Start", "KR Metric Target", "KR Metric Current", "KR Unit",
    "Action Item Title", "Action Item Description", "Action Item Assignee",
    "Action Item Due Date", "Action Item Is Completed",
]

CSV_TEMPLATE_EXAMPLE = [
    [
        "Digital Platform", "2026 platform programme",
        "Self-service onboarding", "",
        "Shorten time to first value", "",
        "Launch guided setup", "", "alice@example.com", "2026", "Q2", "2026-06-30",
        "Activation rate", "", "alice@example.com", "10", "60", "25", "%",
        "Ship setup wizard", "", "bob@example.com", "5/15/2026", "false",
    ],
    [
        "Digital Platform", "",
        "Self-service onboarding", "",
        "Shorten time to first value", "",
        "Launch guided setup", "", "", "", "", "",
        "Activation rate", "", "", "", "", "", "",
        "Publish docs", "", "carol@example.com", "", "yes",
    ],
]


def generate_csv_template() -> str:
    """Generate a CSV template string for hierarchy import."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_HEADERS)
    writer.writerows(CSV_TEMPLATE_EXAMPLE)
    return output.getvalue()


# ═══════════════════════════════════════════════════════════════
# CSV Parsing
# ═══════════════════════════════════════════════════════════════

@dataclass
class HierarchyImportRow:
    project_title: str | None = None
    project_description: str | None = None
    initiative_title: str | None = None
    initiative_description: str | None = None
    goal_title: str | None = None
    goal_description: str | None = None
    objective_title: str | None = None
    objective_description: str | None = None
    objective_assignee: str | None = None
    objective_year: int | None = None
    objective_quarter: str | None = None
    objective_due_date: object = None
    kr_title: str | None = None
    kr_description: str | None = None
    kr_assignee: str | None = None
    kr_metric_start: float | None = None
    kr_metric_target: float | None = None
    kr_metric_current: float | None = None
    kr_unit: str | None = None
    action_item_title: str | None = None
    action_item_description: str | None = None
    action_item_assignee: str | None = None
    action_item_due_date: object = None
    action_item_is_completed: bool | None = None
    row_num: int = 0


def _cell(record, header):
    value = (record.get(header.lower()) or "").strip()
    return value or None


def _to_row(record, row_num) -> HierarchyImportRow:
    """Map one normalised CSV record to a HierarchyImportRow.

    Raises ValueError on an unparseable date.
    """
    return HierarchyImportRow(
        row_num=row_num,
        project_title=_cell(record, "Project Title"),
        project_description=_cell(record, "Project Description"),
        initiative_title=_cell(record, "Initiative Title"),
        initiative_description=_cell(record, "Initiative Description"),
        goal_title=_cell(record, "Goal Title"),
        goal_description=_cell(record, "Goal Description"),
        objective_title=_cell(record, "Objective Title"),
        objective_description=_cell(record, "Objective Description"),
        objective_assignee=_cell(record, "Objective Assignee"),
        objective_year=parse_int(_cell(record, "Objective Year")),
        objective_quarter=_cell(record, "Objective Quarter"),
        objective_due_date=parse_date_input(_cell(record, "Objective Due Date")),
        kr_title=_cell(record, "KR Title"),
        kr_description=_cell(record, "KR Description"),
        kr_assignee=_cell(record, "KR Assignee"),
        kr_metric_start=parse_float(_cell(record, "KR Metric Start")),
        kr_metric_target=parse_float(_cell(record, "KR Metric Target")),
        kr_metric_current=parse_float(_cell(record, "KR Metric Current")),
        kr_unit=_cell(record, "KR Unit"),
        action_item_title=_cell(record, "Action Item Title"),
        action_item_description=_cell(record, "Action Item Description"),
        action_item_assignee=_cell(record, "Action Item Assignee"),
        action_item_due_date=parse_date_input(_cell(record, "Action Item Due Date")),
        action_item_is_completed=parse_bool(_cell(record, "Action Item Is Completed")),
    )


def parse_csv(file_content: str | bytes) -> tuple[list[HierarchyImportRow], list[dict]]:
    """
    Parse CSV content into import rows.

    Returns:
        (rows, skipped) where skipped is a list of {"row_num", "reason"}.
        Rows with too few columns, a bad date, or no Project Title are skipped.

    Raises:
        ImportFormatError: empty input or a header row missing required columns.
    """
    if isinstance(file_content, bytes):
        try:
            file_content = file_content.decode("utf-8-sig")  # Handle BOM
        except UnicodeDecodeError as exc:
            raise ImportFormatError("CSV file must be UTF-8 encoded") from exc
    if not file_content or not file_content.strip():
        raise ImportFormatError("CSV file is empty")

    reader = csv.reader(io.StringIO(file_content))
    header = next(reader, None) or []
    normalized = [h.strip().lower() for h in header]
    missing = [h for h in CSV_HEADERS if h.lower() not in normalized]
    if missing:
        raise ImportFormatError(
            f"The CSV file must contain exactly {len(CSV_HEADERS)} columns in the "
            f"correct order, starting with the header row. Missing: {', '.join(missing)}"
        )

    rows = []
    skipped = []
    for row_num, values in enumerate(reader, start=2):  # header is row 1
        if not any(v.strip() for v in values):
            continue
        if len(values) < len(CSV_HEADERS):
            skipped.append({"row_num": row_num, "reason": "insufficient columns"})
            continue
        record = dict(zip(normalized, values))
        try:
            row = _to_row(record, row_num)
        except ValueError as exc:
            skipped.append({"row_num": row_num, "reason": str(exc)})
            continue
        if not row.project_title:
            skipped.append({"row_num": row_num, "reason": "missing Project Title"})
            continue
        rows.append(row)

    logger.debug("Parsed import CSV: rows=%d skipped=%d", len(rows), len(skipped))
    return rows, skipped


# ═══════════════════════════════════════════════════════════════
# Row application
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ImportCursor:
    """Current node at each level while streaming rows."""

    project: Project | None = None
    initiative: StrategicInitiative | None = None
    goal: Goal | None = None
    objective: Objective | None = None
    key_result: KeyResult | None = None
    created: int = 0


def _find_by_title(children, title):
    """Active child with `title`; archived nodes never receive imported rows."""
    for child in children:
        if child.is_active and child.title == title:
            return child
    return None


def _project_for(row, actor):
    project = (
        Project.query_active()
        .filter_by(title=row.project_title)
        .order_by(Project.id)
        .first()
    )
    if project is not None:
        return project, 0
    project = Project(
        title=row.project_title, description=row.project_description,
        progress=0, created_by=actor, updated_by=actor,
    )
    db.session.add(project)
    return project, 1


def _child_for(parent_children, title, factory):
    child = _find_by_title(parent_children, title)
    if child is not None:
        return child, 0
    child = factory()
    parent_children.append(child)
    return child, 1


def apply_row(cursor: ImportCursor, row: HierarchyImportRow, actor: str = "system") -> ImportCursor:
    """
    Apply one row against `cursor` and return the advanced cursor.

    A level whose title differs from the cursor's node is looked up among
    the active children of the current parent (or created); every level
    below it is reset.  A blank level keeps the cursor's node from earlier
    rows, so later cells attach beneath it; the row stops only where the
    cursor has no node at that level yet.
    """
    created = cursor.created
    stamp = {"created_by": actor, "updated_by": actor, "progress": 0}

    # 1. PROJECT
    if row.project_title and (cursor.project is None or cursor.project.title != row.project_title):
        project, n = _project_for(row, actor)
        created += n
        cursor = ImportCursor(project=project, created=created)
    if cursor.project is None:
        return replace(cursor, created=created)

    # 2. STRATEGIC INITIATIVE
    if row.initiative_title and (
        cursor.initiative is None or cursor.initiative.title != row.initiative_title
    ):
        initiative, n = _child_for(
            cursor.project.initiatives, row.initiative_title,
            lambda: StrategicInitiative(
                title=row.initiative_title, description=row.initiative_description, **stamp,
            ),
        )
        created += n
        cursor = ImportCursor(project=cursor.project, initiative=initiative, created=created)
    if cursor.initiative is None:
        return replace(cursor, created=created)

    # 3. GOAL
    if row.goal_title and (cursor.goal is None or cursor.goal.title != row.goal_title):
        goal, n = _child_for(
            cursor.initiative.goals, row.goal_title,
            lambda: Goal(title=row.goal_title, description=row.goal_description, **stamp),
        )
        created += n
        cursor = replace(cursor, goal=goal, objective=None, key_result=None)
    if cursor.goal is None:
        return replace(cursor, created=created)

    # 4. OBJECTIVE
    if row.objective_title and (
        cursor.objective is None or cursor.objective.title != row.objective_title
    ):
        objective, n = _child_for(
            cursor.goal.objectives, row.objective_title,
            lambda: Objective(
                title=row.objective_title,
                description=row.objective_description,
                assignee=row.objective_assignee,
                year=row.objective_year,
                quarter=row.objective_quarter,
                due_date=row.objective_due_date,
                **stamp,
            ),
        )
        created += n
        cursor = replace(cursor, objective=objective, key_result=None)
    if cursor.objective is None:
        return replace(cursor, created=created)

    # 5. KEY RESULT
    if row.kr_title and (cursor.key_result is None or cursor.key_result.title != row.kr_title):
        key_result, n = _child_for(
            cursor.objective.key_results, row.kr_title,
            lambda: KeyResult(
                title=row.kr_title,
                description=row.kr_description,
                assignee=row.kr_assignee,
                metric_start=row.kr_metric_start,
                metric_target=row.kr_metric_target,
                metric_current=row.kr_metric_current,
                unit=row.kr_unit,
                manual_progress_set=False,
                **stamp,
            ),
        )
        created += n
        cursor = replace(cursor, key_result=key_result)
    if cursor.key_result is None:
        return replace(cursor, created=created)

    # 6. ACTION ITEM (never matched)
    if row.action_item_title:
        done = bool(row.action_item_is_completed)
        cursor.key_result.action_items.append(ActionItem(
            title=row.action_item_title,
            description=row.action_item_description,
            assignee=row.action_item_assignee,
            due_date=row.action_item_due_date,
            is_completed=done,
            created_by=actor,
            updated_by=actor,
            progress=100 if done else 0,
        ))
        cursor.key_result.manual_progress_set = False
        created += 1

    return replace(cursor, created=created)


def import_hierarchy(rows, actor: str = "system") -> dict:
    """
    Apply every row in order, then recompute each touched project.

    Returns:
        dict with counts: rows_processed, nodes_created, project_ids
    """
    cursor = ImportCursor()
    touched = []
    for row in rows:
        cursor = apply_row(cursor, row, actor)
        if cursor.project is not None and cursor.project not in touched:
            touched.append(cursor.project)

    db.session.flush()
    project_ids = [p.id for p in touched]
    for project_id in project_ids:
        recompute_project(project_id)

    logger.info(
        "Hierarchy import by=%s rows=%d created=%d projects=%s",
        actor, len(rows), cursor.created, project_ids,
    )
    return {
        "rows_processed": len(rows),
        "nodes_created": cursor.created,
        "project_ids": project_ids,
    }


def import_hierarchy_from_csv(file_content: str | bytes, actor: str = "system") -> dict:
    """
    Full pipeline: parse → apply → recompute.
    """
    rows, skipped = parse_csv(file_content)
    if not rows:
        raise ImportFormatError("CSV file has no importable rows")
    result = import_hierarchy(rows, actor)
    result["skipped"] = skipped
    return result
