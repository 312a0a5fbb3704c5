"""
Strategy hierarchy models.

    Project → StrategicInitiative → Goal → Objective → KeyResult → ActionItem

Each level owns the next level down through a one-to-many relationship and
carries a `progress` integer (0..100) that the progress service recomputes
bottom-up.  `owning_project` walks the parent links up to the root; it is
the project re-aggregated after any mutation at that depth.
"""

from okr_tracker.models import db
from okr_tracker.models.soft_delete import SoftDeleteMixin

# ── Level names (also used as the cascade marker prefix) ────────────────
LEVEL_PROJECT = "project"
LEVEL_INITIATIVE = "initiative"
LEVEL_GOAL = "goal"
LEVEL_OBJECTIVE = "objective"
LEVEL_KEY_RESULT = "key_result"
LEVEL_ACTION_ITEM = "action_item"

LEVELS = (
    LEVEL_PROJECT,
    LEVEL_INITIATIVE,
    LEVEL_GOAL,
    LEVEL_OBJECTIVE,
    LEVEL_KEY_RESULT,
    LEVEL_ACTION_ITEM,
)

QUARTERS = ("Q1", "Q2", "Q3", "Q4")


class HierarchyMixin(SoftDeleteMixin):
    """Columns shared by all six hierarchy levels."""

    LEVEL = None
    TYPE_NAME = None

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False, default="")
    description = db.Column(db.Text, nullable=True)
    progress = db.Column(db.Integer, nullable=False, default=0)

    @property
    def node_key(self) -> str:
        """Stable '<level>:<id>' reference used in cascade stamps and logs."""
        return f"{self.LEVEL}:{self.id}"

    def _base_dict(self) -> dict:
        d = {
            "id": self.id,
            "type": self.TYPE_NAME,
            "level": self.LEVEL,
            "title": self.title,
            "description": self.description,
            "progress": self.progress,
        }
        d.update(self.audit_dict())
        return d


# ═══════════════════════════════════════════════════════════════
# 1. PROJECT
# ═══════════════════════════════════════════════════════════════
class Project(HierarchyMixin, db.Model):
    __tablename__ = "projects"
    LEVEL = LEVEL_PROJECT
    TYPE_NAME = "Project"

    initiatives = db.relationship(
        "StrategicInitiative", back_populates="project",
        order_by="StrategicInitiative.id", cascade="all, delete-orphan",
    )

    @property
    def owning_project(self):
        return self

    def to_dict(self, include_children=False):
        d = self._base_dict()
        if include_children:
            d["initiatives"] = [i.to_dict(include_children=True) for i in self.initiatives]
        return d

    def __repr__(self) -> str:
        return f"<Project {self.id}: {self.title}>"


# ═══════════════════════════════════════════════════════════════
# 2. STRATEGIC INITIATIVE
# ═══════════════════════════════════════════════════════════════
class StrategicInitiative(HierarchyMixin, db.Model):
    __tablename__ = "strategic_initiatives"
    LEVEL = LEVEL_INITIATIVE
    TYPE_NAME = "StrategicInitiative"

    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )

    project = db.relationship("Project", back_populates="initiatives")
    goals = db.relationship(
        "Goal", back_populates="initiative",
        order_by="Goal.id", cascade="all, delete-orphan",
    )

    @property
    def owning_project(self):
        return self.project

    def to_dict(self, include_children=False):
        d = self._base_dict()
        d["project_id"] = self.project_id
        if include_children:
            d["goals"] = [g.to_dict(include_children=True) for g in self.goals]
        return d


# ═══════════════════════════════════════════════════════════════
# 3. GOAL
# ═══════════════════════════════════════════════════════════════
class Goal(HierarchyMixin, db.Model):
    __tablename__ = "goals"
    LEVEL = LEVEL_GOAL
    TYPE_NAME = "Goal"

    initiative_id = db.Column(
        db.Integer, db.ForeignKey("strategic_initiatives.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )

    initiative = db.relationship("StrategicInitiative", back_populates="goals")
    objectives = db.relationship(
        "Objective", back_populates="goal",
        order_by="Objective.id", cascade="all, delete-orphan",
    )

    @property
    def owning_project(self):
        return self.initiative.owning_project if self.initiative else None

    def to_dict(self, include_children=False):
        d = self._base_dict()
        d["initiative_id"] = self.initiative_id
        if include_children:
            d["objectives"] = [o.to_dict(include_children=True) for o in self.objectives]
        return d


# ═══════════════════════════════════════════════════════════════
# 4. OBJECTIVE
# ═══════════════════════════════════════════════════════════════
class Objective(HierarchyMixin, db.Model):
    __tablename__ = "objectives"
    LEVEL = LEVEL_OBJECTIVE
    TYPE_NAME = "Objective"

    goal_id = db.Column(
        db.Integer, db.ForeignKey("goals.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    assignee = db.Column(db.String(200), nullable=True)
    year = db.Column(db.Integer, nullable=True)
    quarter = db.Column(db.String(2), nullable=True, comment="Q1 | Q2 | Q3 | Q4")
    due_date = db.Column(db.Date, nullable=True)

    goal = db.relationship("Goal", back_populates="objectives")
    key_results = db.relationship(
        "KeyResult", back_populates="objective",
        order_by="KeyResult.id", cascade="all, delete-orphan",
    )

    @property
    def owning_project(self):
        return self.goal.owning_project if self.goal else None

    def to_dict(self, include_children=False):
        d = self._base_dict()
        d.update({
            "goal_id": self.goal_id,
            "assignee": self.assignee,
            "year": self.year,
            "quarter": self.quarter,
            "due_date": self.due_date.isoformat() if self.due_date else None,
        })
        if include_children:
            d["key_results"] = [kr.to_dict(include_children=True) for kr in self.key_results]
        return d


# ═══════════════════════════════════════════════════════════════
# 5. KEY RESULT
# ═══════════════════════════════════════════════════════════════
class KeyResult(HierarchyMixin, db.Model):
    __tablename__ = "key_results"
    LEVEL = LEVEL_KEY_RESULT
    TYPE_NAME = "KeyResult"

    objective_id = db.Column(
        db.Integer, db.ForeignKey("objectives.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    assignee = db.Column(db.String(200), nullable=True)
    metric_start = db.Column(db.Float, nullable=True)
    metric_target = db.Column(db.Float, nullable=True)
    metric_current = db.Column(db.Float, nullable=True)
    unit = db.Column(db.String(30), nullable=True, comment='"%", "$", "users", ...')
    manual_progress_set = db.Column(
        db.Boolean, nullable=False, default=False,
        comment="True = progress was set by hand and is not recomputed",
    )

    objective = db.relationship("Objective", back_populates="key_results")
    action_items = db.relationship(
        "ActionItem", back_populates="key_result",
        order_by="ActionItem.id", cascade="all, delete-orphan",
    )

    @property
    def owning_project(self):
        return self.objective.owning_project if self.objective else None

    def to_dict(self, include_children=False):
        d = self._base_dict()
        d.update({
            "objective_id": self.objective_id,
            "assignee": self.assignee,
            "metric_start": self.metric_start,
            "metric_target": self.metric_target,
            "metric_current": self.metric_current,
            "unit": self.unit,
            "manual_progress_set": self.manual_progress_set,
        })
        if include_children:
            d["action_items"] = [ai.to_dict() for ai in self.action_items]
        return d


# ═══════════════════════════════════════════════════════════════
# 6. ACTION ITEM (leaf)
# ═══════════════════════════════════════════════════════════════
class ActionItem(HierarchyMixin, db.Model):
    __tablename__ = "action_items"
    LEVEL = LEVEL_ACTION_ITEM
    TYPE_NAME = "ActionItem"

    key_result_id = db.Column(
        db.Integer, db.ForeignKey("key_results.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    assignee = db.Column(db.String(200), nullable=True)
    due_date = db.Column(db.Date, nullable=True)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)

    key_result = db.relationship("KeyResult", back_populates="action_items")

    @property
    def owning_project(self):
        return self.key_result.owning_project if self.key_result else None

    def to_dict(self, include_children=False):
        d = self._base_dict()
        d.update({
            "key_result_id": self.key_result_id,
            "assignee": self.assignee,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "is_completed": self.is_completed,
        })
        return d


MODEL_BY_LEVEL = {
    LEVEL_PROJECT: Project,
    LEVEL_INITIATIVE: StrategicInitiative,
    LEVEL_GOAL: Goal,
    LEVEL_OBJECTIVE: Objective,
    LEVEL_KEY_RESULT: KeyResult,
    LEVEL_ACTION_ITEM: ActionItem,
}

# child level -> (parent level, FK column name, parent relationship name)
PARENT_OF = {
    LEVEL_INITIATIVE: (LEVEL_PROJECT, "project_id", "project"),
    LEVEL_GOAL: (LEVEL_INITIATIVE, "initiative_id", "initiative"),
    LEVEL_OBJECTIVE: (LEVEL_GOAL, "goal_id", "goal"),
    LEVEL_KEY_RESULT: (LEVEL_OBJECTIVE, "objective_id", "objective"),
    LEVEL_ACTION_ITEM: (LEVEL_KEY_RESULT, "key_result_id", "key_result"),
}
