"""
Soft Delete Mixin — audit columns and activation flag for hierarchy nodes.

Every hierarchy model carries `is_active` plus created/updated/closed audit
stamps. Records are never physically removed: a soft delete flips
`is_active` off and stamps who closed it and when.

Usage:
    class Goal(SoftDeleteMixin, db.Model):
        ...

    # Soft delete
    goal.soft_delete("alice@example.com")
    db.session.commit()

    # Query only active records
    Goal.query_active().all()

    # Restore
    goal.restore()
    db.session.commit()

`closed_via` records which cascade root closed a descendant
("<level>:<id>"), so a restore of that root can bring back exactly the
nodes it closed and nothing else.
"""

from datetime import datetime, timezone

from okr_tracker.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class SoftDeleteMixin:
    """Mixin that adds activation flag and audit stamps to a model."""

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_by = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_by = db.Column(db.String(200), nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )
    closed_by = db.Column(db.String(200), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_via = db.Column(
        db.String(60), nullable=True,
        comment="Cascade root '<level>:<id>' that closed this row; NULL if closed directly",
    )

    def soft_delete(self, actor: str, *, when: datetime | None = None, via: str | None = None):
        """Mark this record as inactive and stamp the closing actor."""
        self.is_active = False
        self.closed_by = actor
        self.closed_at = when or _utcnow()
        self.closed_via = via

    def restore(self):
        """Re-activate a soft-deleted record and clear its closing stamp."""
        self.is_active = True
        self.closed_by = None
        self.closed_at = None
        self.closed_via = None

    @classmethod
    def query_active(cls):
        """Return a query that excludes soft-deleted records."""
        return cls.query.filter(cls.is_active.is_(True))

    @classmethod
    def query_deleted(cls):
        """Return only soft-deleted records."""
        return cls.query.filter(cls.is_active.is_(False))

    def audit_dict(self) -> dict:
        return {
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_by": self.updated_by,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "closed_by": self.closed_by,
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
        }
