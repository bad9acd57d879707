"""
Resource Planner
Project domain models.

Models:
    - Project: named delivery window that owns requirements and allocations
    - ResourceRequirement: time-bounded need for N people of a role type
    - ProjectAllocation: one person assigned to a project at a percentage

Architecture chain: Project → ResourceRequirement → ProjectAllocation

Auto-generated requirements carry ``auto_generated_type`` and the
``source_allocation_id`` of the allocation that produced them. Neither
``source_allocation_id`` nor ``parent_requirement_id`` is a foreign key: a
load-bearing derived requirement outlives the allocation that created it.
"""

import enum
from datetime import datetime, timezone

from resource_planner.models import db


# ── Constants ────────────────────────────────────────────────────────────────

class AutoGeneratedType(str, enum.Enum):
    """Why the reconciliation engine created a requirement."""

    LEAVE_COVERAGE = "leave_coverage"
    PARTIAL_GAP = "partial_gap"


AUTO_GENERATED_TYPES = {t.value for t in AutoGeneratedType}


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


# ═══════════════════════════════════════════════════════════════════════════
#  PROJECT
# ═══════════════════════════════════════════════════════════════════════════

class Project(db.Model):
    """A project with a start/end window."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    requirements = db.relationship("ResourceRequirement", backref="project", lazy="dynamic")
    allocations = db.relationship("ProjectAllocation", backref="project", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Project {self.id}: {self.name}>"


# ═══════════════════════════════════════════════════════════════════════════
#  RESOURCE REQUIREMENT
# ═══════════════════════════════════════════════════════════════════════════

class ResourceRequirement(db.Model):
    """
    A time-bounded need for ``required_count`` people of a role type.

    ``required_count`` is fractional: 0.2 represents a 20%-time slot.
    Ignored requirements stay for audit but are excluded from gap counts.
    """

    __tablename__ = "project_resource_requirements"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    role_type_id = db.Column(
        db.Integer, db.ForeignKey("role_types.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    required_count = db.Column(db.Float, nullable=False, default=1.0)

    auto_generated_type = db.Column(
        db.String(20), nullable=True, index=True,
        comment="NULL for operator-authored requirements | leave_coverage | partial_gap",
    )
    source_allocation_id = db.Column(db.Integer, nullable=True, index=True)
    parent_requirement_id = db.Column(db.Integer, nullable=True, index=True)
    ignored = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    role_type = db.relationship("RoleType", lazy="joined")

    __table_args__ = (
        db.CheckConstraint(
            "auto_generated_type IS NULL OR auto_generated_type IN ('leave_coverage','partial_gap')",
            name="ck_requirements_auto_generated_type",
        ),
        db.CheckConstraint(
            "auto_generated_type IS NULL OR source_allocation_id IS NOT NULL",
            name="ck_requirements_auto_generated_source",
        ),
        db.CheckConstraint("required_count > 0", name="ck_requirements_required_count"),
        db.Index(
            "uq_requirements_partial_gap_source",
            "source_allocation_id",
            unique=True,
            postgresql_where=db.text("auto_generated_type = 'partial_gap'"),
            sqlite_where=db.text("auto_generated_type = 'partial_gap'"),
        ),
    )

    @property
    def is_auto_generated(self):
        return self.auto_generated_type is not None

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "role_type_id": self.role_type_id,
            "role_type_name": self.role_type.name if self.role_type else None,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "required_count": self.required_count,
            "auto_generated_type": self.auto_generated_type,
            "source_allocation_id": self.source_allocation_id,
            "parent_requirement_id": self.parent_requirement_id,
            "ignored": bool(self.ignored),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        kind = self.auto_generated_type or "manual"
        return f"<ResourceRequirement {self.id}: project={self.project_id} {kind} x{self.required_count}>"


# ═══════════════════════════════════════════════════════════════════════════
#  PROJECT ALLOCATION
# ═══════════════════════════════════════════════════════════════════════════

class ProjectAllocation(db.Model):
    """
    A person assigned to a project at ``allocation_percentage`` of capacity.

    ``requirement_id`` is NULL for orphaned or legacy allocations; the gap
    analyzer matches those by role type and date overlap instead.
    """

    __tablename__ = "project_allocations"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    person_id = db.Column(
        db.Integer, db.ForeignKey("people.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    role_type_id = db.Column(
        db.Integer, db.ForeignKey("role_types.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    requirement_id = db.Column(
        db.Integer, db.ForeignKey("project_resource_requirements.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    allocation_percentage = db.Column(db.Float, nullable=False, default=100.0)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    person = db.relationship("Person", lazy="joined")
    role_type = db.relationship("RoleType", lazy="joined")

    __table_args__ = (
        db.CheckConstraint("allocation_percentage > 0", name="ck_allocations_percentage"),
        db.Index("ix_allocations_person_window", "person_id", "start_date", "end_date"),
    )

    @property
    def is_orphaned(self):
        return self.requirement_id is None

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "person_id": self.person_id,
            "person_name": self.person.name if self.person else None,
            "role_type_id": self.role_type_id,
            "role_type_name": self.role_type.name if self.role_type else None,
            "requirement_id": self.requirement_id,
            "allocation_percentage": self.allocation_percentage,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return (
            f"<ProjectAllocation {self.id}: person={self.person_id} "
            f"project={self.project_id} {self.allocation_percentage}%>"
        )
