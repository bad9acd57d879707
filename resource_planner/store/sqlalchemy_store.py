"""SQLAlchemy adapter for the persistence port.

Transaction policy: every write is flushed inside a SAVEPOINT
(``db.session.begin_nested()``) so one failed derived write never poisons the
rest of a cascade. Nothing here commits on its own; the orchestration
service calls ``commit()`` once the primary mutation or the cascade is done.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from resource_planner.core.exceptions import ConflictError, NotFoundError
from resource_planner.models import db
from resource_planner.models.people import LeavePeriod, RoleType
from resource_planner.models.project import Project, ProjectAllocation, ResourceRequirement
from resource_planner.store.base import normalise_requirement_fields

logger = logging.getLogger(__name__)


def _overlapping(query, model, start, end):
    if start is not None:
        query = query.filter(model.end_date >= start)
    if end is not None:
        query = query.filter(model.start_date <= end)
    return query


class SqlAlchemyStore:
    """Persistence port backed by the Flask-SQLAlchemy session."""

    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    # ── Allocations ──────────────────────────────────────────────────────

    def get_allocation(self, allocation_id):
        return self.session.get(ProjectAllocation, allocation_id)

    def list_person_allocations(self, person_id, start=None, end=None):
        query = self.session.query(ProjectAllocation).filter(ProjectAllocation.person_id == person_id)
        query = _overlapping(query, ProjectAllocation, start, end)
        return query.order_by(ProjectAllocation.start_date, ProjectAllocation.id).all()

    def list_requirement_allocations(self, requirement_id):
        return (
            self.session.query(ProjectAllocation)
            .filter(ProjectAllocation.requirement_id == requirement_id)
            .order_by(ProjectAllocation.id)
            .all()
        )

    def list_project_allocations(self, project_id):
        return (
            self.session.query(ProjectAllocation)
            .filter(ProjectAllocation.project_id == project_id)
            .order_by(ProjectAllocation.start_date, ProjectAllocation.id)
            .all()
        )

    def list_all_allocations(self):
        return (
            self.session.query(ProjectAllocation)
            .order_by(ProjectAllocation.start_date, ProjectAllocation.id)
            .all()
        )

    def insert_allocation(self, **fields):
        allocation = ProjectAllocation(**fields)
        with self.session.begin_nested():
            self.session.add(allocation)
        return allocation

    def update_allocation(self, allocation_id, **fields):
        allocation = self.get_allocation(allocation_id)
        if allocation is None:
            raise NotFoundError(resource="ProjectAllocation", resource_id=allocation_id)
        with self.session.begin_nested():
            for key, value in fields.items():
                setattr(allocation, key, value)
        return allocation

    def delete_allocation(self, allocation_id):
        allocation = self.get_allocation(allocation_id)
        if allocation is None:
            raise NotFoundError(resource="ProjectAllocation", resource_id=allocation_id)
        with self.session.begin_nested():
            self.session.delete(allocation)

    def orphan_allocations(self, requirement_id):
        with self.session.begin_nested():
            count = (
                self.session.query(ProjectAllocation)
                .filter(ProjectAllocation.requirement_id == requirement_id)
                .update({ProjectAllocation.requirement_id: None}, synchronize_session="fetch")
            )
        return count

    # ── Requirements ─────────────────────────────────────────────────────

    def get_requirement(self, requirement_id):
        return self.session.get(ResourceRequirement, requirement_id)

    def list_project_requirements(self, project_id):
        return (
            self.session.query(ResourceRequirement)
            .filter(ResourceRequirement.project_id == project_id)
            .order_by(ResourceRequirement.start_date, ResourceRequirement.id)
            .all()
        )

    def list_source_requirements(self, allocation_id, auto_generated_type=None):
        query = self.session.query(ResourceRequirement).filter(
            ResourceRequirement.source_allocation_id == allocation_id,
            ResourceRequirement.auto_generated_type.isnot(None),
        )
        if auto_generated_type is not None:
            kind = getattr(auto_generated_type, "value", auto_generated_type)
            query = query.filter(ResourceRequirement.auto_generated_type == kind)
        return query.order_by(ResourceRequirement.id).all()

    def list_auto_generated_children(self, parent_requirement_id):
        return (
            self.session.query(ResourceRequirement)
            .filter(
                ResourceRequirement.parent_requirement_id == parent_requirement_id,
                ResourceRequirement.auto_generated_type.isnot(None),
            )
            .order_by(ResourceRequirement.id)
            .all()
        )

    def insert_requirement(self, **fields):
        fields = normalise_requirement_fields(fields)
        requirement = ResourceRequirement(**fields)
        try:
            with self.session.begin_nested():
                self.session.add(requirement)
        except IntegrityError as exc:
            logger.warning("Requirement insert rejected by constraint: %s", exc.orig,
                           extra={"allocation_id": fields.get("source_allocation_id")})
            raise ConflictError(
                resource="ResourceRequirement",
                field="source_allocation_id",
                value=fields.get("source_allocation_id"),
            ) from exc
        return requirement

    def update_requirement(self, requirement_id, **fields):
        requirement = self.get_requirement(requirement_id)
        if requirement is None:
            raise NotFoundError(resource="ResourceRequirement", resource_id=requirement_id)
        merged = normalise_requirement_fields({
            "auto_generated_type": requirement.auto_generated_type,
            "source_allocation_id": requirement.source_allocation_id,
            "start_date": requirement.start_date,
            "end_date": requirement.end_date,
            **fields,
        })
        with self.session.begin_nested():
            for key in fields:
                setattr(requirement, key, merged[key])
        return requirement

    def delete_requirement(self, requirement_id):
        requirement = self.get_requirement(requirement_id)
        if requirement is None:
            raise NotFoundError(resource="ResourceRequirement", resource_id=requirement_id)
        with self.session.begin_nested():
            self.session.delete(requirement)

    # ── Leave, projects, role types ──────────────────────────────────────

    def get_leave_period(self, leave_id):
        return self.session.get(LeavePeriod, leave_id)

    def list_person_leave(self, person_id, status=None, start=None, end=None):
        query = self.session.query(LeavePeriod).filter(LeavePeriod.person_id == person_id)
        if status is not None:
            query = query.filter(LeavePeriod.status == getattr(status, "value", status))
        query = _overlapping(query, LeavePeriod, start, end)
        return query.order_by(LeavePeriod.start_date, LeavePeriod.id).all()

    def list_project_ids(self):
        return [row.id for row in self.session.query(Project.id).order_by(Project.id).all()]

    def get_role_type(self, role_type_id):
        return self.session.get(RoleType, role_type_id)

    # ── Transaction boundary ─────────────────────────────────────────────

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()
