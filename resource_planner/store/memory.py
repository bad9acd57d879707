"""Dict-backed adapter for the persistence port.

Holds transient (never session-attached) ORM instances so rows look exactly
like the ones ``SqlAlchemyStore`` returns, ``to_dict()`` included. Enforces
the same invariants as the database schema: the auto-generated source rule
and at most one partial-gap requirement per source allocation.

Used by the engine unit tests and handy for scripted what-if runs.
"""

from __future__ import annotations

from itertools import count

from resource_planner.core.exceptions import ConflictError, NotFoundError
from resource_planner.models.people import LeavePeriod, LeaveStatus, Person, RoleType
from resource_planner.models.project import (
    AutoGeneratedType,
    Project,
    ProjectAllocation,
    ResourceRequirement,
)
from resource_planner.store.base import normalise_requirement_fields


def _in_window(row, start, end):
    if start is not None and row.end_date < start:
        return False
    if end is not None and row.start_date > end:
        return False
    return True


def _by_start(rows):
    return sorted(rows, key=lambda r: (r.start_date, r.id))


class InMemoryStore:
    """Persistence port over plain dictionaries."""

    def __init__(self):
        self._ids = count(1)
        self.role_types: dict[int, RoleType] = {}
        self.people: dict[int, Person] = {}
        self.projects: dict[int, Project] = {}
        self.requirements: dict[int, ResourceRequirement] = {}
        self.allocations: dict[int, ProjectAllocation] = {}
        self.leave_periods: dict[int, LeavePeriod] = {}
        self.commits = 0
        self.rollbacks = 0

    def _next_id(self):
        return next(self._ids)

    # ── Seeding helpers (no counterpart on the port) ─────────────────────

    def add_role_type(self, name, description=None):
        role_type = RoleType(id=self._next_id(), name=name, description=description)
        self.role_types[role_type.id] = role_type
        return role_type

    def add_person(self, name, role_type_id):
        person = Person(id=self._next_id(), name=name, role_type_id=role_type_id)
        self.people[person.id] = person
        return person

    def add_project(self, name, start_date, end_date):
        project = Project(id=self._next_id(), name=name, start_date=start_date, end_date=end_date)
        self.projects[project.id] = project
        return project

    def add_leave_period(self, person_id, start_date, end_date, status=LeaveStatus.PENDING, notes=None):
        leave = LeavePeriod(
            id=self._next_id(), person_id=person_id,
            start_date=start_date, end_date=end_date,
            status=getattr(status, "value", status), notes=notes,
        )
        self.leave_periods[leave.id] = leave
        return leave

    def set_leave_status(self, leave_id, status):
        leave = self.leave_periods[leave_id]
        leave.status = getattr(status, "value", status)
        return leave

    def remove_leave_period(self, leave_id):
        return self.leave_periods.pop(leave_id)

    # ── Allocations ──────────────────────────────────────────────────────

    def get_allocation(self, allocation_id):
        return self.allocations.get(allocation_id)

    def list_person_allocations(self, person_id, start=None, end=None):
        return _by_start(
            a for a in self.allocations.values()
            if a.person_id == person_id and _in_window(a, start, end)
        )

    def list_requirement_allocations(self, requirement_id):
        return [a for a in self.allocations.values() if a.requirement_id == requirement_id]

    def list_project_allocations(self, project_id):
        return _by_start(a for a in self.allocations.values() if a.project_id == project_id)

    def list_all_allocations(self):
        return _by_start(self.allocations.values())

    def insert_allocation(self, **fields):
        fields.setdefault("requirement_id", None)
        allocation = ProjectAllocation(id=self._next_id(), **fields)
        self.allocations[allocation.id] = allocation
        return allocation

    def update_allocation(self, allocation_id, **fields):
        allocation = self.allocations.get(allocation_id)
        if allocation is None:
            raise NotFoundError(resource="ProjectAllocation", resource_id=allocation_id)
        for key, value in fields.items():
            setattr(allocation, key, value)
        return allocation

    def delete_allocation(self, allocation_id):
        if self.allocations.pop(allocation_id, None) is None:
            raise NotFoundError(resource="ProjectAllocation", resource_id=allocation_id)

    def orphan_allocations(self, requirement_id):
        orphaned = self.list_requirement_allocations(requirement_id)
        for allocation in orphaned:
            allocation.requirement_id = None
        return len(orphaned)

    # ── Requirements ─────────────────────────────────────────────────────

    def get_requirement(self, requirement_id):
        return self.requirements.get(requirement_id)

    def list_project_requirements(self, project_id):
        return _by_start(r for r in self.requirements.values() if r.project_id == project_id)

    def list_source_requirements(self, allocation_id, auto_generated_type=None):
        kind = getattr(auto_generated_type, "value", auto_generated_type)
        return [
            r for r in self.requirements.values()
            if r.source_allocation_id == allocation_id
            and r.auto_generated_type is not None
            and (kind is None or r.auto_generated_type == kind)
        ]

    def list_auto_generated_children(self, parent_requirement_id):
        return [
            r for r in self.requirements.values()
            if r.parent_requirement_id == parent_requirement_id and r.auto_generated_type is not None
        ]

    def insert_requirement(self, **fields):
        fields = normalise_requirement_fields(fields)
        if fields.get("auto_generated_type") == AutoGeneratedType.PARTIAL_GAP.value:
            if self.list_source_requirements(fields["source_allocation_id"], AutoGeneratedType.PARTIAL_GAP):
                raise ConflictError(
                    resource="ResourceRequirement",
                    field="source_allocation_id",
                    value=fields["source_allocation_id"],
                )
        fields.setdefault("auto_generated_type", None)
        fields.setdefault("source_allocation_id", None)
        fields.setdefault("parent_requirement_id", None)
        fields.setdefault("ignored", False)
        requirement = ResourceRequirement(id=self._next_id(), **fields)
        self.requirements[requirement.id] = requirement
        return requirement

    def update_requirement(self, requirement_id, **fields):
        requirement = self.requirements.get(requirement_id)
        if requirement is None:
            raise NotFoundError(resource="ResourceRequirement", resource_id=requirement_id)
        merged = normalise_requirement_fields({
            "auto_generated_type": requirement.auto_generated_type,
            "source_allocation_id": requirement.source_allocation_id,
            "start_date": requirement.start_date,
            "end_date": requirement.end_date,
            **fields,
        })
        for key in fields:
            setattr(requirement, key, merged[key])
        return requirement

    def delete_requirement(self, requirement_id):
        if self.requirements.pop(requirement_id, None) is None:
            raise NotFoundError(resource="ResourceRequirement", resource_id=requirement_id)
        # Mirrors ON DELETE SET NULL on project_allocations.requirement_id
        self.orphan_allocations(requirement_id)

    # ── Leave, projects, role types ──────────────────────────────────────

    def get_leave_period(self, leave_id):
        return self.leave_periods.get(leave_id)

    def list_person_leave(self, person_id, status=None, start=None, end=None):
        status = getattr(status, "value", status)
        return _by_start(
            lp for lp in self.leave_periods.values()
            if lp.person_id == person_id
            and (status is None or lp.status == status)
            and _in_window(lp, start, end)
        )

    def list_project_ids(self):
        return sorted(self.projects)

    def get_role_type(self, role_type_id):
        return self.role_types.get(role_type_id)

    # ── Transaction boundary ─────────────────────────────────────────────

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1
