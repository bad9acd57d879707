"""
Leave-change cascade.

Keeps leave-coverage requirements consistent when leave periods change:

  created          → derive coverage for overlapping allocations
                     (no-op until the leave is approved)
  status approved  → derive coverage for overlapping allocations
  status unapproved→ retract unallocated coverage overlapping this leave
  status pending   → nothing
  deleted          → retract (approved leave only)
  dates changed    → retract for the old window, derive for the new one

Call each handler after the leave mutation has been committed. Handlers are
idempotent; coverage creation is deduplicated per (allocation, window) so a
repeated approval never doubles requirements. Retraction keeps requirements
somebody is allocated to, and afterwards re-derives coverage still owed to
other approved leave of the same person.

Usage:
    from resource_planner.services import leave_cascade

    result = leave_cascade.on_leave_status_changed(store, person_id, leave.id, "approved")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from resource_planner.core.exceptions import ValidationError
from resource_planner.models.people import LeaveStatus
from resource_planner.models.project import AutoGeneratedType
from resource_planner.services.auto_generation import (
    generate_leave_gap_requirements,
    person_cascade_lock,
)
from resource_planner.services.overlap import has_overlap
from resource_planner.store.base import HANDLED_STORE_ERRORS

logger = logging.getLogger(__name__)


@dataclass
class CascadeResult:
    """Outcome of one leave cascade run."""

    leave_id: int | None
    allocation_ids: list = field(default_factory=list)
    created: list = field(default_factory=list)
    deleted: list = field(default_factory=list)
    success: bool = True
    error: str | None = None

    def to_dict(self):
        return {
            "leave_id": self.leave_id,
            "allocation_ids": list(self.allocation_ids),
            "created": [r.to_dict() for r in self.created],
            "deleted": list(self.deleted),
            "success": self.success,
            "error": self.error,
        }


def parse_leave_status(value) -> LeaveStatus:
    """Coerce a status string to LeaveStatus or raise ValidationError."""
    try:
        return LeaveStatus(getattr(value, "value", value))
    except ValueError:
        raise ValidationError(
            f"Invalid leave status {value!r}",
            details={"status": f"one of {sorted(s.value for s in LeaveStatus)}"},
        ) from None


def _require(value, name):
    if value is None:
        raise ValidationError(f"{name} is required", details={name: "required"})


def _note(result, allocation):
    if allocation.id not in result.allocation_ids:
        result.allocation_ids.append(allocation.id)


def _derive(store, allocations, result):
    for allocation in allocations:
        _note(result, allocation)
        result.created.extend(generate_leave_gap_requirements(store, allocation.id))


def _retract(store, allocations, start, end, result):
    """Delete unallocated leave-coverage requirements overlapping ``[start, end]``."""
    for allocation in allocations:
        _note(result, allocation)
        ctx = {"allocation_id": allocation.id}
        try:
            coverage = store.list_source_requirements(allocation.id, AutoGeneratedType.LEAVE_COVERAGE)
        except HANDLED_STORE_ERRORS:
            logger.exception("Could not load leave coverage for retraction", extra=ctx)
            continue

        for requirement in coverage:
            if not has_overlap(requirement.start_date, requirement.end_date, start, end):
                continue
            try:
                attached = store.list_requirement_allocations(requirement.id)
                if attached:
                    logger.info("Keeping leave coverage requirement %s (%d allocations)",
                                requirement.id, len(attached),
                                extra={**ctx, "requirement_id": requirement.id})
                    continue
                store.delete_requirement(requirement.id)
            except HANDLED_STORE_ERRORS:
                logger.exception("Could not retract leave coverage requirement %s", requirement.id,
                                 extra={**ctx, "requirement_id": requirement.id})
                continue
            result.deleted.append(requirement.id)
            logger.info("Retracted leave coverage requirement %s", requirement.id,
                        extra={**ctx, "requirement_id": requirement.id})


def _retract_window(store, person_id, start, end, result):
    allocations = store.list_person_allocations(person_id, start, end)
    _retract(store, allocations, start, end, result)
    # Coverage owed to another approved leave overlapping the same window
    _derive(store, allocations, result)


def _load_leave(store, person_id, leave_id):
    leave = store.get_leave_period(leave_id)
    if leave is None:
        logger.warning("Leave period not found, nothing to cascade",
                       extra={"person_id": person_id, "leave_id": leave_id})
        return None
    if leave.person_id != person_id:
        raise ValidationError(
            f"Leave period {leave_id} does not belong to person {person_id}",
            details={"person_id": "mismatch"},
        )
    return leave


def _run(name, person_id, leave_id, body):
    """Execute a cascade body under the person lock with entrypoint error policy."""
    result = CascadeResult(leave_id=leave_id)
    try:
        with person_cascade_lock(person_id):
            body(result)
    except ValidationError:
        raise
    except Exception as exc:
        logger.exception("Leave cascade %s failed", name,
                         extra={"person_id": person_id, "leave_id": leave_id})
        return CascadeResult(
            leave_id=leave_id,
            allocation_ids=result.allocation_ids,
            success=False,
            error=str(exc),
        )
    logger.info("Leave cascade %s: %d allocations, %d created, %d deleted", name,
                len(result.allocation_ids), len(result.created), len(result.deleted),
                extra={"person_id": person_id, "leave_id": leave_id})
    return result


# ── Entry points ─────────────────────────────────────────────────────────────

def on_leave_created(store, person_id, leave_id) -> CascadeResult:
    """Derive coverage for allocations overlapping a new leave period.

    Runs regardless of the new leave's status; derivation only considers
    approved leave, so a pending leave produces nothing until approval.
    """
    _require(person_id, "person_id")
    _require(leave_id, "leave_id")

    def body(result):
        leave = _load_leave(store, person_id, leave_id)
        if leave is None:
            return
        allocations = store.list_person_allocations(person_id, leave.start_date, leave.end_date)
        _derive(store, allocations, result)

    return _run("created", person_id, leave_id, body)


def on_leave_status_changed(store, person_id, leave_id, new_status) -> CascadeResult:
    """React to a leave status transition (approved / unapproved / pending)."""
    _require(person_id, "person_id")
    _require(leave_id, "leave_id")
    status = parse_leave_status(new_status)

    def body(result):
        if status is LeaveStatus.PENDING:
            return
        leave = _load_leave(store, person_id, leave_id)
        if leave is None:
            return
        if status is LeaveStatus.APPROVED:
            allocations = store.list_person_allocations(person_id, leave.start_date, leave.end_date)
            _derive(store, allocations, result)
        else:
            _retract_window(store, person_id, leave.start_date, leave.end_date, result)

    return _run(f"status->{status.value}", person_id, leave_id, body)


def on_leave_deleted(store, person_id, deleted_leave) -> CascadeResult:
    """Retract coverage attributable to a deleted approved leave period.

    ``deleted_leave`` is the row (or any object with ``id``, ``status``,
    ``start_date`` and ``end_date``) as it was before deletion.
    """
    _require(person_id, "person_id")
    _require(deleted_leave, "deleted_leave")
    if deleted_leave.start_date is None or deleted_leave.end_date is None:
        raise ValidationError("deleted leave needs start_date and end_date",
                              details={"start_date": "required", "end_date": "required"})
    leave_id = getattr(deleted_leave, "id", None)

    def body(result):
        if deleted_leave.status != LeaveStatus.APPROVED.value:
            return
        _retract_window(store, person_id, deleted_leave.start_date, deleted_leave.end_date, result)

    return _run("deleted", person_id, leave_id, body)


def on_leave_updated(store, person_id, previous_leave, leave_id) -> CascadeResult:
    """Move coverage when an approved leave period's dates change."""
    _require(person_id, "person_id")
    _require(previous_leave, "previous_leave")
    _require(leave_id, "leave_id")

    def body(result):
        if previous_leave.status == LeaveStatus.APPROVED.value:
            _retract_window(store, person_id, previous_leave.start_date, previous_leave.end_date, result)
        leave = _load_leave(store, person_id, leave_id)
        if leave is None:
            return
        allocations = store.list_person_allocations(person_id, leave.start_date, leave.end_date)
        _derive(store, allocations, result)

    return _run("updated", person_id, leave_id, body)
