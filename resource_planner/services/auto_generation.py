"""
Auto-generation of derived requirements from allocations.

Two kinds of requirement are derived from an allocation:

  - leave_coverage: one per approved leave period of the allocated person
    that overlaps the allocation; covers the intersection window at the
    allocation's percentage.
  - partial_gap: the unfilled remainder when an allocation linked to an
    operator-authored requirement is below 100%.

Entry point ``process_allocation_auto_generation`` runs after every
allocation create/update commits: cleanup first, then leave coverage, then
partial gap. Sub-steps absorb store errors (log and skip); only unexpected
exceptions surface, as ``success=False`` on the result. The primary
allocation write is never undone by a failure here.

Usage:
    from resource_planner.services.auto_generation import process_allocation_auto_generation

    result = process_allocation_auto_generation(store, allocation.id)
    store.commit() if result.success else store.rollback()
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass, field

from resource_planner.core.exceptions import ConflictError, ValidationError
from resource_planner.models.people import LeaveStatus
from resource_planner.models.project import AutoGeneratedType
from resource_planner.services.overlap import intersect_window
from resource_planner.store.base import HANDLED_STORE_ERRORS

logger = logging.getLogger(__name__)


# ── Per-person serialization ─────────────────────────────────────────────────

# person_id -> [lock, holders]; an entry lives only while someone holds or waits on it
_person_locks: dict[int, list] = {}
_registry_lock = threading.Lock()


@contextmanager
def person_cascade_lock(person_id):
    """Serialize cascades touching the same person within this process."""
    with _registry_lock:
        entry = _person_locks.setdefault(person_id, [threading.RLock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _registry_lock:
            entry[1] -= 1
            if entry[1] == 0:
                del _person_locks[person_id]


@dataclass
class AutoGenerationResult:
    """Outcome of one auto-generation run for a single allocation."""

    allocation_id: int
    leave_gaps: list = field(default_factory=list)
    partial_gaps: list = field(default_factory=list)
    deleted: list = field(default_factory=list)
    success: bool = True
    error: str | None = None

    @property
    def created(self):
        return [*self.leave_gaps, *self.partial_gaps]

    def to_dict(self):
        return {
            "allocation_id": self.allocation_id,
            "leave_gaps": [r.to_dict() for r in self.leave_gaps],
            "partial_gaps": [r.to_dict() for r in self.partial_gaps],
            "deleted": list(self.deleted),
            "success": self.success,
            "error": self.error,
        }


def _require_id(value, name):
    if value is None:
        raise ValidationError(f"{name} is required", details={name: "required"})


# ── Cleanup ──────────────────────────────────────────────────────────────────

def cleanup_auto_generated_requirements(store, allocation_id) -> list[int]:
    """
    Delete requirements derived from an allocation that nobody is allocated to.

    Load-bearing requirements (one or more allocations attached) are kept:
    deleting them would orphan real allocations. Returns the deleted ids.
    """
    _require_id(allocation_id, "allocation_id")

    deleted = []
    for requirement in store.list_source_requirements(allocation_id):
        attached = store.list_requirement_allocations(requirement.id)
        if attached:
            logger.debug(
                "Keeping load-bearing requirement %s (%d allocations)",
                requirement.id, len(attached),
                extra={"allocation_id": allocation_id, "requirement_id": requirement.id},
            )
            continue
        store.delete_requirement(requirement.id)
        deleted.append(requirement.id)

    if deleted:
        logger.info(
            "Removed %d auto-generated requirements", len(deleted),
            extra={"allocation_id": allocation_id},
        )
    return deleted


# ── Leave coverage ───────────────────────────────────────────────────────────

def generate_leave_gap_requirements(store, allocation_id) -> list:
    """
    Create one leave-coverage requirement per approved leave overlapping the allocation.

    The requirement window is the intersection of allocation and leave,
    ``required_count`` is ``allocation_percentage / 100`` and the parent is the
    allocation's own requirement. Leave periods are never merged, even when
    their windows coincide; an existing leave-coverage requirement from the
    same allocation with the same window counts as one already-covered leave,
    so re-running never duplicates.
    """
    _require_id(allocation_id, "allocation_id")
    ctx = {"allocation_id": allocation_id}

    try:
        allocation = store.get_allocation(allocation_id)
        if allocation is None:
            logger.info("No allocation found for leave coverage", extra=ctx)
            return []
        approved_leave = store.list_person_leave(
            allocation.person_id,
            status=LeaveStatus.APPROVED,
            start=allocation.start_date,
            end=allocation.end_date,
        )
        if not approved_leave:
            return []
        covered = Counter(
            (r.start_date, r.end_date)
            for r in store.list_source_requirements(allocation.id, AutoGeneratedType.LEAVE_COVERAGE)
        )
    except HANDLED_STORE_ERRORS:
        logger.exception("Could not load allocation/leave for leave coverage", extra=ctx)
        return []

    created = []
    for leave in approved_leave:
        window = intersect_window(allocation.start_date, allocation.end_date, leave.start_date, leave.end_date)
        if window is None:
            continue
        if covered[window] > 0:
            # Each existing requirement satisfies exactly one leave period
            covered[window] -= 1
            logger.debug("Leave coverage already present for %s..%s", *window,
                         extra={**ctx, "leave_id": leave.id})
            continue
        try:
            requirement = store.insert_requirement(
                project_id=allocation.project_id,
                role_type_id=allocation.role_type_id,
                start_date=window[0],
                end_date=window[1],
                required_count=allocation.allocation_percentage / 100,
                auto_generated_type=AutoGeneratedType.LEAVE_COVERAGE,
                source_allocation_id=allocation.id,
                parent_requirement_id=allocation.requirement_id,
            )
        except HANDLED_STORE_ERRORS:
            logger.exception("Skipping leave period: coverage requirement not created",
                             extra={**ctx, "leave_id": leave.id})
            continue
        created.append(requirement)
        logger.info("Created leave coverage requirement %s for %s..%s", requirement.id, *window,
                    extra={**ctx, "leave_id": leave.id, "requirement_id": requirement.id})

    return created


# ── Partial gap ──────────────────────────────────────────────────────────────

def generate_partial_allocation_gaps(store, allocation_id) -> list:
    """
    Create the partial-gap requirement for an allocation below 100%.

    Applies only when the allocation is linked to an operator-authored
    requirement; auto-generated parents never spawn partial gaps. Idempotent:
    an existing partial gap for the allocation is returned unchanged.
    """
    _require_id(allocation_id, "allocation_id")
    ctx = {"allocation_id": allocation_id}

    try:
        allocation = store.get_allocation(allocation_id)
        if allocation is None or allocation.requirement_id is None:
            return []

        parent = store.get_requirement(allocation.requirement_id)
        if parent is None:
            logger.warning("Parent requirement %s missing", allocation.requirement_id, extra=ctx)
            return []
        if parent.auto_generated_type is not None:
            logger.debug("Parent requirement is auto-generated, no partial gap", extra=ctx)
            return []

        if allocation.allocation_percentage >= 100:
            return []

        existing = store.list_source_requirements(allocation.id, AutoGeneratedType.PARTIAL_GAP)
        if existing:
            return existing
    except HANDLED_STORE_ERRORS:
        logger.exception("Could not load allocation/requirement for partial gap", extra=ctx)
        return []

    try:
        requirement = store.insert_requirement(
            project_id=allocation.project_id,
            role_type_id=allocation.role_type_id,
            start_date=allocation.start_date,
            end_date=allocation.end_date,
            required_count=(100 - allocation.allocation_percentage) / 100,
            auto_generated_type=AutoGeneratedType.PARTIAL_GAP,
            source_allocation_id=allocation.id,
            parent_requirement_id=allocation.requirement_id,
        )
    except ConflictError:
        # Created by a concurrent run between our check and our write
        logger.info("Partial gap already exists", extra=ctx)
        try:
            return store.list_source_requirements(allocation.id, AutoGeneratedType.PARTIAL_GAP)
        except HANDLED_STORE_ERRORS:
            logger.exception("Could not reload existing partial gap", extra=ctx)
            return []
    except HANDLED_STORE_ERRORS:
        logger.exception("Partial gap requirement not created", extra=ctx)
        return []

    logger.info("Created partial gap requirement %s (%.2f people)",
                requirement.id, requirement.required_count,
                extra={**ctx, "requirement_id": requirement.id})
    return [requirement]


# ── Entry point ──────────────────────────────────────────────────────────────

def process_allocation_auto_generation(store, allocation_id) -> AutoGenerationResult:
    """Cleanup then regenerate every derived requirement of one allocation.

    Raises ValidationError when ``allocation_id`` is missing. Any other
    failure is logged and returned as ``success=False``.
    """
    _require_id(allocation_id, "allocation_id")
    result = AutoGenerationResult(allocation_id=allocation_id)

    try:
        allocation = store.get_allocation(allocation_id)
        lock = person_cascade_lock(allocation.person_id) if allocation is not None else nullcontext()
        with lock:
            result.deleted = cleanup_auto_generated_requirements(store, allocation_id)
            result.leave_gaps = generate_leave_gap_requirements(store, allocation_id)
            result.partial_gaps = generate_partial_allocation_gaps(store, allocation_id)
    except ValidationError:
        raise
    except Exception as exc:
        logger.exception("Auto-generation failed", extra={"allocation_id": allocation_id})
        return AutoGenerationResult(allocation_id=allocation_id, success=False, error=str(exc))

    return result
