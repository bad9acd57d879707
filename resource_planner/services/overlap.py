"""Date-window overlap and utilization calculations.

``has_overlap`` is the single overlap primitive used everywhere: allocations
against requirements, allocations against leave, leave against allocation
windows. All bounds are inclusive.

Two deliberately different views of a person's load live here:

- ``person_utilization`` sums overlapping allocations and caps the result
  for single-number display.
- ``over_allocated_people`` compares allocations pairwise and reports the
  uncapped combined percentage whenever it exceeds 100.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date

from flask import current_app, has_app_context

from resource_planner.core.exceptions import ValidationError
from resource_planner.models.people import LeaveStatus

logger = logging.getLogger(__name__)

DEFAULT_UTILIZATION_CAP = 100.0


def has_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    """True iff ``[start_a, end_a]`` and ``[start_b, end_b]`` share at least one day."""
    return start_a <= end_b and end_a >= start_b


def intersect_window(start_a: date, end_a: date, start_b: date, end_b: date) -> tuple[date, date] | None:
    """Return the shared window of two inclusive ranges, or None if they are disjoint."""
    start = max(start_a, start_b)
    end = min(end_a, end_b)
    if start > end:
        return None
    return start, end


def _utilization_cap() -> float:
    if has_app_context():
        return float(current_app.config.get("UTILIZATION_CAP", DEFAULT_UTILIZATION_CAP))
    return DEFAULT_UTILIZATION_CAP


def person_utilization(store, person_id: int, range_start: date, range_end: date) -> float:
    """
    Sum of allocation percentages for a person's allocations overlapping the range.

    Capped at UTILIZATION_CAP (100 by default); use ``over_allocated_people``
    when the magnitude of over-allocation matters.
    """
    if range_start is None or range_end is None:
        raise ValidationError("start and end are required", details={"start": "required", "end": "required"})
    if range_end < range_start:
        raise ValidationError("end must not be before start", details={"end": "before start"})

    total = 0.0
    for allocation in store.list_person_allocations(person_id, range_start, range_end):
        if has_overlap(allocation.start_date, allocation.end_date, range_start, range_end):
            total += allocation.allocation_percentage or 0
    return min(total, _utilization_cap())


def over_allocated_people(store) -> list[dict]:
    """
    Detect overlapping allocation pairs whose combined percentage exceeds 100.

    One entry per conflicting pair:
        {"person_id", "person_name", "total_allocation", "conflicting_allocations": [a, b]}
    """
    by_person = defaultdict(list)
    for allocation in store.list_all_allocations():
        if allocation.person_id is None or not allocation.start_date or not allocation.end_date:
            continue
        by_person[allocation.person_id].append(allocation)

    conflicts = []
    for person_id, allocations in by_person.items():
        for i, first in enumerate(allocations):
            for second in allocations[i + 1:]:
                if not has_overlap(first.start_date, first.end_date, second.start_date, second.end_date):
                    continue
                total = (first.allocation_percentage or 0) + (second.allocation_percentage or 0)
                if total > 100:
                    person = getattr(first, "person", None)
                    conflicts.append({
                        "person_id": person_id,
                        "person_name": person.name if person else None,
                        "total_allocation": total,
                        "conflicting_allocations": [first.to_dict(), second.to_dict()],
                    })

    if conflicts:
        logger.debug("Found %d over-allocation conflicts", len(conflicts))
    return conflicts


def person_leave_conflicts(store, person_id: int, start: date, end: date) -> dict:
    """Leave periods overlapping ``[start, end]``, partitioned by status."""
    conflicts = {status.value: [] for status in LeaveStatus}
    for leave in store.list_person_leave(person_id, start=start, end=end):
        conflicts.setdefault(leave.status, []).append(leave.to_dict())
    return conflicts
