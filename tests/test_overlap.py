"""
Overlap primitive, utilization and over-allocation detection.

Covers:
    - inclusive-bound overlap, symmetry over a grid of windows
    - intersection window
    - capped utilization (two 60% allocations → 100)
    - uncapped pairwise over-allocation report
    - leave conflicts partitioned by status
"""

from datetime import date, timedelta
from itertools import product

import pytest

from resource_planner.core.exceptions import ValidationError
from resource_planner.models.people import LeaveStatus
from resource_planner.services.overlap import (
    has_overlap,
    intersect_window,
    over_allocated_people,
    person_leave_conflicts,
    person_utilization,
)

D = date(2024, 4, 1)


def _windows():
    offsets = [(0, 0), (0, 5), (3, 9), (5, 5), (6, 12), (10, 20)]
    return [(D + timedelta(days=a), D + timedelta(days=b)) for a, b in offsets]


class TestHasOverlap:
    def test_symmetry(self):
        for (a_start, a_end), (b_start, b_end) in product(_windows(), repeat=2):
            assert has_overlap(a_start, a_end, b_start, b_end) == has_overlap(b_start, b_end, a_start, a_end)

    def test_touching_bounds_overlap(self):
        assert has_overlap(date(2024, 1, 1), date(2024, 1, 10), date(2024, 1, 10), date(2024, 1, 20))

    def test_adjacent_windows_do_not_overlap(self):
        assert not has_overlap(date(2024, 1, 1), date(2024, 1, 9), date(2024, 1, 10), date(2024, 1, 20))

    def test_single_day_inside(self):
        assert has_overlap(date(2024, 1, 5), date(2024, 1, 5), date(2024, 1, 1), date(2024, 1, 31))


class TestIntersectWindow:
    def test_partial(self):
        assert intersect_window(
            date(2024, 3, 1), date(2024, 3, 31), date(2024, 3, 10), date(2024, 4, 15),
        ) == (date(2024, 3, 10), date(2024, 3, 31))

    def test_disjoint(self):
        assert intersect_window(date(2024, 3, 1), date(2024, 3, 5), date(2024, 3, 6), date(2024, 3, 9)) is None

    def test_agrees_with_has_overlap(self):
        for (a_start, a_end), (b_start, b_end) in product(_windows(), repeat=2):
            window = intersect_window(a_start, a_end, b_start, b_end)
            assert (window is not None) == has_overlap(a_start, a_end, b_start, b_end)


class TestPersonUtilization:
    def test_capped_at_100(self, store, person_x, engineer):
        p1 = store.add_project("A", date(2024, 1, 1), date(2024, 12, 31))
        p2 = store.add_project("B", date(2024, 1, 1), date(2024, 12, 31))
        for project in (p1, p2):
            store.insert_allocation(
                project_id=project.id, person_id=person_x.id, role_type_id=engineer.id,
                allocation_percentage=60, start_date=date(2024, 4, 1), end_date=date(2024, 4, 10),
            )
        assert person_utilization(store, person_x.id, date(2024, 4, 1), date(2024, 4, 10)) == 100

    def test_only_overlapping_allocations_count(self, store, person_x, engineer, project_p):
        store.insert_allocation(
            project_id=project_p.id, person_id=person_x.id, role_type_id=engineer.id,
            allocation_percentage=40, start_date=date(2024, 2, 1), end_date=date(2024, 2, 28),
        )
        store.insert_allocation(
            project_id=project_p.id, person_id=person_x.id, role_type_id=engineer.id,
            allocation_percentage=30, start_date=date(2024, 5, 1), end_date=date(2024, 5, 31),
        )
        assert person_utilization(store, person_x.id, date(2024, 2, 15), date(2024, 3, 15)) == 40

    def test_no_allocations(self, store, person_x):
        assert person_utilization(store, person_x.id, date(2024, 1, 1), date(2024, 1, 31)) == 0

    def test_reversed_range_rejected(self, store, person_x):
        with pytest.raises(ValidationError):
            person_utilization(store, person_x.id, date(2024, 2, 1), date(2024, 1, 1))

    def test_cap_from_config(self, app, store, person_x, engineer, project_p):
        store.insert_allocation(
            project_id=project_p.id, person_id=person_x.id, role_type_id=engineer.id,
            allocation_percentage=90, start_date=date(2024, 2, 1), end_date=date(2024, 2, 28),
        )
        app.config["UTILIZATION_CAP"] = 80
        try:
            assert person_utilization(store, person_x.id, date(2024, 2, 1), date(2024, 2, 28)) == 80
        finally:
            app.config["UTILIZATION_CAP"] = 100.0


class TestOverAllocatedPeople:
    def test_reports_uncapped_total(self, store, person_x, engineer, project_p):
        for pct in (60, 60):
            store.insert_allocation(
                project_id=project_p.id, person_id=person_x.id, role_type_id=engineer.id,
                allocation_percentage=pct, start_date=date(2024, 4, 1), end_date=date(2024, 4, 10),
            )
        conflicts = over_allocated_people(store)
        assert len(conflicts) == 1
        assert conflicts[0]["person_id"] == person_x.id
        assert conflicts[0]["total_allocation"] == 120
        assert len(conflicts[0]["conflicting_allocations"]) == 2

    def test_exactly_100_is_not_a_conflict(self, store, person_x, engineer, project_p):
        for pct in (50, 50):
            store.insert_allocation(
                project_id=project_p.id, person_id=person_x.id, role_type_id=engineer.id,
                allocation_percentage=pct, start_date=date(2024, 4, 1), end_date=date(2024, 4, 10),
            )
        assert over_allocated_people(store) == []

    def test_non_overlapping_allocations_ignored(self, store, person_x, engineer, project_p):
        store.insert_allocation(
            project_id=project_p.id, person_id=person_x.id, role_type_id=engineer.id,
            allocation_percentage=100, start_date=date(2024, 4, 1), end_date=date(2024, 4, 10),
        )
        store.insert_allocation(
            project_id=project_p.id, person_id=person_x.id, role_type_id=engineer.id,
            allocation_percentage=100, start_date=date(2024, 4, 11), end_date=date(2024, 4, 20),
        )
        assert over_allocated_people(store) == []


class TestPersonLeaveConflicts:
    def test_partitioned_by_status(self, store, person_x):
        store.add_leave_period(person_x.id, date(2024, 3, 1), date(2024, 3, 3), LeaveStatus.APPROVED)
        store.add_leave_period(person_x.id, date(2024, 3, 5), date(2024, 3, 6), LeaveStatus.PENDING)
        store.add_leave_period(person_x.id, date(2024, 5, 1), date(2024, 5, 2), LeaveStatus.APPROVED)

        conflicts = person_leave_conflicts(store, person_x.id, date(2024, 3, 1), date(2024, 3, 31))

        assert len(conflicts["approved"]) == 1
        assert len(conflicts["pending"]) == 1
        assert conflicts["unapproved"] == []
