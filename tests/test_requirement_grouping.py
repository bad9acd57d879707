from datetime import date

from resource_planner.models.project import AutoGeneratedType
from resource_planner.services.requirement_grouping import group_requirements


def _row(rid, parent=None, kind=None):
    return {
        "id": rid,
        "parent_requirement_id": parent,
        "auto_generated_type": kind,
        "required_count": 1,
    }


def test_children_nested_under_parent():
    flat = [_row(1), _row(2, parent=1, kind="partial_gap"), _row(3), _row(4, parent=1, kind="leave_coverage")]

    tree = group_requirements(flat)

    assert [n["id"] for n in tree] == [1, 3]
    assert [c["id"] for c in tree[0]["children"]] == [2, 4]
    assert tree[1]["children"] == []


def test_orphaned_child_surfaces_at_top_level():
    tree = group_requirements([_row(1), _row(7, parent=99, kind="partial_gap")])

    assert [n["id"] for n in tree] == [1, 7]
    assert tree[1]["children"] == []


def test_input_not_mutated():
    flat = [_row(1), _row(2, parent=1)]
    group_requirements(flat)
    assert "children" not in flat[0]


def test_empty():
    assert group_requirements([]) == []


def test_accepts_rows_with_to_dict(store, project_p, engineer, person_x):
    parent = store.insert_requirement(
        project_id=project_p.id, role_type_id=engineer.id,
        start_date=date(2024, 2, 1), end_date=date(2024, 2, 28), required_count=1,
    )
    allocation = store.insert_allocation(
        project_id=project_p.id, person_id=person_x.id, role_type_id=engineer.id,
        requirement_id=parent.id, allocation_percentage=50,
        start_date=date(2024, 2, 1), end_date=date(2024, 2, 28),
    )
    child = store.insert_requirement(
        project_id=project_p.id, role_type_id=engineer.id,
        start_date=date(2024, 2, 1), end_date=date(2024, 2, 28), required_count=0.5,
        auto_generated_type=AutoGeneratedType.PARTIAL_GAP, source_allocation_id=allocation.id,
        parent_requirement_id=parent.id,
    )

    tree = group_requirements(store.list_project_requirements(project_p.id))

    assert len(tree) == 1
    assert tree[0]["id"] == parent.id
    assert [c["id"] for c in tree[0]["children"]] == [child.id]


def test_child_of_child_surfaces_at_top_level():
    flat = [_row(1), _row(2, parent=1, kind="partial_gap"), _row(3, parent=2, kind="leave_coverage")]

    tree = group_requirements(flat)

    assert [n["id"] for n in tree] == [1, 3]
    assert [c["id"] for c in tree[0]["children"]] == [2]
    seen = [n["id"] for n in tree] + [c["id"] for n in tree for c in n["children"]]
    assert sorted(seen) == [1, 2, 3]
