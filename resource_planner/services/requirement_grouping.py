"""Parent/child tree view of a project's requirements, for display."""

from __future__ import annotations


def _as_dict(item) -> dict:
    return item if isinstance(item, dict) else item.to_dict()


def group_requirements(flat) -> list[dict]:
    """
    Nest auto-generated children under their parent requirement.

    Parents are the rows without a ``parent_requirement_id``. Input order is
    preserved for parents and for children within a parent. A child whose
    parent is not one of those rows (missing, or itself a child) is surfaced
    at the top level so it stays visible. Does not mutate the input.
    """
    rows = [_as_dict(item) for item in flat]
    parent_ids = {row["id"] for row in rows if row.get("parent_requirement_id") is None}

    nodes: list[dict] = []
    children: dict[int, list[dict]] = {}
    for row in rows:
        parent_id = row.get("parent_requirement_id")
        if parent_id is not None and parent_id in parent_ids:
            children.setdefault(parent_id, []).append({**row, "children": []})
        else:
            nodes.append(row)

    return [{**row, "children": children.get(row["id"], [])} for row in nodes]
