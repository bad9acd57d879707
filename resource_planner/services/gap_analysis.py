"""Gap analysis: required versus staffed capacity per requirement.

Read-only. For each non-ignored requirement the analyzer matches

  - direct allocations   (``allocation.requirement_id == requirement.id``)
  - legacy allocations   (no requirement link, same role type, overlapping window)

and subtracts what has been split off into partial-gap children, so that a
60% allocation against a one-person requirement reports its 0.4 shortfall
once, on the partial-gap requirement, and not a second time on the parent.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date, timedelta

from flask import current_app, has_app_context

from resource_planner.models.project import AutoGeneratedType
from resource_planner.services.overlap import has_overlap

logger = logging.getLogger(__name__)

# Gap arithmetic works on fractional headcounts (0.6 + 0.4); round away float noise
GAP_PRECISION = 6

DEFAULT_CRITICAL_GAP_THRESHOLD = 2.0
DEFAULT_CRITICAL_GAP_HORIZON_DAYS = 30


@dataclass(frozen=True)
class ProjectGap:
    """Shortfall for a single requirement. Only built when ``gap_count > 0``."""

    requirement_id: int
    project_id: int
    role_type_id: int
    role_type_name: str | None
    required_count: float
    allocated_count: float
    delegated_count: float
    gap_count: float
    start_date: date
    end_date: date
    auto_generated_type: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["start_date"] = self.start_date.isoformat()
        data["end_date"] = self.end_date.isoformat()
        return data


def _matching_allocations(requirement, allocations):
    direct = [a for a in allocations if a.requirement_id == requirement.id]
    direct_ids = {a.id for a in direct}
    legacy = [
        a for a in allocations
        if a.requirement_id is None
        and a.id not in direct_ids
        and a.role_type_id == requirement.role_type_id
        and a.start_date and a.end_date
        and has_overlap(a.start_date, a.end_date, requirement.start_date, requirement.end_date)
    ]
    return direct + legacy


def compute_project_gaps(store, project_id: int) -> list[ProjectGap]:
    """Return the positive gaps of every requirement in a project (unordered)."""
    requirements = store.list_project_requirements(project_id)
    if not requirements:
        return []
    allocations = store.list_project_allocations(project_id)

    delegated_by_parent: dict[int, float] = {}
    for req in requirements:
        if req.auto_generated_type == AutoGeneratedType.PARTIAL_GAP.value and req.parent_requirement_id:
            delegated_by_parent[req.parent_requirement_id] = (
                delegated_by_parent.get(req.parent_requirement_id, 0.0) + (req.required_count or 0)
            )

    role_names: dict[int, str | None] = {}
    gaps = []
    for req in requirements:
        if req.ignored or not req.role_type_id or not req.start_date or not req.end_date:
            continue

        matching = _matching_allocations(req, allocations)
        allocated = sum((a.allocation_percentage or 0) / 100 for a in matching)
        delegated = delegated_by_parent.get(req.id, 0.0)
        gap = round((req.required_count or 0) - allocated - delegated, GAP_PRECISION)
        if gap <= 0:
            continue

        if req.role_type_id not in role_names:
            role_type = store.get_role_type(req.role_type_id)
            role_names[req.role_type_id] = role_type.name if role_type else None

        gaps.append(ProjectGap(
            requirement_id=req.id,
            project_id=req.project_id,
            role_type_id=req.role_type_id,
            role_type_name=role_names[req.role_type_id],
            required_count=req.required_count,
            allocated_count=round(allocated, GAP_PRECISION),
            delegated_count=round(delegated, GAP_PRECISION),
            gap_count=gap,
            start_date=req.start_date,
            end_date=req.end_date,
            auto_generated_type=req.auto_generated_type,
        ))
    return gaps


def all_project_gaps(store) -> list[dict]:
    """Whole-organisation sweep: ``[{"project_id", "gaps"}]`` for projects with gaps."""
    result = []
    for project_id in store.list_project_ids():
        gaps = compute_project_gaps(store, project_id)
        if gaps:
            result.append({"project_id": project_id, "gaps": gaps})
    return result


def gaps_by_role_type(store, role_type_id: int) -> list[ProjectGap]:
    """All gaps across projects for a single role type."""
    return [
        gap
        for entry in all_project_gaps(store)
        for gap in entry["gaps"]
        if gap.role_type_id == role_type_id
    ]


def _summary_settings():
    if has_app_context():
        cfg = current_app.config
        return (
            float(cfg.get("CRITICAL_GAP_THRESHOLD", DEFAULT_CRITICAL_GAP_THRESHOLD)),
            int(cfg.get("CRITICAL_GAP_HORIZON_DAYS", DEFAULT_CRITICAL_GAP_HORIZON_DAYS)),
        )
    return DEFAULT_CRITICAL_GAP_THRESHOLD, DEFAULT_CRITICAL_GAP_HORIZON_DAYS


def gap_summary(store, today: date | None = None) -> dict:
    """
    Dashboard roll-up of every gap in the organisation.

    Returns:
        {"total_gaps": int,
         "gaps_by_role": [{"role_type_id", "role_type_name", "total_gap"}],
         "critical_gaps": [ProjectGap]}

    A gap is critical when it exceeds CRITICAL_GAP_THRESHOLD people or starts
    within CRITICAL_GAP_HORIZON_DAYS of ``today``.
    """
    today = today or date.today()
    threshold, horizon_days = _summary_settings()
    horizon = today + timedelta(days=horizon_days)

    flat = [gap for entry in all_project_gaps(store) for gap in entry["gaps"]]

    by_role: dict[int, dict] = {}
    for gap in flat:
        bucket = by_role.setdefault(gap.role_type_id, {
            "role_type_id": gap.role_type_id,
            "role_type_name": gap.role_type_name,
            "total_gap": 0.0,
        })
        bucket["total_gap"] = round(bucket["total_gap"] + gap.gap_count, GAP_PRECISION)

    critical = [gap for gap in flat if gap.gap_count > threshold or gap.start_date <= horizon]

    return {
        "total_gaps": len(flat),
        "gaps_by_role": list(by_role.values()),
        "critical_gaps": critical,
    }
