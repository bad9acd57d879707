"""Persistence port consumed by the reconciliation engine.

The engine never touches ``db.session`` directly: every service function
takes a ``store`` argument implementing this protocol. Production code
passes a ``SqlAlchemyStore``; engine unit tests pass an ``InMemoryStore``.

Rows returned by either adapter expose the attributes of the ORM models in
``resource_planner.models`` (``id``, ``start_date``, ``end_date``, ...).
Window filters (``start``/``end``) use inclusive overlap:
``row.end_date >= start and row.start_date <= end``.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError

from resource_planner.core.exceptions import ConflictError, NotFoundError, ValidationError
from resource_planner.models.project import AUTO_GENERATED_TYPES

# Errors a cascade sub-step absorbs (log, skip, keep going). Anything else
# escapes to the entrypoint and is reported as an unexpected failure.
HANDLED_STORE_ERRORS = (NotFoundError, ConflictError, SQLAlchemyError)


class ResourceStore(Protocol):
    """Read/write interface over requirements, allocations and leave."""

    # ── Allocations ──────────────────────────────────────────────────────
    def get_allocation(self, allocation_id: int) -> Any | None: ...

    def list_person_allocations(
        self, person_id: int, start: date | None = None, end: date | None = None,
    ) -> list[Any]: ...

    def list_requirement_allocations(self, requirement_id: int) -> list[Any]: ...

    def list_project_allocations(self, project_id: int) -> list[Any]: ...

    def list_all_allocations(self) -> list[Any]: ...

    def insert_allocation(self, **fields: Any) -> Any: ...

    def update_allocation(self, allocation_id: int, **fields: Any) -> Any: ...

    def delete_allocation(self, allocation_id: int) -> None: ...

    def orphan_allocations(self, requirement_id: int) -> int: ...

    # ── Requirements ─────────────────────────────────────────────────────
    def get_requirement(self, requirement_id: int) -> Any | None: ...

    def list_project_requirements(self, project_id: int) -> list[Any]: ...

    def list_source_requirements(
        self, allocation_id: int, auto_generated_type: str | None = None,
    ) -> list[Any]: ...

    def list_auto_generated_children(self, parent_requirement_id: int) -> list[Any]: ...

    def insert_requirement(self, **fields: Any) -> Any: ...

    def update_requirement(self, requirement_id: int, **fields: Any) -> Any: ...

    def delete_requirement(self, requirement_id: int) -> None: ...

    # ── Leave, projects, role types ──────────────────────────────────────
    def get_leave_period(self, leave_id: int) -> Any | None: ...

    def list_person_leave(
        self,
        person_id: int,
        status: str | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[Any]: ...

    def list_project_ids(self) -> list[int]: ...

    def get_role_type(self, role_type_id: int) -> Any | None: ...

    # ── Transaction boundary ─────────────────────────────────────────────
    def commit(self) -> None: ...

    def rollback(self) -> None: ...


def normalise_requirement_fields(fields: dict) -> dict:
    """Validate requirement invariants shared by every adapter.

    Converts ``auto_generated_type`` enum members to their stored string
    value. Raises ValidationError when an auto-generated requirement has no
    source allocation or the count/window is malformed.
    """
    out = dict(fields)
    kind = out.get("auto_generated_type")
    if kind is not None:
        kind = getattr(kind, "value", kind)
        if kind not in AUTO_GENERATED_TYPES:
            raise ValidationError(
                f"Unknown auto_generated_type {kind!r}",
                details={"auto_generated_type": "invalid"},
            )
        if out.get("source_allocation_id") is None:
            raise ValidationError(
                "Auto-generated requirements need a source allocation",
                details={"source_allocation_id": "required"},
            )
        out["auto_generated_type"] = kind

    if "required_count" in out and (out["required_count"] is None or out["required_count"] <= 0):
        raise ValidationError("required_count must be positive", details={"required_count": "must be > 0"})

    start, end = out.get("start_date"), out.get("end_date")
    if start is not None and end is not None and end < start:
        raise ValidationError(
            "end_date must not be before start_date",
            details={"end_date": "before start_date"},
        )
    return out
