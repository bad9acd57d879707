"""
Planner-wide exception hierarchy.

Services raise these; blueprints register handlers against them once and
map them to HTTP status codes. The reconciliation engine uses them to
tell expected data conditions apart from unexpected failures:

  - NotFoundError   → the sub-operation becomes a no-op
  - ValidationError → rejected before any write, propagated to the caller
  - ConflictError   → a duplicate derived row; treated as already satisfied

Usage:
    from resource_planner.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="ProjectAllocation", resource_id=42)
    raise ValidationError("end_date must not be before start_date",
                          details={"end_date": "before start_date"})
"""


class NotFoundError(Exception):
    """Raised when a referenced record does not exist.

    Args:
        resource: Human-readable entity name (e.g. "LeavePeriod").
        resource_id: The key that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is malformed or violates a business rule.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown, keyed by field name.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when a write would violate a uniqueness or ownership rule.

    Maps to HTTP 409.

    Args:
        resource: Entity name.
        field: The field (or relationship) in conflict.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | int | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)
