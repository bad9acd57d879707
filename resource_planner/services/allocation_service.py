"""Allocation service layer.

Transaction policy: the allocation write is committed first, then derived
requirements are reconciled and committed separately. A failed
reconciliation rolls back only its own uncommitted writes; the allocation
itself always stands. Each mutation returns ``(payload, AutoGenerationResult)``
so the route can report the cascade next to the primary result.
"""
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from resource_planner.core.exceptions import ConflictError, NotFoundError, ValidationError
from resource_planner.models import db
from resource_planner.models.people import Person, RoleType
from resource_planner.services.auto_generation import (
    AutoGenerationResult,
    cleanup_auto_generated_requirements,
    person_cascade_lock,
    process_allocation_auto_generation,
)
from resource_planner.store import HANDLED_STORE_ERRORS, get_store
from resource_planner.utils.helpers import parse_number_input, parse_window

logger = logging.getLogger(__name__)


def commit_primary(store, resource):
    """Commit the primary mutation; constraint violations become ConflictError."""
    try:
        store.commit()
    except IntegrityError as exc:
        store.rollback()
        logger.warning("%s write rejected by constraint: %s", resource, exc.orig)
        raise ConflictError(resource=resource, field="constraint", value=str(exc.orig)) from exc


def finish_cascade(store, result):
    """Commit a successful cascade, roll back a failed one. Returns ``result``."""
    if not result.success:
        store.rollback()
        return result
    try:
        store.commit()
    except SQLAlchemyError as exc:
        store.rollback()
        logger.exception("Cascade commit failed")
        result.success = False
        result.error = str(exc)
    return result


def _validate_percentage(value, required=True):
    pct = parse_number_input(value, "allocation_percentage", required)
    if pct is not None and pct <= 0:
        raise ValidationError(
            "allocation_percentage must be greater than 0",
            details={"allocation_percentage": "must be > 0"},
        )
    return pct


def _validate_requirement(store, project_id, requirement_id):
    if requirement_id is None:
        return None
    requirement = store.get_requirement(requirement_id)
    if requirement is None:
        raise NotFoundError(resource="ResourceRequirement", resource_id=requirement_id)
    if requirement.project_id != project_id:
        raise ValidationError(
            f"Requirement {requirement_id} belongs to another project",
            details={"requirement_id": "wrong project"},
        )
    return requirement


def list_allocations(project_id, store=None):
    return (store or get_store()).list_project_allocations(project_id)


def create_allocation(project, data, store=None):
    """
    Allocate a person to a project and reconcile derived requirements.

    ``role_type_id`` defaults to the person's role type; ``requirement_id`` is
    optional (NULL allocations are matched by role and window).
    """
    store = store or get_store()
    person_id = data.get("person_id")
    if person_id is None:
        raise ValidationError("person_id is required", details={"person_id": "required"})
    person = db.session.get(Person, person_id)
    if person is None:
        raise NotFoundError(resource="Person", resource_id=person_id)

    role_type_id = data.get("role_type_id") or person.role_type_id
    if db.session.get(RoleType, role_type_id) is None:
        raise NotFoundError(resource="RoleType", resource_id=role_type_id)

    start, end = parse_window(data)
    pct = _validate_percentage(data.get("allocation_percentage", 100))
    requirement = _validate_requirement(store, project.id, data.get("requirement_id"))

    allocation = store.insert_allocation(
        project_id=project.id,
        person_id=person.id,
        role_type_id=role_type_id,
        requirement_id=requirement.id if requirement else None,
        allocation_percentage=pct,
        start_date=start,
        end_date=end,
    )
    commit_primary(store, "ProjectAllocation")
    logger.info("Created allocation %s (%.0f%%)", allocation.id, pct,
                extra={"allocation_id": allocation.id, "person_id": person.id, "project_id": project.id})

    result = finish_cascade(store, process_allocation_auto_generation(store, allocation.id))
    return allocation, result


def update_allocation(allocation, data, store=None):
    """Change window, percentage, role or requirement link; then reconcile."""
    store = store or get_store()
    fields = {}
    if "start_date" in data or "end_date" in data:
        fields["start_date"], fields["end_date"] = parse_window({
            "start_date": data.get("start_date", allocation.start_date),
            "end_date": data.get("end_date", allocation.end_date),
        })
    if "allocation_percentage" in data:
        fields["allocation_percentage"] = _validate_percentage(data["allocation_percentage"])
    if "role_type_id" in data:
        if db.session.get(RoleType, data["role_type_id"]) is None:
            raise NotFoundError(resource="RoleType", resource_id=data["role_type_id"])
        fields["role_type_id"] = data["role_type_id"]
    if "requirement_id" in data:
        requirement = _validate_requirement(store, allocation.project_id, data["requirement_id"])
        fields["requirement_id"] = requirement.id if requirement else None
    if "person_id" in data and data["person_id"] != allocation.person_id:
        raise ValidationError(
            "person_id cannot change; delete and re-create the allocation",
            details={"person_id": "immutable"},
        )

    allocation = store.update_allocation(allocation.id, **fields)
    commit_primary(store, "ProjectAllocation")

    result = finish_cascade(store, process_allocation_auto_generation(store, allocation.id))
    return allocation, result


def delete_allocation(allocation, store=None):
    """
    Remove derived requirements nobody is allocated to, then the allocation.

    Load-bearing derived requirements survive the allocation that created
    them. Returns an AutoGenerationResult whose ``deleted`` lists removed
    requirement ids.
    """
    store = store or get_store()
    allocation_id, person_id = allocation.id, allocation.person_id
    result = AutoGenerationResult(allocation_id=allocation_id)

    with person_cascade_lock(person_id):
        try:
            result.deleted = cleanup_auto_generated_requirements(store, allocation_id)
        except HANDLED_STORE_ERRORS as exc:
            logger.exception("Cleanup before allocation delete failed",
                             extra={"allocation_id": allocation_id})
            store.rollback()
            result.success, result.error, result.deleted = False, str(exc), []
        store.delete_allocation(allocation_id)
        commit_primary(store, "ProjectAllocation")

    logger.info("Deleted allocation %s", allocation_id,
                extra={"allocation_id": allocation_id, "person_id": person_id})
    return result
