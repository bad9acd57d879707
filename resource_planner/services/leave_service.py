"""Leave service layer.

Transaction policy matches allocation_service: the leave write commits
first, then the leave cascade runs and commits (or rolls back) on its own.

Status transitions follow LEAVE_TRANSITIONS:
    pending → approved | unapproved,  approved ↔ unapproved
Setting the current status again is accepted and re-runs the cascade.
"""
import logging
from dataclasses import dataclass
from datetime import date

from resource_planner.core.exceptions import ValidationError
from resource_planner.models.people import LEAVE_TRANSITIONS, LeavePeriod, LeaveStatus
from resource_planner.models import db
from resource_planner.services import leave_cascade
from resource_planner.services.allocation_service import commit_primary, finish_cascade
from resource_planner.store import get_store
from resource_planner.utils.helpers import parse_window

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaveSnapshot:
    """Detached copy of a leave period taken before it is changed or deleted."""

    id: int
    person_id: int
    start_date: date
    end_date: date
    status: str

    @classmethod
    def of(cls, leave):
        return cls(leave.id, leave.person_id, leave.start_date, leave.end_date, leave.status)


def list_leave(person, status=None):
    query = person.leave_periods
    if status:
        query = query.filter(LeavePeriod.status == leave_cascade.parse_leave_status(status).value)
    return query.all()


def create_leave(person, data, store=None):
    """Record a leave period (default PENDING) and derive coverage if approved."""
    store = store or get_store()
    start, end = parse_window(data)
    status = leave_cascade.parse_leave_status(data.get("status") or LeaveStatus.PENDING)

    leave = LeavePeriod(
        person_id=person.id,
        start_date=start,
        end_date=end,
        status=status.value,
        notes=data.get("notes"),
    )
    db.session.add(leave)
    db.session.flush()
    commit_primary(store, "LeavePeriod")
    logger.info("Created %s leave %s", status.value, leave.id,
                extra={"person_id": person.id, "leave_id": leave.id})

    result = finish_cascade(store, leave_cascade.on_leave_created(store, person.id, leave.id))
    return leave, result


def update_leave(leave, data, store=None):
    """Change dates and/or notes. Status changes go through change_leave_status."""
    store = store or get_store()
    if "status" in data:
        raise ValidationError(
            "use the status endpoint to change leave status",
            details={"status": "not editable here"},
        )
    previous = LeaveSnapshot.of(leave)

    if "start_date" in data or "end_date" in data:
        leave.start_date, leave.end_date = parse_window({
            "start_date": data.get("start_date", leave.start_date),
            "end_date": data.get("end_date", leave.end_date),
        })
    if "notes" in data:
        leave.notes = data["notes"]
    db.session.flush()
    commit_primary(store, "LeavePeriod")

    if (leave.start_date, leave.end_date) == (previous.start_date, previous.end_date):
        return leave, None
    result = finish_cascade(store, leave_cascade.on_leave_updated(store, leave.person_id, previous, leave.id))
    return leave, result


def change_leave_status(leave, new_status, store=None):
    """Apply a status transition and run the matching cascade."""
    store = store or get_store()
    status = leave_cascade.parse_leave_status(new_status)
    if status.value != leave.status and status.value not in LEAVE_TRANSITIONS.get(leave.status, set()):
        raise ValidationError(
            f"Cannot move leave from {leave.status} to {status.value}",
            details={"status": f"{leave.status} -> {status.value} not allowed"},
        )

    previous = leave.status
    leave.status = status.value
    db.session.flush()
    commit_primary(store, "LeavePeriod")
    logger.info("Leave %s status %s -> %s", leave.id, previous, status.value,
                extra={"person_id": leave.person_id, "leave_id": leave.id})

    result = finish_cascade(
        store, leave_cascade.on_leave_status_changed(store, leave.person_id, leave.id, status),
    )
    return leave, result


def delete_leave(leave, store=None):
    """Delete a leave period, then retract coverage it justified."""
    store = store or get_store()
    snapshot = LeaveSnapshot.of(leave)
    db.session.delete(leave)
    db.session.flush()
    commit_primary(store, "LeavePeriod")

    return finish_cascade(store, leave_cascade.on_leave_deleted(store, snapshot.person_id, snapshot))
