"""
Resource Planner
People domain models.

Models:
    - RoleType: labelled skill/role category (Engineer, Designer, ...)
    - Person: a member of the roster with an assigned role type
    - LeavePeriod: time off with an approval status

Architecture chain: RoleType → Person → LeavePeriod
"""

import enum
from datetime import datetime, timezone

from resource_planner.models import db


# ── Constants ────────────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    """Approval state of a leave period."""

    PENDING = "pending"
    APPROVED = "approved"
    UNAPPROVED = "unapproved"


LEAVE_STATUSES = {s.value for s in LeaveStatus}

# Allowed operator transitions; deletion is always allowed and not listed here.
LEAVE_TRANSITIONS = {
    LeaveStatus.PENDING.value: {LeaveStatus.APPROVED.value, LeaveStatus.UNAPPROVED.value},
    LeaveStatus.APPROVED.value: {LeaveStatus.UNAPPROVED.value},
    LeaveStatus.UNAPPROVED.value: {LeaveStatus.APPROVED.value},
}


def _utcnow():
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════
#  ROLE TYPE
# ═══════════════════════════════════════════════════════════════════════════

class RoleType(db.Model):
    """A labelled role category referenced by people, requirements and allocations."""

    __tablename__ = "role_types"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<RoleType {self.id}: {self.name}>"


# ═══════════════════════════════════════════════════════════════════════════
#  PERSON
# ═══════════════════════════════════════════════════════════════════════════

class Person(db.Model):
    """A person on the roster. Identity is immutable, role type is not."""

    __tablename__ = "people"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    role_type_id = db.Column(
        db.Integer, db.ForeignKey("role_types.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    role_type = db.relationship("RoleType", lazy="joined")
    leave_periods = db.relationship(
        "LeavePeriod", backref="person", lazy="dynamic",
        cascade="all, delete-orphan", order_by="LeavePeriod.start_date",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "role_type_id": self.role_type_id,
            "role_type_name": self.role_type.name if self.role_type else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Person {self.id}: {self.name}>"


# ═══════════════════════════════════════════════════════════════════════════
#  LEAVE PERIOD
# ═══════════════════════════════════════════════════════════════════════════

class LeavePeriod(db.Model):
    """
    A person's time-off window.

    Only APPROVED leave produces leave-coverage requirements; transitions
    into and out of APPROVED drive the leave cascade.
    """

    __tablename__ = "leave_periods"

    id = db.Column(db.Integer, primary_key=True)
    person_id = db.Column(
        db.Integer, db.ForeignKey("people.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=LeaveStatus.PENDING.value, index=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending','approved','unapproved')",
            name="ck_leave_periods_status",
        ),
        db.Index("ix_leave_periods_person_window", "person_id", "start_date", "end_date"),
    )

    @property
    def is_approved(self):
        return self.status == LeaveStatus.APPROVED.value

    def to_dict(self):
        return {
            "id": self.id,
            "person_id": self.person_id,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "status": self.status,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<LeavePeriod {self.id}: person={self.person_id} {self.start_date}..{self.end_date} {self.status}>"
