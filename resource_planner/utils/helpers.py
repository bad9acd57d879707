"""Shared blueprint/service helpers.

get_or_404:          tuple-return lookup, ``obj, err = get_or_404(Project, pid)``
parse_date:          lenient, returns None on bad input (query strings)
parse_date_input:    strict, raises ValidationError on bad input (request bodies)
db_commit_or_error:  commit with IntegrityError → 409 / other → 500 mapping
"""
import logging
from datetime import date, datetime

from flask import jsonify
from sqlalchemy.exc import IntegrityError, OperationalError

from resource_planner.core.exceptions import ValidationError
from resource_planner.models import db

logger = logging.getLogger(__name__)


def get_or_404(model, pk, label=None):
    """Fetch a model instance by primary key or return a 404 error tuple.

    Usage:
        obj, err = get_or_404(Project, pid)
        if err:
            return err
    """
    label = label or model.__name__
    obj = db.session.get(model, pk)
    if not obj:
        return None, (jsonify({"error": f"{label} not found", "code": "ERR_NOT_FOUND"}), 404)
    return obj, None


def parse_date(value):
    """Parse YYYY-MM-DD (or an ISO datetime, or DD.MM.YYYY) to a date.

    Returns None for empty/invalid input.
    """
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_date_input(value, field="date", required=True):
    """Same as parse_date() but raises ValidationError instead of returning None."""
    if value in (None, ""):
        if required:
            raise ValidationError(f"{field} is required", details={field: "required"})
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError(
            f"Invalid {field}. Use YYYY-MM-DD or DD.MM.YYYY.",
            details={field: "invalid date"},
        )
    return parsed


def parse_number_input(value, field, required=True):
    """Coerce a JSON number (or numeric string) to float, raising ValidationError."""
    if value is None:
        if required:
            raise ValidationError(f"{field} is required", details={field: "required"})
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", details={field: "not a number"})
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", details={field: "not a number"}) from None


def parse_window(data, start_field="start_date", end_field="end_date", required=True):
    """Parse a start/end pair from a request body and check ``end >= start``."""
    start = parse_date_input(data.get(start_field), start_field, required)
    end = parse_date_input(data.get(end_field), end_field, required)
    if start and end and end < start:
        raise ValidationError(
            f"{end_field} must not be before {start_field}",
            details={end_field: f"before {start_field}"},
        )
    return start, end


# ── Database commit helper ───────────────────────────────────────────────────

def db_commit_or_error():
    """Commit the current session, returning an error response on failure.

    Returns None on success, else a ``(response, status_code)`` tuple:
    IntegrityError → 409, OperationalError / anything else → 500.
    """
    try:
        db.session.commit()
        return None
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        return jsonify({"error": "Duplicate or constraint violation", "code": "ERR_CONFLICT_DUPLICATE"}), 409
    except OperationalError:
        db.session.rollback()
        logger.exception("Database operational error on commit")
        return jsonify({"error": "Database error", "code": "ERR_DATABASE"}), 500
    except Exception:
        db.session.rollback()
        logger.exception("Unexpected database error on commit")
        return jsonify({"error": "Database error", "code": "ERR_DATABASE"}), 500
