"""
Resource Planner
People blueprint: role types, roster, leave and capacity endpoints.

Endpoints summary:
    ROLE TYPES  /api/v1/role-types                       GET, POST
                /api/v1/role-types/<id>                  PUT, DELETE

    PEOPLE      /api/v1/people                           GET, POST
                /api/v1/people/<id>                      GET, PUT, DELETE
                /api/v1/people/<id>/utilization          GET   ?start=&end=
                /api/v1/people/<id>/leave-conflicts      GET   ?start=&end=
                /api/v1/people/over-allocated            GET

    LEAVE       /api/v1/people/<id>/leave                GET, POST
                /api/v1/leave/<id>                       PUT, DELETE
                /api/v1/leave/<id>/status                PATCH

Leave mutations answer with the leave period plus a ``cascade`` object
describing derived requirements created or retracted.
"""

import logging

from flask import Blueprint, jsonify, request

from resource_planner.blueprints import json_body, paginate_query, register_error_handlers
from resource_planner.models.people import LeavePeriod, Person, RoleType
from resource_planner.services import leave_service, planning_service
from resource_planner.services.overlap import (
    over_allocated_people,
    person_leave_conflicts,
    person_utilization,
)
from resource_planner.store import get_store
from resource_planner.utils.errors import E, api_error
from resource_planner.utils.helpers import db_commit_or_error, get_or_404, parse_date_input

logger = logging.getLogger(__name__)

people_bp = register_error_handlers(Blueprint("people", __name__, url_prefix="/api/v1"))


def _query_window():
    start = parse_date_input(request.args.get("start"), "start")
    end = parse_date_input(request.args.get("end"), "end")
    return start, end


def _with_cascade(payload, result):
    payload["cascade"] = result.to_dict() if result is not None else None
    return payload


# ═══════════════════════════════════════════════════════════════════════════
#  ROLE TYPES
# ═══════════════════════════════════════════════════════════════════════════

@people_bp.route("/role-types", methods=["GET"])
def list_role_types():
    items = planning_service.list_role_types()
    return jsonify({"items": [rt.to_dict() for rt in items], "total": len(items)})


@people_bp.route("/role-types", methods=["POST"])
def create_role_type():
    data = json_body()
    if not data.get("name"):
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    role_type = planning_service.create_role_type(data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(role_type.to_dict()), 201


@people_bp.route("/role-types/<int:rid>", methods=["PUT"])
def update_role_type(rid):
    role_type, err = get_or_404(RoleType, rid)
    if err:
        return err
    planning_service.update_role_type(role_type, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(role_type.to_dict())


@people_bp.route("/role-types/<int:rid>", methods=["DELETE"])
def delete_role_type(rid):
    role_type, err = get_or_404(RoleType, rid)
    if err:
        return err
    planning_service.delete_role_type(role_type)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Role type deleted", "id": rid})


# ═══════════════════════════════════════════════════════════════════════════
#  PEOPLE
# ═══════════════════════════════════════════════════════════════════════════

@people_bp.route("/people", methods=["GET"])
def list_people():
    role_type_id = request.args.get("role_type_id", type=int)
    people, total = paginate_query(planning_service.list_people(role_type_id))
    return jsonify({"items": [p.to_dict() for p in people], "total": total})


@people_bp.route("/people", methods=["POST"])
def create_person():
    data = json_body()
    if not data.get("name"):
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    person = planning_service.create_person(data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(person.to_dict()), 201


@people_bp.route("/people/<int:pid>", methods=["GET"])
def get_person(pid):
    person, err = get_or_404(Person, pid)
    if err:
        return err
    return jsonify(person.to_dict())


@people_bp.route("/people/<int:pid>", methods=["PUT"])
def update_person(pid):
    person, err = get_or_404(Person, pid)
    if err:
        return err
    planning_service.update_person(person, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(person.to_dict())


@people_bp.route("/people/<int:pid>", methods=["DELETE"])
def delete_person(pid):
    person, err = get_or_404(Person, pid)
    if err:
        return err
    planning_service.delete_person(person)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Person deleted", "id": pid})


@people_bp.route("/people/<int:pid>/utilization", methods=["GET"])
def get_utilization(pid):
    person, err = get_or_404(Person, pid)
    if err:
        return err
    start, end = _query_window()
    utilization = person_utilization(get_store(), person.id, start, end)
    return jsonify({
        "person_id": person.id,
        "start": start.isoformat(),
        "end": end.isoformat(),
        "utilization": utilization,
    })


@people_bp.route("/people/<int:pid>/leave-conflicts", methods=["GET"])
def get_leave_conflicts(pid):
    person, err = get_or_404(Person, pid)
    if err:
        return err
    start, end = _query_window()
    return jsonify({
        "person_id": person.id,
        "conflicts": person_leave_conflicts(get_store(), person.id, start, end),
    })


@people_bp.route("/people/over-allocated", methods=["GET"])
def list_over_allocated():
    conflicts = over_allocated_people(get_store())
    return jsonify({"items": conflicts, "total": len(conflicts)})


# ═══════════════════════════════════════════════════════════════════════════
#  LEAVE
# ═══════════════════════════════════════════════════════════════════════════

@people_bp.route("/people/<int:pid>/leave", methods=["GET"])
def list_leave(pid):
    person, err = get_or_404(Person, pid)
    if err:
        return err
    items = leave_service.list_leave(person, request.args.get("status"))
    return jsonify({"items": [lp.to_dict() for lp in items], "total": len(items)})


@people_bp.route("/people/<int:pid>/leave", methods=["POST"])
def create_leave(pid):
    person, err = get_or_404(Person, pid)
    if err:
        return err
    data = json_body()
    if not data.get("start_date") or not data.get("end_date"):
        return api_error(E.VALIDATION_REQUIRED, "start_date and end_date are required")
    leave, result = leave_service.create_leave(person, data)
    return jsonify(_with_cascade(leave.to_dict(), result)), 201


@people_bp.route("/leave/<int:lid>", methods=["PUT"])
def update_leave(lid):
    leave, err = get_or_404(LeavePeriod, lid)
    if err:
        return err
    leave, result = leave_service.update_leave(leave, json_body())
    return jsonify(_with_cascade(leave.to_dict(), result))


@people_bp.route("/leave/<int:lid>/status", methods=["PATCH"])
def change_leave_status(lid):
    leave, err = get_or_404(LeavePeriod, lid)
    if err:
        return err
    data = json_body()
    if not data.get("status"):
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    leave, result = leave_service.change_leave_status(leave, data["status"])
    return jsonify(_with_cascade(leave.to_dict(), result))


@people_bp.route("/leave/<int:lid>", methods=["DELETE"])
def delete_leave(lid):
    leave, err = get_or_404(LeavePeriod, lid)
    if err:
        return err
    result = leave_service.delete_leave(leave)
    return jsonify(_with_cascade({"message": "Leave period deleted", "id": lid}, result))
