"""
Resource Planner
Gap reporting blueprint: organisation-wide shortfall views.

Endpoints:
    GET /api/v1/gaps                    : every project with at least one gap
    GET /api/v1/gaps/summary            : dashboard roll-up (?today=YYYY-MM-DD)
    GET /api/v1/role-types/<id>/gaps    : gaps for one role type across projects
"""

import logging

from flask import Blueprint, jsonify, request

from resource_planner.blueprints import register_error_handlers
from resource_planner.models.people import RoleType
from resource_planner.services.gap_analysis import all_project_gaps, gap_summary, gaps_by_role_type
from resource_planner.store import get_store
from resource_planner.utils.helpers import get_or_404, parse_date_input

logger = logging.getLogger(__name__)

gaps_bp = register_error_handlers(Blueprint("gaps", __name__, url_prefix="/api/v1"))


@gaps_bp.route("/gaps", methods=["GET"])
def list_all_gaps():
    entries = all_project_gaps(get_store())
    return jsonify({
        "items": [
            {"project_id": e["project_id"], "gaps": [g.to_dict() for g in e["gaps"]]}
            for e in entries
        ],
        "total": len(entries),
    })


@gaps_bp.route("/gaps/summary", methods=["GET"])
def get_gap_summary():
    today = parse_date_input(request.args.get("today"), "today", required=False)
    summary = gap_summary(get_store(), today=today)
    summary["critical_gaps"] = [g.to_dict() for g in summary["critical_gaps"]]
    return jsonify(summary)


@gaps_bp.route("/role-types/<int:rid>/gaps", methods=["GET"])
def list_role_type_gaps(rid):
    role_type, err = get_or_404(RoleType, rid, label="Role type")
    if err:
        return err
    gaps = gaps_by_role_type(get_store(), role_type.id)
    return jsonify({
        "role_type_id": role_type.id,
        "role_type_name": role_type.name,
        "gaps": [g.to_dict() for g in gaps],
        "total": len(gaps),
    })
