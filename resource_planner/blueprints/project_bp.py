"""
Resource Planner
Project blueprint: projects, requirements, allocations and project gaps.

Endpoints summary:
    PROJECT      /api/v1/projects                          GET, POST
                 /api/v1/projects/<id>                     GET, PUT, DELETE
                 /api/v1/projects/<id>/gaps                GET

    REQUIREMENT  /api/v1/projects/<id>/requirements        GET (?grouped=1), POST
                 /api/v1/requirements/<id>                 PUT, DELETE
                 /api/v1/requirements/<id>/ignore          PATCH

    ALLOCATION   /api/v1/projects/<id>/allocations         GET, POST
                 /api/v1/allocations/<id>                  PUT, DELETE

Allocation mutations answer with the allocation plus a ``cascade`` object;
a failed cascade never changes the status code of the allocation write.
"""

import logging

from flask import Blueprint, jsonify, request

from resource_planner.blueprints import json_body, paginate_query, register_error_handlers
from resource_planner.models.project import Project, ProjectAllocation, ResourceRequirement
from resource_planner.services import allocation_service, planning_service
from resource_planner.services.gap_analysis import GAP_PRECISION, compute_project_gaps
from resource_planner.services.requirement_grouping import group_requirements
from resource_planner.store import get_store
from resource_planner.utils.errors import E, api_error
from resource_planner.utils.helpers import db_commit_or_error, get_or_404

logger = logging.getLogger(__name__)

project_bp = register_error_handlers(Blueprint("projects", __name__, url_prefix="/api/v1"))


def _flag(name):
    return request.args.get(name, "").lower() in ("1", "true", "yes")


# ═══════════════════════════════════════════════════════════════════════════
#  PROJECTS
# ═══════════════════════════════════════════════════════════════════════════

@project_bp.route("/projects", methods=["GET"])
def list_projects():
    projects, total = paginate_query(planning_service.list_projects())
    return jsonify({"items": [p.to_dict() for p in projects], "total": total})


@project_bp.route("/projects", methods=["POST"])
def create_project():
    data = json_body()
    if not data.get("name"):
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    project = planning_service.create_project(data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(project.to_dict()), 201


@project_bp.route("/projects/<int:pid>", methods=["GET"])
def get_project(pid):
    project, err = get_or_404(Project, pid)
    if err:
        return err
    return jsonify(project.to_dict())


@project_bp.route("/projects/<int:pid>", methods=["PUT"])
def update_project(pid):
    project, err = get_or_404(Project, pid)
    if err:
        return err
    planning_service.update_project(project, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(project.to_dict())


@project_bp.route("/projects/<int:pid>", methods=["DELETE"])
def delete_project(pid):
    project, err = get_or_404(Project, pid)
    if err:
        return err
    planning_service.delete_project(project)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Project deleted", "id": pid})


@project_bp.route("/projects/<int:pid>/gaps", methods=["GET"])
def get_project_gaps(pid):
    project, err = get_or_404(Project, pid)
    if err:
        return err
    gaps = compute_project_gaps(get_store(), project.id)
    return jsonify({
        "project_id": project.id,
        "gaps": [g.to_dict() for g in gaps],
        "total_gap": round(sum(g.gap_count for g in gaps), GAP_PRECISION),
    })


# ═══════════════════════════════════════════════════════════════════════════
#  REQUIREMENTS
# ═══════════════════════════════════════════════════════════════════════════

@project_bp.route("/projects/<int:pid>/requirements", methods=["GET"])
def list_requirements(pid):
    project, err = get_or_404(Project, pid)
    if err:
        return err
    rows = planning_service.list_requirements(project.id, include_ignored=not _flag("active"))
    items = group_requirements(rows) if _flag("grouped") else [r.to_dict() for r in rows]
    return jsonify({"items": items, "total": len(rows)})


@project_bp.route("/projects/<int:pid>/requirements", methods=["POST"])
def create_requirement(pid):
    project, err = get_or_404(Project, pid)
    if err:
        return err
    data = json_body()
    if not data.get("role_type_id"):
        return api_error(E.VALIDATION_REQUIRED, "role_type_id is required")
    requirement = planning_service.create_requirement(project, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(requirement.to_dict()), 201


@project_bp.route("/requirements/<int:rid>", methods=["PUT"])
def update_requirement(rid):
    requirement, err = get_or_404(ResourceRequirement, rid, label="Requirement")
    if err:
        return err
    planning_service.update_requirement(requirement, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(requirement.to_dict())


@project_bp.route("/requirements/<int:rid>/ignore", methods=["PATCH"])
def ignore_requirement(rid):
    requirement, err = get_or_404(ResourceRequirement, rid, label="Requirement")
    if err:
        return err
    planning_service.set_requirement_ignored(requirement, json_body().get("ignored", True))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(requirement.to_dict())


@project_bp.route("/requirements/<int:rid>", methods=["DELETE"])
def delete_requirement(rid):
    requirement, err = get_or_404(ResourceRequirement, rid, label="Requirement")
    if err:
        return err
    summary = planning_service.delete_requirement(requirement)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Requirement deleted", "id": rid, **summary})


# ═══════════════════════════════════════════════════════════════════════════
#  ALLOCATIONS
# ═══════════════════════════════════════════════════════════════════════════

@project_bp.route("/projects/<int:pid>/allocations", methods=["GET"])
def list_allocations(pid):
    project, err = get_or_404(Project, pid)
    if err:
        return err
    items = allocation_service.list_allocations(project.id)
    return jsonify({"items": [a.to_dict() for a in items], "total": len(items)})


@project_bp.route("/projects/<int:pid>/allocations", methods=["POST"])
def create_allocation(pid):
    project, err = get_or_404(Project, pid)
    if err:
        return err
    data = json_body()
    if not data.get("person_id"):
        return api_error(E.VALIDATION_REQUIRED, "person_id is required")
    allocation, result = allocation_service.create_allocation(project, data)
    return jsonify({**allocation.to_dict(), "cascade": result.to_dict()}), 201


@project_bp.route("/allocations/<int:aid>", methods=["PUT"])
def update_allocation(aid):
    allocation, err = get_or_404(ProjectAllocation, aid, label="Allocation")
    if err:
        return err
    allocation, result = allocation_service.update_allocation(allocation, json_body())
    return jsonify({**allocation.to_dict(), "cascade": result.to_dict()})


@project_bp.route("/allocations/<int:aid>", methods=["DELETE"])
def delete_allocation(aid):
    allocation, err = get_or_404(ProjectAllocation, aid, label="Allocation")
    if err:
        return err
    result = allocation_service.delete_allocation(allocation)
    return jsonify({"message": "Allocation deleted", "id": aid, "cascade": result.to_dict()})
