"""Planning service layer: role types, people, projects and requirements.

Transaction policy: methods use flush() for ID generation, never commit().
Caller (route handler) is responsible for db.session.commit().

Operator rules enforced here:
- auto-generated requirements are engine-owned; operators may only toggle
  their ``ignored`` flag
- deleting a requirement deletes its auto-generated children and orphans
  every allocation pointing at the requirement or its children
- a project, role type or person still referenced by planning rows cannot
  be deleted
"""
import logging

from resource_planner.core.exceptions import ConflictError, NotFoundError, ValidationError
from resource_planner.models import db
from resource_planner.models.people import Person, RoleType
from resource_planner.models.project import Project, ProjectAllocation, ResourceRequirement
from resource_planner.store import get_store
from resource_planner.utils.helpers import parse_number_input, parse_window

logger = logging.getLogger(__name__)


def _require_name(data, field="name"):
    name = (data.get(field) or "").strip()
    if not name:
        raise ValidationError(f"{field} is required", details={field: "required"})
    return name


def _require_role_type(role_type_id):
    if role_type_id is None:
        raise ValidationError("role_type_id is required", details={"role_type_id": "required"})
    role_type = db.session.get(RoleType, role_type_id)
    if role_type is None:
        raise NotFoundError(resource="RoleType", resource_id=role_type_id)
    return role_type


# ── Role types ───────────────────────────────────────────────────────────


def list_role_types():
    return RoleType.query.order_by(RoleType.name).all()


def create_role_type(data):
    name = _require_name(data)
    if RoleType.query.filter_by(name=name).first():
        raise ConflictError(resource="RoleType", field="name", value=name)
    role_type = RoleType(name=name, description=data.get("description"))
    db.session.add(role_type)
    db.session.flush()
    return role_type


def update_role_type(role_type, data):
    if "name" in data:
        name = _require_name(data)
        clash = RoleType.query.filter(RoleType.name == name, RoleType.id != role_type.id).first()
        if clash:
            raise ConflictError(resource="RoleType", field="name", value=name)
        role_type.name = name
    if "description" in data:
        role_type.description = data["description"]
    db.session.flush()
    return role_type


def delete_role_type(role_type):
    """Delete an unused role type. Raises ConflictError while it is referenced."""
    in_use = (
        Person.query.filter_by(role_type_id=role_type.id).count()
        + ResourceRequirement.query.filter_by(role_type_id=role_type.id).count()
        + ProjectAllocation.query.filter_by(role_type_id=role_type.id).count()
    )
    if in_use:
        raise ConflictError(resource="RoleType", field="references", value=in_use)
    db.session.delete(role_type)
    db.session.flush()


# ── People ───────────────────────────────────────────────────────────────


def list_people(role_type_id=None):
    query = Person.query
    if role_type_id is not None:
        query = query.filter_by(role_type_id=role_type_id)
    return query.order_by(Person.name)


def create_person(data):
    name = _require_name(data)
    role_type = _require_role_type(data.get("role_type_id"))
    person = Person(name=name, role_type_id=role_type.id)
    db.session.add(person)
    db.session.flush()
    return person


def update_person(person, data):
    """Only the role type and display name may change; identity is fixed."""
    if "name" in data:
        person.name = _require_name(data)
    if "role_type_id" in data:
        person.role_type_id = _require_role_type(data["role_type_id"]).id
    db.session.flush()
    return person


def delete_person(person):
    """Delete a person and their leave. Raises ConflictError while allocations exist."""
    allocations = ProjectAllocation.query.filter_by(person_id=person.id).count()
    if allocations:
        raise ConflictError(resource="Person", field="allocations", value=allocations)
    db.session.delete(person)
    db.session.flush()
    logger.info("Deleted person %s", person.id, extra={"person_id": person.id})


# ── Projects ─────────────────────────────────────────────────────────────


def list_projects():
    return Project.query.order_by(Project.start_date, Project.id)


def create_project(data):
    name = _require_name(data)
    start, end = parse_window(data)
    project = Project(name=name, start_date=start, end_date=end)
    db.session.add(project)
    db.session.flush()
    return project


def update_project(project, data):
    if "name" in data:
        project.name = _require_name(data)
    if "start_date" in data or "end_date" in data:
        start, end = parse_window({
            "start_date": data.get("start_date", project.start_date),
            "end_date": data.get("end_date", project.end_date),
        })
        project.start_date, project.end_date = start, end
    db.session.flush()
    return project


def delete_project(project):
    """Delete an empty project. Raises ConflictError while planning rows remain."""
    requirements = project.requirements.count()
    allocations = project.allocations.count()
    if requirements or allocations:
        raise ConflictError(
            resource="Project",
            field="requirements/allocations",
            value=f"{requirements}/{allocations}",
        )
    db.session.delete(project)
    db.session.flush()


# ── Requirements ─────────────────────────────────────────────────────────


def list_requirements(project_id, include_ignored=True):
    rows = get_store().list_project_requirements(project_id)
    if not include_ignored:
        rows = [r for r in rows if not r.ignored]
    return rows


def create_requirement(project, data, store=None):
    """Create an operator-authored requirement. ``auto_generated_type`` is not accepted."""
    store = store or get_store()
    if data.get("auto_generated_type"):
        raise ValidationError(
            "auto-generated requirements are created by the planner only",
            details={"auto_generated_type": "not allowed"},
        )
    role_type = _require_role_type(data.get("role_type_id"))
    start, end = parse_window(data)
    required = parse_number_input(data.get("required_count", 1), "required_count")

    requirement = store.insert_requirement(
        project_id=project.id,
        role_type_id=role_type.id,
        start_date=start,
        end_date=end,
        required_count=required,
        ignored=bool(data.get("ignored", False)),
    )
    logger.info("Created requirement %s", requirement.id,
                extra={"project_id": project.id, "requirement_id": requirement.id})
    return requirement


def update_requirement(requirement, data, store=None):
    """Edit an operator-authored requirement (role type, window, count, ignored)."""
    store = store or get_store()
    editable = {"role_type_id", "start_date", "end_date", "required_count", "ignored"}
    if requirement.is_auto_generated and set(data) - {"ignored"}:
        raise ValidationError(
            "auto-generated requirements can only be ignored or un-ignored",
            details={"fields": sorted(set(data) - {"ignored"})},
        )

    fields = {}
    if "role_type_id" in data:
        fields["role_type_id"] = _require_role_type(data["role_type_id"]).id
    if "start_date" in data or "end_date" in data:
        fields["start_date"], fields["end_date"] = parse_window({
            "start_date": data.get("start_date", requirement.start_date),
            "end_date": data.get("end_date", requirement.end_date),
        })
    if "required_count" in data:
        fields["required_count"] = parse_number_input(data["required_count"], "required_count")
    if "ignored" in data:
        fields["ignored"] = bool(data["ignored"])

    unknown = set(data) - editable
    if unknown:
        logger.debug("Ignoring non-editable requirement fields %s", sorted(unknown),
                     extra={"requirement_id": requirement.id})
    return store.update_requirement(requirement.id, **fields)


def set_requirement_ignored(requirement, ignored, store=None):
    """Toggle ``ignored``; allowed on any requirement, auto-generated included."""
    store = store or get_store()
    return store.update_requirement(requirement.id, ignored=bool(ignored))


def delete_requirement(requirement, store=None):
    """
    Delete an operator-authored requirement together with its derived children.

    Allocations attached to the requirement or to a child become orphaned
    (``requirement_id = NULL``) and are then matched by role/window.

    Returns:
        {"deleted_requirements": [ids], "orphaned_allocations": int}
    """
    store = store or get_store()
    if requirement.is_auto_generated:
        raise ValidationError(
            "auto-generated requirements cannot be deleted; ignore them instead",
            details={"auto_generated_type": requirement.auto_generated_type},
        )

    deleted, orphaned = [], 0
    for child in store.list_auto_generated_children(requirement.id):
        orphaned += store.orphan_allocations(child.id)
        store.delete_requirement(child.id)
        deleted.append(child.id)

    orphaned += store.orphan_allocations(requirement.id)
    store.delete_requirement(requirement.id)
    deleted.append(requirement.id)

    logger.info("Deleted requirement %s with %d children, orphaned %d allocations",
                requirement.id, len(deleted) - 1, orphaned,
                extra={"project_id": requirement.project_id, "requirement_id": requirement.id})
    return {"deleted_requirements": deleted, "orphaned_allocations": orphaned}
