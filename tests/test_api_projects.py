"""
API tests for role types, people, projects and requirements.
"""

from resource_planner.models import db
from resource_planner.models.people import LeavePeriod
from resource_planner.models.project import AutoGeneratedType, ResourceRequirement


def _create_requirement(client, project, role_type, **overrides):
    body = {
        "role_type_id": role_type["id"],
        "start_date": "2024-02-01",
        "end_date": "2024-02-29",
        "required_count": 1,
        **overrides,
    }
    return client.post(f"/api/v1/projects/{project['id']}/requirements", json=body)


class TestHealth:
    def test_ready(self, client):
        res = client.get("/api/v1/health/ready")
        assert res.status_code == 200
        assert res.get_json()["status"] == "ok"

    def test_live(self, client):
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        assert res.get_json()["checks"]["database"]["status"] == "ok"


class TestRoleTypes:
    def test_create_and_list(self, client, role_type):
        res = client.get("/api/v1/role-types")
        assert res.status_code == 200
        assert [rt["name"] for rt in res.get_json()["items"]] == ["Engineer"]

    def test_duplicate_name_conflicts(self, client, role_type):
        res = client.post("/api/v1/role-types", json={"name": "Engineer"})
        assert res.status_code == 409

    def test_name_required(self, client):
        res = client.post("/api/v1/role-types", json={})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_delete_in_use_conflicts(self, client, person, role_type):
        res = client.delete(f"/api/v1/role-types/{role_type['id']}")
        assert res.status_code == 409

    def test_delete_unused(self, client):
        rid = client.post("/api/v1/role-types", json={"name": "Designer"}).get_json()["id"]
        assert client.delete(f"/api/v1/role-types/{rid}").status_code == 200


class TestPeople:
    def test_create_and_get(self, client, person):
        res = client.get(f"/api/v1/people/{person['id']}")
        assert res.status_code == 200
        assert res.get_json()["role_type_name"] == "Engineer"

    def test_unknown_role_type_is_404(self, client):
        res = client.post("/api/v1/people", json={"name": "Nobody", "role_type_id": 999})
        assert res.status_code == 404

    def test_missing_person_is_404(self, client):
        assert client.get("/api/v1/people/999").status_code == 404

    def test_delete_with_allocations_conflicts(self, client, person, project):
        client.post(
            f"/api/v1/projects/{project['id']}/allocations",
            json={"person_id": person["id"], "allocation_percentage": 50,
                  "start_date": "2024-02-01", "end_date": "2024-02-29"},
        )
        assert client.delete(f"/api/v1/people/{person['id']}").status_code == 409
        assert client.get(f"/api/v1/people/{person['id']}").status_code == 200

    def test_delete_removes_leave(self, client, person):
        client.post(
            f"/api/v1/people/{person['id']}/leave",
            json={"start_date": "2024-03-10", "end_date": "2024-03-15"},
        )
        res = client.delete(f"/api/v1/people/{person['id']}")
        assert res.status_code == 200
        assert client.get(f"/api/v1/people/{person['id']}").status_code == 404
        assert LeavePeriod.query.count() == 0

    def test_list_paginated(self, client, role_type):
        for name in ("A", "B", "C"):
            client.post("/api/v1/people", json={"name": name, "role_type_id": role_type["id"]})
        res = client.get("/api/v1/people?limit=2")
        data = res.get_json()
        assert data["total"] == 3
        assert len(data["items"]) == 2


class TestProjects:
    def test_create_validates_window(self, client):
        res = client.post(
            "/api/v1/projects",
            json={"name": "Backwards", "start_date": "2024-06-30", "end_date": "2024-01-01"},
        )
        assert res.status_code == 422

    def test_update(self, client, project):
        res = client.put(f"/api/v1/projects/{project['id']}", json={"name": "Renamed"})
        assert res.status_code == 200
        assert res.get_json()["name"] == "Renamed"

    def test_delete_with_requirements_conflicts(self, client, project, role_type):
        _create_requirement(client, project, role_type)
        res = client.delete(f"/api/v1/projects/{project['id']}")
        assert res.status_code == 409

    def test_delete_empty_project(self, client, project):
        assert client.delete(f"/api/v1/projects/{project['id']}").status_code == 200
        assert client.get(f"/api/v1/projects/{project['id']}").status_code == 404


class TestRequirements:
    def test_create_and_list(self, client, project, role_type):
        res = _create_requirement(client, project, role_type)
        assert res.status_code == 201
        data = res.get_json()
        assert data["auto_generated_type"] is None
        assert data["role_type_name"] == "Engineer"

        listed = client.get(f"/api/v1/projects/{project['id']}/requirements").get_json()
        assert listed["total"] == 1

    def test_cannot_create_auto_generated(self, client, project, role_type):
        res = _create_requirement(client, project, role_type, auto_generated_type="partial_gap")
        assert res.status_code == 422

    def test_required_count_must_be_positive(self, client, project, role_type):
        res = _create_requirement(client, project, role_type, required_count=0)
        assert res.status_code == 422

    def test_ignore_toggle(self, client, project, role_type):
        rid = _create_requirement(client, project, role_type).get_json()["id"]

        res = client.patch(f"/api/v1/requirements/{rid}/ignore", json={"ignored": True})
        assert res.status_code == 200
        assert res.get_json()["ignored"] is True
        gaps = client.get(f"/api/v1/projects/{project['id']}/gaps").get_json()
        assert gaps["gaps"] == []

        res = client.patch(f"/api/v1/requirements/{rid}/ignore", json={"ignored": False})
        assert res.get_json()["ignored"] is False

    def test_grouped_listing(self, client, project, role_type, person):
        rid = _create_requirement(client, project, role_type).get_json()["id"]
        client.post(
            f"/api/v1/projects/{project['id']}/allocations",
            json={"person_id": person["id"], "requirement_id": rid, "allocation_percentage": 60,
                  "start_date": "2024-02-01", "end_date": "2024-02-29"},
        )

        res = client.get(f"/api/v1/projects/{project['id']}/requirements?grouped=1")

        items = res.get_json()["items"]
        assert len(items) == 1
        assert items[0]["id"] == rid
        assert [c["auto_generated_type"] for c in items[0]["children"]] == ["partial_gap"]

    def test_auto_generated_only_ignorable(self, client, project, role_type, person):
        rid = _create_requirement(client, project, role_type).get_json()["id"]
        client.post(
            f"/api/v1/projects/{project['id']}/allocations",
            json={"person_id": person["id"], "requirement_id": rid, "allocation_percentage": 60,
                  "start_date": "2024-02-01", "end_date": "2024-02-29"},
        )
        child = ResourceRequirement.query.filter_by(auto_generated_type=AutoGeneratedType.PARTIAL_GAP.value).one()

        assert client.put(f"/api/v1/requirements/{child.id}", json={"required_count": 2}).status_code == 422
        assert client.delete(f"/api/v1/requirements/{child.id}").status_code == 422
        assert client.patch(f"/api/v1/requirements/{child.id}/ignore", json={}).status_code == 200

    def test_delete_removes_children_and_orphans_allocations(self, client, project, role_type, person):
        rid = _create_requirement(client, project, role_type).get_json()["id"]
        alloc = client.post(
            f"/api/v1/projects/{project['id']}/allocations",
            json={"person_id": person["id"], "requirement_id": rid, "allocation_percentage": 60,
                  "start_date": "2024-02-01", "end_date": "2024-02-29"},
        ).get_json()

        res = client.delete(f"/api/v1/requirements/{rid}")

        assert res.status_code == 200
        data = res.get_json()
        assert len(data["deleted_requirements"]) == 2
        assert data["orphaned_allocations"] == 1
        assert ResourceRequirement.query.count() == 0
        db.session.expire_all()
        allocations = client.get(f"/api/v1/projects/{project['id']}/allocations").get_json()["items"]
        assert [a["id"] for a in allocations] == [alloc["id"]]
        assert allocations[0]["requirement_id"] is None


class TestGaps:
    def test_partial_allocation_scenario(self, client, project, role_type, person):
        """60% of one Engineer: shortfall shows once, on the partial-gap child."""
        rid = _create_requirement(client, project, role_type).get_json()["id"]
        alloc = client.post(
            f"/api/v1/projects/{project['id']}/allocations",
            json={"person_id": person["id"], "requirement_id": rid, "allocation_percentage": 60,
                  "start_date": "2024-02-01", "end_date": "2024-02-29"},
        ).get_json()

        partial = alloc["cascade"]["partial_gaps"][0]
        assert partial["required_count"] == 0.4
        assert partial["source_allocation_id"] == alloc["id"]
        assert (partial["start_date"], partial["end_date"]) == ("2024-02-01", "2024-02-29")

        gaps = client.get(f"/api/v1/projects/{project['id']}/gaps").get_json()
        assert [g["requirement_id"] for g in gaps["gaps"]] == [partial["id"]]
        assert gaps["total_gap"] == 0.4

    def test_org_views(self, client, project, role_type):
        _create_requirement(client, project, role_type, required_count=3)

        all_gaps = client.get("/api/v1/gaps").get_json()
        assert all_gaps["total"] == 1

        by_role = client.get(f"/api/v1/role-types/{role_type['id']}/gaps").get_json()
        assert by_role["gaps"][0]["gap_count"] == 3

        summary = client.get("/api/v1/gaps/summary?today=2024-01-15").get_json()
        assert summary["total_gaps"] == 1
        assert len(summary["critical_gaps"]) == 1

    def test_bad_summary_date(self, client):
        assert client.get("/api/v1/gaps/summary?today=not-a-date").status_code == 422
