"""
API tests for leave periods: CRUD, the status state machine and the
cascade object reported with each mutation.
"""

import pytest

from resource_planner.models.people import LEAVE_TRANSITIONS
from resource_planner.models.project import ResourceRequirement

WINDOW = {"start_date": "2024-03-10", "end_date": "2024-03-15"}


@pytest.fixture()
def allocation(client, project, person):
    res = client.post(
        f"/api/v1/projects/{project['id']}/allocations",
        json={"person_id": person["id"], "allocation_percentage": 100,
              "start_date": "2024-03-01", "end_date": "2024-03-31"},
    )
    assert res.status_code == 201
    return res.get_json()


def _create_leave(client, person, status=None, **window):
    body = {**WINDOW, **window}
    if status:
        body["status"] = status
    res = client.post(f"/api/v1/people/{person['id']}/leave", json=body)
    assert res.status_code == 201
    return res.get_json()


def _set_status(client, leave_id, status):
    return client.patch(f"/api/v1/leave/{leave_id}/status", json={"status": status})


class TestLeaveCrud:
    def test_create_defaults_to_pending(self, client, person, allocation):
        leave = _create_leave(client, person)
        assert leave["status"] == "pending"
        assert leave["cascade"]["created"] == []
        assert leave["cascade"]["allocation_ids"] == [allocation["id"]]

    def test_create_requires_dates(self, client, person):
        res = client.post(f"/api/v1/people/{person['id']}/leave", json={"start_date": "2024-03-10"})
        assert res.status_code == 400

    def test_reversed_dates_rejected(self, client, person):
        res = client.post(
            f"/api/v1/people/{person['id']}/leave",
            json={"start_date": "2024-03-15", "end_date": "2024-03-10"},
        )
        assert res.status_code == 422

    def test_list_filtered_by_status(self, client, person):
        _create_leave(client, person)
        _create_leave(client, person, status="approved", start_date="2024-05-01", end_date="2024-05-02")

        res = client.get(f"/api/v1/people/{person['id']}/leave?status=approved")

        assert [lp["start_date"] for lp in res.get_json()["items"]] == ["2024-05-01"]

    def test_update_cannot_change_status(self, client, person):
        leave = _create_leave(client, person)
        res = client.put(f"/api/v1/leave/{leave['id']}", json={"status": "approved"})
        assert res.status_code == 422

    def test_leave_conflicts_view(self, client, person):
        _create_leave(client, person)
        res = client.get(f"/api/v1/people/{person['id']}/leave-conflicts?start=2024-03-01&end=2024-03-31")
        conflicts = res.get_json()["conflicts"]
        assert len(conflicts["pending"]) == 1
        assert conflicts["approved"] == []


class TestStatusMachine:
    @pytest.mark.parametrize("source,target", [
        (src, dst) for src, targets in LEAVE_TRANSITIONS.items() for dst in targets
    ])
    def test_valid_transitions(self, client, person, source, target):
        leave = _create_leave(client, person, status=source)
        res = _set_status(client, leave["id"], target)
        assert res.status_code == 200
        assert res.get_json()["status"] == target

    @pytest.mark.parametrize("source", ["approved", "unapproved"])
    def test_back_to_pending_rejected(self, client, person, source):
        leave = _create_leave(client, person, status=source)
        assert _set_status(client, leave["id"], "pending").status_code == 422

    def test_unknown_status_rejected(self, client, person):
        leave = _create_leave(client, person)
        assert _set_status(client, leave["id"], "cancelled").status_code == 422

    def test_missing_leave_is_404(self, client):
        assert _set_status(client, 999, "approved").status_code == 404


class TestLeaveCascade:
    def test_approve_unapprove_round_trip(self, client, person, allocation):
        leave = _create_leave(client, person)

        approved = _set_status(client, leave["id"], "approved").get_json()
        assert len(approved["cascade"]["created"]) == 1
        assert ResourceRequirement.query.count() == 1

        unapproved = _set_status(client, leave["id"], "unapproved").get_json()
        assert len(unapproved["cascade"]["deleted"]) == 1
        assert ResourceRequirement.query.count() == 0

    def test_reapproval_is_idempotent(self, client, person, allocation):
        leave = _create_leave(client, person)
        _set_status(client, leave["id"], "approved")
        again = _set_status(client, leave["id"], "approved").get_json()

        assert again["cascade"]["created"] == []
        assert ResourceRequirement.query.count() == 1

    def test_delete_approved_leave_retracts(self, client, person, allocation):
        leave = _create_leave(client, person, status="approved")
        assert ResourceRequirement.query.count() == 1

        res = client.delete(f"/api/v1/leave/{leave['id']}")

        assert res.status_code == 200
        assert len(res.get_json()["cascade"]["deleted"]) == 1
        assert ResourceRequirement.query.count() == 0

    def test_moving_dates_moves_coverage(self, client, person, allocation):
        leave = _create_leave(client, person, status="approved")

        res = client.put(f"/api/v1/leave/{leave['id']}", json={"start_date": "2024-03-20", "end_date": "2024-03-22"})

        assert res.status_code == 200
        rows = ResourceRequirement.query.all()
        assert [(r.start_date.isoformat(), r.end_date.isoformat()) for r in rows] == [("2024-03-20", "2024-03-22")]

    def test_notes_only_update_runs_no_cascade(self, client, person, allocation):
        leave = _create_leave(client, person, status="approved")
        res = client.put(f"/api/v1/leave/{leave['id']}", json={"notes": "family trip"})
        assert res.status_code == 200
        assert res.get_json()["cascade"] is None
        assert res.get_json()["notes"] == "family trip"
