"""
Shared pytest fixtures for the Resource Planner test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - store: empty InMemoryStore for engine unit tests
    - engineer / person_x: seeded role type and person in ``store``
    - role_type, person, project: rows created through the API
"""

from datetime import date

import pytest

from resource_planner import create_app
from resource_planner.models import db as _db
from resource_planner.store import InMemoryStore


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── In-memory engine fixtures ────────────────────────────────────────────


@pytest.fixture()
def store():
    return InMemoryStore()


@pytest.fixture()
def engineer(store):
    return store.add_role_type("Engineer")


@pytest.fixture()
def person_x(store, engineer):
    return store.add_person("Person X", engineer.id)


@pytest.fixture()
def project_p(store):
    return store.add_project("Project P", date(2024, 1, 1), date(2024, 6, 30))


# ── API convenience fixtures ─────────────────────────────────────────────


@pytest.fixture()
def role_type(client):
    """Create and return an 'Engineer' role type via the API."""
    res = client.post("/api/v1/role-types", json={"name": "Engineer"})
    assert res.status_code == 201
    return res.get_json()


@pytest.fixture()
def person(client, role_type):
    res = client.post("/api/v1/people", json={"name": "Person X", "role_type_id": role_type["id"]})
    assert res.status_code == 201
    return res.get_json()


@pytest.fixture()
def project(client):
    res = client.post(
        "/api/v1/projects",
        json={"name": "Project P", "start_date": "2024-01-01", "end_date": "2024-06-30"},
    )
    assert res.status_code == 201
    return res.get_json()
