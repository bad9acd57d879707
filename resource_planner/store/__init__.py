"""
Resource Planner
Persistence port and its adapters.

    from resource_planner.store import get_store

    store = get_store()          # SqlAlchemyStore over db.session
    store = InMemoryStore()      # dict-backed, for tests and what-if runs
"""

from resource_planner.store.base import (
    HANDLED_STORE_ERRORS,
    ResourceStore,
    normalise_requirement_fields,
)
from resource_planner.store.memory import InMemoryStore
from resource_planner.store.sqlalchemy_store import SqlAlchemyStore


def get_store() -> SqlAlchemyStore:
    """Return a store bound to the current Flask-SQLAlchemy session."""
    return SqlAlchemyStore()


__all__ = [
    "HANDLED_STORE_ERRORS",
    "InMemoryStore",
    "ResourceStore",
    "SqlAlchemyStore",
    "get_store",
    "normalise_requirement_fields",
]
