"""
Resource Planner
Flask Application Factory.

Usage:
    from resource_planner import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from resource_planner.config import config
from resource_planner.middleware.logging_config import configure_logging
from resource_planner.models import db

logger = logging.getLogger(__name__)


# ── SQLite connection setup (global engine events) ──────────────────────

@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _configure_sqlite(dbapi_conn, connection_record):
    """Enable FK enforcement and hand transaction control to SQLAlchemy."""
    if "sqlite" in type(dbapi_conn).__module__:
        # pysqlite's implicit BEGIN breaks SAVEPOINT; emit BEGIN ourselves
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@_sa_event.listens_for(_sa_engine.Engine, "begin")
def _sqlite_begin(conn):
    if conn.dialect.name == "sqlite":
        conn.exec_driver_sql("BEGIN")


migrate = Migrate()


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: One of "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    # ProductionConfig validates required env vars on instantiation
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from resource_planner.models import people as _people_models    # noqa: F401
    from resource_planner.models import project as _project_models  # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///") and ":memory:" not in app.config["SQLALCHEMY_DATABASE_URI"]:
        os.makedirs(app.instance_path, exist_ok=True)
    with app.app_context():
        db.create_all()
        app.logger.debug("db.create_all() completed")

    # ── Blueprints ───────────────────────────────────────────────────────
    from resource_planner.blueprints.gaps_bp import gaps_bp
    from resource_planner.blueprints.health_bp import health_bp
    from resource_planner.blueprints.people_bp import people_bp
    from resource_planner.blueprints.project_bp import project_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(people_bp)
    app.register_blueprint(project_bp)
    app.register_blueprint(gaps_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("regenerate-requirements")
    @click.option("--project-id", type=int, default=None, help="Limit to one project.")
    def regenerate_requirements_cmd(project_id):
        """Re-run derived-requirement reconciliation for every allocation."""
        from resource_planner.services.auto_generation import process_allocation_auto_generation
        from resource_planner.services.allocation_service import finish_cascade
        from resource_planner.store import get_store

        store = get_store()
        if project_id is not None:
            allocations = store.list_project_allocations(project_id)
        else:
            allocations = store.list_all_allocations()

        created = deleted = failed = 0
        for allocation in allocations:
            result = finish_cascade(store, process_allocation_auto_generation(store, allocation.id))
            if not result.success:
                failed += 1
                continue
            created += len(result.created)
            deleted += len(result.deleted)

        click.echo(
            f"Processed {len(allocations)} allocations: "
            f"{created} created, {deleted} removed, {failed} failed."
        )

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path, "code": "ERR_NOT_FOUND"}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500

    return app
