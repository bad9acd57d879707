"""
WSGI / Flask-Migrate entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi db upgrade
    flask --app wsgi regenerate-requirements --project-id 3
"""

from resource_planner import create_app

app = create_app()
