"""
Resource Planner
SQLAlchemy extension instance shared by every model module.

Model modules import ``db`` from here; this package deliberately does not
import them back so that ``from resource_planner.models import db`` never
triggers a circular import.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
