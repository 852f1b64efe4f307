"""
SQLAlchemy ORM models.
Separated from db.py for cleaner imports.
"""

from .db import Base, ClientModel, ProjectModel, SettingsModel, TaskModel

__all__ = ["Base", "ClientModel", "ProjectModel", "SettingsModel", "TaskModel"]
