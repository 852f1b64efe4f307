"""Infrastructure layer - Database, configuration and persistence"""

from .db import DatabaseEngine, get_engine, init_db
from .models import ClientModel, ProjectModel, SettingsModel, TaskModel
from .unit_of_work import UnitOfWork

__all__ = [
    "DatabaseEngine", "get_engine", "init_db",
    "ClientModel", "ProjectModel", "SettingsModel", "TaskModel",
    "UnitOfWork",
]
