"""
Repository Pattern Implementation.

Architecture Decision: Why Repository Pattern?
Separates data access logic from business logic. Makes it easy to:
- Keep validation in one place per entity
- Share one unit of work between repositories for atomic operations
- Swap the database for an in-memory one in tests

Repositories hand out live ORM entities. Mutations stay pending in the shared
session until the unit of work commits, so `defer_save=True` lets callers
batch several operations into one transaction.
"""

import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError

from timeledger.domain.errors import ValidationError
from timeledger.domain.models import (
    BillingIncrement, ClientFields, ClientUpdate, NotificationPreferences, ProjectFields,
    ProjectUpdate, SettingsUpdate, StoreDefaults, TaskFields, TaskUpdate
)
from timeledger.infra.db import Base, ClientModel, ProjectModel, SettingsModel, TaskModel
from timeledger.infra.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)
SchemaT = TypeVar("SchemaT", bound=BaseModel)


class BaseRepository(Generic[ModelT]):
    """
    Operations common to every entity: filtered listing, counting, existence,
    field updates and deletion.
    """

    model: Type[ModelT]
    update_schema: Type[BaseModel]
    default_order: tuple = ()

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    @property
    def session(self):
        return self.uow.session

    async def list(self, *criteria, order_by=None) -> List[ModelT]:
        """
        Get entities matching all `criteria`, ordered by `order_by`
        (a column expression or a sequence of them).

        Store errors are logged and produce an empty list.
        """
        if order_by is None:
            order_by = self.default_order
        elif not isinstance(order_by, (list, tuple)):
            order_by = (order_by,)

        stmt = select(self.model)
        if criteria:
            stmt = stmt.where(*criteria)
        try:
            result = await self.session.execute(stmt.order_by(*order_by))
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.warning(f"Listing {self.model.__name__} failed: {e}")
            return []

    async def count(self, *criteria) -> int:
        """Count entities matching all `criteria` without loading them"""
        stmt = select(func.count()).select_from(self.model)
        if criteria:
            stmt = stmt.where(*criteria)
        try:
            result = await self.session.execute(stmt)
            return result.scalar_one()
        except SQLAlchemyError as e:
            logger.warning(f"Counting {self.model.__name__} failed: {e}")
            return 0

    async def exists(self, *criteria) -> bool:
        return await self.count(*criteria) > 0

    async def get_by_id(self, entity_id: uuid.UUID) -> Optional[ModelT]:
        """Get a specific entity by ID"""
        return await self.session.get(self.model, entity_id)

    async def update(self, entity: ModelT, defer_save: bool = False, **changes) -> ModelT:
        """
        Apply field changes to an existing entity.

        Every change is validated before any attribute is written. The entity
        is only touched when a value actually differs.
        """
        values = self._validate_update(entity, changes)
        await self._check_update(entity, values)
        if self._apply(entity, values):
            logger.info(f"Updated {entity!r}: {', '.join(values)}")
        await self.uow.save_if_needed(defer_save)
        return entity

    async def delete(self, entity: ModelT, defer_save: bool = False) -> None:
        """Mark an entity for removal"""
        await self.uow.delete(entity)
        logger.info(f"Deleted {entity!r}")
        await self.uow.save_if_needed(defer_save)

    def _validate_update(self, entity: ModelT, changes: Dict[str, Any]) -> Dict[str, Any]:
        values = self._parse(self.update_schema, changes).model_dump(exclude_unset=True)
        if "name" in values:
            self._check_name(values["name"])
        return values

    async def _check_update(self, entity: ModelT, values: Dict[str, Any]) -> None:
        """Checks that need the store, run after field validation"""

    def _apply(self, entity: ModelT, values: Dict[str, Any]) -> bool:
        changed = False
        for field, value in values.items():
            if getattr(entity, field) != value:
                setattr(entity, field, value)
                changed = True
        if changed:
            entity.touch(self.uow.now())
        return changed

    @staticmethod
    def _parse(schema: Type[SchemaT], data: Dict[str, Any]) -> SchemaT:
        try:
            return schema(**data)
        except PydanticValidationError as e:
            raise ValidationError.invalid_field(str(e)) from e

    @staticmethod
    def _check_name(name: str) -> None:
        # Field sets strip whitespace, so an all-blank name arrives empty
        if not name:
            raise ValidationError.empty_name()


class ClientRepository(BaseRepository[ClientModel]):
    """
    Handles all Client-related database operations.
    """

    model = ClientModel
    update_schema = ClientUpdate
    default_order = (ClientModel.name.asc(),)

    async def fetch_all_clients(self) -> List[ClientModel]:
        """Get all clients sorted by name"""
        return await self.list()

    async def get_active_clients(self) -> List[ClientModel]:
        """Get all active clients sorted by name"""
        return await self.list(ClientModel.is_active.is_(True))

    async def has_clients(self) -> bool:
        return await self.exists()

    def validate_fields(self, name: str, **fields) -> ClientFields:
        parsed = self._parse(ClientFields, dict(name=name, **fields))
        self._check_name(parsed.name)
        return parsed

    async def create(self, name: str, is_active: bool = True,
                     hourly_rate: Optional[Decimal] = None,
                     billing_increment: Optional[BillingIncrement] = None,
                     notes: Optional[str] = None,
                     defer_save: bool = False) -> ClientModel:
        """Create a new client"""
        fields = self.validate_fields(
            name,
            is_active=is_active,
            hourly_rate=hourly_rate,
            billing_increment=billing_increment,
            notes=notes
        )
        client = ClientModel.new(self.uow.now(), **fields.model_dump())
        self.uow.add(client)
        logger.info(f"Created {client!r}")
        await self.uow.save_if_needed(defer_save)
        return client

    async def delete(self, client: ClientModel, defer_save: bool = False) -> None:
        """
        Delete a client together with its projects and every task it owns,
        directly or through one of its projects.
        """
        tasks = list(await client.awaitable_attrs.tasks)
        for project in await client.awaitable_attrs.projects:
            for task in await project.awaitable_attrs.tasks:
                if task not in tasks:
                    tasks.append(task)

        for task in tasks:
            await self.uow.delete(task)
        # Projects follow through the relationship cascade
        await self.uow.delete(client)
        logger.info(f"Deleted {client!r} with {len(tasks)} task(s)")
        await self.uow.save_if_needed(defer_save)


class ProjectRepository(BaseRepository[ProjectModel]):
    """
    Handles all Project-related database operations.
    """

    model = ProjectModel
    update_schema = ProjectUpdate
    default_order = (ProjectModel.name.asc(),)

    async def fetch_all_projects(self) -> List[ProjectModel]:
        return await self.list()

    async def get_projects(self, client: ClientModel) -> List[ProjectModel]:
        """Get the projects of one client sorted by name"""
        return await self.list(ProjectModel.client_id == client.id)

    async def get_active_projects(self, client: ClientModel) -> List[ProjectModel]:
        return await self.list(
            ProjectModel.client_id == client.id,
            ProjectModel.is_active.is_(True)
        )

    async def has_projects(self, client: Optional[ClientModel] = None) -> bool:
        if client is None:
            return await self.exists()
        return await self.exists(ProjectModel.client_id == client.id)

    def validate_fields(self, name: str, **fields) -> ProjectFields:
        parsed = self._parse(ProjectFields, dict(name=name, **fields))
        self._check_name(parsed.name)
        return parsed

    async def create(self, client: ClientModel, name: str, is_active: bool = True,
                     hourly_rate: Optional[Decimal] = None,
                     billing_increment: Optional[BillingIncrement] = None,
                     defer_save: bool = False) -> ProjectModel:
        """Create a new project owned by `client`"""
        fields = self.validate_fields(
            name,
            is_active=is_active,
            hourly_rate=hourly_rate,
            billing_increment=billing_increment
        )
        project = ProjectModel.new(self.uow.now(), client=client, **fields.model_dump())
        self.uow.add(project)
        logger.info(f"Created {project!r} for {client!r}")
        await self.uow.save_if_needed(defer_save)
        return project

    async def delete(self, project: ProjectModel, defer_save: bool = False) -> None:
        """
        Delete a project. Its tasks are kept: they lose the project
        reference but stay with their client.
        """
        now = self.uow.now()
        orphans = list(await project.awaitable_attrs.tasks)
        for task in orphans:
            task.project = None
            task.touch(now)

        await self.uow.delete(project)
        logger.info(f"Deleted {project!r}, detached {len(orphans)} task(s)")
        await self.uow.save_if_needed(defer_save)


class TaskRepository(BaseRepository[TaskModel]):
    """
    Handles all Task-related database operations.

    Timer transitions live in TimerService; this repository only creates,
    edits, queries and deletes tasks.
    """

    model = TaskModel
    update_schema = TaskUpdate
    default_order = (TaskModel.name.asc(),)

    def __init__(self, uow: UnitOfWork, enforce_single_timer: bool = True):
        super().__init__(uow)
        self.enforce_single_timer = enforce_single_timer

    async def has_tasks(self) -> bool:
        return await self.exists()

    async def get_tasks_for_client(self, client: ClientModel) -> List[TaskModel]:
        """Get all tasks of a client, most recently created first"""
        return await self.list(
            TaskModel.client_id == client.id,
            order_by=TaskModel.created_at.desc()
        )

    async def get_tasks_for_project(self, project: ProjectModel) -> List[TaskModel]:
        """Get all tasks of a project, most recently created first"""
        return await self.list(
            TaskModel.project_id == project.id,
            order_by=TaskModel.created_at.desc()
        )

    async def get_completed_tasks(self, client: ClientModel) -> List[TaskModel]:
        """Get the client's tasks that have both a start and an end time"""
        return await self.list(
            TaskModel.client_id == client.id,
            TaskModel.start_time.is_not(None),
            TaskModel.end_time.is_not(None),
            order_by=TaskModel.created_at.desc()
        )

    async def get_running_tasks(self) -> List[TaskModel]:
        """Get every task with a running timer, across all clients"""
        return await self.list(
            TaskModel.start_time.is_not(None),
            TaskModel.end_time.is_(None),
            order_by=TaskModel.start_time.desc()
        )

    async def check_no_other_timer(self, task: Optional[TaskModel]) -> None:
        """Raise TIMER_ALREADY_ACTIVE if a task other than `task` is running"""
        running = [t for t in await self.get_running_tasks() if t is not task]
        if running:
            raise ValidationError.timer_already_active(running[0].name)

    def validate_fields(self, name: str, client: ClientModel,
                        project: Optional[ProjectModel] = None, **fields) -> TaskFields:
        parsed = self._parse(TaskFields, dict(name=name, **fields))
        self._check_name(parsed.name)
        self._check_same_client(client, project)
        return parsed

    async def create(self, name: str, client: ClientModel,
                     project: Optional[ProjectModel] = None,
                     notes: Optional[str] = None,
                     defer_save: bool = False) -> TaskModel:
        """Create a new task, not yet started"""
        fields = self.validate_fields(name, client, project, notes=notes)
        task = TaskModel.new(
            self.uow.now(),
            client=client,
            project=project,
            duration=0,
            **fields.model_dump()
        )
        self.uow.add(task)
        logger.info(f"Created {task!r} for {client!r}")
        await self.uow.save_if_needed(defer_save)
        return task

    async def assign_project(self, task: TaskModel, project: Optional[ProjectModel],
                             defer_save: bool = False) -> TaskModel:
        """Move a task into `project` (or out of any project with None)"""
        self._check_same_client(task.client, project)
        if task.project is not project:
            task.project = project
            task.touch(self.uow.now())
        await self.uow.save_if_needed(defer_save)
        return task

    def _validate_update(self, task: TaskModel, changes: Dict[str, Any]) -> Dict[str, Any]:
        values = super()._validate_update(task, changes)

        if "end_time" in values and values["end_time"] is None and task.end_time is not None:
            raise ValidationError.invalid_field("end_time of a completed task cannot be cleared")

        start = values.get("start_time", task.start_time)
        end = values.get("end_time", task.end_time)
        if end is not None and (start is None or end < start):
            raise ValidationError.invalid_time_range()

        # Edited timestamps make the stored duration stale
        times_changed = "start_time" in values or "end_time" in values
        if times_changed and "duration" not in values and start is not None and end is not None:
            values["duration"] = int((end - start).total_seconds())
        return values

    async def _check_update(self, task: TaskModel, values: Dict[str, Any]) -> None:
        # Setting a start time by hand starts a timer too
        start = values.get("start_time", task.start_time)
        end = values.get("end_time", task.end_time)
        if start is not None and end is None and not task.is_running and self.enforce_single_timer:
            await self.check_no_other_timer(task)

    @staticmethod
    def _check_same_client(client: ClientModel, project: Optional[ProjectModel]) -> None:
        if project is not None and project.client.id != client.id:
            raise ValidationError.client_mismatch()


class SettingsRepository(BaseRepository[SettingsModel]):
    """
    Handles the per-installation Settings singleton.
    """

    model = SettingsModel
    update_schema = SettingsUpdate
    default_order = (SettingsModel.created_at.asc(),)

    def __init__(self, uow: UnitOfWork, defaults: Optional[StoreDefaults] = None):
        super().__init__(uow)
        self.defaults = defaults or StoreDefaults()

    async def get_or_create_settings(self, defer_save: bool = False) -> SettingsModel:
        """
        Get the settings singleton, creating it with the configured defaults
        on first access.

        Concurrent callers on the same unit of work are serialized, so only
        one row is ever created.
        """
        async with self.uow.lock:
            result = await self.session.execute(
                select(SettingsModel).order_by(SettingsModel.created_at.asc()).limit(1)
            )
            settings = result.scalar_one_or_none()
            if settings is not None:
                return settings

            settings = SettingsModel.new(self.uow.now(), **self.defaults.model_dump())
            self.uow.add(settings)
            logger.info("Created settings with defaults")
            await self.uow.save_if_needed(defer_save)
            return settings

    async def ensure_settings_exist(self) -> None:
        await self.get_or_create_settings()

    def get_notification_preferences(self, settings: SettingsModel) -> NotificationPreferences:
        """Decode the notification blob. An unreadable blob yields the defaults."""
        if not settings.notification_settings:
            return NotificationPreferences()
        try:
            return NotificationPreferences.model_validate_json(settings.notification_settings)
        except PydanticValidationError as e:
            logger.warning(f"Ignoring unreadable notification settings: {e}")
            return NotificationPreferences()

    async def set_notification_preferences(self, settings: SettingsModel,
                                           preferences: NotificationPreferences,
                                           defer_save: bool = False) -> SettingsModel:
        blob = preferences.model_dump_json().encode("utf-8")
        if settings.notification_settings != blob:
            settings.notification_settings = blob
            settings.touch(self.uow.now())
        await self.uow.save_if_needed(defer_save)
        return settings
