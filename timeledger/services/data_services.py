"""
DataServices - One unit of work shared by every repository and service.

Architecture Decision: Coordinator over a shared session
Operations that touch several entities (a project and its first task) defer
their individual saves and commit once, so they persist together or not at
all.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from timeledger.domain.models import StoreDefaults
from timeledger.infra.db import ClientModel, DatabaseEngine, ProjectModel, TaskModel
from timeledger.infra.repository import (
    ClientRepository, ProjectRepository, SettingsRepository, TaskRepository
)
from timeledger.infra.unit_of_work import Clock, UnitOfWork
from timeledger.services.billing_service import BillingCalculator
from timeledger.services.timer_service import TimerService

logger = logging.getLogger(__name__)


class DataServices:
    """
    Entry point for the presentation layer: repositories, timer and billing
    over a single unit of work.
    """

    def __init__(self, session: AsyncSession, clock: Clock = datetime.now,
                 defaults: Optional[StoreDefaults] = None,
                 enforce_single_timer: bool = True):
        self.uow = UnitOfWork(session, clock=clock)
        self.client_repo = ClientRepository(self.uow)
        self.project_repo = ProjectRepository(self.uow)
        self.task_repo = TaskRepository(self.uow, enforce_single_timer=enforce_single_timer)
        self.settings_repo = SettingsRepository(self.uow, defaults)
        self.timer = TimerService(self.task_repo, enforce_single_timer=enforce_single_timer)

    @classmethod
    @asynccontextmanager
    async def open(cls, engine: DatabaseEngine, **kwargs) -> AsyncIterator["DataServices"]:
        """Open a session on `engine` and close it when the block exits"""
        services = cls(engine.get_session(), **kwargs)
        try:
            yield services
        finally:
            await services.uow.close()

    async def create_project_with_task(self, client: ClientModel, project_name: str,
                                       task_name: str) -> Tuple[ProjectModel, TaskModel]:
        """
        Create a project and its first task in one commit.

        Both names are validated before anything is added to the session, so
        a bad task name leaves no stray project behind.
        """
        self.project_repo.validate_fields(project_name)
        self.task_repo.validate_fields(task_name, client)

        project = await self.project_repo.create(client, project_name, defer_save=True)
        task = await self.task_repo.create(task_name, client, project, defer_save=True)
        # Single save for both
        await self.uow.save()
        logger.info(f"Created {project!r} with first {task!r}")
        return project, task

    async def billing_calculator(self) -> BillingCalculator:
        """Calculator bound to the current settings singleton"""
        settings = await self.settings_repo.get_or_create_settings()
        return BillingCalculator(settings)

    @property
    def has_changes(self) -> bool:
        return self.uow.has_changes

    async def save(self) -> None:
        """Commit pending changes from any repository; no-op if there are none"""
        await self.uow.save()

    async def rollback(self) -> None:
        await self.uow.rollback()
