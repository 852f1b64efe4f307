"""
Timer Service - Core time tracking logic.

Each task moves through NOT_STARTED -> RUNNING -> COMPLETED:
- start_timer stamps start_time
- stop_timer stamps end_time and stores the duration in whole seconds

UI state (which client/project is selected, which task the stopwatch shows)
lives on an explicit TimerSession object instead of process-wide globals.
"""

import datetime
import logging
from typing import Optional

from timeledger.domain.errors import ValidationError
from timeledger.domain.models import TimerState
from timeledger.infra.db import ClientModel, ProjectModel, SettingsModel, TaskModel
from timeledger.infra.repository import TaskRepository
from timeledger.utils import format_duration

logger = logging.getLogger(__name__)


class TimerSession:
    """
    Stopwatch context for one user-facing timer.

    Changing the selected client clears the selected project, since a project
    never belongs to another client.
    """

    def __init__(self, client: Optional[ClientModel] = None):
        self._selected_client = client
        self._selected_project: Optional[ProjectModel] = None
        self.current_task: Optional[TaskModel] = None
        # Seconds recorded by tasks stopped during this session
        self.accumulated_seconds: int = 0

    @property
    def selected_client(self) -> Optional[ClientModel]:
        return self._selected_client

    @selected_client.setter
    def selected_client(self, client: Optional[ClientModel]):
        if client is not self._selected_client:
            self._selected_project = None
        self._selected_client = client

    @property
    def selected_project(self) -> Optional[ProjectModel]:
        return self._selected_project

    @selected_project.setter
    def selected_project(self, project: Optional[ProjectModel]):
        if project is not None:
            if self._selected_client is None:
                self._selected_client = project.client
            elif project.client.id != self._selected_client.id:
                raise ValidationError.client_mismatch()
        self._selected_project = project

    @property
    def is_running(self) -> bool:
        return self.current_task is not None and self.current_task.is_running


class TimerService:
    """
    The time tracking engine. Manages timer transitions but knows nothing
    about the UI.
    """

    def __init__(self, task_repo: TaskRepository, enforce_single_timer: bool = True):
        self.task_repo = task_repo
        self.uow = task_repo.uow
        self.enforce_single_timer = enforce_single_timer

    @staticmethod
    def state_of(task: TaskModel) -> TimerState:
        if task.start_time is None:
            return TimerState.NOT_STARTED
        if task.end_time is None:
            return TimerState.RUNNING
        return TimerState.COMPLETED

    async def start_timer(self, task: TaskModel, defer_save: bool = False) -> TaskModel:
        """
        Start tracking time for a task.

        Completed tasks are not restarted; record new work as a new task.
        """
        state = self.state_of(task)
        if state is TimerState.RUNNING:
            raise ValidationError.task_already_running()
        if state is TimerState.COMPLETED:
            raise ValidationError.task_completed()
        await self._check_no_other_timer(task)

        now = self.uow.now()
        task.start_time = now
        task.touch(now)
        logger.info(f"Timer started for {task!r}")
        await self.uow.save_if_needed(defer_save)
        return task

    async def stop_timer(self, task: TaskModel, defer_save: bool = False) -> TaskModel:
        """
        Stop tracking a running task and record its duration.
        """
        if self.state_of(task) is not TimerState.RUNNING:
            raise ValidationError.task_not_running()

        # A clock that stepped backwards must not produce a negative duration
        end_time = max(self.uow.now(), task.start_time)
        task.end_time = end_time
        task.duration = int((end_time - task.start_time).total_seconds())
        task.touch(end_time)
        logger.info(f"Timer stopped for {task!r} after {format_duration(task.duration)}")
        await self.uow.save_if_needed(defer_save)
        return task

    async def _check_no_other_timer(self, task: Optional[TaskModel]) -> None:
        if self.enforce_single_timer:
            await self.task_repo.check_no_other_timer(task)

    async def start_new_task(self, session: TimerSession, name: str,
                             defer_save: bool = False) -> TaskModel:
        """
        Create a task under the session's selection and start it.

        A task already running in this session is stopped first. Nothing is
        written if the new task cannot be started.
        """
        if session.selected_client is None:
            raise ValidationError.invalid_field("Select a client before starting a timer")
        self.task_repo.validate_fields(name, session.selected_client, session.selected_project)

        # The session's own task is about to be stopped, so it does not count
        await self._check_no_other_timer(session.current_task)

        await self.stop_current(session, defer_save=True)
        task = await self.task_repo.create(
            name,
            session.selected_client,
            session.selected_project,
            defer_save=True
        )
        await self.start_timer(task, defer_save=True)
        session.current_task = task
        await self.uow.save_if_needed(defer_save)
        return task

    async def stop_current(self, session: TimerSession,
                           defer_save: bool = False) -> Optional[TaskModel]:
        """Stop the session's running task, if any, and bank its time"""
        if not session.is_running:
            return None
        task = await self.stop_timer(session.current_task, defer_save=defer_save)
        session.accumulated_seconds += task.duration
        session.current_task = None
        return task

    async def toggle(self, session: TimerSession, name: str) -> Optional[TaskModel]:
        """Stop the running task, or start a new one named `name`"""
        if session.is_running:
            return await self.stop_current(session)
        return await self.start_new_task(session, name)

    def elapsed_seconds(self, session: TimerSession,
                        now: Optional[datetime.datetime] = None) -> int:
        """
        Seconds to display on the stopwatch: banked time plus the running
        task's time so far. Computed on read, never stored.
        """
        total = session.accumulated_seconds
        if session.is_running:
            now = now or self.uow.now()
            total += max(int((now - session.current_task.start_time).total_seconds()), 0)
        return total

    def format_elapsed(self, session: TimerSession,
                       now: Optional[datetime.datetime] = None) -> str:
        return format_duration(self.elapsed_seconds(session, now))

    @staticmethod
    def should_auto_pause(settings: SettingsModel, idle_seconds: float) -> bool:
        """
        Whether the presentation layer should stop the timer after
        `idle_seconds` without user activity.
        """
        if not settings.auto_pause_enabled:
            return False
        return idle_seconds >= settings.auto_pause_minutes * 60
