"""
Unit of Work shared by all repositories.

Architecture Decision: One session, many repositories
Every repository of a DataServices instance writes into the same AsyncSession,
so a coordinated operation (e.g. project + first task) is committed or
discarded as one transaction.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from timeledger.domain.errors import PersistenceError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class UnitOfWork:
    """
    Wraps one AsyncSession with a commit/rollback pair and a dirty-flag query.

    Queries autoflush pending objects into the open transaction. Such flushed
    but uncommitted work still counts as pending, otherwise save() would skip
    a commit it needs.
    """

    def __init__(self, session: AsyncSession, clock: Clock = datetime.now):
        self.session = session
        self.clock = clock
        # Serializes get-or-create style operations on this session
        self.lock = asyncio.Lock()
        self._flushed = False
        self._listener = self._on_flush
        event.listen(self.session.sync_session, "after_flush", self._listener)

    def _on_flush(self, session, flush_context):
        self._flushed = True

    def now(self) -> datetime:
        return self.clock()

    @property
    def has_changes(self) -> bool:
        """True if anything was created, changed or deleted since the last commit"""
        if self._flushed or self.session.new or self.session.deleted:
            return True
        return any(self.session.is_modified(obj) for obj in self.session.dirty)

    def add(self, entity) -> None:
        self.session.add(entity)

    async def delete(self, entity) -> None:
        # The session can only delete rows it has written
        if entity in self.session.new:
            try:
                await self.session.flush()
            except SQLAlchemyError as e:
                logger.error(f"Flush before delete failed: {e}")
                raise PersistenceError(f"Flush failed: {e}") from e
        await self.session.delete(entity)

    async def save(self) -> None:
        """Commit pending mutations. No-op when nothing is pending."""
        if not self.has_changes:
            return
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Commit failed: {e}")
            raise PersistenceError(f"Commit failed: {e}") from e
        self._flushed = False
        logger.debug("Unit of work committed")

    async def save_if_needed(self, defer_save: bool) -> None:
        if not defer_save:
            await self.save()

    async def rollback(self) -> None:
        """Discard every pending mutation"""
        await self.session.rollback()
        self._flushed = False
        logger.info("Unit of work rolled back")

    async def refresh(self, entity) -> None:
        """Reload an entity's columns from the store (e.g. after a rollback)"""
        await self.session.refresh(entity)

    async def close(self) -> None:
        event.remove(self.session.sync_session, "after_flush", self._listener)
        await self.session.close()
