"""
SQLAlchemy database models and configuration.

Architecture Decision: Why SQLAlchemy?
- The session is a ready-made unit of work: pending creates, updates and
  deletes are flushed in one transaction and commit or roll back together
- Relationship cascades express the delete policy next to the schema
- Async engine keeps store access off the caller's event loop
"""

from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import List, Optional
import os
import uuid

from sqlalchemy.ext.asyncio import AsyncAttrs, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import (
    String, Integer, DateTime, Boolean, Text, ForeignKey, Numeric, LargeBinary, Uuid, TypeDecorator
)

from timeledger.domain.models import BillingIncrement


class IncrementType(TypeDecorator):
    """Stores a BillingIncrement as its minute count"""
    impl = Integer
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return int(value) if value is not None else None

    def process_result_value(self, value, dialect):
        return BillingIncrement(value) if value is not None else None


# Base class for all models
class Base(AsyncAttrs, DeclarativeBase):
    pass


class TimestampMixin:
    """
    Identity and audit columns shared by every entity.

    Stamping is explicit: repositories build entities through `new()` and call
    `touch()` after a real field change. Nothing is set by store hooks.
    """
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    modified_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    @classmethod
    def new(cls, now: datetime, **fields):
        """Construct an entity with a fresh id and both timestamps set to `now`"""
        return cls(id=uuid.uuid4(), created_at=now, modified_at=now, **fields)

    def touch(self, now: datetime) -> None:
        self.modified_at = now


class ClientModel(TimestampMixin, Base):
    """SQLAlchemy model for Client entity"""
    __tablename__ = "clients"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    hourly_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    billing_increment: Mapped[Optional[BillingIncrement]] = mapped_column(IncrementType, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Deleting a client deletes everything it owns
    projects: Mapped[List["ProjectModel"]] = relationship(
        back_populates="client", cascade="all"
    )
    tasks: Mapped[List["TaskModel"]] = relationship(
        back_populates="client", cascade="all"
    )

    def __repr__(self) -> str:
        return f"<Client {self.name!r}>"


class ProjectModel(TimestampMixin, Base):
    """SQLAlchemy model for Project entity"""
    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    hourly_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    billing_increment: Mapped[Optional[BillingIncrement]] = mapped_column(IncrementType, nullable=True)
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False
    )

    client: Mapped[ClientModel] = relationship(back_populates="projects", lazy="joined")
    # No delete cascade: tasks outlive their project
    tasks: Mapped[List["TaskModel"]] = relationship(back_populates="project")

    def __repr__(self) -> str:
        return f"<Project {self.name!r}>"


class TaskModel(TimestampMixin, Base):
    """SQLAlchemy model for Task entity"""
    __tablename__ = "tasks"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    duration: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False
    )
    project_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True
    )

    client: Mapped[ClientModel] = relationship(back_populates="tasks", lazy="joined")
    project: Mapped[Optional[ProjectModel]] = relationship(back_populates="tasks", lazy="joined")

    @property
    def is_running(self) -> bool:
        return self.start_time is not None and self.end_time is None

    @property
    def is_completed(self) -> bool:
        return self.start_time is not None and self.end_time is not None

    def __repr__(self) -> str:
        return f"<Task {self.name!r}>"


class SettingsModel(TimestampMixin, Base):
    """SQLAlchemy model for the per-installation Settings singleton"""
    __tablename__ = "settings"

    default_hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    default_billing_increment: Mapped[BillingIncrement] = mapped_column(IncrementType, nullable=False)
    auto_pause_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    auto_pause_minutes: Mapped[int] = mapped_column(Integer, default=15, nullable=False)
    notification_settings: Mapped[Optional[bytes]] = mapped_column(LargeBinary, nullable=True)


class DatabaseEngine:
    """
    Manages database connection and session lifecycle.

    Singleton pattern ensures only one engine exists per application.
    """
    _instance: Optional['DatabaseEngine'] = None

    def __init__(self, db_url: str, echo: bool = False):
        self.engine = create_async_engine(db_url, echo=echo)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

    @classmethod
    def get_instance(cls, db_url: Optional[str] = None) -> 'DatabaseEngine':
        """Get or create the database engine instance"""
        if cls._instance is None:
            if db_url is None:
                # Default: Store in user's AppData on Windows, ~/.local/share on Linux
                if os.name == 'nt':  # Windows
                    data_dir = Path(os.getenv('APPDATA')) / 'timeledger'
                else:  # Linux/Mac
                    data_dir = Path.home() / '.local' / 'share' / 'timeledger'

                data_dir.mkdir(parents=True, exist_ok=True)
                db_path = data_dir / 'timeledger.db'
                db_url = f"sqlite+aiosqlite:///{db_path}"

            cls._instance = cls(db_url)
        return cls._instance

    async def create_tables(self):
        """Create all tables in the database"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    def get_session(self) -> AsyncSession:
        """Get a new database session"""
        return self.session_factory()

    async def dispose(self):
        await self.engine.dispose()


# Convenience functions
def get_engine(db_url: Optional[str] = None) -> DatabaseEngine:
    """Get the database engine instance"""
    return DatabaseEngine.get_instance(db_url)


async def init_db(db_url: Optional[str] = None) -> DatabaseEngine:
    """Initialize the database (create tables)"""
    engine = get_engine(db_url)
    await engine.create_tables()
    return engine
