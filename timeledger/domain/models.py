"""
Domain value types using Pydantic for validation.

The persisted entities live in the infra layer as SQLAlchemy models; this
module holds the values that flow in and out of them: the billing increment
enum, field sets used to validate repository input, and small result types.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


class BillingIncrement(IntEnum):
    """Minimum chargeable time unit, in minutes"""
    ONE_MINUTE = 1
    FIVE_MINUTES = 5
    TEN_MINUTES = 10
    FIFTEEN_MINUTES = 15
    THIRTY_MINUTES = 30
    SIXTY_MINUTES = 60

    @property
    def seconds(self) -> int:
        return self.value * 60


class TimerState(str, Enum):
    """Timer lifecycle of a task, derived from its timestamps"""
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"


class StoreDefaults(BaseModel):
    """
    Values used when the Settings singleton is first created.

    Loaded from configuration so an installation can change them without
    touching code.
    """
    default_hourly_rate: Decimal = Field(default=Decimal("100.0"), ge=0)
    default_billing_increment: BillingIncrement = BillingIncrement.TEN_MINUTES
    auto_pause_enabled: bool = False
    auto_pause_minutes: int = Field(default=15, ge=1)


class NotificationPreferences(BaseModel):
    """
    Structured view of the opaque notification blob stored on Settings.
    """
    enabled: bool = True
    remind_after_minutes: int = Field(default=60, ge=1)
    daily_summary: bool = False


# Field sets validated by the repositories. Whitespace is stripped from every
# string so the empty-name rule sees the trimmed value.

class ClientFields(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str
    is_active: bool = True
    hourly_rate: Optional[Decimal] = Field(default=None, ge=0)
    billing_increment: Optional[BillingIncrement] = None
    notes: Optional[str] = None


class ClientUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = ""
    is_active: bool = True
    hourly_rate: Optional[Decimal] = Field(default=None, ge=0)
    billing_increment: Optional[BillingIncrement] = None
    notes: Optional[str] = None


class ProjectFields(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str
    is_active: bool = True
    hourly_rate: Optional[Decimal] = Field(default=None, ge=0)
    billing_increment: Optional[BillingIncrement] = None


class ProjectUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = ""
    is_active: bool = True
    hourly_rate: Optional[Decimal] = Field(default=None, ge=0)
    billing_increment: Optional[BillingIncrement] = None


class TaskFields(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str
    notes: Optional[str] = None


class TaskUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = ""
    notes: Optional[str] = None
    duration: int = Field(default=0, ge=0)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def to_naive_local(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Stored times are naive local time, like the clock that stamps them"""
        if value is not None and value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value


class SettingsUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    default_hourly_rate: Decimal = Field(default=Decimal("100.0"), ge=0)
    default_billing_increment: BillingIncrement = BillingIncrement.TEN_MINUTES
    auto_pause_enabled: bool = False
    auto_pause_minutes: int = Field(default=15, ge=1)


class BillableLine(BaseModel):
    """Invoiceable result for one completed task. Computed on demand, never stored."""
    model_config = ConfigDict(frozen=True)

    task_name: str
    duration_seconds: int
    hourly_rate: Decimal
    increment: BillingIncrement
    billed_minutes: int
    amount: Decimal
