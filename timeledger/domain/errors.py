"""
Error taxonomy for the tracking core.

Two families:
- ValidationError: caller-correctable input problems, raised before anything
  is written to the session. Safe to retry with corrected input.
- PersistenceError: the store refused a commit. Never retried; the caller
  decides whether to roll back.
"""

from enum import Enum
from typing import Optional


class TimeLedgerError(Exception):
    """Base class for all errors raised by timeledger"""


class ValidationErrorKind(str, Enum):
    EMPTY_NAME = "empty_name"
    TASK_NOT_RUNNING = "task_not_running"
    TASK_ALREADY_RUNNING = "task_already_running"
    TASK_COMPLETED = "task_completed"
    TASK_NOT_COMPLETED = "task_not_completed"
    TIMER_ALREADY_ACTIVE = "timer_already_active"
    INVALID_FIELD = "invalid_field"
    INVALID_TIME_RANGE = "invalid_time_range"
    CLIENT_MISMATCH = "client_mismatch"


class ValidationError(TimeLedgerError):
    """
    Raised when input fails a domain rule.

    The `kind` attribute identifies the rule so callers can branch on it
    without parsing the message.
    """

    def __init__(self, kind: ValidationErrorKind, message: Optional[str] = None):
        self.kind = kind
        super().__init__(message or kind.value.replace("_", " "))

    @classmethod
    def empty_name(cls) -> "ValidationError":
        return cls(ValidationErrorKind.EMPTY_NAME, "Name must not be empty")

    @classmethod
    def task_not_running(cls) -> "ValidationError":
        return cls(ValidationErrorKind.TASK_NOT_RUNNING, "Task timer is not running")

    @classmethod
    def task_already_running(cls) -> "ValidationError":
        return cls(ValidationErrorKind.TASK_ALREADY_RUNNING, "Task timer is already running")

    @classmethod
    def task_completed(cls) -> "ValidationError":
        return cls(ValidationErrorKind.TASK_COMPLETED, "Task is already completed")

    @classmethod
    def task_not_completed(cls) -> "ValidationError":
        return cls(ValidationErrorKind.TASK_NOT_COMPLETED, "Task has no recorded end time")

    @classmethod
    def timer_already_active(cls, task_name: str) -> "ValidationError":
        return cls(
            ValidationErrorKind.TIMER_ALREADY_ACTIVE,
            f"Another timer is already running: {task_name}"
        )

    @classmethod
    def invalid_field(cls, detail: str) -> "ValidationError":
        return cls(ValidationErrorKind.INVALID_FIELD, detail)

    @classmethod
    def invalid_time_range(cls) -> "ValidationError":
        return cls(ValidationErrorKind.INVALID_TIME_RANGE, "End time must not be before start time")

    @classmethod
    def client_mismatch(cls) -> "ValidationError":
        return cls(ValidationErrorKind.CLIENT_MISMATCH, "Task client must match the project's client")


class PersistenceError(TimeLedgerError):
    """Raised when the store fails to commit. Wraps the underlying SQLAlchemy error."""
