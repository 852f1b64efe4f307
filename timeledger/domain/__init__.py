"""Domain layer - Pure business value types and errors"""

from .errors import PersistenceError, TimeLedgerError, ValidationError, ValidationErrorKind
from .models import BillableLine, BillingIncrement, NotificationPreferences, StoreDefaults, TimerState

__all__ = [
    "BillableLine",
    "BillingIncrement",
    "NotificationPreferences",
    "PersistenceError",
    "StoreDefaults",
    "TimeLedgerError",
    "TimerState",
    "ValidationError",
    "ValidationErrorKind",
]
