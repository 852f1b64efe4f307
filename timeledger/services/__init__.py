"""Services layer - Business logic"""

from .billing_service import BillingCalculator
from .data_services import DataServices
from .timer_service import TimerService, TimerSession

__all__ = ["BillingCalculator", "DataServices", "TimerService", "TimerSession"]
