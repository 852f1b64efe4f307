"""
Billing Service - Turns recorded task time into invoiceable amounts.

Everything here is a pure computation over already-loaded entities; nothing
is written back to the store.

Rounding rule: the recorded duration is rounded UP to the next full billing
increment, so a partial increment is always billed in full.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

from timeledger.domain.errors import ValidationError
from timeledger.domain.models import BillableLine, BillingIncrement, StoreDefaults
from timeledger.infra.db import SettingsModel, TaskModel

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

# Either the persisted singleton or plain configured defaults
RateDefaults = Union[SettingsModel, StoreDefaults]


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 0.1 from dragging in binary noise
    return Decimal(str(value))


def resolve_rate(task: TaskModel, defaults: RateDefaults) -> Decimal:
    """Project override, then client rate, then the global default"""
    project = task.project
    if project is not None and project.hourly_rate is not None:
        return _as_decimal(project.hourly_rate)
    if task.client.hourly_rate is not None:
        return _as_decimal(task.client.hourly_rate)
    return _as_decimal(defaults.default_hourly_rate)


def resolve_increment(task: TaskModel, defaults: RateDefaults) -> BillingIncrement:
    """Same precedence as resolve_rate, applied to billing increments"""
    project = task.project
    if project is not None and project.billing_increment is not None:
        return BillingIncrement(project.billing_increment)
    if task.client.billing_increment is not None:
        return BillingIncrement(task.client.billing_increment)
    return BillingIncrement(defaults.default_billing_increment)


def billable_minutes(duration_seconds: int, increment: BillingIncrement) -> int:
    """Round a duration up to a whole number of increments, in minutes"""
    if duration_seconds <= 0:
        return 0
    step = BillingIncrement(increment).seconds
    units = (duration_seconds + step - 1) // step
    return units * BillingIncrement(increment).value


def billable_amount(task: TaskModel, effective_rate, increment: BillingIncrement) -> Decimal:
    """
    Amount billed for a completed task at `effective_rate` per hour:
    billed minutes / 60 * rate, rounded half-up to whole cents.

    Raises ValidationError(TASK_NOT_COMPLETED) for tasks that are not started
    or still running; filter to completed tasks first.
    """
    if not task.is_completed:
        raise ValidationError.task_not_completed()

    minutes = billable_minutes(task.duration, increment)
    amount = Decimal(minutes) * _as_decimal(effective_rate) / Decimal(60)
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


class BillingCalculator:
    """
    Resolves rate and increment per task against one set of defaults.
    """

    def __init__(self, defaults: RateDefaults):
        self.defaults = defaults

    def line_for(self, task: TaskModel) -> BillableLine:
        rate = resolve_rate(task, self.defaults)
        increment = resolve_increment(task, self.defaults)
        return BillableLine(
            task_name=task.name,
            duration_seconds=task.duration,
            hourly_rate=rate,
            increment=increment,
            billed_minutes=billable_minutes(task.duration, increment),
            amount=billable_amount(task, rate, increment)
        )

    def total_for(self, tasks: Iterable[TaskModel]) -> Decimal:
        """Sum the billable amounts of the completed tasks among `tasks`"""
        total = Decimal("0.00")
        skipped = 0
        for task in tasks:
            if not task.is_completed:
                skipped += 1
                continue
            total += self.line_for(task).amount
        if skipped:
            logger.debug(f"Skipped {skipped} unfinished task(s) while totalling")
        return total
