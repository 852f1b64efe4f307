"""
Sample data for demos and manual testing.

Builds a small but complete graph: clients with and without rate overrides,
projects with and without their own rates, completed, project-less and
running tasks, and customized settings. Everything is committed at once.
"""

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Dict

from timeledger.domain.models import BillingIncrement
from timeledger.services.data_services import DataServices

logger = logging.getLogger(__name__)


async def populate_preview(services: DataServices) -> Dict[str, int]:
    """
    Populate an empty store with preview data.

    Returns the number of created clients, projects and tasks.
    """
    now = services.uow.now()
    clients = services.client_repo
    projects = services.project_repo
    tasks = services.task_repo

    acme = await clients.create(
        "ACME Corp",
        hourly_rate=Decimal("150.0"),
        billing_increment=BillingIncrement.FIFTEEN_MINUTES,
        notes="Large corporate client - website and consulting work",
        defer_save=True
    )
    startup = await clients.create(
        "Tech Startup Inc",
        hourly_rate=Decimal("125.0"),
        billing_increment=BillingIncrement.FIFTEEN_MINUTES,
        notes="Growing startup - mobile app development",
        defer_save=True
    )
    local = await clients.create(
        "Local Business",
        hourly_rate=Decimal("75.0"),
        billing_increment=BillingIncrement.THIRTY_MINUTES,
        defer_save=True
    )

    website = await projects.create(acme, "Website Redesign", hourly_rate=Decimal("160.0"), defer_save=True)
    mobile = await projects.create(startup, "Mobile App", defer_save=True)
    await projects.create(acme, "Tech Consulting", is_active=False, defer_save=True)

    completed = [
        ("Homepage Design", acme, website, timedelta(days=2), timedelta(hours=2),
         "Initial homepage mockups and wireframes"),
        ("API Integration", startup, mobile, timedelta(days=1), timedelta(hours=3), None),
        ("Database Schema", startup, mobile, timedelta(hours=1), timedelta(hours=1), None),
        ("Quick consultation call", local, None, timedelta(hours=3), timedelta(minutes=30), None),
    ]
    for name, client, project, ago, length, notes in completed:
        task = await tasks.create(name, client, project, notes=notes, defer_save=True)
        start = now - ago
        await tasks.update(task, start_time=start, end_time=start + length, defer_save=True)

    # Left running on purpose
    ongoing = await tasks.create("Code Review", acme, defer_save=True)
    await tasks.update(ongoing, start_time=now - timedelta(minutes=45), defer_save=True)

    settings = await services.settings_repo.get_or_create_settings(defer_save=True)
    await services.settings_repo.update(
        settings,
        default_hourly_rate=Decimal("100.0"),
        default_billing_increment=BillingIncrement.FIFTEEN_MINUTES,
        auto_pause_enabled=True,
        auto_pause_minutes=5,
        defer_save=True
    )

    await services.save()
    created = {"clients": 3, "projects": 3, "tasks": len(completed) + 1}
    logger.info(f"Preview data created: {created}")
    return created
