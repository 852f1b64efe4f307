"""
Tests for the Settings singleton.
"""

import asyncio
from decimal import Decimal

import pytest

from timeledger.domain.errors import ValidationError, ValidationErrorKind
from timeledger.domain.models import BillingIncrement, NotificationPreferences, StoreDefaults
from timeledger.infra.repository import SettingsRepository


@pytest.mark.asyncio
async def test_get_or_create_uses_documented_defaults(services):
    settings = await services.settings_repo.get_or_create_settings()

    assert settings.id is not None
    assert settings.auto_pause_enabled is False
    assert settings.auto_pause_minutes == 15
    assert settings.default_hourly_rate == Decimal("100.0")
    assert settings.default_billing_increment is BillingIncrement.TEN_MINUTES
    assert settings.notification_settings is None


@pytest.mark.asyncio
async def test_get_or_create_returns_the_same_row(services):
    first = await services.settings_repo.get_or_create_settings()
    second = await services.settings_repo.get_or_create_settings()

    assert first is second
    assert await services.settings_repo.count() == 1


@pytest.mark.asyncio
async def test_concurrent_get_or_create_makes_one_row(services):
    results = await asyncio.gather(
        *(services.settings_repo.get_or_create_settings() for _ in range(5))
    )

    assert all(r is results[0] for r in results)
    assert await services.settings_repo.count() == 1


@pytest.mark.asyncio
async def test_deferred_creation_is_found_before_save(services):
    first = await services.settings_repo.get_or_create_settings(defer_save=True)
    second = await services.settings_repo.get_or_create_settings(defer_save=True)

    assert first is second
    await services.save()
    assert await services.settings_repo.count() == 1


@pytest.mark.asyncio
async def test_configured_defaults(services):
    repo = SettingsRepository(
        services.uow,
        StoreDefaults(default_hourly_rate=Decimal("80"), default_billing_increment=30)
    )

    settings = await repo.get_or_create_settings()

    assert settings.default_hourly_rate == Decimal("80")
    assert settings.default_billing_increment is BillingIncrement.THIRTY_MINUTES


@pytest.mark.asyncio
async def test_update_settings(services, clock):
    settings = await services.settings_repo.get_or_create_settings()

    clock.advance(minutes=1)
    await services.settings_repo.update(settings, auto_pause_enabled=True, auto_pause_minutes=5)

    assert settings.auto_pause_enabled is True
    assert settings.auto_pause_minutes == 5
    assert settings.modified_at == clock.current

    with pytest.raises(ValidationError) as exc_info:
        await services.settings_repo.update(settings, default_billing_increment=45)
    assert exc_info.value.kind is ValidationErrorKind.INVALID_FIELD


@pytest.mark.asyncio
async def test_notification_preferences_blob(services):
    repo = services.settings_repo
    settings = await repo.get_or_create_settings()
    assert repo.get_notification_preferences(settings) == NotificationPreferences()

    prefs = NotificationPreferences(enabled=False, remind_after_minutes=30, daily_summary=True)
    await repo.set_notification_preferences(settings, prefs)

    assert isinstance(settings.notification_settings, bytes)
    assert repo.get_notification_preferences(settings) == prefs


@pytest.mark.asyncio
async def test_unreadable_notification_blob_yields_defaults(services):
    settings = await services.settings_repo.get_or_create_settings()
    settings.notification_settings = b"\x00not json"

    assert services.settings_repo.get_notification_preferences(settings) == NotificationPreferences()


@pytest.mark.asyncio
async def test_ensure_settings_exist(services):
    await services.settings_repo.ensure_settings_exist()
    await services.settings_repo.ensure_settings_exist()

    assert await services.settings_repo.count() == 1
