"""Tests for services/settings_service.py."""

from sqlalchemy import func, select

from database.models import DEFAULT_THRESHOLDS, Setting
from services.settings_service import (
    get_or_create_settings, response_time_threshold, update_settings,
)


async def test_first_access_creates_defaults(db):
    config = await get_or_create_settings(db)

    assert config.telegram_bot_token == ""
    assert config.telegram_group_id == ""
    assert config.thresholds == DEFAULT_THRESHOLDS


async def test_repeated_access_keeps_single_row(db, session_maker):
    first = await get_or_create_settings(db)
    async with session_maker() as other:
        second = await get_or_create_settings(other)

    assert first.id == second.id
    count = (await db.execute(select(func.count()).select_from(Setting))).scalar_one()
    assert count == 1


async def test_partial_update_leaves_other_fields(db):
    await update_settings(db, telegram_bot_token="TOKEN", telegram_group_id="-100")
    config = await update_settings(db, telegram_group_id="-200")

    assert config.telegram_bot_token == "TOKEN"
    assert config.telegram_group_id == "-200"


async def test_thresholds_are_merged(db, session_maker):
    await update_settings(db, thresholds={"responseTime": 2500})

    async with session_maker() as fresh:
        config = await get_or_create_settings(fresh)
        assert config.thresholds == {"responseTime": 2500, "errorRate": 5}
        assert response_time_threshold(config) == 2500


async def test_threshold_falls_back_to_default():
    assert response_time_threshold(Setting(thresholds=None)) == 1000
