# backend/services/settings_service.py
from typing import Any, Dict, Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import Setting, SETTINGS_SINGLETON_KEY, DEFAULT_THRESHOLDS

logger = logging.getLogger(__name__)


async def _find_settings(db: AsyncSession) -> Optional[Setting]:
    result = await db.execute(
        select(Setting).where(Setting.singleton_key == SETTINGS_SINGLETON_KEY)
    )
    return result.scalar_one_or_none()


async def get_or_create_settings(db: AsyncSession) -> Setting:
    """Return the settings row, creating the default one on first access"""
    existing = await _find_settings(db)
    if existing is not None:
        return existing

    created = Setting(
        singleton_key=SETTINGS_SINGLETON_KEY,
        telegram_bot_token="",
        telegram_group_id="",
        thresholds=dict(DEFAULT_THRESHOLDS),
    )
    db.add(created)
    try:
        await db.commit()
    except IntegrityError:
        # Another request created it first
        await db.rollback()
        return await _find_settings(db)

    logger.info("✅ Default settings created")
    return created


async def update_settings(
    db: AsyncSession,
    telegram_bot_token: Optional[str] = None,
    telegram_group_id: Optional[str] = None,
    thresholds: Optional[Dict[str, Any]] = None,
) -> Setting:
    """Partial update; thresholds are merged over the stored values"""
    current = await get_or_create_settings(db)

    if telegram_bot_token is not None:
        current.telegram_bot_token = telegram_bot_token
    if telegram_group_id is not None:
        current.telegram_group_id = telegram_group_id
    if thresholds is not None:
        # Reassign so the JSON column is flagged dirty
        current.thresholds = {**DEFAULT_THRESHOLDS, **(current.thresholds or {}), **thresholds}

    await db.commit()
    return current


def response_time_threshold(config: Setting) -> int:
    return (config.thresholds or {}).get("responseTime") or DEFAULT_THRESHOLDS["responseTime"]
