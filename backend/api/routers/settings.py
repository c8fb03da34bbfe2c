# backend/api/routers/settings.py
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_notifier, require_admin
from api.schemas import SettingsRequest, TestNotificationRequest
from api.serializers import serialize_settings
from database.connection import get_db
from database.models import User
from services.service_checker import Notifier
from services.settings_service import get_or_create_settings, update_settings
from services.telegram_service import format_message

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("")
async def get_settings_route(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        return serialize_settings(await get_or_create_settings(db))
    except Exception as e:
        logger.error(f"❌ Get settings error: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch settings")


@router.post("")
async def save_settings(
    body: SettingsRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        config = await update_settings(
            db,
            telegram_bot_token=body.telegram_bot_token,
            telegram_group_id=body.telegram_group_id,
            thresholds=body.thresholds,
        )
        logger.info("✅ Settings saved")
        return serialize_settings(config)
    except Exception as e:
        logger.error(f"❌ Save settings error: {e}")
        raise HTTPException(status_code=500, detail="Failed to save settings")


@router.post("/test-notification")
async def test_notification(
    body: TestNotificationRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    message = format_message("test", {
        "type": body.type or "test",
        "message": body.message or "This is a test notification from LogWise AI",
    })
    sent = await notifier(db, message)

    if not sent:
        raise HTTPException(status_code=400, detail="Failed to send notification. Check Telegram configuration.")
    return {"success": True, "message": "Test notification sent successfully"}
