# backend/services/telegram_service.py
from datetime import datetime
from typing import Any, Dict, Optional
import html
import json
import httpx
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import get_settings
from services.settings_service import get_or_create_settings

logger = logging.getLogger(__name__)
settings = get_settings()

ERROR_TEXT_LIMIT = 500

SEVERITY_EMOJI = {
    "critical": "🚨",
    "warning": "⚠️",
}


def truncate_error_text(error_text: str, limit: int = ERROR_TEXT_LIMIT) -> str:
    if len(error_text) > limit:
        return error_text[:limit] + "..."
    return error_text


def _escape(value: Any) -> str:
    # Telegram HTML mode rejects raw <, > and &
    return html.escape(str(value), quote=False)


def _timestamp() -> str:
    return datetime.utcnow().isoformat(timespec="milliseconds") + "Z"


def format_message(event_type: str, data: Dict[str, Any]) -> str:
    """Render an alert as Telegram HTML text"""
    timestamp = _timestamp()

    if event_type == "critical_error":
        return (
            "🚨 <b>Critical Error Detected</b>\n\n"
            f"Summary: {_escape(data.get('summary'))}\n"
            f"Cause: {_escape(data.get('cause'))}\n"
            f"Severity: {_escape(data.get('severity'))}\n"
            f"Fix: {_escape(data.get('fix'))}\n"
            f"Time: {timestamp}"
        )

    if event_type == "service_down":
        message = (
            "⚠️ <b>Service Down</b>\n\n"
            f"Service: {_escape(data.get('name'))}\n"
            f"URL: {_escape(data.get('url'))}\n"
            f"Status: {_escape(data.get('status'))}\n"
        )
        if data.get("cause"):
            message += f"Cause: {_escape(data['cause'])}\n"
        if data.get("fix"):
            message += f"Fix: {_escape(data['fix'])}\n"
        return message + f"Time: {timestamp}"

    if event_type == "performance_issue":
        return (
            "⚡ <b>Performance Issue</b>\n\n"
            f"Endpoint: {_escape(data.get('endpoint'))}\n"
            f"Response Time: {_escape(data.get('response_time'))}ms\n"
            f"Threshold: {_escape(data.get('threshold'))}ms\n"
            f"Suggestion: {_escape(data.get('suggestion'))}\n"
            f"Time: {timestamp}"
        )

    if event_type == "test":
        return (
            "🧪 <b>Test Notification</b>\n\n"
            f"Type: {_escape(data.get('type'))}\n"
            f"Message: {_escape(data.get('message'))}\n"
            f"Time: {timestamp}"
        )

    if event_type == "webhook_error":
        severity = data.get("severity") or "info"
        return (
            f"{SEVERITY_EMOJI.get(severity, 'ℹ️')} <b>Error Detected via Webhook</b>\n\n"
            f"<b>Project:</b> {_escape(data.get('project_name'))}\n"
            f"<b>Function:</b> {_escape(data.get('function_name') or 'Unknown')}\n"
            f"<b>Severity:</b> {_escape(severity.upper())}\n\n"
            f"<b>Summary:</b>\n{_escape(data.get('summary'))}\n\n"
            f"<b>Root Cause:</b>\n{_escape(data.get('cause'))}\n\n"
            f"<b>Proposed Solution:</b>\n{_escape(data.get('fix'))}\n\n"
            f"<b>Error Text:</b>\n<code>{_escape(truncate_error_text(data.get('error_text') or ''))}</code>\n\n"
            f"<b>Log ID:</b> {_escape(data.get('log_id'))}\n"
            f"<b>Time:</b> {timestamp}"
        )

    return f"📢 <b>LogWise Alert</b>\n\n{_escape(json.dumps(data, indent=2, default=str))}\nTime: {timestamp}"


async def send_telegram_notification(
    db: AsyncSession,
    message: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    """
    Send a message to the configured Telegram chat.
    Returns False when Telegram is not configured or delivery fails; never raises.
    """
    try:
        config = await get_or_create_settings(db)
        bot_token = config.telegram_bot_token
        chat_id = config.telegram_group_id

        if not bot_token or not chat_id:
            logger.info("⚠️ Telegram not configured, skipping notification")
            return False

        payload = {
            "chat_id": chat_id,
            "text": message,
            "parse_mode": "HTML"
        }
        url = f"{settings.TELEGRAM_API_BASE}/bot{bot_token}/sendMessage"

        async with httpx.AsyncClient(timeout=settings.TELEGRAM_TIMEOUT, transport=transport) as client:
            response = await client.post(url, json=payload)
        data = response.json()

        if data.get("ok"):
            logger.info("✅ Telegram notification sent")
            return True

        logger.error(f"❌ Telegram error: {data.get('description')}")
        return False
    except Exception as e:
        logger.error(f"❌ Telegram notification error: {e}")
        return False
