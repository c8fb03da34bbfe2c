# backend/api/routers/performance.py
from typing import Optional
import logging
import time

import httpx
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_groq_service, get_http_transport, get_notifier
from config.settings import get_settings
from database.connection import get_db
from database.models import User
from services.groq_service import AIAnalysisError, GroqAIService
from services.service_checker import Notifier
from services.settings_service import get_or_create_settings, response_time_threshold
from services.telegram_service import format_message

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/performance", tags=["performance"])


@router.get("/check")
async def check_performance(
    endpoint: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    groq: GroqAIService = Depends(get_groq_service),
    notifier: Notifier = Depends(get_notifier),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
):
    """Time one GET against an endpoint and alert when it is slower than the threshold"""
    if not endpoint:
        raise HTTPException(status_code=400, detail="Endpoint URL is required")

    threshold = response_time_threshold(await get_or_create_settings(db))
    started = time.perf_counter()

    try:
        async with httpx.AsyncClient(
            timeout=settings.PERFORMANCE_CHECK_TIMEOUT, transport=transport, follow_redirects=True
        ) as client:
            response = await client.get(endpoint)
    except httpx.HTTPError as e:
        return JSONResponse(status_code=500, content={
            "endpoint": endpoint,
            "response_time": int((time.perf_counter() - started) * 1000),
            "threshold": threshold,
            "error": str(e) or e.__class__.__name__,
            "is_slow": True,
        })

    response_time = int((time.perf_counter() - started) * 1000)
    is_slow = response_time > threshold

    suggestion = ""
    if is_slow:
        text = f"API endpoint {endpoint} is slow. Response time: {response_time}ms, Threshold: {threshold}ms"
        try:
            suggestion = (await groq.analyze_log(text)).fix
        except AIAnalysisError as e:
            logger.warning(f"⚠️ Performance analysis unavailable: {e}")

        message = format_message("performance_issue", {
            "endpoint": endpoint,
            "response_time": response_time,
            "threshold": threshold,
            "suggestion": suggestion or "No suggestion available",
        })
        await notifier(db, message)

    return {
        "endpoint": endpoint,
        "response_time": response_time,
        "threshold": threshold,
        "status": response.status_code,
        "is_slow": is_slow,
        "suggestion": suggestion,
    }
