# backend/api/routers/webhook.py
from datetime import datetime
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.deps import get_current_user, get_groq_service, get_notifier
from api.schemas import OptimizeQueryRequest, WebhookLogRequest
from api.serializers import serialize_log, serialize_query_log
from database.connection import get_db, get_session_maker
from database.models import Project, User
from services.access_control import has_project_access
from services.groq_service import AIAnalysisError, GroqAIService
from services.log_ingestion import (
    analyze_and_store, notify_webhook_error, process_webhook_error, store_query_optimization,
)
from services.service_checker import Notifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhook"])


@router.post("/log", status_code=202)
async def register_log(
    body: WebhookLogRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    session_maker: async_sessionmaker = Depends(get_session_maker),
    groq: GroqAIService = Depends(get_groq_service),
    notifier: Notifier = Depends(get_notifier),
):
    """Acknowledge at once; analysis and alerting run after the response"""
    if not body.error_text:
        raise HTTPException(status_code=400, detail="error_text is required")
    if not body.project_id:
        raise HTTPException(status_code=400, detail="project_id is required")

    project = await db.get(Project, body.project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")

    background_tasks.add_task(
        process_webhook_error,
        session_maker,
        groq,
        notifier,
        project_id=project.id,
        project_name=project.name,
        error_text=body.error_text,
        function_name=body.function_name,
    )

    return {
        "message": "Log registered",
        "project_id": body.project_id,
        "timestamp": datetime.utcnow().isoformat(timespec="milliseconds") + "Z",
    }


@router.post("/analyze")
async def analyze_error(
    body: WebhookLogRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    groq: GroqAIService = Depends(get_groq_service),
    notifier: Notifier = Depends(get_notifier),
):
    """Synchronous variant of /log that returns the stored analysis"""
    if not body.error_text:
        raise HTTPException(status_code=400, detail="error_text is required")
    if not body.project_id:
        raise HTTPException(status_code=400, detail="project_id is required")

    project = await db.get(Project, body.project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    if not await has_project_access(db, user.id, project.id):
        raise HTTPException(status_code=403, detail="Access denied to this project")

    project_name = project.name
    try:
        log = await analyze_and_store(
            db, groq, body.error_text, project.id, function_name=body.function_name
        )
    except AIAnalysisError as e:
        logger.error(f"❌ Webhook analyze error: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"❌ Webhook analyze error: {e}")
        raise HTTPException(status_code=500, detail="Failed to analyze error")

    await notify_webhook_error(db, notifier, log, project_name)
    return serialize_log(log)


@router.post("/optimize-query")
async def optimize_query(
    body: OptimizeQueryRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    groq: GroqAIService = Depends(get_groq_service),
):
    if not body.query:
        raise HTTPException(status_code=400, detail="query is required")
    if not body.project_id:
        raise HTTPException(status_code=400, detail="project_id is required")

    if await db.get(Project, body.project_id) is None:
        raise HTTPException(status_code=404, detail="Project not found")
    if not await has_project_access(db, user.id, body.project_id):
        raise HTTPException(status_code=403, detail="Access denied to this project")

    try:
        record = await store_query_optimization(
            db, groq, body.query, body.project_id, function_name=body.function_name
        )
        return serialize_query_log(record)
    except AIAnalysisError as e:
        logger.error(f"❌ Optimize query error: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"❌ Optimize query error: {e}")
        raise HTTPException(status_code=500, detail="Failed to optimize query")
