# backend/api/routers/logs.py
from datetime import datetime, time
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_groq_service, get_notifier
from api.schemas import AnalyzeLogRequest
from api.serializers import serialize_log
from database.connection import get_db
from database.models import Log, Project, Service, User
from services.access_control import accessible_project_ids, has_project_access
from services.groq_service import AIAnalysisError, GroqAIService
from services.log_ingestion import analyze_and_store
from services.service_checker import Notifier
from services.telegram_service import format_message

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/logs", tags=["logs"])


def _parse_date(value: str, field: str) -> datetime:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {field}")


@router.post("/analyze")
async def analyze_log(
    body: AnalyzeLogRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    groq: GroqAIService = Depends(get_groq_service),
):
    """Analyze a log text for a project the caller can access"""
    if not body.text:
        raise HTTPException(status_code=400, detail="Log text is required")
    if not body.project_id:
        raise HTTPException(status_code=400, detail="project_id is required")

    if not await has_project_access(db, user.id, body.project_id):
        raise HTTPException(status_code=403, detail="Access denied to this project")

    try:
        log = await analyze_and_store(db, groq, body.text, body.project_id)
        return serialize_log(log)
    except AIAnalysisError as e:
        logger.error(f"❌ Analyze log error: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"❌ Analyze log error: {e}")
        raise HTTPException(status_code=500, detail="Failed to analyze log")


@router.post("/push")
async def push_log(
    body: AnalyzeLogRequest,
    db: AsyncSession = Depends(get_db),
    groq: GroqAIService = Depends(get_groq_service),
    notifier: Notifier = Depends(get_notifier),
):
    """External ingestion; alerts on critical severity"""
    if not body.text:
        raise HTTPException(status_code=400, detail="Log text is required")
    if not body.project_id:
        raise HTTPException(status_code=400, detail="project_id is required")

    if await db.get(Project, body.project_id) is None:
        raise HTTPException(status_code=404, detail="Project not found")

    try:
        log = await analyze_and_store(db, groq, body.text, body.project_id)

        if log.severity == "critical":
            message = format_message("critical_error", {
                "summary": log.summary,
                "cause": log.cause,
                "severity": log.severity,
                "fix": log.fix,
            })
            await notifier(db, message)

        return serialize_log(log)
    except AIAnalysisError as e:
        logger.error(f"❌ Push log error: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"❌ Push log error: {e}")
        raise HTTPException(status_code=500, detail="Failed to process log")


@router.get("")
async def list_logs(
    project_id: Optional[str] = None,
    service_id: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Recent logs across the caller's projects, newest first"""
    try:
        stmt = select(Log)

        if project_id:
            if not await has_project_access(db, user.id, project_id):
                raise HTTPException(status_code=403, detail="Access denied to this project")
            stmt = stmt.where(Log.project_id == project_id)
        else:
            project_ids = await accessible_project_ids(db, user.id)
            if not project_ids:
                return []
            stmt = stmt.where(Log.project_id.in_(project_ids))

        if service_id:
            service = await db.get(Service, service_id)
            if service is not None:
                if not await has_project_access(db, user.id, service.project_id):
                    raise HTTPException(status_code=403, detail="Access denied to this service")
                if project_id and service.project_id != project_id:
                    raise HTTPException(status_code=400, detail="Service does not belong to the selected project")
            stmt = stmt.where(Log.service_id == service_id)

        if start_date:
            stmt = stmt.where(Log.created_at >= _parse_date(start_date, "start_date"))
        if end_date:
            end = _parse_date(end_date, "end_date")
            if len(end_date) <= 10:
                # A bare date covers the whole day
                end = datetime.combine(end.date(), time.max)
            stmt = stmt.where(Log.created_at <= end)

        if search:
            stmt = stmt.where(Log.text.ilike(f"%{search}%"))

        stmt = stmt.order_by(Log.created_at.desc()).limit(limit)
        result = await db.execute(stmt)
        return [serialize_log(log, include_raw=False) for log in result.scalars().all()]

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Get logs error: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch logs")


@router.get("/{log_id}")
async def get_log(
    log_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    log = await db.get(Log, log_id)
    if log is None:
        raise HTTPException(status_code=404, detail="Log not found")

    if not await has_project_access(db, user.id, log.project_id):
        raise HTTPException(status_code=403, detail="Access denied to this log")

    return serialize_log(log)
