# backend/api/routers/query_logs.py
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user
from api.serializers import serialize_query_log
from database.connection import get_db
from database.models import QueryOptimizationLog, User
from services.access_control import accessible_project_ids, has_project_access

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/query-logs", tags=["query-logs"])


@router.get("")
async def list_query_logs(
    project_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        stmt = select(QueryOptimizationLog)
        if project_id:
            if not await has_project_access(db, user.id, project_id):
                raise HTTPException(status_code=403, detail="Access denied to this project")
            stmt = stmt.where(QueryOptimizationLog.project_id == project_id)
        else:
            project_ids = await accessible_project_ids(db, user.id)
            if not project_ids:
                return []
            stmt = stmt.where(QueryOptimizationLog.project_id.in_(project_ids))

        stmt = stmt.order_by(QueryOptimizationLog.created_at.desc()).limit(limit)
        result = await db.execute(stmt)
        return [serialize_query_log(r, include_raw=False) for r in result.scalars().all()]
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Get query logs error: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch query logs")


@router.get("/{record_id}")
async def get_query_log(
    record_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    record = await db.get(QueryOptimizationLog, record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Query log not found")

    if not await has_project_access(db, user.id, record.project_id):
        raise HTTPException(status_code=403, detail="Access denied to this query log")

    return serialize_query_log(record)
