# backend/api/routers/services.py
from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_service_checker
from api.schemas import ServiceRequest
from api.serializers import serialize_service
from database.connection import get_db
from database.models import Service, User
from services.access_control import accessible_project_ids, has_project_access
from services.service_checker import ServiceChecker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["services"])


def validate_check_settings(auto_check: bool, minute_interval: Optional[int]):
    if minute_interval is not None and minute_interval < 1:
        raise HTTPException(status_code=400, detail="minute_interval must be at least 1")
    if auto_check and minute_interval is None:
        raise HTTPException(status_code=400, detail="minute_interval is required when auto_check is enabled")


async def _services_query(db: AsyncSession, user: User, project_id: Optional[str]):
    """None means the caller can see no project at all"""
    stmt = select(Service)
    if project_id:
        if not await has_project_access(db, user.id, project_id):
            raise HTTPException(status_code=403, detail="Access denied to this project")
        return stmt.where(Service.project_id == project_id)

    project_ids = await accessible_project_ids(db, user.id)
    if not project_ids:
        return None
    return stmt.where(Service.project_id.in_(project_ids))


async def _get_accessible_service(db: AsyncSession, user: User, service_id: str) -> Service:
    service = await db.get(Service, service_id)
    if service is None:
        raise HTTPException(status_code=404, detail="Service not found")

    if not await has_project_access(db, user.id, service.project_id):
        raise HTTPException(status_code=403, detail="Access denied to this service")
    return service


async def _run_check(db: AsyncSession, checker: ServiceChecker, service: Service) -> Dict[str, Any]:
    base = {"id": service.id, "name": service.name, "url": service.url}
    result = await checker.check(db, service)
    response = {
        **base,
        "status": result.status,
        "response_time": result.response_time_ms,
        "last_checked": result.checked_at.isoformat() if result.checked_at else None,
    }
    if result.error:
        response["error"] = result.error
    return response


@router.get("")
async def list_services(
    project_id: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        stmt = await _services_query(db, user, project_id)
        if stmt is None:
            return []

        result = await db.execute(stmt.order_by(Service.created_at.desc()))
        return [serialize_service(s) for s in result.scalars().all()]
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Get services error: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch services")


@router.post("", status_code=201)
async def create_service(
    body: ServiceRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not body.name or not body.url or not body.project_id:
        raise HTTPException(status_code=400, detail="Name, URL, and project_id are required")

    auto_check = bool(body.auto_check)
    validate_check_settings(auto_check, body.minute_interval)

    if not await has_project_access(db, user.id, body.project_id):
        raise HTTPException(status_code=403, detail="Access denied to this project")

    try:
        service = Service(
            name=body.name,
            url=body.url,
            project_id=body.project_id,
            auto_check=auto_check,
            minute_interval=body.minute_interval,
            report_success=bool(body.report_success),
        )
        db.add(service)
        await db.commit()
        logger.info(f"✅ Service created: {service.name} ({service.url})")
        return serialize_service(service)
    except Exception as e:
        logger.error(f"❌ Create service error: {e}")
        raise HTTPException(status_code=500, detail="Failed to create service")


@router.get("/status")
async def check_services(
    project_id: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    checker: ServiceChecker = Depends(get_service_checker),
):
    """Check every visible service now, one after another"""
    try:
        stmt = await _services_query(db, user, project_id)
        if stmt is None:
            return []

        result = await db.execute(stmt.with_only_columns(Service.id))
        service_ids = list(result.scalars().all())

        results: List[Dict[str, Any]] = []
        for service_id in service_ids:
            service = await db.get(Service, service_id)
            if service is not None:
                results.append(await _run_check(db, checker, service))
        return results
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Check services error: {e}")
        raise HTTPException(status_code=500, detail="Failed to check services")


@router.get("/{service_id}")
async def get_service(
    service_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = await _get_accessible_service(db, user, service_id)
    return serialize_service(service)


@router.get("/{service_id}/status")
async def check_service(
    service_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    checker: ServiceChecker = Depends(get_service_checker),
):
    service = await _get_accessible_service(db, user, service_id)
    try:
        return await _run_check(db, checker, service)
    except Exception as e:
        logger.error(f"❌ Check service status error: {e}")
        raise HTTPException(status_code=500, detail="Failed to check service status")


@router.put("/{service_id}")
async def update_service(
    service_id: str,
    body: ServiceRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = await _get_accessible_service(db, user, service_id)

    if body.project_id and body.project_id != service.project_id:
        if not await has_project_access(db, user.id, body.project_id):
            raise HTTPException(status_code=403, detail="Access denied to the new project")

    auto_check = service.auto_check if body.auto_check is None else body.auto_check
    minute_interval = service.minute_interval if body.minute_interval is None else body.minute_interval
    validate_check_settings(auto_check, minute_interval)

    try:
        if body.name:
            service.name = body.name
        if body.url:
            service.url = body.url
        if body.project_id:
            service.project_id = body.project_id
        if body.report_success is not None:
            service.report_success = body.report_success
        service.auto_check = auto_check
        service.minute_interval = minute_interval

        await db.commit()
        return serialize_service(service)
    except Exception as e:
        logger.error(f"❌ Update service error: {e}")
        raise HTTPException(status_code=500, detail="Failed to update service")


@router.delete("/{service_id}")
async def delete_service(
    service_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = await _get_accessible_service(db, user, service_id)
    try:
        await db.delete(service)
        await db.commit()
        return {"message": "Service deleted successfully"}
    except Exception as e:
        logger.error(f"❌ Delete service error: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete service")
