# backend/api/serializers.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from database.models import (
    Log, Project, QueryOptimizationLog, Service, Setting, User,
)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_user(user: User) -> Dict[str, Any]:
    return {"id": user.id, "email": user.email, "role": user.role}


def serialize_project(project: Project, assigned_users: Optional[List[User]] = None) -> Dict[str, Any]:
    data = {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "owner": serialize_user(project.owner) if project.owner else {"id": project.owner_id},
        "created_at": _iso(project.created_at),
        "updated_at": _iso(project.updated_at),
    }
    if assigned_users is not None:
        data["assigned_users"] = [serialize_user(u) for u in assigned_users]
    return data


def serialize_service(service: Service) -> Dict[str, Any]:
    return {
        "id": service.id,
        "name": service.name,
        "url": service.url,
        "status": service.status,
        "last_checked": _iso(service.last_checked),
        "project_id": service.project_id,
        "auto_check": service.auto_check,
        "minute_interval": service.minute_interval,
        "report_success": service.report_success,
        "last_auto_check": _iso(service.last_auto_check),
        "created_at": _iso(service.created_at),
        "updated_at": _iso(service.updated_at),
    }


def serialize_log(log: Log, include_raw: bool = True) -> Dict[str, Any]:
    data = {
        "id": log.id,
        "text": log.text,
        "summary": log.summary,
        "cause": log.cause,
        "severity": log.severity,
        "fix": log.fix,
        "code_patch": log.code_patch,
        "project_id": log.project_id,
        "service_id": log.service_id,
        "function_name": log.function_name,
        "check_status": log.check_status,
        "created_at": _iso(log.created_at),
        "updated_at": _iso(log.updated_at),
    }
    if include_raw:
        data["ai_raw"] = log.ai_raw
    return data


def serialize_query_log(record: QueryOptimizationLog, include_raw: bool = True) -> Dict[str, Any]:
    data = {
        "id": record.id,
        "query": record.query,
        "query_type": record.query_type,
        "language": record.language,
        "is_valid": record.is_valid,
        "errors": record.errors,
        "optimized_query": record.optimized_query,
        "optimization_reason": record.optimization_reason,
        "optimizations": record.optimizations,
        "index_suggestions": record.index_suggestions,
        "corrected_query": record.corrected_query,
        "project_id": record.project_id,
        "function_name": record.function_name,
        "created_at": _iso(record.created_at),
        "updated_at": _iso(record.updated_at),
    }
    if include_raw:
        data["ai_raw"] = record.ai_raw
    return data


def serialize_settings(config: Setting) -> Dict[str, Any]:
    return {
        "telegram_bot_token": config.telegram_bot_token,
        "telegram_group_id": config.telegram_group_id,
        "thresholds": config.thresholds,
        "updated_at": _iso(config.updated_at),
    }
