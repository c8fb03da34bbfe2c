# backend/api/schemas.py
"""Request bodies. Required fields are checked in the handlers so they map to 400."""
from typing import Any, Dict, Optional

from pydantic import BaseModel


class AnalyzeLogRequest(BaseModel):
    text: Optional[str] = None
    project_id: Optional[str] = None


class WebhookLogRequest(BaseModel):
    project_id: Optional[str] = None
    function_name: Optional[str] = None
    error_text: Optional[str] = None


class OptimizeQueryRequest(BaseModel):
    project_id: Optional[str] = None
    function_name: Optional[str] = None
    query: Optional[str] = None


class ServiceRequest(BaseModel):
    name: Optional[str] = None
    url: Optional[str] = None
    project_id: Optional[str] = None
    auto_check: Optional[bool] = None
    minute_interval: Optional[int] = None
    report_success: Optional[bool] = None


class ProjectRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class AssignUserRequest(BaseModel):
    user_id: Optional[str] = None


class SettingsRequest(BaseModel):
    telegram_bot_token: Optional[str] = None
    telegram_group_id: Optional[str] = None
    thresholds: Optional[Dict[str, Any]] = None


class TestNotificationRequest(BaseModel):
    type: Optional[str] = None
    message: Optional[str] = None
