# backend/api/deps.py
"""Shared FastAPI dependencies: auth, AI client, notifier, outbound HTTP."""
from typing import Optional

import httpx
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from database.connection import get_db
from database.models import User
from services.auth_service import decode_access_token
from services.groq_service import GroqAIService
from services.service_checker import Notifier, ServiceChecker
from services.telegram_service import send_telegram_notification

bearer_scheme = HTTPBearer(auto_error=False)

_groq_service: Optional[GroqAIService] = None


def get_groq_service() -> GroqAIService:
    global _groq_service
    if _groq_service is None:
        _groq_service = GroqAIService()
    return _groq_service


def get_notifier() -> Notifier:
    return send_telegram_notification


def get_http_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for outbound checks; None means the real network"""
    return None


def get_service_checker(
    groq: GroqAIService = Depends(get_groq_service),
    notifier: Notifier = Depends(get_notifier),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
) -> ServiceChecker:
    return ServiceChecker(groq, notifier=notifier, transport=transport)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Bearer token → active user, otherwise 401"""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Authentication required")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user = await db.get(User, payload["sub"])
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
