# backend/services/auth_service.py
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
import logging

import jwt

from config.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def create_access_token(user_id: str, expires_minutes: Optional[int] = None) -> str:
    """Mint a bearer token for a user id"""
    expire = datetime.utcnow() + timedelta(minutes=expires_minutes or settings.JWT_EXPIRE_MINUTES)
    payload = {"sub": user_id, "exp": expire}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the token payload, or None when invalid or expired"""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        logger.debug(f"Rejected token: {e}")
        return None

    if not payload.get("sub"):
        return None
    return payload
