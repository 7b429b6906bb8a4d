"""FastAPI dependency injection."""

from __future__ import annotations

import uuid
from typing import cast

from fastapi import Header, HTTPException, Request

from course_intel.orchestrator import CourseIntelService
from course_intel.storage.database import get_session

__all__ = ["get_current_user", "get_intel_service", "get_session"]


async def get_current_user(x_user_id: str | None = Header(default=None)) -> uuid.UUID:
    """Caller identity from the ``X-User-Id`` header.

    Raises:
        HTTPException 401: header missing or not a UUID.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        return uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid X-User-Id header") from None


async def get_intel_service(request: Request) -> CourseIntelService:
    """Retrieve CourseIntelService from app state.

    Initialized during lifespan startup.
    """
    return cast(CourseIntelService, request.app.state.intel_service)
