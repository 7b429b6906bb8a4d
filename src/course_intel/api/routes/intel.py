"""Course intel API endpoints."""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from course_intel.api.deps import get_current_user, get_intel_service, get_session
from course_intel.api.schemas import AssignmentResponse, IntelRunResponse, SyllabusResponse
from course_intel.orchestrator import CourseIntelService
from course_intel.storage.repositories import AssignmentRepository, SyllabusRepository

logger = structlog.get_logger()

router = APIRouter(tags=["intel"])

_get_user = Depends(get_current_user)
_get_service = Depends(get_intel_service)
_get_session = Depends(get_session)


@router.post("/courses/{course_id}/intel")
async def run_course_intel(
    course_id: uuid.UUID,
    user_id: uuid.UUID = _get_user,
    service: CourseIntelService = _get_service,
) -> IntelRunResponse:
    """Extract and persist syllabus, schedule, resources and assignments.

    Domain errors are mapped to status codes by the app-level handler.
    """
    result = await service.run(user_id, course_id)
    return IntelRunResponse(
        course_id=course_id,
        syllabus_id=result.syllabus_id,
        resources=result.resources,
        resources_count=len(result.resources),
        schedule_entries=result.schedule_entries,
        assignments_count=result.assignments_count,
        assignments_preserved=result.assignments_preserved,
    )


@router.get("/courses/{course_id}/syllabus")
async def get_course_syllabus(
    course_id: uuid.UUID,
    user_id: uuid.UUID = _get_user,
    session: AsyncSession = _get_session,
) -> SyllabusResponse:
    """Stored syllabus and assignments for a course."""
    syllabus = await SyllabusRepository(session).get_for_course(course_id)
    if syllabus is None:
        raise HTTPException(status_code=404, detail="Syllabus not found")
    assignments = await AssignmentRepository(session).list_for_course(course_id)
    response = SyllabusResponse.model_validate(syllabus)
    response.assignments = [AssignmentResponse.model_validate(a) for a in assignments]
    return response
