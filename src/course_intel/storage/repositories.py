"""Repositories for the course-intel tables.

Repositories only ``flush``; the caller owns the transaction and decides
when each stage commits.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import date, datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from course_intel.models.course import AIProfile, CourseIdentity
from course_intel.models.syllabus import AssignmentRecord
from course_intel.storage.orm import (
    AIUsageLog,
    Course,
    CourseAssignment,
    CourseSyllabus,
    Profile,
)

USAGE_TEXT_LIMIT = 4000


def _as_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _truncate(text: str | None, limit: int = USAGE_TEXT_LIMIT) -> str | None:
    if text is None:
        return None
    return text[:limit]


class CourseRepository:
    """Course lookup and resource list updates."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, course_id: uuid.UUID) -> Course | None:
        """Get course by primary key."""
        return await self._session.get(Course, course_id)

    async def get_identity(self, course_id: uuid.UUID) -> CourseIdentity | None:
        """Course fields an intel run needs, or None when absent."""
        course = await self.get_by_id(course_id)
        if course is None:
            return None
        return CourseIdentity(
            id=course.id,
            course_code=course.course_code or "",
            university=course.university or "",
            title=course.title or "",
            url=course.url,
            resources=[r for r in (course.resources or []) if isinstance(r, str)],
        )

    async def update_resources(self, course_id: uuid.UUID, resources: Sequence[str]) -> bool:
        """Replace the resource list; an empty list leaves the stored one intact.

        Returns:
            True when the stored list was replaced.
        """
        if not resources:
            return False
        course = await self.get_by_id(course_id)
        if course is None:
            return False
        course.resources = list(resources)
        await self._session.flush()
        return True


class ProfileRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_for_user(self, user_id: uuid.UUID) -> AIProfile | None:
        """AI preferences for a user, or None when the user has no profile."""
        profile = await self._session.get(Profile, user_id)
        if profile is None:
            return None
        return AIProfile(
            ai_provider=profile.ai_provider or "",
            ai_default_model=profile.ai_default_model or "",
            ai_web_search_enabled=bool(profile.ai_web_search_enabled),
            ai_course_intel_prompt_template=profile.ai_course_intel_prompt_template or "",
            ai_course_update_prompt_template=profile.ai_course_update_prompt_template or "",
            ai_syllabus_prompt_template=profile.ai_syllabus_prompt_template or "",
        )


class SyllabusRepository:
    """One syllabus per course, upserted on ``course_id``."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_for_course(self, course_id: uuid.UUID) -> CourseSyllabus | None:
        stmt = select(CourseSyllabus).where(CourseSyllabus.course_id == course_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(
        self,
        course_id: uuid.UUID,
        *,
        source_url: str | None,
        raw_text: str,
        content: dict[str, Any],
        schedule: list[dict[str, Any]],
        now: datetime,
    ) -> CourseSyllabus:
        """Insert or overwrite the course's syllabus and return it.

        ``retrieved_at`` and ``updated_at`` are both set to ``now``.
        """
        syllabus = await self.get_for_course(course_id)
        if syllabus is None:
            syllabus = CourseSyllabus(course_id=course_id)
            self._session.add(syllabus)
        syllabus.source_url = source_url
        syllabus.raw_text = raw_text
        syllabus.content = content
        syllabus.schedule = schedule
        syllabus.retrieved_at = now
        syllabus.updated_at = now
        await self._session.flush()
        return syllabus


class AssignmentRepository:
    """Course assignments, replaced wholesale per run."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_for_course(self, course_id: uuid.UUID) -> list[CourseAssignment]:
        """Assignments ordered by due date (undated last), then label."""
        stmt = (
            select(CourseAssignment)
            .where(CourseAssignment.course_id == course_id)
            .order_by(CourseAssignment.due_on.asc().nulls_last(), CourseAssignment.label)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def replace_for_course(
        self, course_id: uuid.UUID, records: Sequence[AssignmentRecord]
    ) -> bool:
        """Delete and re-insert the course's assignments.

        An empty ``records`` list is a no-op so that a failed extraction
        never wipes previously stored assignments.

        Returns:
            True when the stored set was replaced, False when preserved.
        """
        if not records:
            return False
        await self._session.execute(
            delete(CourseAssignment).where(CourseAssignment.course_id == course_id)
        )
        self._session.add_all(
            [
                CourseAssignment(
                    course_id=course_id,
                    syllabus_id=record.syllabus_id,
                    kind=str(record.kind),
                    label=record.label,
                    due_on=_as_date(record.due_on),
                    url=record.url,
                    description=record.description,
                    source_sequence=record.source_sequence,
                    source_row_date=_as_date(record.source_row_date),
                    metadata_=record.metadata,
                    retrieved_at=record.retrieved_at,
                    updated_at=record.updated_at,
                )
                for record in records
            ]
        )
        await self._session.flush()
        return True


class UsageRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        *,
        user_id: uuid.UUID,
        provider: str,
        model: str,
        feature: str,
        tokens_input: int = 0,
        tokens_output: int = 0,
        cost_usd: float = 0.0,
        prompt: str | None = None,
        response_text: str | None = None,
        request_payload: dict[str, Any] | None = None,
        response_payload: dict[str, Any] | None = None,
    ) -> AIUsageLog:
        """Append a usage event; prompt and response are truncated."""
        entry = AIUsageLog(
            user_id=user_id,
            provider=provider,
            model=model,
            feature=feature,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            cost_usd=cost_usd,
            prompt=_truncate(prompt),
            response_text=_truncate(response_text),
            request_payload=request_payload or {},
            response_payload=response_payload or {},
        )
        self._session.add(entry)
        await self._session.flush()
        return entry
