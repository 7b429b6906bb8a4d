"""Request/response schemas for the API layer."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class IntelRunResponse(BaseModel):
    """Response for ``POST /courses/{course_id}/intel``."""

    course_id: uuid.UUID
    syllabus_id: uuid.UUID | None
    resources: list[str]
    resources_count: int
    schedule_entries: int
    assignments_count: int
    assignments_preserved: bool


class AssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    kind: str
    label: str
    due_on: date | None
    url: str | None
    description: str | None
    source_sequence: str | None


class SyllabusResponse(BaseModel):
    """Stored syllabus with its materialized assignments."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    course_id: uuid.UUID
    source_url: str | None
    content: dict[str, Any]
    schedule: list[Any]
    retrieved_at: datetime
    updated_at: datetime
    assignments: list[AssignmentResponse] = Field(default_factory=list)
