"""Syllabus schemas shared by the extraction, merge and materialize steps."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

LINK_CATEGORIES: tuple[str, ...] = ("slides", "videos", "readings", "modules")
TASK_CATEGORIES: tuple[str, ...] = ("assignments", "labs", "exams", "projects")


class LinkRef(BaseModel):
    """A labelled link. Equality for dedup is a case-insensitive URL match."""

    label: str = ""
    url: str

    @property
    def dedup_key(self) -> str:
        return self.url.strip().lower()


class TaskRef(LinkRef):
    """A task link with an optional ISO due date.

    Tasks recovered from prose may carry no URL; those dedup by label.
    """

    url: str | None = None  # type: ignore[assignment]
    due_date: str | None = None
    description: str | None = None

    @property
    def dedup_key(self) -> str:
        if self.url:
            return self.url.strip().lower()
        return f"label:{self.label.strip().lower()}"


class ScheduleRow(BaseModel):
    """Canonical per-session unit of a syllabus schedule."""

    model_config = ConfigDict(extra="ignore")

    sequence: str | None = None
    title: str | None = None
    date: str | None = None
    date_end: str | None = None
    instructor: str | None = None
    topics: list[str] = Field(default_factory=list)
    description: str | None = None
    slides: list[LinkRef] = Field(default_factory=list)
    videos: list[LinkRef] = Field(default_factory=list)
    readings: list[LinkRef] = Field(default_factory=list)
    modules: list[LinkRef] = Field(default_factory=list)
    assignments: list[TaskRef] = Field(default_factory=list)
    labs: list[TaskRef] = Field(default_factory=list)
    exams: list[TaskRef] = Field(default_factory=list)
    projects: list[TaskRef] = Field(default_factory=list)

    @property
    def merge_key(self) -> tuple[str, str] | None:
        """Identity key ``(date, lowercased title)``; None when unusable."""
        title = (self.title or "").strip().lower()
        if not self.date and not title:
            return None
        return (self.date or "", title)

    def links(self) -> list[LinkRef]:
        """Every link embedded in the row, link and task categories alike."""
        out: list[LinkRef] = []
        for category in (*LINK_CATEGORIES, *TASK_CATEGORIES):
            out.extend(getattr(self, category))
        return out


class WeekSignal(BaseModel):
    """Link data keyed by week number, independent of row-level parsing."""

    week: int = Field(ge=1)
    title: str = ""
    slides: list[LinkRef] = Field(default_factory=list)
    readings: list[LinkRef] = Field(default_factory=list)
    assignments: list[LinkRef] = Field(default_factory=list)


class GradingSignal(BaseModel):
    """One grading category and its weight in percent."""

    component: str
    weight: float = Field(gt=0, le=100)


class DeterministicSignals(BaseModel):
    """Output bundle of rule-based extraction for one URL (or a union)."""

    schedule_rows: list[ScheduleRow] = Field(default_factory=list)
    grading_signals: list[GradingSignal] = Field(default_factory=list)
    week_signals: list[WeekSignal] = Field(default_factory=list)
    extra_resources: list[str] = Field(default_factory=list)
    task_signals: list[TaskRef] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.schedule_rows
            or self.grading_signals
            or self.week_signals
            or self.extra_resources
            or self.task_signals
        )


@dataclass(frozen=True, slots=True)
class CandidateUrl:
    """A URL considered as extraction input, with its relevance score.

    Attributes:
        url: Normalized absolute URL.
        score: Relevance score; higher ranks first.
        order: Discovery order, used to break score ties.
    """

    url: str
    score: int
    order: int


class AssignmentKind(StrEnum):
    """Kinds of persisted assignment records."""

    ASSIGNMENT = "assignment"
    LAB = "lab"
    EXAM = "exam"
    PROJECT = "project"
    QUIZ = "quiz"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: object) -> "AssignmentKind":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


class AssignmentRecord(BaseModel):
    """Flat task record derived from the merged schedule."""

    course_id: UUID
    syllabus_id: UUID | None = None
    kind: AssignmentKind
    label: str
    due_on: str | None = None
    url: str | None = None
    description: str | None = None
    source_sequence: str | None = None
    source_row_date: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    retrieved_at: datetime
    updated_at: datetime

    @property
    def dedup_key(self) -> tuple[str, str, str]:
        return (str(self.kind), self.label.lower(), self.due_on or "")
