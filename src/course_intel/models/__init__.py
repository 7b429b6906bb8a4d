"""Pydantic schemas for course-intel domain models."""

from course_intel.models.course import AIProfile, CourseIdentity, IntelResult
from course_intel.models.syllabus import (
    AssignmentKind,
    AssignmentRecord,
    CandidateUrl,
    DeterministicSignals,
    GradingSignal,
    LinkRef,
    ScheduleRow,
    TaskRef,
    WeekSignal,
)

__all__ = [
    "AIProfile",
    "AssignmentKind",
    "AssignmentRecord",
    "CandidateUrl",
    "CourseIdentity",
    "DeterministicSignals",
    "GradingSignal",
    "IntelResult",
    "LinkRef",
    "ScheduleRow",
    "TaskRef",
    "WeekSignal",
]
