"""Tests for the course-intel repositories."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from unittest.mock import AsyncMock, MagicMock

from course_intel.models.syllabus import AssignmentKind, AssignmentRecord
from course_intel.storage.orm import (
    AIUsageLog,
    Course,
    CourseAssignment,
    CourseSyllabus,
    Profile,
)
from course_intel.storage.repositories import (
    USAGE_TEXT_LIMIT,
    AssignmentRepository,
    CourseRepository,
    ProfileRepository,
    SyllabusRepository,
    UsageRepository,
)

COURSE_ID = uuid.UUID("0190d6f4-3b7a-7cc1-9a52-2f6a1c1e0001")
USER_ID = uuid.UUID("0190d6f4-3b7a-7cc1-9a52-2f6a1c1e00aa")
NOW = datetime(2025, 9, 1, 12, 0, tzinfo=UTC)


def _session() -> AsyncMock:
    session = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    return session


def _mock_course(resources: list[object] | None = None) -> MagicMock:
    course = MagicMock(spec=Course)
    course.id = COURSE_ID
    course.course_code = "CS 61A"
    course.university = "UC Berkeley"
    course.title = None
    course.url = "https://cs61a.org/"
    course.resources = resources
    return course


def _record(label: str, **overrides: object) -> AssignmentRecord:
    data: dict[str, object] = {
        "course_id": COURSE_ID,
        "kind": AssignmentKind.ASSIGNMENT,
        "label": label,
        "retrieved_at": NOW,
        "updated_at": NOW,
    }
    data.update(overrides)
    return AssignmentRecord.model_validate(data)


class TestCourseRepository:
    """CourseRepository tests."""

    async def test_get_identity(self) -> None:
        """Nullable columns become empty strings; non-string resources dropped."""
        session = _session()
        session.get = AsyncMock(return_value=_mock_course(["https://a.edu/", 42]))

        identity = await CourseRepository(session).get_identity(COURSE_ID)

        assert identity is not None
        assert identity.course_code == "CS 61A"
        assert identity.title == ""
        assert identity.resources == ["https://a.edu/"]
        session.get.assert_awaited_once_with(Course, COURSE_ID)

    async def test_get_identity_missing(self) -> None:
        session = _session()
        session.get = AsyncMock(return_value=None)
        assert await CourseRepository(session).get_identity(COURSE_ID) is None

    async def test_update_resources(self) -> None:
        session = _session()
        course = _mock_course(["https://old.edu/"])
        session.get = AsyncMock(return_value=course)

        updated = await CourseRepository(session).update_resources(
            COURSE_ID, ["https://cs61a.org/syllabus"]
        )

        assert updated is True
        assert course.resources == ["https://cs61a.org/syllabus"]
        session.flush.assert_awaited_once()

    async def test_empty_resources_preserve_stored(self) -> None:
        """Empty list never overwrites the stored list."""
        session = _session()
        session.get = AsyncMock()

        updated = await CourseRepository(session).update_resources(COURSE_ID, [])

        assert updated is False
        session.get.assert_not_called()
        session.flush.assert_not_called()

    async def test_update_missing_course(self) -> None:
        session = _session()
        session.get = AsyncMock(return_value=None)
        repo = CourseRepository(session)
        assert await repo.update_resources(COURSE_ID, ["https://a.edu/"]) is False


class TestProfileRepository:
    """ProfileRepository tests."""

    async def test_profile_mapped(self) -> None:
        profile = MagicMock(spec=Profile)
        profile.ai_provider = "openai"
        profile.ai_default_model = None
        profile.ai_web_search_enabled = None
        profile.ai_course_intel_prompt_template = "Find {{course_code}}"
        profile.ai_course_update_prompt_template = None
        profile.ai_syllabus_prompt_template = ""
        session = _session()
        session.get = AsyncMock(return_value=profile)

        result = await ProfileRepository(session).get_for_user(USER_ID)

        assert result is not None
        assert result.ai_provider == "openai"
        assert result.ai_default_model == ""
        assert result.ai_web_search_enabled is False
        assert result.ai_course_intel_prompt_template == "Find {{course_code}}"
        session.get.assert_awaited_once_with(Profile, USER_ID)

    async def test_no_profile(self) -> None:
        session = _session()
        session.get = AsyncMock(return_value=None)
        assert await ProfileRepository(session).get_for_user(USER_ID) is None


class TestSyllabusRepository:
    """SyllabusRepository.upsert tests."""

    async def test_insert_when_absent(self) -> None:
        session = _session()
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        session.execute = AsyncMock(return_value=result)

        syllabus = await SyllabusRepository(session).upsert(
            COURSE_ID,
            source_url="https://cs61a.org/syllabus",
            raw_text="{}",
            content={"summary": "x"},
            schedule=[{"title": "Week 1"}],
            now=NOW,
        )

        assert isinstance(syllabus, CourseSyllabus)
        session.add.assert_called_once_with(syllabus)
        assert syllabus.course_id == COURSE_ID
        assert syllabus.schedule == [{"title": "Week 1"}]
        assert syllabus.retrieved_at == NOW
        assert syllabus.updated_at == NOW
        session.flush.assert_awaited_once()

    async def test_overwrite_existing(self) -> None:
        """Existing row is updated in place, never duplicated."""
        existing = CourseSyllabus(course_id=COURSE_ID, raw_text="old", schedule=[], content={})
        session = _session()
        result = MagicMock()
        result.scalar_one_or_none.return_value = existing
        session.execute = AsyncMock(return_value=result)

        syllabus = await SyllabusRepository(session).upsert(
            COURSE_ID,
            source_url=None,
            raw_text="new",
            content={},
            schedule=[{"title": "Week 2"}],
            now=NOW,
        )

        assert syllabus is existing
        assert existing.raw_text == "new"
        assert existing.source_url is None
        assert existing.schedule == [{"title": "Week 2"}]
        session.add.assert_not_called()


class TestAssignmentRepository:
    """AssignmentRepository.replace_for_course tests."""

    async def test_replace(self) -> None:
        session = _session()
        records = [
            _record("HW1", due_on="2025-09-15", source_row_date="2025-09-08"),
            _record("Midterm", kind=AssignmentKind.EXAM, metadata={"room": "Wheeler"}),
        ]

        replaced = await AssignmentRepository(session).replace_for_course(COURSE_ID, records)

        assert replaced is True
        session.execute.assert_awaited_once()
        added: list[CourseAssignment] = session.add_all.call_args[0][0]
        assert [a.label for a in added] == ["HW1", "Midterm"]
        assert added[0].kind == "assignment"
        assert added[0].due_on == date(2025, 9, 15)
        assert added[0].source_row_date == date(2025, 9, 8)
        assert added[1].kind == "exam"
        assert added[1].due_on is None
        assert added[1].metadata_ == {"room": "Wheeler"}
        session.flush.assert_awaited_once()

    async def test_empty_records_preserve_existing(self) -> None:
        """No delete is issued when there is nothing to insert."""
        session = _session()

        replaced = await AssignmentRepository(session).replace_for_course(COURSE_ID, [])

        assert replaced is False
        session.execute.assert_not_called()
        session.add_all.assert_not_called()

    async def test_list_for_course(self) -> None:
        session = _session()
        rows = [MagicMock(spec=CourseAssignment), MagicMock(spec=CourseAssignment)]
        result = MagicMock()
        result.scalars.return_value.all.return_value = rows
        session.execute = AsyncMock(return_value=result)

        assert await AssignmentRepository(session).list_for_course(COURSE_ID) == rows


class TestUsageRepository:
    """UsageRepository.record tests."""

    async def test_record_truncates_text(self) -> None:
        session = _session()

        entry = await UsageRepository(session).record(
            user_id=USER_ID,
            provider="perplexity",
            model="sonar",
            feature="course-intel",
            tokens_input=100,
            tokens_output=50,
            cost_usd=0.002,
            prompt="p" * (USAGE_TEXT_LIMIT + 10),
            response_text="short",
            request_payload={"course_id": str(COURSE_ID)},
        )

        assert isinstance(entry, AIUsageLog)
        session.add.assert_called_once_with(entry)
        assert entry.prompt is not None
        assert len(entry.prompt) == USAGE_TEXT_LIMIT
        assert entry.response_text == "short"
        assert entry.request_payload == {"course_id": str(COURSE_ID)}
        assert entry.response_payload == {}
        session.flush.assert_awaited_once()
