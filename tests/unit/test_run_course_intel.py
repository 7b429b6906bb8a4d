"""Tests for the course intel CLI."""

from __future__ import annotations

import json
import uuid
from unittest.mock import AsyncMock, patch

import pytest

from course_intel.errors import CourseNotFoundError
from course_intel.models.course import IntelResult
from scripts.run_course_intel import format_summary, main, parse_args

USER_ID = uuid.UUID("0190d6f4-3b7a-7cc1-9a52-2f6a1c1e00aa")
COURSE_ID = uuid.UUID("0190d6f4-3b7a-7cc1-9a52-2f6a1c1e0001")
ARGV = ["run_course_intel.py", "--user-id", str(USER_ID), "--course-id", str(COURSE_ID)]


def _result(*, preserved: bool = False) -> IntelResult:
    return IntelResult(
        resources=["https://cs61a.org/syllabus", "https://github.com/cs61a/materials"],
        schedule_entries=14,
        assignments_count=0 if preserved else 6,
        assignments_preserved=preserved,
    )


class TestParseArgs:
    def test_ids_parsed(self) -> None:
        args = parse_args(ARGV[1:])
        assert args.user_id == USER_ID
        assert args.course_id == COURSE_ID
        assert args.json_output is False

    def test_invalid_uuid_exits(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["--user-id", "x", "--course-id", str(COURSE_ID)])


class TestFormatSummary:
    def test_lists_resources(self) -> None:
        summary = format_summary(_result())
        assert "Schedule entries: 14" in summary
        assert "Assignments:      6" in summary
        assert "  - https://github.com/cs61a/materials" in summary

    def test_preserved_noted(self) -> None:
        assert "existing assignments preserved" in format_summary(_result(preserved=True))


class TestMain:
    @patch("scripts.run_course_intel.configure_logging")
    def test_json_output(
        self,
        _logging: object,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setattr("sys.argv", [*ARGV, "--json"])
        with patch("scripts.run_course_intel.run", AsyncMock(return_value=_result())):
            assert main() == 0

        data = json.loads(capsys.readouterr().out)
        assert data["schedule_entries"] == 14

    @patch("scripts.run_course_intel.configure_logging")
    def test_domain_error_returns_1(
        self,
        _logging: object,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setattr("sys.argv", ARGV)
        failing = AsyncMock(side_effect=CourseNotFoundError("Course not found"))
        with patch("scripts.run_course_intel.run", failing):
            assert main() == 1

        assert "error (404): Course not found" in capsys.readouterr().err
