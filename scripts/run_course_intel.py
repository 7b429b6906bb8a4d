"""Run course intel extraction for one course from the command line.

Usage:
    uv run python scripts/run_course_intel.py --user-id <uuid> --course-id <uuid>
    uv run python scripts/run_course_intel.py --user-id <uuid> --course-id <uuid> --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import uuid

from course_intel.config import settings
from course_intel.errors import CourseIntelError, error_status
from course_intel.llm import create_model_router
from course_intel.logging_config import configure_logging
from course_intel.models.course import IntelResult
from course_intel.orchestrator import CourseIntelService
from course_intel.storage.database import async_session, engine


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(description="Course intel extraction")
    parser.add_argument("--user-id", type=uuid.UUID, required=True, help="Profile owner")
    parser.add_argument("--course-id", type=uuid.UUID, required=True, help="Target course")
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output as JSON instead of a summary",
    )
    return parser.parse_args(argv)


async def run(user_id: uuid.UUID, course_id: uuid.UUID) -> IntelResult:
    """Build the service and run it once."""
    router = create_model_router(settings, async_session)
    service = CourseIntelService(async_session, router, settings=settings)
    try:
        return await service.run(user_id, course_id)
    finally:
        await engine.dispose()


def format_summary(result: IntelResult) -> str:
    """Human-readable run summary."""
    preserved = " (existing assignments preserved)" if result.assignments_preserved else ""
    lines = [
        f"Syllabus:         {result.syllabus_id}",
        f"Resources:        {len(result.resources)}",
        f"Schedule entries: {result.schedule_entries}",
        f"Assignments:      {result.assignments_count}{preserved}",
    ]
    lines.extend(f"  - {url}" for url in result.resources)
    return "\n".join(lines)


def main() -> int:
    """Run the course intel CLI."""
    args = parse_args()
    configure_logging(environment=str(settings.environment), log_level=settings.log_level)
    try:
        result = asyncio.run(run(args.user_id, args.course_id))
    except CourseIntelError as exc:
        print(f"error ({error_status(exc)}): {exc}", file=sys.stderr)
        return 1

    if args.json_output:
        print(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))
    else:
        print(format_summary(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
