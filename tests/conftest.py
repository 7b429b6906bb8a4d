"""Shared pytest fixtures."""

import uuid

import pytest

from course_intel.config import Settings
from course_intel.models.course import CourseIdentity


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-db",
        action="store_true",
        default=False,
        help="Run tests that require a live PostgreSQL instance",
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    if config.getoption("--run-db"):
        return
    skip_db = pytest.mark.skip(reason="needs --run-db flag")
    for item in items:
        if "requires_db" in item.keywords:
            item.add_marker(skip_db)


@pytest.fixture
def course() -> CourseIdentity:
    return CourseIdentity(
        id=uuid.UUID("0190d6f4-3b7a-7cc1-9a52-2f6a1c1e0001"),
        course_code="CS 61A",
        university="UC Berkeley",
        title="Structure and Interpretation of Computer Programs",
        url="https://cs61a.org/",
        resources=["https://github.com/cs61a/materials"],
    )


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        environment="testing",
        openai_api_key="sk-test",
        perplexity_api_key="pplx-test",
    )
