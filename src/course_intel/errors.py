"""Domain-specific exceptions for course-intel."""

from __future__ import annotations


class CourseIntelError(Exception):
    """Base class for errors surfaced to the caller of an intel run."""


class ConfigurationError(CourseIntelError):
    """Missing provider credentials, no usable model, or no prompt template."""


class CourseNotFoundError(CourseIntelError):
    """Raised when the requested course does not exist."""


class MalformedResponseError(CourseIntelError):
    """Model response is too corrupted to trust (unrecoverable source_url)."""


class ModelCallError(CourseIntelError):
    """The selected provider failed after exhausting transient retries."""

    def __init__(self, provider: str, model_id: str, errors: list[str]) -> None:
        self.provider = provider
        self.model_id = model_id
        self.errors = errors
        details = "; ".join(errors)
        super().__init__(f"Model call failed for {provider}/{model_id}: {details}")


ERROR_STATUS: dict[type[CourseIntelError], int] = {
    ConfigurationError: 422,
    MalformedResponseError: 422,
    CourseNotFoundError: 404,
    ModelCallError: 502,
}


def error_status(exc: BaseException) -> int:
    """Map an exception to the HTTP status the calling layer should return."""
    for exc_type, status in ERROR_STATUS.items():
        if isinstance(exc, exc_type):
            return status
    return 500
