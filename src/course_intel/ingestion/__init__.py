"""Page discovery and rule-based extraction of course signals."""

from course_intel.ingestion.base import (
    FetchError,
    PageParser,
    ProcessingError,
)

__all__ = [
    "FetchError",
    "PageParser",
    "ProcessingError",
]
