"""Rule-based page parsers.

DEFAULT_PARSERS is the ordered strategy list applied to every fetched page.
To support a new site convention:

1. Create a module in this package with a PageParser subclass
2. Insert an instance into DEFAULT_PARSERS ahead of the generic parser
"""

from course_intel.ingestion.base import PageParser
from course_intel.ingestion.parsers.generic import GenericPageParser
from course_intel.ingestion.parsers.grading import (
    GradingParser,
    dedupe_grading,
    parse_grading_line,
)
from course_intel.ingestion.parsers.site_pattern import (
    SchedulePatternParser,
    SchedulePatternSelectors,
)

DEFAULT_PARSERS: tuple[PageParser, ...] = (
    SchedulePatternParser(),
    GenericPageParser(),
    GradingParser(),
)

__all__ = [
    "DEFAULT_PARSERS",
    "GenericPageParser",
    "GradingParser",
    "SchedulePatternParser",
    "SchedulePatternSelectors",
    "dedupe_grading",
    "parse_grading_line",
]
