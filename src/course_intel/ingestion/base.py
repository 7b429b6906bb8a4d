"""PageParser abstract base class and custom exceptions."""

from __future__ import annotations

import abc

from course_intel.models.syllabus import DeterministicSignals


class ProcessingError(Exception):
    """Raised when a page cannot be fetched or parsed."""


class FetchError(ProcessingError):
    """Raised when a URL cannot be fetched (timeout, transport error)."""


class PageParser(abc.ABC):
    """Rule-based strategy that turns one HTML page into signals.

    Parsers are pure (html in, signals out) and run in a fixed order; the
    extractor unions their outputs. A parser with ``fallback_only`` set
    contributes schedule rows only when no earlier parser produced any.
    """

    name: str = ""
    fallback_only: bool = False

    @abc.abstractmethod
    def extract(self, html: str, url: str) -> DeterministicSignals:
        """Extract deterministic signals from a page.

        Args:
            html: Raw page markup.
            url: Final (post-redirect) URL, used to resolve relative links.

        Returns:
            DeterministicSignals, empty when nothing recognisable was found.
        """
        ...
