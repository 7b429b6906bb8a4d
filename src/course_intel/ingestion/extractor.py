"""Deterministic signal extraction across candidate URLs.

Each URL is fetched and parsed independently under a bounded semaphore;
results are settled (failures become empty signal sets) and flattened with
``combine_signals``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import structlog
from pydantic import BaseModel, Field

from course_intel.ingestion.base import PageParser, ProcessingError
from course_intel.ingestion.fetch import FetchedPage, PageFetcher, html_to_text
from course_intel.ingestion.merge import combine_signals, merge_links
from course_intel.ingestion.parsers import DEFAULT_PARSERS
from course_intel.ingestion.parsers.grading import dedupe_grading
from course_intel.ingestion.script_bundle import ScriptBundleRecovery
from course_intel.models.syllabus import DeterministicSignals

logger = structlog.get_logger()


class ExtractionResult(BaseModel):
    """Flattened signals plus the pages that were fetched successfully."""

    signals: DeterministicSignals = Field(default_factory=DeterministicSignals)
    pages: list[FetchedPage] = Field(default_factory=list)


def run_parsers(parsers: Sequence[PageParser], html: str, url: str) -> DeterministicSignals:
    """Apply parsers in order and union their output.

    Schedule rows from ``fallback_only`` parsers are used only when no
    earlier parser produced rows; every other part is always unioned.
    """
    combined = DeterministicSignals()
    for parser in parsers:
        result = parser.extract(html, url)
        if not parser.fallback_only or not combined.schedule_rows:
            combined.schedule_rows.extend(result.schedule_rows)
        combined.grading_signals = dedupe_grading(
            [*combined.grading_signals, *result.grading_signals]
        )
        combined.week_signals.extend(result.week_signals)
        combined.extra_resources.extend(
            u for u in result.extra_resources if u not in combined.extra_resources
        )
        combined.task_signals = merge_links(combined.task_signals, result.task_signals)
    return combined


class DeterministicExtractor:
    """Runs the parser battery over candidate URLs with bounded concurrency."""

    def __init__(
        self,
        fetcher: PageFetcher,
        *,
        parsers: Sequence[PageParser] = DEFAULT_PARSERS,
        concurrency: int = 6,
        min_text_chars: int = 200,
        script_recovery: ScriptBundleRecovery | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._parsers = parsers
        self._semaphore = asyncio.Semaphore(concurrency)
        self._min_text_chars = min_text_chars
        self._script_recovery = script_recovery or ScriptBundleRecovery(fetcher)

    async def extract(self, urls: Sequence[str]) -> ExtractionResult:
        """Extract and flatten signals for every URL; never raises per URL."""
        settled = await asyncio.gather(
            *(self._extract_one(url) for url in urls), return_exceptions=True
        )
        bundles: list[DeterministicSignals] = []
        pages: list[FetchedPage] = []
        for url, result in zip(urls, settled, strict=True):
            if isinstance(result, BaseException):
                logger.warning("extraction_url_failed", url=url, error=str(result))
                continue
            page, signals = result
            bundles.append(signals)
            if page is not None:
                pages.append(page)

        signals = combine_signals(bundles)
        logger.info(
            "deterministic_extraction_done",
            urls=len(urls),
            fulfilled=len(bundles),
            rows=len(signals.schedule_rows),
            grading=len(signals.grading_signals),
            weeks=len(signals.week_signals),
            tasks=len(signals.task_signals),
        )
        return ExtractionResult(signals=signals, pages=pages)

    async def _extract_one(self, url: str) -> tuple[FetchedPage | None, DeterministicSignals]:
        async with self._semaphore:
            page = await self._fetcher.fetch(url)
            if not page.ok or not page.is_html:
                logger.info(
                    "extraction_url_skipped",
                    url=url,
                    status=page.status_code,
                    content_type=page.content_type,
                )
                return None, DeterministicSignals()

            try:
                signals = await asyncio.to_thread(
                    run_parsers, self._parsers, page.text, page.final_url
                )
                text = await asyncio.to_thread(html_to_text, page.text)
            except Exception as exc:
                raise ProcessingError(f"Failed to parse {page.final_url}: {exc}") from exc

            if len(text) < self._min_text_chars:
                recovered = await self._script_recovery.recover(page)
                signals = combine_signals([signals, recovered])

        logger.debug(
            "extraction_url_done",
            url=page.final_url,
            rows=len(signals.schedule_rows),
            grading=len(signals.grading_signals),
        )
        return page, signals
