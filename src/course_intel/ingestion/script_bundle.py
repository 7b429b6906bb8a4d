"""Recovery of week links and grading from client-rendered course sites.

Single-page apps ship their schedule inside compiled script bundles, e.g.
``children:"Week 3: Transformers"`` followed by element props like
``href:"/slides/w3.pdf"`` and ``children:"Slides"``. This module fetches the
page's same-site bundles and scans them for those patterns.
"""

from __future__ import annotations

import asyncio
import re
from urllib.parse import urljoin

import structlog
from bs4 import BeautifulSoup

from course_intel.ingestion.fetch import FetchedPage, PageFetcher
from course_intel.ingestion.links import is_noisy, is_same_site, normalize_url
from course_intel.ingestion.parsers.common import classify_link
from course_intel.ingestion.parsers.grading import grading_from_lines
from course_intel.models.syllabus import DeterministicSignals, LinkRef, WeekSignal

logger = structlog.get_logger()

MAX_BUNDLES = 6
LABEL_LOOKAHEAD = 300

_WEEK_MARKER_RE = re.compile(r"Week\s*(\d{1,2})\s*:\s*([^\"'`<\\]{0,120})")
_HREF_RE = re.compile(r"href\s*:\s*\"([^\"]+)\"")
_CHILDREN_RE = re.compile(r"children\s*:\s*\"([^\"]{1,120})\"")
_PERCENT_STRING_RE = re.compile(r"\"([^\"\n]{0,80}?\d{1,3}(?:\.\d+)?\s*%[^\"\n]{0,80})\"")


def script_sources(html: str, page_url: str) -> list[str]:
    """Absolute same-site script bundle URLs referenced by a page."""
    soup = BeautifulSoup(html, "html.parser")
    out: list[str] = []
    for script in soup.find_all("script", src=True):
        src = script.get("src")
        if not isinstance(src, str):
            continue
        url = normalize_url(urljoin(page_url, src))
        if url and url not in out and is_same_site(url, page_url):
            out.append(url)
    return out[:MAX_BUNDLES]


def _week_bucket(label: str, url: str) -> str:
    category = classify_link(label, url)
    if category in ("slides", "videos"):
        return "slides"
    if category in ("assignments", "labs", "projects", "exams"):
        return "assignments"
    return "readings"


def parse_bundle(source: str, page_url: str) -> DeterministicSignals:
    """Scan bundle text for ``Week N:`` sections and percentage strings."""
    markers = list(_WEEK_MARKER_RE.finditer(source))
    weeks: dict[int, WeekSignal] = {}
    for index, marker in enumerate(markers):
        week = int(marker.group(1))
        if week < 1:
            continue
        end = markers[index + 1].start() if index + 1 < len(markers) else len(source)
        section = source[marker.end() : end]
        signal = weeks.setdefault(week, WeekSignal(week=week, title=marker.group(2).strip()))
        for href in _HREF_RE.finditer(section):
            url = normalize_url(urljoin(page_url, href.group(1)))
            if url is None or is_noisy(url):
                continue
            label_match = _CHILDREN_RE.search(section, href.end(), href.end() + LABEL_LOOKAHEAD)
            label = label_match.group(1).strip() if label_match else ""
            bucket: list[LinkRef] = getattr(signal, _week_bucket(label, url))
            if all(ref.dedup_key != url.lower() for ref in bucket):
                bucket.append(LinkRef(label=label, url=url))

    grading = grading_from_lines(m.group(1) for m in _PERCENT_STRING_RE.finditer(source))
    return DeterministicSignals(
        week_signals=[weeks[w] for w in sorted(weeks)],
        grading_signals=grading,
    )


class ScriptBundleRecovery:
    """Fetches a page's script bundles and parses them for week signals."""

    def __init__(self, fetcher: PageFetcher) -> None:
        self._fetcher = fetcher

    async def recover(self, page: FetchedPage) -> DeterministicSignals:
        sources = script_sources(page.text, page.final_url)
        if not sources:
            return DeterministicSignals()

        settled = await asyncio.gather(
            *(self._fetcher.fetch(src) for src in sources), return_exceptions=True
        )
        bundles: list[str] = []
        for src, result in zip(sources, settled, strict=True):
            if isinstance(result, BaseException):
                logger.info("script_bundle_fetch_failed", url=src, error=str(result))
                continue
            if result.ok:
                bundles.append(result.text)

        signals = await asyncio.to_thread(parse_bundle, "\n".join(bundles), page.final_url)
        logger.info(
            "script_bundle_recovered",
            url=page.final_url,
            bundles=len(bundles),
            weeks=len(signals.week_signals),
            grading=len(signals.grading_signals),
        )
        return signals
