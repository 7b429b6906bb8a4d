"""Course-subpage discovery from seed URLs.

Seeds are fetched concurrently; each successful seed contributes its final
(post-redirect) URL plus same-site or companion-host anchors whose text or
path looks like syllabus, schedule, resource or assignment material.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Sequence
from urllib.parse import urljoin, urlsplit

import structlog
from bs4 import BeautifulSoup

from course_intel.ingestion.fetch import FetchedPage, PageFetcher
from course_intel.ingestion.links import (
    PATH_SENSITIVE_HOSTS,
    host_key,
    host_matches,
    is_noisy,
    is_same_site,
    normalize_url,
)
from course_intel.models.syllabus import CandidateUrl

logger = structlog.get_logger()

SEED_SCORE = 100

LEARNING_PLATFORM_HOSTS: frozenset[str] = frozenset(
    {
        "instructure.com",
        "gradescope.com",
        "edstem.org",
        "coursera.org",
        "edx.org",
        "moodle.org",
        "blackboard.com",
        "ocw.mit.edu",
    }
)

# Highest first; a link scores by its best matching tier.
_PATH_TIERS: tuple[tuple[int, re.Pattern[str]], ...] = (
    (50, re.compile(r"syllabus", re.I)),
    (40, re.compile(r"calendar|schedule", re.I)),
    (30, re.compile(r"resources?|materials?", re.I)),
    (20, re.compile(r"assignments?|homeworks?|policy|policies|grading", re.I)),
    (10, re.compile(r"week|lectures?|readings?", re.I)),
)


def score_link(text: str, url: str) -> int:
    """Relevance score from anchor text and URL path; 0 when off-topic."""
    path = urlsplit(url).path
    for score, pattern in _PATH_TIERS:
        if pattern.search(path) or pattern.search(text):
            return score
    return 0


def is_companion_host(url: str) -> bool:
    return host_matches(host_key(url), PATH_SENSITIVE_HOSTS | LEARNING_PLATFORM_HOSTS)


def discover_links(page: FetchedPage) -> list[tuple[str, int]]:
    """Scored same-site or companion-host links found on one seed page."""
    soup = BeautifulSoup(page.text, "html.parser")
    found: list[tuple[str, int]] = []
    seen: set[str] = set()
    for anchor in soup.find_all("a", href=True):
        href = anchor.get("href")
        if not isinstance(href, str) or href.startswith(("#", "mailto:", "javascript:")):
            continue
        url = normalize_url(urljoin(page.final_url, href))
        if url is None or url in seen or is_noisy(url):
            continue
        if not (is_same_site(url, page.final_url) or is_companion_host(url)):
            continue
        score = score_link(anchor.get_text(" "), url)
        if score <= 0:
            continue
        seen.add(url)
        found.append((url, score))
    return found


class SubpageDiscoverer:
    """Ranks seed URLs and their relevant subpages into candidate URLs."""

    def __init__(
        self,
        fetcher: PageFetcher,
        *,
        max_seeds: int = 4,
        max_results: int = 8,
    ) -> None:
        self._fetcher = fetcher
        self._max_seeds = max_seeds
        self._max_results = max_results

    async def discover(self, seeds: Sequence[str]) -> list[CandidateUrl]:
        """Return up to ``max_results`` candidates, best score first.

        Failed seeds are skipped; an empty list is a valid result.
        """
        seed_urls = [u for u in seeds if not is_noisy(u)][: self._max_seeds]
        settled = await asyncio.gather(
            *(self._fetcher.fetch(url) for url in seed_urls), return_exceptions=True
        )

        best: dict[str, CandidateUrl] = {}
        order = 0

        def offer(url: str, score: int) -> None:
            nonlocal order
            current = best.get(url)
            if current is None:
                best[url] = CandidateUrl(url=url, score=score, order=order)
                order += 1
            elif score > current.score:
                best[url] = CandidateUrl(url=url, score=score, order=current.order)

        for seed, result in zip(seed_urls, settled, strict=True):
            if isinstance(result, BaseException):
                logger.info("discovery_seed_failed", url=seed, error=str(result))
                continue
            if not result.ok:
                logger.info("discovery_seed_failed", url=seed, status=result.status_code)
                continue
            final_url = normalize_url(result.final_url)
            if final_url is None:
                continue
            offer(final_url, SEED_SCORE)
            if result.is_html:
                links = await asyncio.to_thread(discover_links, result)
                for url, score in links:
                    offer(url, score)

        ranked = sorted(best.values(), key=lambda c: (-c.score, c.order))
        candidates = ranked[: self._max_results]
        logger.info(
            "discovery_done",
            seeds=len(seed_urls),
            found=len(best),
            kept=len(candidates),
        )
        return candidates
