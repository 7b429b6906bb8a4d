"""Page fetching over a shared httpx client, plus HTML-to-text helpers.

The fetcher is the only place that talks to course origins. Every request
is bounded by the client timeout; a hung origin surfaces as ``FetchError``
and never stalls the rest of a run.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Iterable
from types import TracebackType

import httpx
import structlog
import trafilatura
from bs4 import BeautifulSoup
from pydantic import BaseModel

from course_intel.ingestion.base import FetchError

logger = structlog.get_logger()

TEXT_CONTENT_TYPES: tuple[str, ...] = (
    "text/html",
    "text/plain",
    "application/xhtml+xml",
)
MIN_EXCERPT_CHARS = 80

_WS_RE = re.compile(r"\s+")


class FetchedPage(BaseModel):
    """Result of fetching one URL."""

    url: str
    final_url: str
    status_code: int
    content_type: str = ""
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_html(self) -> bool:
        return any(t in self.content_type for t in TEXT_CONTENT_TYPES)


class PageFetcher:
    """Async page fetcher with a crawler user agent and bounded timeout.

    Usage::

        async with PageFetcher(timeout=8.0, user_agent="CourseIntel/1.0") as f:
            page = await f.fetch("https://example.edu/cs101")
    """

    def __init__(
        self,
        *,
        timeout: float = 8.0,
        user_agent: str = "CourseIntel/1.0",
        max_bytes: int = 2_000_000,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._max_bytes = max_bytes
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            headers={"User-Agent": user_agent},
        )

    async def __aenter__(self) -> PageFetcher:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch(self, url: str) -> FetchedPage:
        """GET a URL, following redirects.

        Raises:
            FetchError: On timeout or transport failure. HTTP error statuses
                are returned, not raised.
        """
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            logger.debug("page_fetch_failed", url=url, error=type(exc).__name__)
            raise FetchError(f"Failed to fetch {url}: {exc!r}") from exc

        body = response.content[: self._max_bytes]
        encoding = response.encoding or "utf-8"
        return FetchedPage(
            url=url,
            final_url=str(response.url),
            status_code=response.status_code,
            content_type=response.headers.get("content-type", "").lower(),
            text=body.decode(encoding, errors="replace"),
        )


def html_to_text(html: str) -> str:
    """Visible page text with scripts/styles removed and whitespace collapsed."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    return _WS_RE.sub(" ", soup.get_text(" ")).strip()


def page_excerpt(page: FetchedPage, max_chars: int = 2200) -> str | None:
    """Short main-content excerpt for prompt context.

    Uses trafilatura's main-content extraction, falling back to whole-page
    text. Returns None for non-text responses or near-empty pages.
    """
    if not page.ok or not page.is_html:
        return None
    extracted = trafilatura.extract(page.text, include_tables=True, include_comments=False)
    text = _WS_RE.sub(" ", extracted or "").strip() or html_to_text(page.text)
    if len(text) < MIN_EXCERPT_CHARS:
        return None
    return f"URL: {page.final_url}\nExcerpt: {text[:max_chars]}"


async def build_excerpt_context(
    fetcher: PageFetcher,
    urls: Iterable[str],
    *,
    max_urls: int = 4,
    max_chars: int = 2200,
) -> str:
    """Fetch up to ``max_urls`` pages and format their excerpts for a prompt.

    Failed fetches are skipped; returns '' when nothing usable was fetched.
    """
    unique = list(dict.fromkeys(u for u in urls if u.startswith(("http://", "https://"))))
    unique = unique[:max_urls]
    if not unique:
        return ""

    settled = await asyncio.gather(
        *(fetcher.fetch(u) for u in unique), return_exceptions=True
    )
    snippets: list[str] = []
    for url, result in zip(unique, settled, strict=True):
        if isinstance(result, BaseException):
            logger.info("excerpt_fetch_failed", url=url, error=str(result))
            continue
        excerpt = await asyncio.to_thread(page_excerpt, result, max_chars)
        if excerpt:
            snippets.append(excerpt)

    if not snippets:
        return ""
    body = "\n\n".join(f"[{i}] {s}" for i, s in enumerate(snippets, start=1))
    return f"Fetched URL context:\n{body}"
