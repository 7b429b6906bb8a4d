"""Helpers shared by the HTML page parsers: link refs, classification, text."""

from __future__ import annotations

import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from course_intel.ingestion.dates import parse_date
from course_intel.ingestion.links import is_noisy, normalize_url
from course_intel.models.syllabus import LinkRef, ScheduleRow, TaskRef

_WS_RE = re.compile(r"\s+")
_WEEK_RE = re.compile(r"\bw(?:ee)?k\.?\s*#?\s*(\d{1,2})\b", re.I)
_SESSION_RE = re.compile(
    r"\b(week|wk|lecture|lec|session|class|module|unit|day)\.?\s*#?\s*(\d{1,3})\b", re.I
)

TASK_KEYWORDS_RE = re.compile(
    r"\b(assignments?|homeworks?|hw\s?\d+|problem sets?|psets?|labs?|projects?|"
    r"quiz(?:zes)?|exams?|midterms?)\b",
    re.I,
)
DEADLINE_KEYWORDS_RE = re.compile(r"\b(due|deadline|out|released?|submit(?:ted|ssion)?)\b", re.I)
_DUE_RE = re.compile(r"\b(due|deadline)\b", re.I)

# Ordered: the first matching rule decides the category.
_LINK_RULES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("videos", re.compile(r"\b(video|recording|youtube|watch|lecture capture|panopto)\b", re.I)),
    ("slides", re.compile(r"\b(slides?|deck|ppt|pptx|keynote|handout)\b", re.I)),
    ("exams", re.compile(r"\b(exam|midterm|final|quiz)\b", re.I)),
    ("labs", re.compile(r"\blabs?\b", re.I)),
    ("projects", re.compile(r"\bprojects?\b", re.I)),
    (
        "assignments",
        re.compile(r"\b(assignments?|homeworks?|hw\s?\d*|problem sets?|psets?|exercises?)\b", re.I),
    ),
    (
        "readings",
        re.compile(r"\b(readings?|paper|chapter|ch\.|textbook|book|notes|article)\b", re.I),
    ),
)
_SLIDE_URL_RE = re.compile(r"\.(pptx?|key)(?:$|\?)", re.I)


def clean_text(value: str | None) -> str:
    return _WS_RE.sub(" ", value or "").strip()


def make_soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def anchor_ref(anchor: Tag, base_url: str) -> LinkRef | None:
    """Resolve an ``<a>`` into a LinkRef; None for fragments, mailto and noise."""
    href = anchor.get("href")
    if not isinstance(href, str) or not href.strip():
        return None
    if href.startswith(("#", "mailto:", "javascript:")):
        return None
    url = normalize_url(urljoin(base_url, href.strip()))
    # Video hosts are noise for fetching but legitimate schedule material.
    if url is None or (is_noisy(url) and not _is_video_url(url)):
        return None
    title = anchor.get("title")
    label = clean_text(anchor.get_text(" ")) or clean_text(title if isinstance(title, str) else "")
    return LinkRef(label=label[:200], url=url)


def _is_video_url(url: str) -> bool:
    return bool(re.search(r"(youtube\.com|youtu\.be|vimeo\.com)", url, re.I))


def classify_link(label: str, url: str = "") -> str:
    """Category for a link by label keyword, falling back to the URL.

    Returns one of the schedule row categories; unrecognised links land
    in ``modules``.
    """
    if _is_video_url(url):
        return "videos"
    for category, pattern in _LINK_RULES:
        if pattern.search(label):
            return category
    if _SLIDE_URL_RE.search(url):
        return "slides"
    tail = url.rsplit("/", 1)[-1].replace("-", " ").replace("_", " ")
    for category, pattern in _LINK_RULES:
        if pattern.search(tail):
            return category
    return "modules"


def add_link(row: ScheduleRow, ref: LinkRef, category: str, *, due_date: str | None = None) -> None:
    """Append a link to a row category, skipping URLs already present."""
    bucket = getattr(row, category)
    if any(existing.dedup_key == ref.dedup_key for existing in bucket):
        return
    if category in ("assignments", "labs", "exams", "projects"):
        bucket.append(TaskRef(label=ref.label, url=ref.url, due_date=due_date))
    else:
        bucket.append(ref)


def week_number(*texts: str | None) -> int | None:
    """Explicit ``Week N`` number from the first text that has one."""
    for text in texts:
        if not text:
            continue
        match = _WEEK_RE.search(text)
        if match and int(match.group(1)) >= 1:
            return int(match.group(1))
    return None


def session_label(text: str) -> str | None:
    """``Week 3`` / ``Lecture 12`` style label at the start of a cell or heading."""
    match = _SESSION_RE.search(text[:40])
    if match is None:
        return None
    return f"{match.group(1).title()} {int(match.group(2))}"


def task_category(text: str) -> str:
    """Task bucket for free text mentioning a task keyword."""
    category = classify_link(text)
    return category if category in ("assignments", "labs", "exams", "projects") else "assignments"


def strip_session_labels(text: str) -> str:
    """Remove ``Week 3`` / ``Lecture 12`` labels so their numbers never read as days."""
    return _SESSION_RE.sub(" ", text)


def deadline_date(text: str, *, default_year: int) -> str | None:
    """Date following ``due``/``deadline``, else the first date in the text."""
    text = strip_session_labels(text)
    match = _DUE_RE.search(text)
    if match is not None:
        found = parse_date(text[match.end() :], default_year=default_year)
        if found:
            return found
    return parse_date(text, default_year=default_year)
