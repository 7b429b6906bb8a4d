"""Date parsing helpers for schedule rows and deadline sentences."""

from __future__ import annotations

import re
from datetime import date, datetime

_ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_YEAR_RE = re.compile(r"\b(20[0-9]{2})\b")

_MONTHS: dict[str, int] = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}
_MONTH_ALT = (
    r"\b(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|"
    r"aug(?:ust)?|sept?(?:ember)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\.?"
)

_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("iso", re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b")),
    ("numeric", re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?\b")),
    (
        "month_day",
        re.compile(_MONTH_ALT + r"\s+(\d{1,2})(?!\d)(?:st|nd|rd|th)?(?:,?\s+(\d{4}))?", re.I),
    ),
    (
        "day_month",
        re.compile(r"\b(\d{1,2})(?:st|nd|rd|th)?\s+" + _MONTH_ALT + r"(?:,?\s+(\d{4}))?", re.I),
    ),
)


def normalize_date(value: object) -> str | None:
    """Return value when it is a strict ``YYYY-MM-DD`` calendar date."""
    if not isinstance(value, str):
        return None
    candidate = value.strip()
    if not _ISO_RE.match(candidate):
        return None
    try:
        date.fromisoformat(candidate)
    except ValueError:
        return None
    return candidate


def infer_year(text: str, *, today: date | None = None) -> int:
    """First plausible 4-digit year in text, else the current year."""
    match = _YEAR_RE.search(text or "")
    if match:
        return int(match.group(1))
    return (today or datetime.now().date()).year


def _build(year: int, month: int, day: int) -> str | None:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _month(name: str) -> int:
    return _MONTHS[name.lower()[:3]]


def _expand_year(raw: str | None, default_year: int) -> int:
    if not raw:
        return default_year
    year = int(raw)
    return year + 2000 if year < 100 else year


def parse_date(text: str, *, default_year: int) -> str | None:
    """Find the first recognisable date in free text and return it as ISO.

    Supports ``2025-09-08``, ``9/8`` / ``9/8/25``, ``Sep 8`` / ``September 8,
    2025`` and ``8 Sep 2025``. Weekday prefixes are ignored. Dates without a
    year use ``default_year``.
    """
    if not text:
        return None
    best: tuple[int, str] | None = None
    for kind, pattern in _PATTERNS:
        match = pattern.search(text)
        if match is None:
            continue
        groups = match.groups()
        parsed: str | None
        if kind == "iso":
            parsed = _build(int(groups[0]), int(groups[1]), int(groups[2]))
        elif kind == "numeric":
            parsed = _build(
                _expand_year(groups[2], default_year), int(groups[0]), int(groups[1])
            )
        elif kind == "month_day":
            parsed = _build(
                _expand_year(groups[2], default_year),
                _month(groups[0]),
                int(groups[1]),
            )
        else:
            parsed = _build(
                _expand_year(groups[2], default_year),
                _month(groups[1]),
                int(groups[0]),
            )
        if parsed and (best is None or match.start() < best[0]):
            best = (match.start(), parsed)
    return best[1] if best else None
