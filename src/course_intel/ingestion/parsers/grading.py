"""Grading-weight extraction from logistics/grading sections."""

from __future__ import annotations

import re
from collections.abc import Iterable

from bs4 import BeautifulSoup, Tag

from course_intel.ingestion.base import PageParser
from course_intel.ingestion.parsers.common import clean_text, make_soup
from course_intel.models.syllabus import DeterministicSignals, GradingSignal

_CATEGORY_RE = re.compile(
    r"\b(homeworks?|assignments?|problem sets?|psets?|exams?|midterms?|finals?|projects?|"
    r"quiz(?:zes)?|labs?|participation|attendance|presentations?|papers?|essays?|reports?|"
    r"tests?|sections?|discussions?|recitations?|reading responses?|exercises?|capstone)\b",
    re.I,
)
_EXCLUDE_RE = re.compile(r"\b(late|lateness|penalt(?:y|ies)|deduct\w*|grace|slip days?)\b", re.I)
_PERCENT_RE = re.compile(r"(\d{1,3}(?:\.\d+)?)\s*%")
_PRODUCT_RE = re.compile(r"(\d{1,3}(?:\.\d+)?)\s*%\s*(?:x|×|\*)\s*(\d{1,2})\b", re.I)
_SECTION_HINT_RE = re.compile(r"grading|logistics|evaluation|assessment|grades", re.I)
_STRIP_CHARS = " \t:;,.-–—()[]•*|"

WINDOW_BEFORE = 200
WINDOW_AFTER = 1500


def parse_grading_line(line: str) -> GradingSignal | None:
    """Parse one line like ``Homework: 40%`` or ``Quizzes 5% x 4``.

    Returns None unless the line has a percentage and a grading-category
    keyword and does not describe a late/penalty policy. The weight is the
    first percentage unless a ``X% x Y`` product is present and at most 100.
    """
    text = clean_text(line)
    if not text or len(text) > 200:
        return None
    if not _CATEGORY_RE.search(text) or _EXCLUDE_RE.search(text):
        return None
    percent = _PERCENT_RE.search(text)
    if percent is None:
        return None

    weight = float(percent.group(1))
    product = _PRODUCT_RE.search(text)
    if product is not None:
        total = float(product.group(1)) * int(product.group(2))
        if total <= 100:
            weight = total
    if not 0 < weight <= 100:
        return None

    component = text[: percent.start()].strip(_STRIP_CHARS)
    if not _CATEGORY_RE.search(component):
        component = text[percent.end() :].strip(_STRIP_CHARS)
    component = component[:80].strip(_STRIP_CHARS)
    if not component:
        return None
    return GradingSignal(component=component, weight=round(weight, 2))


def dedupe_grading(signals: Iterable[GradingSignal]) -> list[GradingSignal]:
    """Collapse components by case-insensitive name, first seen wins."""
    seen: set[str] = set()
    out: list[GradingSignal] = []
    for signal in signals:
        key = signal.component.strip().lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(signal)
    return out


def grading_from_lines(lines: Iterable[str]) -> list[GradingSignal]:
    parsed = (parse_grading_line(line) for line in lines)
    return dedupe_grading(s for s in parsed if s is not None)


def _section_lines(soup: BeautifulSoup) -> list[str]:
    """Lines from elements or headed sections labelled as grading/logistics."""
    lines: list[str] = []
    for element in soup.find_all(True):
        if not isinstance(element, Tag):
            continue
        marker = " ".join([str(element.get("id") or ""), *(element.get("class") or [])])
        if _SECTION_HINT_RE.search(marker):
            lines.extend(element.get_text("\n").splitlines())

    for heading in soup.find_all(["h1", "h2", "h3", "h4", "h5"]):
        if not _SECTION_HINT_RE.search(heading.get_text(" ")):
            continue
        level = int(heading.name[1])
        for sibling in heading.find_next_siblings():
            if sibling.name in {"h1", "h2", "h3", "h4", "h5"} and int(sibling.name[1]) <= level:
                break
            lines.extend(sibling.get_text("\n").splitlines())
    return lines


def _window_lines(soup: BeautifulSoup) -> list[str]:
    """Lines in a text window around the first mention of "grading"."""
    text = soup.get_text("\n")
    index = text.lower().find("grading")
    if index < 0:
        return []
    window = text[max(0, index - WINDOW_BEFORE) : index + WINDOW_AFTER]
    return re.split(r"[\n;•]", window)


class GradingParser(PageParser):
    """Pulls grading weights out of a page's grading section."""

    name = "grading"

    def extract(self, html: str, url: str) -> DeterministicSignals:
        soup = make_soup(html)
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        lines = _section_lines(soup) or _window_lines(soup)
        return DeterministicSignals(grading_signals=grading_from_lines(lines))
