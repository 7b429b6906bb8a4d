"""Generic fallback parser: schedule tables, session headings, deadline sentences."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Tag

from course_intel.ingestion.base import PageParser
from course_intel.ingestion.dates import infer_year, parse_date
from course_intel.ingestion.parsers.common import (
    DEADLINE_KEYWORDS_RE,
    TASK_KEYWORDS_RE,
    add_link,
    anchor_ref,
    classify_link,
    clean_text,
    deadline_date,
    make_soup,
    session_label,
    strip_session_labels,
)
from course_intel.models.syllabus import (
    TASK_CATEGORIES,
    DeterministicSignals,
    ScheduleRow,
    TaskRef,
)

_SESSION_VOCAB_RE = re.compile(
    r"\b(week|wk|lecture|lec|session|class|module|unit)\.?\s*#?\s*\d", re.I
)
_RESOURCE_VOCAB_RE = re.compile(
    r"syllabus|schedule|calendar|slides?|lecture|reading|assignment|homework|"
    r"\bhw\d*\b|\blabs?\b|project|notes|\.pdf\b",
    re.I,
)
_HEADINGS = ("h2", "h3", "h4")
MAX_SENTENCE_CHARS = 300
MAX_EXTRA_RESOURCES = 40


def _is_session_text(text: str, year: int) -> bool:
    return bool(_SESSION_VOCAB_RE.search(text[:60]) or parse_date(text[:40], default_year=year))


class GenericPageParser(PageParser):
    """Vocabulary-driven parser used when no known structure matched.

    Rows come from table rows and ``Week N``/``Lecture N`` headings. Deadline
    sentences and resource-looking links are always reported.
    """

    name = "generic"
    fallback_only = True

    def extract(self, html: str, url: str) -> DeterministicSignals:
        soup = make_soup(html)
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        year = infer_year(soup.get_text(" "))

        rows = self._table_rows(soup, url, year) or self._heading_rows(soup, url, year)
        return DeterministicSignals(
            schedule_rows=rows,
            task_signals=self._deadline_tasks(soup, url, year),
            extra_resources=self._resource_links(soup, url),
        )

    def _table_rows(self, soup: BeautifulSoup, base_url: str, year: int) -> list[ScheduleRow]:
        rows: list[ScheduleRow] = []
        for tr in soup.find_all("tr"):
            cells = [clean_text(td.get_text(" ")) for td in tr.find_all("td")]
            if not cells:
                continue
            text = " ".join(cells)
            if not _is_session_text(text, year):
                continue
            row = ScheduleRow(
                date=self._row_date(cells, year),
                sequence=session_label(cells[0]),
                title=self._title(cells, year),
            )
            self._add_links(row, tr.find_all("a"), base_url, year)
            rows.append(row)
        return rows

    def _row_date(self, cells: list[str], year: int) -> str | None:
        for cell in cells:
            found = parse_date(strip_session_labels(cell), default_year=year)
            if found:
                return found
        return None

    def _title(self, cells: list[str], year: int) -> str | None:
        """First cell that is more than a bare date or session label."""
        for cell in cells:
            residue = _SESSION_VOCAB_RE.sub("", cell)
            if parse_date(residue, default_year=year) and len(residue) <= 20:
                continue
            residue = residue.strip(" :-–")
            if len(residue) > 2:
                return cell[:200]
        return None

    def _heading_rows(self, soup: BeautifulSoup, base_url: str, year: int) -> list[ScheduleRow]:
        rows: list[ScheduleRow] = []
        for heading in soup.find_all(_HEADINGS):
            text = clean_text(heading.get_text(" "))
            if not _SESSION_VOCAB_RE.search(text[:60]):
                continue
            anchors: list[Tag] = list(heading.find_all("a"))
            body: list[str] = []
            for sibling in heading.find_next_siblings():
                if sibling.name in _HEADINGS:
                    break
                body.append(clean_text(sibling.get_text(" ")))
                anchors.extend(sibling.find_all("a"))
            description = " ".join(b for b in body if b)[:1000] or None
            row = ScheduleRow(
                sequence=session_label(text),
                title=text[:200],
                date=parse_date(strip_session_labels(text), default_year=year)
                or parse_date((description or "")[:120], default_year=year),
                description=description,
            )
            self._add_links(row, anchors, base_url, year)
            rows.append(row)
        return rows

    def _add_links(self, row: ScheduleRow, anchors: list[Tag], base_url: str, year: int) -> None:
        for anchor in anchors:
            ref = anchor_ref(anchor, base_url)
            if ref is None:
                continue
            category = classify_link(ref.label, ref.url)
            due = None
            if category in TASK_CATEGORIES and anchor.parent is not None:
                context = clean_text(anchor.parent.get_text(" "))
                if "due" in context.lower():
                    due = deadline_date(context, default_year=year)
            add_link(row, ref, category, due_date=due)

    def _deadline_tasks(self, soup: BeautifulSoup, base_url: str, year: int) -> list[TaskRef]:
        """Short list/paragraph/row text naming a task and a deadline."""
        tasks: list[TaskRef] = []
        seen: set[str] = set()
        for element in soup.find_all(["li", "p", "tr"]):
            text = clean_text(element.get_text(" "))
            if not text or len(text) > MAX_SENTENCE_CHARS:
                continue
            if not (TASK_KEYWORDS_RE.search(text) and DEADLINE_KEYWORDS_RE.search(text)):
                continue
            anchor = element.find("a")
            ref = anchor_ref(anchor, base_url) if isinstance(anchor, Tag) else None
            task = TaskRef(
                label=text[:200],
                url=ref.url if ref else None,
                due_date=deadline_date(text, default_year=year),
            )
            if task.dedup_key in seen:
                continue
            seen.add(task.dedup_key)
            tasks.append(task)
        return tasks

    def _resource_links(self, soup: BeautifulSoup, base_url: str) -> list[str]:
        urls: list[str] = []
        for anchor in soup.find_all("a"):
            ref = anchor_ref(anchor, base_url)
            if ref is None or ref.url in urls:
                continue
            if _RESOURCE_VOCAB_RE.search(f"{ref.label} {ref.url}"):
                urls.append(ref.url)
            if len(urls) >= MAX_EXTRA_RESOURCES:
                break
        return urls

