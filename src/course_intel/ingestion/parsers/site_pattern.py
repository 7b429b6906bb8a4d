"""Parser for the repeating "schedule item" course-site convention.

Many course sites generated from common static templates render each session
as a container holding a date label, a title, a list of resource links and a
logistics block whose links are tasks (``HW1 out``, ``Lab 2 due 9/18``).
The same templates render grading as a plain list.
"""

from __future__ import annotations

from dataclasses import dataclass

from bs4 import Tag

from course_intel.ingestion.base import PageParser
from course_intel.ingestion.dates import infer_year, normalize_date, parse_date
from course_intel.ingestion.parsers.common import (
    add_link,
    anchor_ref,
    classify_link,
    clean_text,
    deadline_date,
    make_soup,
    session_label,
    task_category,
)
from course_intel.ingestion.parsers.grading import grading_from_lines
from course_intel.models.syllabus import DeterministicSignals, ScheduleRow


@dataclass(frozen=True)
class SchedulePatternSelectors:
    """CSS selectors for the schedule-item convention."""

    item: str = ".schedule-item, .schedule-entry, .schedule-row, .module-item"
    date: str = ".schedule-date, .date, time"
    title: str = ".schedule-title, .title, h3, h4"
    sequence: str = ".schedule-sequence, .sequence, .week-label"
    instructor: str = ".schedule-instructor, .instructor, .speaker"
    resources: str = ".schedule-resources a, .resources a, .materials a"
    logistics: str = ".schedule-logistics, .logistics, .description"
    grading: str = ".grading-list li, .grading li, #grading li"


def _resource_category(label: str, url: str) -> str:
    """Resource links are slides, videos or other material."""
    category = classify_link(label, url)
    return category if category in ("slides", "videos") else "modules"


class SchedulePatternParser(PageParser):
    """Structural parser for schedule-item containers and grading lists."""

    name = "site_pattern"

    def __init__(self, selectors: SchedulePatternSelectors | None = None) -> None:
        self._sel = selectors or SchedulePatternSelectors()

    def extract(self, html: str, url: str) -> DeterministicSignals:
        soup = make_soup(html)
        year = infer_year(soup.get_text(" "))
        rows = [
            row
            for item in soup.select(self._sel.item)
            if (row := self._parse_item(item, url, year)) is not None
        ]
        grading = grading_from_lines(li.get_text(" ") for li in soup.select(self._sel.grading))
        return DeterministicSignals(schedule_rows=rows, grading_signals=grading)

    def _parse_item(self, item: Tag, base_url: str, year: int) -> ScheduleRow | None:
        title = self._text(item, self._sel.title)
        row = ScheduleRow(
            title=title or None,
            date=self._date(item, year),
            sequence=self._text(item, self._sel.sequence) or session_label(title) or None,
            instructor=self._text(item, self._sel.instructor) or None,
        )

        for anchor in item.select(self._sel.resources):
            ref = anchor_ref(anchor, base_url)
            if ref is not None:
                add_link(row, ref, _resource_category(ref.label, ref.url))

        logistics = item.select_one(self._sel.logistics)
        if logistics is not None:
            row.description = clean_text(logistics.get_text(" ")) or None
            for anchor in logistics.find_all("a"):
                ref = anchor_ref(anchor, base_url)
                if ref is None:
                    continue
                context = clean_text(anchor.parent.get_text(" ")) if anchor.parent else ref.label
                due = None
                if "due" in context.lower():
                    due = deadline_date(context, default_year=year)
                add_link(row, ref, task_category(f"{ref.label} {ref.url}"), due_date=due)

        if not (row.title or row.date or row.links()):
            return None
        return row

    def _text(self, item: Tag, selector: str) -> str:
        node = item.select_one(selector)
        return clean_text(node.get_text(" ")) if node is not None else ""

    def _date(self, item: Tag, year: int) -> str | None:
        node = item.select_one(self._sel.date)
        if node is None:
            return None
        attr = node.get("datetime")
        if isinstance(attr, str) and normalize_date(attr[:10]):
            return attr[:10]
        return parse_date(clean_text(node.get_text(" ")), default_year=year)
