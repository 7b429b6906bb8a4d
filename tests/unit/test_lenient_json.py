"""Tests for lenient JSON recovery from model replies."""

import pytest

from course_intel.agents.lenient_json import (
    claims_source_url,
    extract_source_url,
    extract_urls,
    looks_like_refusal,
    parse_json_object,
    parse_lenient_json,
    raw_source_url,
    recover_schedule_rows,
    remove_trailing_commas,
    repair_extra_braces,
)


class TestParseLenientJson:
    def test_plain(self) -> None:
        assert parse_lenient_json('{"a": 1}') == {"a": 1}

    def test_code_fence(self) -> None:
        raw = 'Here you go:\n```json\n{"schedule": []}\n```\nThanks'
        assert parse_lenient_json(raw) == {"schedule": []}

    def test_prose_around_object(self) -> None:
        raw = 'Sure! {"schedule": [], "resources": ["https://a.edu/"]} Hope this helps.'
        assert parse_lenient_json(raw) == {"schedule": [], "resources": ["https://a.edu/"]}

    def test_trailing_commas(self) -> None:
        assert parse_lenient_json('{"a": [1, 2,],}') == {"a": [1, 2]}

    def test_sibling_objects_merged(self) -> None:
        raw = '{"schedule": []},{"resources": ["https://a.edu/"]}'
        assert parse_lenient_json(raw) == {"schedule": [], "resources": ["https://a.edu/"]}

    def test_per_key_braces(self) -> None:
        raw = '{"content":{"summary":"x"},{"schedule":{"n":2}}}'
        assert parse_lenient_json(raw) == {"content": {"summary": "x"}, "schedule": {"n": 2}}

    def test_unparseable(self) -> None:
        with pytest.raises(ValueError):
            parse_lenient_json("no json here")


class TestHelpers:
    def test_remove_trailing_commas_ignores_strings(self) -> None:
        assert remove_trailing_commas('{"a": "x, ]"}') == '{"a": "x, ]"}'
        assert remove_trailing_commas("[1, ]") == "[1 ]"

    def test_repair_extra_braces_noop(self) -> None:
        assert repair_extra_braces('{"a": 1}') == '{"a": 1}'

    def test_parse_json_object_rejects_arrays(self) -> None:
        assert parse_json_object("[1, 2]") is None
        assert parse_json_object("nope") is None
        assert parse_json_object('{"a": 1}') == {"a": 1}


class TestRecoverScheduleRows:
    def test_truncated_array(self) -> None:
        raw = (
            '{"schedule": [{"title": "Week 1"}, '
            '{"title": "Week 2 {draft}", "slides": [{"url": "https://a.edu/s"}]}, '
            '{"title": "Wee'
        )
        rows = recover_schedule_rows(raw)
        assert [r["title"] for r in rows] == ["Week 1", "Week 2 {draft}"]
        assert rows[1]["slides"] == [{"url": "https://a.edu/s"}]

    def test_stops_at_array_end(self) -> None:
        raw = '{"schedule": [{"title": "A"}], "assignments": [{"label": "HW1"}]}'
        assert recover_schedule_rows(raw) == [{"title": "A"}]

    def test_no_schedule_key(self) -> None:
        assert recover_schedule_rows('{"resources": []}') == []


class TestUrls:
    def test_extract_urls_one_per_domain(self) -> None:
        raw = (
            "See https://cs61a.org/syllabus. Also https://cs61a.org/calendar and "
            '(https://github.com/a/b), plus "https://x.edu/p"'
        )
        assert extract_urls(raw) == [
            "https://cs61a.org/syllabus",
            "https://github.com/a/b",
            "https://x.edu/p",
        ]

    def test_source_url_forms(self) -> None:
        assert extract_source_url('{"source_url": "https://a.edu/s"}') == "https://a.edu/s"
        assert raw_source_url('{"source_url": "see above"}') == "see above"
        assert extract_source_url('{"source_url": "see above"}') is None
        assert raw_source_url('{"source_url": null}') is None

    def test_claims_source_url(self) -> None:
        assert claims_source_url('{"source_url": "not-a-url')
        assert not claims_source_url('{"source_url": null}')
        assert not claims_source_url('{"schedule": []}')


class TestRefusal:
    @pytest.mark.parametrize(
        "raw",
        [
            "I cannot browse the web in real time.",
            "I'm Perplexity, a search assistant.",
            "Based on the search results provided, there is no schedule.",
        ],
    )
    def test_refusals(self, raw: str) -> None:
        assert looks_like_refusal(raw)

    def test_json_is_not_refusal(self) -> None:
        assert not looks_like_refusal('{"note": "I cannot find week 3"}')
        assert not looks_like_refusal("Here is the schedule.")
