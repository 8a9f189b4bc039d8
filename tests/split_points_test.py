import pytest

from page_segmenter import segment_pages
from page_segmenter.config import SplitRule
from page_segmenter.debug_meta import DebugConfig
from page_segmenter.models import Page
from page_segmenter.page_map import build_page_map
from page_segmenter.split_points import SplitPoint, collect_split_points, dedupe_split_points


def _rows(segments):
    return [(s.content, s.from_id, s.to_id) for s in segments]


@pytest.fixture
def headed_pages(make_pages):
    return make_pages("## x1", "## x2", "## x3", "## x4")


def test_max_span_applies_occurrence_per_window(headed_pages):
    rules = [{"lineStartsWith": ["## "], "occurrence": "last", "maxSpan": 1}]
    assert _rows(segment_pages(headed_pages, {"rules": rules})) == [
        ("## x1", 1, None),
        ("## x2 ## x3", 2, 3),
        ("## x4", 4, None),
    ]


def test_occurrence_last_without_span(headed_pages):
    rules = [{"lineStartsWith": ["## "], "occurrence": "last"}]
    assert _rows(segment_pages(headed_pages, {"rules": rules})) == [
        ("## x1 ## x2 ## x3", 1, 3),
        ("## x4", 4, None),
    ]


def test_occurrence_first(headed_pages):
    rules = [{"lineStartsWith": ["## "], "occurrence": "first"}]
    assert _rows(segment_pages(headed_pages, {"rules": rules})) == [
        ("## x1 ## x2 ## x3 ## x4", 1, 4)
    ]


def test_excluded_pages_do_not_split(make_pages):
    pages = make_pages("## A", "## B", "## C")
    rules = [{"lineStartsWith": ["## "], "exclude": [2]}]
    assert _rows(segment_pages(pages, {"rules": rules})) == [("## A ## B", 1, 2), ("## C", 3, None)]


def test_page_start_guard_requires_previous_page_ending(make_pages):
    pages = make_pages("intro.", "## A body", "tail", "## B")
    rules = [{"lineStartsWith": ["## "], "pageStartGuard": "{{tarqim}}"}]
    assert _rows(segment_pages(pages, {"rules": rules})) == [
        ("intro.", 1, None),
        ("## A body tail ## B", 2, 4),
    ]


def test_named_captures_become_meta(make_pages):
    rules = [{"regex": r"^(?<num>\d+)\. "}]
    segments = segment_pages(make_pages("1. a\n2. b"), {"rules": rules})
    assert [(s.content, s.meta) for s in segments] == [("1. a", {"num": "1"}), ("2. b", {"num": "2"})]


def test_anonymous_capture_becomes_content(make_pages):
    rules = [{"regex": r"^\d+\. (.*)"}]
    segments = segment_pages(make_pages("1. a\n2. b"), {"rules": rules})
    assert [s.content for s in segments] == ["a", "b"]


def test_combined_and_standalone_rules_interleave(make_pages):
    rules = [{"lineStartsWith": ["## "]}, {"regex": r"^(?<n>\d+)\. "}]
    segments = segment_pages(make_pages("## A\n1. x\n## B"), {"rules": rules})
    assert [s.content for s in segments] == ["## A", "1. x", "## B"]
    assert segments[1].meta == {"n": "1"}


def test_split_points_carry_rule_debug():
    mapped = build_page_map([Page(1, "a\n## b")])
    rules = [SplitRule(line_starts_with=["## "])]
    points = collect_split_points(mapped.content, mapped.page_map, rules, DebugConfig())
    assert [(p.index, p.rule_index) for p in points] == [(2, 0)]
    assert points[0].meta == {"_debug": {"rule": {"index": 0, "patternType": "lineStartsWith"}}}


def test_dedupe_prefers_informative_points():
    points = [SplitPoint(5), SplitPoint(2), SplitPoint(5, meta={"a": 1})]
    deduped = dedupe_split_points(points)
    assert [p.index for p in deduped] == [2, 5]
    assert deduped[1].meta == {"a": 1}


def test_dedupe_prefers_marker_stripping_points():
    points = [SplitPoint(0, meta={"a": 1}), SplitPoint(0, content_start_offset=3)]
    assert dedupe_split_points(points)[0].content_start_offset == 3
