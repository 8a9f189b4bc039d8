from itertools import accumulate

from hypothesis import given, settings, strategies as st

from page_segmenter import segment_pages
from page_segmenter.models import Page

word = st.text(alphabet="abcب", min_size=1, max_size=20)
loose = st.text(alphabet="ab .ب", max_size=40)
steps = st.lists(st.integers(min_value=1, max_value=5), min_size=1, max_size=12)


def _pages(contents, id_steps):
    ids = list(accumulate(id_steps))
    return [Page(i, c) for i, c in zip(ids, contents)]


@given(st.lists(word, min_size=12, max_size=12), steps, st.integers(min_value=0, max_value=3))
@settings(deadline=None)
def test_segments_respect_max_pages(contents, id_steps, max_pages) -> None:
    pages = _pages(contents, id_steps)
    segments = segment_pages(pages, {"breakpoints": [""], "maxPages": max_pages})
    assert all(s.last_id - s.from_id <= max_pages for s in segments)
    assert " ".join(s.content for s in segments) == " ".join(p.content for p in pages)


@given(st.lists(loose, min_size=1, max_size=6))
@settings(deadline=None)
def test_segments_respect_max_content_length(contents) -> None:
    pages = [Page(i, c) for i, c in enumerate(contents, start=1)]
    segments = segment_pages(pages, {"breakpoints": [""], "maxContentLength": 50})
    assert all(0 < len(s.content) <= 50 for s in segments)


@given(st.lists(loose, min_size=1, max_size=6))
@settings(deadline=None)
def test_without_rules_pages_are_joined(contents) -> None:
    pages = [Page(i, c) for i, c in enumerate(contents, start=1)]
    expected = " ".join(contents).strip()
    segments = segment_pages(pages)
    assert [s.content for s in segments] == ([expected] if expected else [])


@given(st.lists(word, min_size=1, max_size=8), st.integers(min_value=0, max_value=2))
@settings(deadline=None)
def test_segmentation_is_deterministic(contents, max_pages) -> None:
    pages = [Page(i, c) for i, c in enumerate(contents, start=1)]
    options = {"breakpoints": [""], "maxPages": max_pages}
    assert segment_pages(pages, options) == segment_pages(pages, options)


@given(
    st.lists(loose, min_size=1, max_size=8),
    steps,
    st.integers(min_value=0, max_value=3),
    st.integers(min_value=50, max_value=120),
)
@settings(deadline=None)
def test_segments_respect_both_limits(contents, id_steps, max_pages, max_length) -> None:
    pages = _pages(contents, id_steps)
    options = {"breakpoints": [""], "maxPages": max_pages, "maxContentLength": max_length}
    segments = segment_pages(pages, options)
    assert all(len(s.content) <= max_length for s in segments)
    assert all(s.last_id - s.from_id <= max_pages for s in segments)
