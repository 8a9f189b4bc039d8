"""Match filtering and capture extraction for split rules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Literal, Mapping, Sequence

from page_segmenter.page_utils import PageRange, is_in_range, is_page_excluded

Occurrence = Literal["all", "first", "last"]


@dataclass(frozen=True)
class MatchResult:
    """A regex match in the concatenated content.

    ``captured`` holds the trailing ``(.*)`` of a ``lineStartsAfter`` rule or
    the last anonymous group of a raw regex rule.
    """

    start: int
    end: int
    captured: str | None = None
    named_captures: Mapping[str, str] | None = None


def extract_named_captures(
    groups: Mapping[str, str | None] | None,
    capture_names: Sequence[str],
    prefix: str = "",
) -> dict[str, str] | None:
    """Pick the defined ``capture_names`` out of ``groups``; strip ``prefix`` from keys."""

    if not groups or not capture_names:
        return None
    found = {
        name[len(prefix) :]: groups[name]
        for name in capture_names
        if groups.get(name) is not None
    }
    return found or None


def get_last_positional_capture(groups: Sequence[str | None]) -> str | None:
    """Last defined group of ``Match.groups()``; named groups shift positions."""

    return next((g for g in reversed(groups) if g is not None), None)


def passes_constraints(
    page_id: int,
    min_page: int | None,
    max_page: int | None,
    exclude: Sequence[PageRange] | None,
) -> bool:
    return is_in_range(page_id, min_page, max_page) and not is_page_excluded(page_id, exclude)


def filter_by_occurrence(matches: Sequence, occurrence: Occurrence | None) -> list:
    if not matches:
        return []
    if occurrence == "first":
        return [matches[0]]
    if occurrence == "last":
        return [matches[-1]]
    return list(matches)


def group_by_span_and_filter(
    matches: Sequence,
    max_span: int,
    occurrence: Occurrence | None,
    get_id: Callable[[int], int],
    page_ids: Sequence[int] | None = None,
    position: Callable[[object], int] = lambda m: m.start,
) -> list:
    """Apply ``occurrence`` inside sliding page-ID windows of width ``max_span``.

    A window starts at a page and covers every page whose ID is at most
    ``max_span`` higher. After a selection the next window starts on the first
    page after the page of the last selected match; a window with no matches
    moves on by one page.
    """

    if not matches:
        return []
    match_ids = [get_id(position(m)) for m in matches]
    ids = list(page_ids) if page_ids is not None else sorted(set(match_ids))
    if not ids:
        return filter_by_occurrence(matches, occurrence)

    result: list = []
    window_idx = 0
    match_idx = 0
    while window_idx < len(ids):
        window_start = ids[window_idx]
        window_end = window_start + max_span
        while match_idx < len(matches) and match_ids[match_idx] < window_start:
            match_idx += 1
        if match_idx >= len(matches):
            break
        stop = match_idx
        while stop < len(matches) and match_ids[stop] <= window_end:
            stop += 1
        if stop <= match_idx:
            window_idx += 1
            continue

        first, last = match_idx, stop
        if occurrence == "first":
            last = first + 1
        elif occurrence == "last":
            first = stop - 1
        result.extend(matches[first:last])

        last_page = match_ids[last - 1]
        while window_idx < len(ids) and ids[window_idx] <= last_page:
            window_idx += 1
        match_idx = last
    return result


def any_rule_allows_id(rules: Sequence[object], page_id: int) -> bool:
    """``True`` if some rule's ``min``/``max`` admits ``page_id``."""

    return any(
        is_in_range(page_id, getattr(r, "min_page", None), getattr(r, "max_page", None))
        for r in rules
    )


__all__ = [
    "MatchResult",
    "any_rule_allows_id",
    "extract_named_captures",
    "filter_by_occurrence",
    "get_last_positional_capture",
    "group_by_span_and_filter",
    "passes_constraints",
]
