"""Building blocks for breaking oversized segments.

The processor in :mod:`page_segmenter.breakpoint_processor` drives the loop;
this module holds the pieces it is made of: compiled breakpoints, position
maps from segment offsets back to pages, pattern search inside a window and
the safety fallbacks used when nothing matches.
"""

from __future__ import annotations

import re
import unicodedata
from bisect import bisect_right
from dataclasses import dataclass
from typing import Literal, Sequence

from page_segmenter.config import BreakpointRule
from page_segmenter.fuzzy import escape_regex, make_diacritic_insensitive
from page_segmenter.models import Segment, make_segment
from page_segmenter.page_utils import build_exclude_set, is_in_range, is_page_excluded
from page_segmenter.rule_regex import to_python_regex
from page_segmenter.tokens import expand_tokens_with_captures, fuzzy_literal

Prefer = Literal["longer", "shorter"]

PREFIX_LENGTH = 30
SAFE_BREAK_LOOKBACK = 100
BOUNDARY_SEARCH_RADIUS = 1000
WORD_GROUP_PREFIX = "_w"

# sentence punctuation a break may follow
SAFE_BREAK_CHARS = frozenset(
    ".!?,;:\N{HORIZONTAL ELLIPSIS}\N{ARABIC COMMA}\N{ARABIC SEMICOLON}\N{ARABIC QUESTION MARK}"
)
_SELECTORS = frozenset("\N{VARIATION SELECTOR-15}\N{VARIATION SELECTOR-16}")
_JOINERS = frozenset("\N{ZERO WIDTH NON-JOINER}\N{ZERO WIDTH JOINER}")


@dataclass(frozen=True)
class ExpandedBreakpoint:
    """A breakpoint with its regex compiled; ``regex`` is ``None`` for ``""``."""

    rule: BreakpointRule
    regex: re.Pattern[str] | None
    exclude_set: frozenset[int]
    skip_when: re.Pattern[str] | None = None

    @property
    def split(self) -> str:
        return self.rule.effective_split


@dataclass(frozen=True)
class PatternBreak:
    position: int
    word_index: int | None = None


# -- Compilation -------------------------------------------------------------------------


def _expand(pattern: str) -> str:
    return to_python_regex(expand_tokens_with_captures(pattern).pattern)


def build_words_regex_source(words: Sequence[str]) -> str:
    """One named alternative per word, longest first; whitespace inside words is kept."""

    ordered = sorted(
        ((i, w) for i, w in enumerate(words) if w.strip()), key=lambda item: -len(item[1])
    )
    return "|".join(
        f"(?P<{WORD_GROUP_PREFIX}{i}>{fuzzy_literal(escape_regex(w), make_diacritic_insensitive)})"
        for i, w in ordered
    )


def _compile(source: str, label: str, original: str) -> re.Pattern[str]:
    try:
        return re.compile(source, re.MULTILINE)
    except re.error as exc:
        raise ValueError(f"Invalid {label}: {original}\n  Cause: {exc}") from exc


def expand_breakpoint(rule: BreakpointRule) -> ExpandedBreakpoint:
    skip_when = (
        _compile(_expand(rule.skip_when), "breakpoint skipWhen regex", rule.skip_when)
        if rule.skip_when is not None
        else None
    )
    exclude_set = build_exclude_set(rule.exclude)
    if rule.is_page_boundary:
        return ExpandedBreakpoint(rule, None, exclude_set, skip_when)
    if rule.words is not None:
        source = build_words_regex_source(rule.words)
        original = ", ".join(rule.words)
    elif rule.regex is not None:
        source, original = to_python_regex(rule.regex), rule.regex
    else:
        source, original = _expand(rule.pattern or ""), rule.pattern or ""
    return ExpandedBreakpoint(
        rule, _compile(source, "breakpoint regex", original), exclude_set, skip_when
    )


def expand_breakpoints(rules: Sequence[BreakpointRule]) -> list[ExpandedBreakpoint]:
    """Compile ``rules``; invalid patterns raise ``ValueError`` naming the pattern."""

    return [expand_breakpoint(rule) for rule in rules]


# -- Page ranges -------------------------------------------------------------------------


def is_in_breakpoint_range(page_id: int, rule: BreakpointRule) -> bool:
    return is_in_range(page_id, rule.min_page, rule.max_page) and not is_page_excluded(
        page_id, rule.exclude
    )


def has_excluded_page_in_range(
    exclude_set: frozenset[int], page_ids: Sequence[int], from_idx: int, to_idx: int
) -> bool:
    if not exclude_set:
        return False
    return any(page_ids[i] in exclude_set for i in range(from_idx, to_idx + 1))


def has_any_exclusions_in_range(
    expanded: Sequence[ExpandedBreakpoint], page_ids: Sequence[int], from_idx: int, to_idx: int
) -> bool:
    return any(
        has_excluded_page_in_range(bp.exclude_set, page_ids, from_idx, to_idx) for bp in expanded
    )


# -- Offsets -----------------------------------------------------------------------------


def build_cumulative_offsets(normalized: Sequence[str]) -> list[int]:
    """``offsets[i]`` is where page ``i`` starts in the ``\\n``-joined content."""

    offsets = [0]
    last = len(normalized) - 1
    for i, text in enumerate(normalized):
        offsets.append(offsets[-1] + len(text) + (1 if i < last else 0))
    return offsets


def _page_prefix(text: str) -> str:
    return text.strip()[:PREFIX_LENGTH]


def estimate_start_offset_in_current_page(content: str, page_text: str) -> int:
    """Where ``content`` begins inside ``page_text`` (0 when it starts the page)."""

    head = content.lstrip()[:PREFIX_LENGTH]
    if not head:
        return 0
    pos = page_text.find(head)
    return pos if pos >= 0 else 0


def _nearest(content: str, needle: str, expected: int, lo: int, radius: int) -> int:
    start = max(lo, expected - radius)
    stop = min(len(content), expected + radius + len(needle))
    best = -1
    pos = content.find(needle, start, stop)
    while pos != -1:
        if best == -1 or abs(pos - expected) < abs(best - expected):
            best = pos
        pos = content.find(needle, pos + 1, stop)
    return best


def build_boundary_positions(
    content: str,
    from_idx: int,
    to_idx: int,
    normalized: Sequence[str],
    cumulative: Sequence[int],
) -> list[int]:
    """Start offset in ``content`` of every page from ``from_idx`` to ``to_idx``.

    ``positions[0]`` is 0 (the segment start) and the list ends with
    ``len(content)``. Each page start is searched for near its arithmetic
    estimate so text removed by an earlier rule does not shift attribution.
    """

    base = cumulative[from_idx] + estimate_start_offset_in_current_page(
        content, normalized[from_idx]
    )
    positions = [0]
    for i in range(from_idx + 1, to_idx + 1):
        expected = min(max(cumulative[i] - base, positions[-1]), len(content))
        prefix = _page_prefix(normalized[i])
        found = (
            _nearest(content, prefix, expected, positions[-1] + 1, BOUNDARY_SEARCH_RADIUS)
            if prefix
            else -1
        )
        positions.append(found if found >= 0 else expected)
    positions.append(len(content))
    return positions


def find_page_index_for_position(position: int, positions: Sequence[int], base_idx: int) -> int:
    """Binary search ``positions`` (from :func:`build_boundary_positions`) for a page index."""

    k = bisect_right(positions, position) - 1
    return base_idx + min(max(k, 0), len(positions) - 2)


# -- Break search ------------------------------------------------------------------------


def _word_index(m: re.Match[str]) -> int | None:
    name = m.lastgroup
    if name and name.startswith(WORD_GROUP_PREFIX):
        return int(name[len(WORD_GROUP_PREFIX) :])
    return None


def find_pattern_break_position(
    window: str, regex: re.Pattern[str], prefer: Prefer, split: str = "after"
) -> PatternBreak | None:
    """First (``shorter``) or last (``longer``) usable match in ``window``.

    Zero-length matches never count, nor does an ``at`` match at offset 0.
    """

    first: PatternBreak | None = None
    last: PatternBreak | None = None
    for m in regex.finditer(window):
        if m.end() == m.start() or (split == "at" and m.start() == 0):
            continue
        found = PatternBreak(m.start() if split == "at" else m.end(), _word_index(m))
        if first is None:
            first = found
            if prefer == "shorter":
                break
        last = found
    return last if prefer == "longer" else first


def find_safe_break_position(content: str, target: int, lookback: int = SAFE_BREAK_LOOKBACK) -> int:
    """Offset just after the nearest whitespace/punctuation before ``target``, or ``-1``."""

    target = min(target, len(content))
    for i in range(target - 1, max(target - 1 - lookback, -1), -1):
        ch = content[i]
        if ch.isspace() or ch in SAFE_BREAK_CHARS:
            return i + 1
    return -1


def _is_mark_or_selector(ch: str) -> bool:
    return bool(ch) and (unicodedata.category(ch).startswith("M") or ch in _SELECTORS)


def _is_high_surrogate(ch: str) -> bool:
    return bool(ch) and 0xD800 <= ord(ch) <= 0xDBFF


def adjust_for_unicode_boundary(content: str, position: int) -> int:
    """Move ``position`` back so it never splits a surrogate pair or a joined cluster."""

    adjusted = min(position, len(content))
    while adjusted > 0:
        prev_ch = content[adjusted - 1]
        next_ch = content[adjusted : adjusted + 1]
        if (
            _is_high_surrogate(prev_ch)
            or _is_mark_or_selector(next_ch)
            or next_ch in _JOINERS
            or prev_ch in _JOINERS
        ):
            adjusted -= 1
            continue
        break
    return adjusted


def find_exclusion_break_position(
    current_idx: int,
    window_end_idx: int,
    page_ids: Sequence[int],
    expanded: Sequence[ExpandedBreakpoint],
    positions: Sequence[int],
    base_idx: int,
    cursor: int,
) -> int:
    """Break offset (relative to ``cursor``) that isolates excluded pages.

    An excluded current page is emitted on its own; otherwise the piece ends
    right before the first excluded page of the window. ``-1`` when the window
    has no excluded page.
    """

    def excluded(idx: int) -> bool:
        return any(page_ids[idx] in bp.exclude_set for bp in expanded)

    if excluded(current_idx):
        return positions[current_idx - base_idx + 1] - cursor
    nxt = next((i for i in range(current_idx + 1, window_end_idx + 1) if excluded(i)), None)
    return positions[nxt - base_idx] - cursor if nxt is not None else -1


# -- Segments ----------------------------------------------------------------------------


def starts_page(content: str, pos: int, page_text: str) -> bool:
    """``True`` when ``content`` at ``pos`` reads like the start of ``page_text``.

    Either side may be the shorter one: a piece can end inside the page.
    """

    head = content[pos : pos + PREFIX_LENGTH]
    page = page_text.lstrip()
    return bool(head) and bool(page) and (page.startswith(head) or head.startswith(page[:PREFIX_LENGTH]))


def apply_page_joiner_between_pages(
    content: str,
    from_idx: int,
    to_idx: int,
    normalized: Sequence[str],
    joiner: str,
) -> str:
    """Render the ``\\n`` that separates consecutive pages inside ``content`` with ``joiner``."""

    if joiner == "\n" or "\n" not in content:
        return content
    chars = list(content)
    page_idx = from_idx + 1
    for m in re.finditer("\n", content):
        if page_idx > to_idx:
            break
        if starts_page(content, m.end(), normalized[page_idx]):
            chars[m.start()] = joiner
            page_idx += 1
    return "".join(chars)


def create_segment(
    content: str,
    from_id: int,
    to_id: int | None = None,
    meta=None,
) -> Segment | None:
    """Trimmed segment, or ``None`` when nothing but whitespace is left."""

    trimmed = content.strip()
    if not trimmed:
        return None
    return make_segment(trimmed, from_id, to_id, meta)


__all__ = [
    "ExpandedBreakpoint",
    "PatternBreak",
    "adjust_for_unicode_boundary",
    "apply_page_joiner_between_pages",
    "build_boundary_positions",
    "build_cumulative_offsets",
    "build_words_regex_source",
    "create_segment",
    "estimate_start_offset_in_current_page",
    "expand_breakpoints",
    "find_exclusion_break_position",
    "find_page_index_for_position",
    "find_pattern_break_position",
    "find_safe_break_position",
    "has_any_exclusions_in_range",
    "has_excluded_page_in_range",
    "is_in_breakpoint_range",
    "starts_page",
]
