"""Structural split-point resolution.

Every rule is run over the concatenated page content. Rules without their own
capture groups are folded into one alternation and matched in a single scan;
the rest run on their own. Matches are filtered by page constraints and the
page-start guard, reduced by ``occurrence`` (optionally per ``maxSpan``
window), deduplicated by offset and finally sliced into segments.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Sequence

from page_segmenter.config import SplitRule
from page_segmenter.debug_meta import DebugConfig, build_rule_debug_patch, merge_debug_into_meta
from page_segmenter.log_sink import LogSink, as_sink
from page_segmenter.match_utils import (
    MatchResult,
    any_rule_allows_id,
    extract_named_captures,
    filter_by_occurrence,
    get_last_positional_capture,
    group_by_span_and_filter,
    passes_constraints,
)
from page_segmenter.models import Segment, make_segment
from page_segmenter.page_map import PageMap, convert_page_breaks
from page_segmenter.rule_regex import (
    CONTENT_GROUP_SUFFIX,
    RuleRegex,
    build_page_start_guard,
    build_rule_regex,
    compile_rule_regex,
    is_combinable,
)

logger = logging.getLogger(__name__)

MAX_REGEX_ITERATIONS = 100_000
ITERATION_WARNING_INTERVAL = 10_000


@dataclass(frozen=True)
class SplitPoint:
    """Where a new segment begins, and what it carries."""

    index: int
    meta: Mapping[str, Any] | None = None
    captured_content: str | None = None
    named_captures: Mapping[str, str] | None = None
    content_start_offset: int | None = None
    rule_index: int | None = None


@dataclass(frozen=True)
class _CompiledRule:
    index: int
    rule: SplitRule
    info: RuleRegex
    prefix: str = ""


# -- Matching ----------------------------------------------------------------------------


def _bounded(matches: Iterator[re.Match[str]], sink: LogSink) -> Iterator[re.Match[str]]:
    """Yield ``matches`` until the iteration ceiling is hit."""

    for count, m in enumerate(matches, start=1):
        if count > MAX_REGEX_ITERATIONS:
            raise RuntimeError(
                f"[segmenter] Possible infinite loop: exceeded {MAX_REGEX_ITERATIONS} "
                f"iterations at position {m.start()}."
            )
        if count % ITERATION_WARNING_INTERVAL == 0:
            sink.warn("[segmenter] high iteration count", {"iterations": count, "position": m.start()})
        yield m


class PageStartGuard:
    """Reject page-start matches whose previous page does not end as required."""

    def __init__(self, content: str, page_map: PageMap) -> None:
        self._content = content
        self._page_map = page_map
        self._compiled: dict[int, re.Pattern[str]] = {}

    def _previous_last_char(self, boundary_index: int) -> str:
        prev = self._page_map.boundaries[boundary_index - 1]
        return self._content[prev.start : prev.end].rstrip()[-1:]

    def __call__(self, rule: SplitRule, rule_index: int, position: int) -> bool:
        if not rule.page_start_guard:
            return True
        boundary_index = self._page_map.page_start_index(position)
        if not boundary_index:
            return True
        if rule_index not in self._compiled:
            self._compiled[rule_index] = build_page_start_guard(rule.page_start_guard)
        last = self._previous_last_char(boundary_index)
        return bool(last) and bool(self._compiled[rule_index].search(last))


def _to_match(m: re.Match[str], compiled: _CompiledRule) -> MatchResult:
    info, prefix = compiled.info, compiled.prefix
    if info.uses_line_starts_after and prefix:
        captured = m.group(prefix + CONTENT_GROUP_SUFFIX)
    elif info.uses_capture:
        captured = get_last_positional_capture(m.groups())
    else:
        captured = None
    return MatchResult(
        start=m.start(),
        end=m.end(),
        captured=captured,
        named_captures=extract_named_captures(m.groupdict(), info.capture_names, prefix),
    )


def _admits(compiled: _CompiledRule, position: int, page_map: PageMap, guard: PageStartGuard) -> bool:
    rule = compiled.rule
    page_id = page_map.get_id(position)
    return passes_constraints(page_id, rule.min_page, rule.max_page, rule.exclude) and guard(
        rule, compiled.index, position
    )


def _collect_combined(
    content: str,
    rules: Sequence[_CompiledRule],
    page_map: PageMap,
    guard: PageStartGuard,
    sink: LogSink,
) -> dict[int, list[MatchResult]]:
    source = "|".join(f"(?P<{r.prefix}>{r.info.source})" for r in rules)
    regex = compile_rule_regex(source)
    sink.debug(
        "[segmenter] combined regex built",
        {"combinableRuleCount": len(rules), "combinedSourceLength": len(source)},
    )
    found: dict[int, list[MatchResult]] = {}
    for m in _bounded(regex.finditer(content), sink):
        compiled = next((r for r in rules if m.group(r.prefix) is not None), None)
        if compiled is None or not _admits(compiled, m.start(), page_map, guard):
            continue
        found.setdefault(compiled.index, []).append(_to_match(m, compiled))
    return found


def _collect_standalone(
    content: str,
    compiled: _CompiledRule,
    page_map: PageMap,
    guard: PageStartGuard,
    sink: LogSink,
) -> list[MatchResult]:
    return [
        _to_match(m, compiled)
        for m in _bounded(compiled.info.regex.finditer(content), sink)
        if _admits(compiled, m.start(), page_map, guard)
    ]


# -- Split points ------------------------------------------------------------------------


def _select(matches: Sequence[MatchResult], rule: SplitRule, page_map: PageMap) -> list[MatchResult]:
    if rule.max_span is not None:
        return group_by_span_and_filter(
            matches, rule.max_span, rule.occurrence, page_map.get_id, page_map.page_ids
        )
    return filter_by_occurrence(matches, rule.occurrence)


def _to_split_point(
    m: MatchResult, compiled: _CompiledRule, debug: DebugConfig | None
) -> SplitPoint:
    rule = compiled.rule
    split_at = rule.split == "at"
    strips_marker = compiled.info.uses_line_starts_after and m.captured is not None
    meta = rule.meta
    if debug and debug.include_rule:
        meta = merge_debug_into_meta(meta, debug.meta_key, build_rule_debug_patch(compiled.index, rule))
    return SplitPoint(
        index=m.start if split_at else m.end,
        meta=meta,
        captured_content=None if strips_marker else m.captured,
        named_captures=m.named_captures,
        content_start_offset=(
            m.end - len(m.captured or "") - m.start if strips_marker and split_at else None
        ),
        rule_index=compiled.index,
    )


def _compile_rules(rules: Sequence[SplitRule]) -> tuple[list[_CompiledRule], list[_CompiledRule]]:
    combined: list[_CompiledRule] = []
    standalone: list[_CompiledRule] = []
    for index, rule in enumerate(rules):
        if is_combinable(rule):
            prefix = f"r{index}_"
            combined.append(_CompiledRule(index, rule, build_rule_regex(rule, prefix), prefix))
        else:
            standalone.append(_CompiledRule(index, rule, build_rule_regex(rule)))
    return combined, standalone


def collect_split_points(
    content: str,
    page_map: PageMap,
    rules: Sequence[SplitRule],
    debug: DebugConfig | None = None,
    log: Any = None,
) -> list[SplitPoint]:
    """Run ``rules`` over ``content`` and return their split points (not deduplicated)."""

    sink = as_sink(log, logger)
    guard = PageStartGuard(content, page_map)
    combined, standalone = _compile_rules(rules)

    found = _collect_combined(content, combined, page_map, guard, sink) if combined else {}
    for compiled in standalone:
        found[compiled.index] = _collect_standalone(content, compiled, page_map, guard, sink)

    by_index = {c.index: c for c in (*combined, *standalone)}
    return [
        _to_split_point(m, by_index[i], debug)
        for i in sorted(found)
        for m in _select(found[i], by_index[i].rule, page_map)
    ]


def _more_informative(candidate: SplitPoint, existing: SplitPoint) -> bool:
    return (
        candidate.content_start_offset is not None and existing.content_start_offset is None
    ) or (candidate.meta is not None and existing.meta is None)


def dedupe_split_points(points: Sequence[SplitPoint]) -> list[SplitPoint]:
    """One point per offset, preferring marker-stripping points, then ones with meta."""

    by_index: dict[int, SplitPoint] = {}
    for p in points:
        existing = by_index.get(p.index)
        if existing is None or _more_informative(p, existing):
            by_index[p.index] = p
    return sorted(by_index.values(), key=lambda p: p.index)


# -- Segments ----------------------------------------------------------------------------


def _joiner(page_joiner: str) -> str:
    return "\n" if page_joiner == "newline" else " "


def _slice_segment(
    content: str,
    page_map: PageMap,
    start: int,
    end: int,
    joiner: str,
    point: SplitPoint | None = None,
    strip_leading: bool = False,
) -> Segment | None:
    offset = point.content_start_offset if point else None
    actual_start = start + (offset or 0)
    captured = point.captured_content if point else None
    from_id = page_map.get_id(actual_start)

    if captured:
        text = captured.strip()
        if not text:
            return None
        to_id = page_map.get_id(end - 1)
    else:
        sliced = content[actual_start:end]
        trim_both = bool(offset) or strip_leading
        body = sliced.strip() if trim_both else sliced.rstrip()
        if not body:
            return None
        lead = len(sliced) - len(sliced.lstrip()) if trim_both else 0
        text = convert_page_breaks(body, actual_start + lead, page_map, joiner)
        to_id = page_map.get_id(actual_start + lead + len(text) - 1)

    named = point.named_captures if point else None
    meta = point.meta if point else None
    merged = {**(meta or {}), **(named or {})} if (meta is not None or named) else None
    return make_segment(text, from_id, to_id, merged)


def build_segments(
    points: Sequence[SplitPoint],
    content: str,
    page_map: PageMap,
    rules: Sequence[SplitRule],
    page_joiner: str = "space",
) -> list[Segment]:
    """Slice ``content`` at the (sorted, unique) ``points``."""

    joiner = _joiner(page_joiner)
    if not points:
        whole = _slice_segment(content, page_map, 0, len(content), joiner, strip_leading=True)
        return [whole] if whole else []

    leading: list[Segment | None] = []
    if points[0].index > 0 and any_rule_allows_id(rules, page_map.get_id(0)):
        leading.append(_slice_segment(content, page_map, 0, points[0].index, joiner))

    ends = [p.index for p in points[1:]] + [len(content)]
    pieces = (
        _slice_segment(content, page_map, p.index, end, joiner, point=p)
        for p, end in zip(points, ends)
    )
    return [s for s in (*leading, *pieces) if s is not None]


def resolve_segments(
    content: str,
    page_map: PageMap,
    rules: Sequence[SplitRule],
    page_joiner: str = "space",
    debug: DebugConfig | None = None,
    log: Any = None,
) -> list[Segment]:
    """Split ``content`` by ``rules`` and build attributed segments."""

    points = dedupe_split_points(collect_split_points(content, page_map, rules, debug, log))
    return build_segments(points, content, page_map, rules, page_joiner)


__all__ = [
    "MAX_REGEX_ITERATIONS",
    "PageStartGuard",
    "SplitPoint",
    "build_segments",
    "collect_split_points",
    "dedupe_split_points",
    "resolve_segments",
]
