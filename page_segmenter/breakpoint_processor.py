"""Break oversized segments under page-span and length budgets.

A segment is oversized when its page-ID span exceeds ``max_pages``, its text
exceeds ``max_content_length``, or it touches a page some breakpoint
excludes. Oversized segments are walked with a cursor: each iteration picks a
window (pages reachable within ``max_pages`` IDs, clipped to the length
budget), looks for a break inside it and emits the piece before the break.

Design philosophy:
- Page attribution comes from a per-segment position map, never from
  assuming a piece starts where its window nominally starts
- Every iteration moves the cursor forward; there is no iteration cap
- Large all-page-boundary inputs take an arithmetic fast path that yields
  exactly what the iterative walk would
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from page_segmenter.breakpoints import (
    ExpandedBreakpoint,
    Prefer,
    adjust_for_unicode_boundary,
    apply_page_joiner_between_pages,
    build_boundary_positions,
    build_cumulative_offsets,
    create_segment,
    estimate_start_offset_in_current_page,
    expand_breakpoints,
    find_exclusion_break_position,
    find_page_index_for_position,
    find_pattern_break_position,
    find_safe_break_position,
    has_any_exclusions_in_range,
    has_excluded_page_in_range,
    is_in_breakpoint_range,
    starts_page,
)
from page_segmenter.config import BreakpointRule
from page_segmenter.debug_meta import (
    DebugConfig,
    SplitReason,
    build_breakpoint_debug_patch,
    build_content_length_debug_patch,
    merge_debug_into_meta,
)
from page_segmenter.log_sink import LogSink, as_sink
from page_segmenter.models import Page, Segment

logger = logging.getLogger(__name__)

FAST_PATH_THRESHOLD = 1000
MIN_DRIFT_TOLERANCE = 100


@dataclass(frozen=True)
class _Trigger:
    """The breakpoint (and word) that ended the previous piece."""

    index: int
    rule: BreakpointRule
    word_index: int | None = None


@dataclass(frozen=True)
class _Found:
    offset: int
    trigger: _Trigger | None = None
    split_reason: SplitReason | None = None


@dataclass(frozen=True)
class _Context:
    page_ids: Sequence[int]
    normalized: Sequence[str]
    cumulative: Sequence[int]
    expanded: Sequence[ExpandedBreakpoint]
    max_pages: float
    max_content_length: int | None
    prefer: Prefer
    debug: DebugConfig | None
    sink: LogSink

    @property
    def debug_breakpoints(self) -> bool:
        return bool(self.debug and self.debug.include_breakpoint)


# -- Window arithmetic -------------------------------------------------------------------


def compute_window_end_idx(
    current_idx: int, to_idx: int, page_ids: Sequence[int], max_pages: float
) -> int:
    """Last index whose page ID is within ``max_pages`` of ``page_ids[current_idx]``."""

    limit = page_ids[current_idx] + max_pages
    end = current_idx
    for i in range(current_idx, to_idx + 1):
        if page_ids[i] > limit:
            break
        end = i
    return end


def compute_next_from_idx(
    remaining: str,
    end_idx: int,
    to_idx: int,
    normalized: Sequence[str],
) -> int:
    """``end_idx + 1`` when ``remaining`` visibly starts the next page, else ``end_idx``."""

    if (
        remaining
        and end_idx + 1 <= to_idx
        and starts_page(remaining.lstrip(), 0, normalized[end_idx + 1])
    ):
        return end_idx + 1
    return end_idx


def _skip_whitespace(content: str, pos: int) -> int:
    while pos < len(content) and content[pos].isspace():
        pos += 1
    return pos


def _piece_meta(
    ctx: _Context,
    is_first: bool,
    original: Mapping[str, Any] | None,
    trigger: _Trigger | None,
    split_reason: SplitReason | None = None,
    actual_length: int = 0,
) -> Mapping[str, Any] | None:
    """Only the first piece inherits the segment meta; debug adds provenance to all."""

    meta = original if is_first else None
    if not ctx.debug_breakpoints or ctx.debug is None:
        return meta
    key = ctx.debug.meta_key
    if trigger is not None:
        patch = build_breakpoint_debug_patch(trigger.index, trigger.rule, trigger.word_index)
        meta = merge_debug_into_meta(meta, key, patch)
    if split_reason is not None and ctx.max_content_length:
        patch = build_content_length_debug_patch(ctx.max_content_length, actual_length, split_reason)
        meta = merge_debug_into_meta(meta, key, patch)
    return meta


# -- Break search ------------------------------------------------------------------------


def _find_pattern_break(
    remaining: str,
    current_idx: int,
    window_end_idx: int,
    to_idx: int,
    next_page_pos: int,
    window_end_pos: int,
    length_bounded: bool,
    ctx: _Context,
) -> _Found | None:
    """Try the breakpoints in order; ``None`` when none yields a break."""

    window = remaining[:window_end_pos]
    for index, bp in enumerate(ctx.expanded):
        if not is_in_breakpoint_range(ctx.page_ids[current_idx], bp.rule):
            continue
        if has_excluded_page_in_range(bp.exclude_set, ctx.page_ids, current_idx, window_end_idx):
            continue
        if bp.skip_when is not None and bp.skip_when.search(remaining):
            continue
        if bp.regex is None:
            # a length-bounded window leaves the choice to the safety fallback
            if length_bounded:
                continue
            if current_idx < to_idx and next_page_pos > 0:
                return _Found(min(next_page_pos, window_end_pos), _Trigger(index, bp.rule))
            return _Found(window_end_pos, _Trigger(index, bp.rule))
        found = find_pattern_break_position(window, bp.regex, ctx.prefer, bp.split)
        if found is not None and found.position > 0:
            return _Found(found.position, _Trigger(index, bp.rule, found.word_index))
    return None


def _find_break_offset(
    remaining: str,
    current_idx: int,
    window_end_idx: int,
    to_idx: int,
    next_page_pos: int,
    window_end_pos: int,
    length_bounded: bool,
    positions: Sequence[int],
    from_idx: int,
    cursor: int,
    ctx: _Context,
) -> _Found:
    if has_any_exclusions_in_range(ctx.expanded, ctx.page_ids, current_idx, window_end_idx):
        excluded = find_exclusion_break_position(
            current_idx, window_end_idx, ctx.page_ids, ctx.expanded, positions, from_idx, cursor
        )
        if 0 < excluded <= window_end_pos:
            return _Found(excluded)

    found = _find_pattern_break(
        remaining, current_idx, window_end_idx, to_idx, next_page_pos, window_end_pos, length_bounded, ctx
    )
    if found is not None:
        return found

    if window_end_pos < len(remaining):
        safe = find_safe_break_position(remaining, window_end_pos)
        if safe > 0:
            return _Found(safe, split_reason="whitespace")
        adjusted = adjust_for_unicode_boundary(remaining, window_end_pos)
        if adjusted > 0:
            return _Found(adjusted, split_reason="unicode_boundary")
    return _Found(window_end_pos)


# -- Paths -------------------------------------------------------------------------------


def _fast_path(
    segment: Segment, from_idx: int, to_idx: int, ctx: _Context
) -> list[Segment] | None:
    """Arithmetic per-page split for huge segments whose only breakpoint is ``""``."""

    page_count = to_idx - from_idx + 1
    if page_count < FAST_PATH_THRESHOLD or ctx.max_content_length or ctx.debug_breakpoints:
        return None
    if not all(bp.regex is None and not bp.exclude_set and bp.skip_when is None for bp in ctx.expanded):
        return None

    content = segment.content
    ids, cumulative = ctx.page_ids, ctx.cumulative
    base = cumulative[from_idx] + estimate_start_offset_in_current_page(
        content, ctx.normalized[from_idx]
    )
    expected = cumulative[to_idx + 1] - base - (1 if to_idx + 1 < len(ids) else 0)
    drift = abs(expected - len(content))
    if drift > max(MIN_DRIFT_TOLERANCE, len(content) * 0.01):
        ctx.sink.warn(
            "[breakpoints] Offset drift detected in fast-path candidate, falling back to slow path",
            {"actualLength": len(content), "drift": drift, "expectedLength": expected, "pageCount": page_count},
        )
        return None

    ctx.sink.debug(
        "[breakpoints] Using offset-based fast-path for large segment",
        {"fromIdx": from_idx, "maxPages": ctx.max_pages, "pageCount": page_count, "toIdx": to_idx},
    )

    def _slice(start: int, end: int) -> str:
        lo = max(0, cumulative[start] - base)
        hi = cumulative[end + 1] - base if end < to_idx else len(content)
        return content[lo:hi]

    pieces: list[Segment] = []

    def emit(start: int, end: int) -> None:
        meta = segment.meta if start == from_idx else None
        seg = create_segment(_slice(start, end), ids[start], ids[end], meta)
        if seg:
            pieces.append(seg)

    start = from_idx
    while start <= to_idx and ids[to_idx] - ids[start] > ctx.max_pages:
        emit(start, start)
        start += 1
    if start <= to_idx:
        emit(start, to_idx)
    return pieces


def _iterative_path(segment: Segment, from_idx: int, to_idx: int, ctx: _Context) -> list[Segment]:
    content = segment.content
    ids = ctx.page_ids
    limit = ctx.max_content_length
    positions = build_boundary_positions(content, from_idx, to_idx, ctx.normalized, ctx.cumulative)
    last_idx = find_page_index_for_position(max(len(content) - 1, 0), positions, from_idx)
    ctx.sink.debug(
        "[breakpoints] processOversizedSegment: Using iterative path",
        {"contentLength": len(content), "fromIdx": from_idx, "toIdx": to_idx, "maxPages": ctx.max_pages},
    )

    def page_end(idx: int) -> int:
        return positions[idx - from_idx + 1]

    def page_at(pos: int) -> int:
        return find_page_index_for_position(pos, positions, from_idx)

    pieces: list[Segment] = []
    cursor = 0
    current = from_idx
    is_first = True
    trigger: _Trigger | None = None
    boundary_rule = next((i for i, bp in enumerate(ctx.expanded) if bp.regex is None), None)

    def emit(text: str, start_idx: int, end_idx: int, meta) -> None:
        seg = create_segment(text, ids[start_idx], ids[end_idx], meta)
        if seg:
            pieces.append(seg)

    while cursor < len(content) and current <= to_idx:
        rest = content[cursor:]
        if not rest.strip():
            break

        # one page at a time while each page fits the length budget
        if ctx.max_pages == 0 and limit and current < last_idx:
            page_rest = content[cursor : page_end(current)].strip()
            if (
                page_rest
                and len(page_rest) <= limit
                and not has_any_exclusions_in_range(ctx.expanded, ids, current, current)
            ):
                if boundary_rule is not None:
                    trigger = _Trigger(boundary_rule, ctx.expanded[boundary_rule].rule)
                emit(page_rest, current, current, _piece_meta(ctx, is_first, segment.meta, trigger))
                cursor = _skip_whitespace(content, page_end(current))
                current += 1
                is_first = False
                continue

        if (
            ids[last_idx] - ids[current] <= ctx.max_pages
            and (not limit or len(rest) <= limit)
            and not has_any_exclusions_in_range(ctx.expanded, ids, current, last_idx)
        ):
            emit(rest, current, max(current, last_idx), _piece_meta(ctx, is_first, segment.meta, trigger))
            break

        window_end_idx = compute_window_end_idx(current, to_idx, ids, ctx.max_pages)
        page_bound = page_end(current if ctx.max_pages == 0 else window_end_idx) - cursor
        window_end_pos = max(0, min(page_bound, len(rest)))
        length_bounded = bool(limit) and limit < window_end_pos
        if limit:
            window_end_pos = min(window_end_pos, limit)
        next_page_pos = page_end(current) - cursor if current < to_idx else -1
        if ctx.sink.enabled:
            ctx.sink.trace(
                "[breakpoints] iteration",
                {
                    "currentFromIdx": current,
                    "cursorPos": cursor,
                    "windowEndIdx": window_end_idx,
                    "windowEndPosition": window_end_pos,
                },
            )

        found = _find_break_offset(
            rest,
            current,
            window_end_idx,
            to_idx,
            next_page_pos,
            window_end_pos,
            length_bounded,
            positions,
            from_idx,
            cursor,
            ctx,
        )
        offset = found.offset
        if offset <= 0:
            offset = page_end(window_end_idx) - cursor
            if offset <= 0:
                offset = len(rest)
            if limit:
                offset = min(offset, limit)
            ctx.sink.warn(
                "[breakpoints] No progress from break search; forcing forward movement",
                {"breakOffset": offset, "cursorPos": cursor},
            )
        if found.trigger is not None:
            trigger = found.trigger

        break_pos = cursor + offset
        piece = content[cursor:break_pos]
        if piece.strip():
            start_idx = page_at(cursor)
            if start_idx < current:
                ctx.sink.warn(
                    "[breakpoints] Page attribution drift detected; clamping actualStartIdx",
                    {"actualStartIdx": start_idx, "currentFromIdx": current},
                )
                start_idx = current
            if ctx.max_pages == 0:
                start_idx = end_idx = current
            else:
                end_idx = min(
                    page_at(break_pos - 1),
                    compute_window_end_idx(start_idx, to_idx, ids, ctx.max_pages),
                )
                end_idx = max(start_idx, end_idx)
            meta = _piece_meta(
                ctx, is_first, segment.meta, found.trigger or trigger, found.split_reason, len(piece.strip())
            )
            emit(piece, start_idx, end_idx, meta)
            is_first = False
        else:
            end_idx = current

        cursor = _skip_whitespace(content, break_pos)
        if ctx.max_pages == 0:
            nxt = page_at(cursor)
        else:
            nxt = compute_next_from_idx(content[cursor:], end_idx, to_idx, ctx.normalized)
        current = max(nxt, current)

    ctx.sink.debug("[breakpoints] processOversizedSegment: Complete", {"resultCount": len(pieces)})
    return pieces


def _needs_breaking(segment: Segment, from_idx: int, to_idx: int, ctx: _Context) -> bool:
    span = segment.last_id - segment.from_id
    too_long = bool(ctx.max_content_length) and len(segment.content) > (ctx.max_content_length or 0)
    return (
        span > ctx.max_pages
        or too_long
        or has_any_exclusions_in_range(ctx.expanded, ctx.page_ids, from_idx, to_idx)
    )


def apply_breakpoints(
    segments: Sequence[Segment],
    pages: Sequence[Page],
    normalized: Sequence[str],
    *,
    breakpoints: Sequence[BreakpointRule],
    max_pages: int | None = None,
    max_content_length: int | None = None,
    prefer: Prefer = "longer",
    page_joiner: str = "space",
    debug: DebugConfig | None = None,
    log: Any = None,
) -> list[Segment]:
    """Subdivide every segment that breaks a budget; the rest pass through untouched."""

    page_ids = [p.id for p in pages]
    id_to_index = {pid: i for i, pid in enumerate(page_ids)}
    ctx = _Context(
        page_ids=page_ids,
        normalized=normalized,
        cumulative=build_cumulative_offsets(normalized),
        expanded=expand_breakpoints(breakpoints),
        max_pages=math.inf if max_pages is None else max_pages,
        max_content_length=max_content_length,
        prefer=prefer,
        debug=debug,
        sink=as_sink(log, logger),
    )
    joiner = "\n" if page_joiner == "newline" else " "
    ctx.sink.info("Starting breakpoint processing", {"maxPages": max_pages, "segmentCount": len(segments)})

    result: list[Segment] = []
    for segment in segments:
        from_idx = id_to_index.get(segment.from_id, -1)
        to_idx = id_to_index.get(segment.last_id, from_idx)
        if from_idx < 0 or not _needs_breaking(segment, from_idx, to_idx, ctx):
            result.append(segment)
            continue

        ctx.sink.debug(
            "[breakpoints] Processing oversized segment",
            {"contentLength": len(segment.content), "from": segment.from_id, "to": segment.to_id},
        )
        pieces = _fast_path(segment, from_idx, to_idx, ctx)
        if pieces is None:
            pieces = _iterative_path(segment, from_idx, to_idx, ctx)
        result.extend(_join_pages(piece, id_to_index, ctx.normalized, joiner) for piece in pieces)

    ctx.sink.info("Breakpoint processing completed", {"resultCount": len(result)})
    return result


def _join_pages(
    piece: Segment, id_to_index: Mapping[int, int], normalized: Sequence[str], joiner: str
) -> Segment:
    start = id_to_index.get(piece.from_id, -1)
    end = id_to_index.get(piece.last_id, start)
    if start < 0 or end <= start:
        return piece
    content = apply_page_joiner_between_pages(piece.content, start, end, normalized, joiner)
    return piece if content == piece.content else Segment(content, piece.from_id, piece.to_id, piece.meta)


__all__ = [
    "FAST_PATH_THRESHOLD",
    "apply_breakpoints",
    "compute_next_from_idx",
    "compute_window_end_idx",
]
