"""Page-ID range helpers shared by rules, breakpoints and transforms."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Tuple, Union

PageRange = Union[int, Tuple[int, int]]


def _bounds(entry: PageRange) -> tuple[int, int]:
    if isinstance(entry, int):
        return entry, entry
    start, end = entry
    if start > end:
        raise ValueError(f"Invalid range: {start}-{end}")
    return start, end


def is_page_excluded(page_id: int, exclude: Iterable[PageRange] | None) -> bool:
    """Return ``True`` when ``page_id`` falls in any entry of ``exclude``."""
    return any(lo <= page_id <= hi for lo, hi in map(_bounds, exclude or ()))


def build_exclude_set(exclude: Iterable[PageRange] | None) -> frozenset[int]:
    """Expand ``exclude`` into a set of page IDs (ranges are inclusive)."""
    return frozenset(
        page_id for lo, hi in map(_bounds, exclude or ()) for page_id in range(lo, hi + 1)
    )


def is_in_range(page_id: int, min_page: int | None, max_page: int | None) -> bool:
    return (min_page is None or page_id >= min_page) and (
        max_page is None or page_id <= max_page
    )


def parse_page_ranges(page_spec: str) -> tuple[PageRange, ...]:
    """Convert ``"1,3-5"`` into ``(1, (3, 5))``."""
    if not page_spec or not page_spec.strip():
        return ()
    parts = (p.strip() for p in page_spec.split(",") if p.strip())
    return tuple(_parse_part(part) for part in parts)


def _to_int(part: str) -> int:
    try:
        return int(part)
    except ValueError as exc:
        raise ValueError(f"Invalid page number: {part}") from exc


def _parse_part(part: str) -> PageRange:
    head, *tail = part.split("-", 1)
    if not tail:
        return _to_int(head)
    start, end = _to_int(head), _to_int(tail[0])
    if start > end:
        raise ValueError(f"Invalid range: {part}")
    return (start, end)
