"""Concatenate pages and map offsets back to page IDs.

Pages are joined with a single ``\\n``. The separator belongs to the earlier
page: a boundary covers ``[start, end]`` where ``end`` is the separator offset,
so an offset that lands exactly on a separator resolves to the page before it.
"""

from __future__ import annotations

import re
from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from functools import cached_property
from typing import Sequence

from page_segmenter.models import Page

_LINE_ENDINGS_RE = re.compile(r"\r\n?")


def normalize_line_endings(text: str) -> str:
    return _LINE_ENDINGS_RE.sub("\n", text)


@dataclass(frozen=True)
class PageBoundary:
    start: int
    end: int
    id: int


@dataclass(frozen=True)
class PageMap:
    boundaries: tuple[PageBoundary, ...]
    page_breaks: tuple[int, ...]

    @cached_property
    def page_ids(self) -> tuple[int, ...]:
        return tuple(b.id for b in self.boundaries)

    @cached_property
    def _starts(self) -> tuple[int, ...]:
        return tuple(b.start for b in self.boundaries)

    @cached_property
    def _ends(self) -> tuple[int, ...]:
        return tuple(b.end for b in self.boundaries)

    def boundary_index(self, offset: int) -> int:
        """Index of the boundary containing ``offset`` (last one when out of range)."""

        idx = bisect_left(self._ends, offset)
        if idx >= len(self.boundaries) or offset < self.boundaries[idx].start:
            return len(self.boundaries) - 1
        return idx

    def get_id(self, offset: int) -> int:
        if not self.boundaries:
            return 0
        return self.boundaries[self.boundary_index(offset)].id

    def breaks_in_range(self, start: int, end: int) -> tuple[int, ...]:
        """Page-break offsets in ``[start, end)``, relative to ``start``."""

        lo = bisect_left(self.page_breaks, start)
        hi = bisect_left(self.page_breaks, end)
        return tuple(b - start for b in self.page_breaks[lo:hi])

    def page_start_index(self, offset: int) -> int | None:
        """Boundary index when ``offset`` is exactly the start of a page."""

        idx = bisect_right(self._starts, offset) - 1
        return idx if idx >= 0 and self._starts[idx] == offset else None


@dataclass(frozen=True)
class PageMapResult:
    content: str
    page_map: PageMap
    normalized: tuple[str, ...]


def build_page_map(pages: Sequence[Page]) -> PageMapResult:
    """Join ``pages`` with ``\\n`` and record where each one sits."""

    normalized = tuple(normalize_line_endings(p.content) for p in pages)
    starts = [0]
    for text in normalized[:-1]:
        starts.append(starts[-1] + len(text) + 1)
    boundaries = tuple(
        PageBoundary(start=s, end=s + len(text), id=p.id)
        for s, text, p in zip(starts, normalized, pages)
    )
    page_breaks = tuple(b.end for b in boundaries[:-1])
    return PageMapResult(
        content="\n".join(normalized),
        page_map=PageMap(boundaries=boundaries, page_breaks=page_breaks),
        normalized=normalized,
    )


def convert_page_breaks(text: str, start: int, page_map: PageMap, joiner: str = " ") -> str:
    """Replace the page-separator newlines inside ``text`` with ``joiner``."""

    breaks = page_map.breaks_in_range(start, start + len(text))
    if not breaks or joiner == "\n":
        return text
    chars = list(text)
    for rel in breaks:
        if chars[rel] == "\n":
            chars[rel] = joiner
    return "".join(chars)


__all__ = [
    "PageBoundary",
    "PageMap",
    "PageMapResult",
    "build_page_map",
    "convert_page_breaks",
    "normalize_line_endings",
]
