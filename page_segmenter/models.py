from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Union

# -- Data models -------------------------------------------------------------------------


@dataclass(frozen=True)
class Page:
    """One page of source text. ``id`` is caller-assigned and may have gaps."""

    id: int
    content: str


@dataclass(frozen=True)
class Segment:
    """A logical unit of text attributed to the page range it came from."""

    content: str
    from_id: int
    to_id: int | None = None
    meta: Mapping[str, Any] | None = None

    @property
    def last_id(self) -> int:
        return self.from_id if self.to_id is None else self.to_id

    def to_dict(self) -> dict[str, Any]:
        row: dict[str, Any] = {"content": self.content, "from": self.from_id}
        if self.to_id is not None:
            row["to"] = self.to_id
        if self.meta is not None:
            row["meta"] = dict(self.meta)
        return row


PageLike = Union[Page, Mapping[str, Any]]


# -- Coercion ----------------------------------------------------------------------------


def as_page(item: PageLike) -> Page:
    if isinstance(item, Page):
        return item
    return Page(id=int(item["id"]), content=str(item.get("content") or ""))


def as_pages(items: Iterable[PageLike]) -> tuple[Page, ...]:
    return tuple(as_page(item) for item in items)


def make_segment(
    content: str,
    from_id: int,
    to_id: int | None = None,
    meta: Mapping[str, Any] | None = None,
) -> Segment:
    """Build a :class:`Segment`, keeping ``to_id`` only when it differs from ``from_id``."""

    return Segment(
        content=content,
        from_id=from_id,
        to_id=to_id if to_id is not None and to_id != from_id else None,
        meta=meta,
    )


__all__ = ["Page", "PageLike", "Segment", "as_page", "as_pages", "make_segment"]
