from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any, TextIO

from page_segmenter.models import Segment


def _rows(segments: Iterable[Segment], drop_meta: bool = False) -> Iterator[dict[str, Any]]:
    """Serializable rows; ``drop_meta`` removes the ``meta`` key."""

    for seg in segments:
        row = seg.to_dict()
        if drop_meta:
            row.pop("meta", None)
        yield row


def serialize(segments: Iterable[Segment], drop_meta: bool = False) -> Iterator[str]:
    """Serialize segments to JSON lines, keeping Arabic text unescaped."""
    return (json.dumps(r, ensure_ascii=False) for r in _rows(segments, drop_meta))


def write_stream(segments: Iterable[Segment], stream: TextIO, drop_meta: bool = False) -> int:
    count = 0
    for line in serialize(segments, drop_meta):
        stream.write(f"{line}\n")
        count += 1
    return count


def write(segments: Iterable[Segment], path: str | Path, drop_meta: bool = False) -> int:
    """Write ``segments`` to JSONL at ``path``; returns the row count."""
    path_obj = Path(path)
    path_obj.parent.mkdir(parents=True, exist_ok=True)
    with path_obj.open("w", encoding="utf-8") as f:
        return write_stream(segments, f, drop_meta)


__all__ = ["serialize", "write", "write_stream"]
