"""Page input adapter: JSON array, ``{"pages": [...]}`` document or JSONL."""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from typing import Any

from page_segmenter.models import Page, as_page


def _records(document: Any) -> Iterable[Mapping[str, Any]]:
    if isinstance(document, Mapping):
        document = document.get("pages", ())
    if not isinstance(document, list):
        raise TypeError("pages document must be a list or a mapping with a 'pages' list")
    return document


def _jsonl_records(text: str) -> Iterator[Mapping[str, Any]]:
    return (json.loads(line) for line in text.splitlines() if line.strip())


def parse_pages(text: str, jsonl: bool = False) -> list[Page]:
    """Parse pages from ``text``; ``jsonl`` forces one-record-per-line parsing."""

    records = _jsonl_records(text) if jsonl else _records(json.loads(text))
    return [as_page(r) for r in records]


def read_pages(path: str | Path) -> list[Page]:
    """Read pages from ``path``; ``.jsonl`` files are read line by line."""

    p = Path(path)
    return parse_pages(p.read_text(encoding="utf-8"), jsonl=p.suffix.lower() == ".jsonl")


__all__ = ["parse_pages", "read_pages"]
