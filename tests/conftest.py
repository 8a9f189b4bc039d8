from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable, Iterable, List, Tuple

import pytest

from page_segmenter.models import Page

sys.path.append(str(Path(__file__).resolve().parents[1]))


def _make_pages(*contents: str, ids: Iterable[int] | None = None) -> List[Page]:
    page_ids = list(ids) if ids is not None else list(range(1, len(contents) + 1))
    return [Page(page_id, text) for page_id, text in zip(page_ids, contents)]


@pytest.fixture
def make_pages() -> Callable[..., List[Page]]:
    """Build pages from contents; IDs default to 1..n."""

    return _make_pages


class RecordingLogger:
    """Logger-shaped object exposing only some of the sink methods."""

    def __init__(self) -> None:
        self.records: List[Tuple[str, str, Any]] = []

    def debug(self, message: str, context: Any = None) -> None:
        self.records.append(("debug", message, context))

    def warn(self, message: str, context: Any = None) -> None:
        self.records.append(("warn", message, context))

    def messages(self, level: str) -> List[str]:
        return [m for lvl, m, _ in self.records if lvl == level]


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()
