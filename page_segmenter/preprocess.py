"""Per-page text cleanups applied before segmentation."""

from __future__ import annotations

import re
from typing import Callable, Mapping, Sequence

from page_segmenter.config import PreprocessRule
from page_segmenter.page_utils import is_in_range

ZERO_WIDTH_RE = re.compile(
    "[\N{ZERO WIDTH SPACE}-\N{RIGHT-TO-LEFT MARK}"
    "\N{LEFT-TO-RIGHT EMBEDDING}-\N{RIGHT-TO-LEFT OVERRIDE}"
    "\N{WORD JOINER}-\N{INVISIBLE PLUS}"
    "\N{ZERO WIDTH NO-BREAK SPACE}]"
)
_ELLIPSIS_RE = re.compile(r"\.{2,}")
_TRAILING_WAW = " \N{ARABIC LETTER WAW} "


def is_zero_width(ch: str) -> bool:
    return bool(ZERO_WIDTH_RE.fullmatch(ch))


def remove_zero_width(text: str, mode: str = "strip") -> str:
    """Drop invisible control characters, or turn each run into a single space.

    In ``space`` mode no space is added at the start of the text or next to
    an existing space.
    """

    if mode != "space":
        return ZERO_WIDTH_RE.sub("", text)
    out: list[str] = []
    last_was_space = True
    for ch in text:
        if is_zero_width(ch):
            if not last_was_space:
                out.append(" ")
                last_was_space = True
        else:
            out.append(ch)
            last_was_space = ch == " "
    return "".join(out)


def condense_ellipsis(text: str) -> str:
    return _ELLIPSIS_RE.sub("\N{HORIZONTAL ELLIPSIS}", text)


def fix_trailing_waw(text: str) -> str:
    """Join a detached ``و`` to the following word."""

    return text.replace(_TRAILING_WAW, _TRAILING_WAW.rstrip())


_TRANSFORMS: Mapping[str, Callable[[str, PreprocessRule], str]] = {
    "removeZeroWidth": lambda text, rule: remove_zero_width(text, rule.mode),
    "condenseEllipsis": lambda text, _rule: condense_ellipsis(text),
    "fixTrailingWaw": lambda text, _rule: fix_trailing_waw(text),
}


def apply_preprocess_to_page(
    content: str, page_id: int, transforms: Sequence[PreprocessRule]
) -> str:
    """Run ``transforms`` in order, skipping those scoped away from ``page_id``."""

    for rule in transforms:
        if is_in_range(page_id, rule.min_page, rule.max_page):
            content = _TRANSFORMS[rule.type](content, rule)
    return content


__all__ = [
    "apply_preprocess_to_page",
    "condense_ellipsis",
    "fix_trailing_waw",
    "is_zero_width",
    "remove_zero_width",
]
