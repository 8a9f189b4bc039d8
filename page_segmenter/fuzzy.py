"""Diacritic-insensitive regex fragments for Arabic text.

Classical Arabic sources carry harakat inconsistently: the same heading may
appear as ``باب``, ``بَابُ`` or ``بابٌ`` depending on the edition. The transform
below turns literal text into a regex fragment that tolerates any run of
diacritics after every character and treats a few letter families as
interchangeable.

Usage:
    fragment = make_diacritic_insensitive("باب")
    re.search(fragment, "بَابُ الإيمان")  # matches
"""

from __future__ import annotations

import re
import unicodedata
from typing import Final

# fathatan .. sukun
DIACRITICS_CLASS: Final = "[\N{ARABIC FATHATAN}-\N{ARABIC SUKUN}]"

EQUIV_GROUPS: Final[tuple[tuple[str, ...], ...]] = (
    ("ا", "آ", "أ", "إ"),
    ("ة", "ه"),
    ("ى", "ي"),
)

ARABIC_CHAR_RE: Final = re.compile("[\N{ARABIC NUMBER SIGN}-\N{ARABIC LETTER HEH WITH INVERTED V}]")

_JOINERS_RE = re.compile("[\N{ZERO WIDTH NON-JOINER}\N{ZERO WIDTH JOINER}]")
_WHITESPACE_RE = re.compile(r"\s+")
_REGEX_SPECIALS_RE = re.compile(r"[.*+?^${}()|\[\]\\]")

_EQUIV_CLASS: Final = {
    ch: "[" + "".join(group) + "]" for group in EQUIV_GROUPS for ch in group
}


def escape_regex(text: str) -> str:
    """Escape regex metacharacters in ``text``."""

    return _REGEX_SPECIALS_RE.sub(lambda m: "\\" + m.group(0), text)


def contains_arabic(text: str) -> bool:
    return bool(ARABIC_CHAR_RE.search(text))


def _normalize_arabic_light(text: str) -> str:
    """NFC-normalize, drop ZWJ/ZWNJ, collapse whitespace and trim."""

    nfc = unicodedata.normalize("NFC", text)
    return _WHITESPACE_RE.sub(" ", _JOINERS_RE.sub("", nfc)).strip()


def _equiv_class(ch: str) -> str:
    return _EQUIV_CLASS.get(ch) or escape_regex(ch)


def make_diacritic_insensitive(text: str) -> str:
    """Return a regex fragment matching ``text`` regardless of diacritics.

    Every character becomes its equivalence class (or its escaped self)
    followed by ``DIACRITICS_CLASS*``.
    """

    suffix = f"{DIACRITICS_CLASS}*"
    return "".join(_equiv_class(ch) + suffix for ch in _normalize_arabic_light(text))


__all__ = [
    "ARABIC_CHAR_RE",
    "DIACRITICS_CLASS",
    "EQUIV_GROUPS",
    "contains_arabic",
    "escape_regex",
    "make_diacritic_insensitive",
]
