"""Template tokens and their expansion into regex fragments.

Rules are written with human-readable placeholders instead of raw regex::

    "{{raqms:num}} {{dash}} "      ->  "(?P<num>[٠-٩]+) [-–—ـ] "
    "{{bab}} "                     ->  "باب "
    "{{:title}}"                   ->  "(?P<title>.+)"

Design philosophy:
- Tokens are data: ``TOKEN_PATTERNS`` is a read-only table built at import
- Unknown tokens fail soft and stay literal so half-written templates still
  compile (they simply never match)
- The fuzzy transform runs on raw fragments *before* they are wrapped in a
  capture group, and per ``|`` alternative, so group syntax is never escaped
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Final

from page_segmenter.fuzzy import contains_arabic

FuzzyTransform = Callable[[str], str]

_ARABIC_DIGITS: Final = "\N{ARABIC-INDIC DIGIT ZERO}-\N{ARABIC-INDIC DIGIT NINE}"

TOKEN_PATTERNS: Final[Mapping[str, str]] = MappingProxyType(
    {
        # chapter heading
        "bab": "باب",
        "basmala": "بسم الله",
        "bullet": "[•*°]",
        "dash": "[-\N{EN DASH}\N{EM DASH}\N{ARABIC TATWEEL}]",
        # section / issue heading
        "fasl": "فصل|مسألة",
        # single Arabic letter
        "harf": "[أ-ي]",
        # book heading
        "kitab": "كتاب",
        # narration-chain phrases
        "naql": "حدثنا|أخبرنا|حدثني|وحدثنا|أنبأنا|سمعت",
        "num": "[0-9]",
        "nums": "[0-9]+",
        "raqm": f"[{_ARABIC_DIGITS}]",
        "raqms": f"[{_ARABIC_DIGITS}]+",
        # sentence-ending punctuation
        "tarqim": "[.!?\N{ARABIC QUESTION MARK}\N{ARABIC SEMICOLON}]",
    }
)

FUZZY_DEFAULT_TOKENS: Final = frozenset({"bab", "basmala", "fasl", "kitab", "naql"})

TOKEN_WITH_CAPTURE_RE: Final = re.compile(r"\{\{(\w*):?(\w*)\}\}")
SIMPLE_TOKEN_RE: Final = re.compile(r"\{\{(\w+)\}\}")

_BRACKETS_OUTSIDE_TOKENS_RE = re.compile(r"(\{\{[^}]*\}\})|([()\[\]])")
_ESCAPE_SEQUENCE_RE = re.compile(r"(\\.)", re.DOTALL)
_REGEX_SYNTAX_RE = re.compile(r"[\\\[\](){}.*+?^$]")


@dataclass(frozen=True)
class ExpandResult:
    """Expanded regex ``pattern`` plus the named groups it defines."""

    pattern: str
    capture_names: tuple[str, ...] = ()

    @property
    def has_captures(self) -> bool:
        return bool(self.capture_names)


def get_available_tokens() -> list[str]:
    return list(TOKEN_PATTERNS)


def get_token_pattern(name: str) -> str | None:
    return TOKEN_PATTERNS.get(name)


def contains_tokens(query: str) -> bool:
    """Return ``True`` when ``query`` references at least one ``{{token}}``."""

    return bool(SIMPLE_TOKEN_RE.search(query))


def referenced_tokens(patterns: Iterable[str]) -> tuple[str, ...]:
    return tuple(
        m.group(1)
        for p in patterns
        for m in TOKEN_WITH_CAPTURE_RE.finditer(p)
        if m.group(1)
    )


def should_default_to_fuzzy(patterns: Iterable[str]) -> bool:
    """Return ``True`` if any pattern references a fuzzy-by-default token."""

    return any(name in FUZZY_DEFAULT_TOKENS for name in referenced_tokens(patterns))


def escape_template_brackets(pattern: str) -> str:
    """Escape ``()[]`` outside ``{{...}}`` so they match literally."""

    return _BRACKETS_OUTSIDE_TOKENS_RE.sub(
        lambda m: m.group(1) or "\\" + m.group(2), pattern
    )


def _split_surrounding_space(text: str) -> tuple[str, str, str]:
    core = text.strip()
    if not core:
        return text, "", ""
    head = text[: len(text) - len(text.lstrip())]
    tail = text[len(text.rstrip()) :]
    return head, core, tail


def fuzzy_literal(text: str, transform: FuzzyTransform) -> str:
    """Apply ``transform`` to the Arabic literal runs of ``text``.

    Escape sequences (``\\(``) pass through untouched and surrounding
    whitespace is preserved, so ``"بل "`` keeps its trailing space.
    """

    def _part(part: str) -> str:
        if _ESCAPE_SEQUENCE_RE.fullmatch(part) or not contains_arabic(part):
            return part
        head, core, tail = _split_surrounding_space(part)
        return head + transform(core) + tail

    return "".join(_part(p) for p in _ESCAPE_SEQUENCE_RE.split(text) if p)


def _fuzzy_token(fragment: str, transform: FuzzyTransform) -> str:
    """Transform each plain Arabic alternative; regex alternatives stay as-is."""

    def _alt(alt: str) -> str:
        if not contains_arabic(alt) or _REGEX_SYNTAX_RE.search(alt):
            return alt
        return transform(alt)

    return "|".join(_alt(a) for a in fragment.split("|"))


def _non_capturing(fragment: str) -> str:
    return f"(?:{fragment})" if "|" in fragment else fragment


def _unique(name: str, seen: Counter[str]) -> str:
    seen[name] += 1
    return name if seen[name] == 1 else f"{name}_{seen[name]}"


def _segments(query: str) -> Iterator[tuple[bool, str, re.Match[str] | None]]:
    """Yield ``(is_token, text, match)`` pieces of ``query`` in order."""

    pos = 0
    for m in TOKEN_WITH_CAPTURE_RE.finditer(query):
        if m.start() > pos:
            yield False, query[pos : m.start()], None
        yield True, m.group(0), m
        pos = m.end()
    if pos < len(query):
        yield False, query[pos:], None


def expand_tokens_with_captures(
    query: str,
    fuzzy_transform: FuzzyTransform | None = None,
    capture_prefix: str | None = None,
    seen: Counter[str] | None = None,
) -> ExpandResult:
    """Expand every ``{{token}}`` in ``query``.

    ``capture_prefix`` is prepended to every group name (combined-regex
    mode). ``seen`` lets callers share duplicate-name bookkeeping across the
    alternatives of a single rule.
    """

    seen = Counter() if seen is None else seen
    prefix = capture_prefix or ""
    names: list[str] = []

    def _capture(name: str, body: str) -> str:
        group = prefix + _unique(name, seen)
        names.append(group)
        return f"(?P<{group}>{body})"

    def _expand(is_token: bool, text: str, m: re.Match[str] | None) -> str:
        if not is_token or m is None:
            if fuzzy_transform and contains_arabic(text):
                return fuzzy_literal(text, fuzzy_transform)
            return text
        token, capture = m.group(1), m.group(2)
        if not token:
            return _capture(capture, ".+") if capture else text
        fragment = TOKEN_PATTERNS.get(token)
        if fragment is None:
            return text
        if fuzzy_transform:
            fragment = _fuzzy_token(fragment, fuzzy_transform)
        return _capture(capture, fragment) if capture else _non_capturing(fragment)

    pattern = "".join(_expand(*seg) for seg in _segments(query))
    return ExpandResult(pattern=pattern, capture_names=tuple(names))


def expand_tokens(query: str) -> str:
    return expand_tokens_with_captures(query).pattern


def template_to_regex(template: str) -> re.Pattern[str] | None:
    """Compile ``template`` after expansion; ``None`` when it is not valid regex."""

    try:
        return re.compile(expand_tokens(template))
    except re.error:
        return None


__all__ = [
    "ExpandResult",
    "FUZZY_DEFAULT_TOKENS",
    "TOKEN_PATTERNS",
    "contains_tokens",
    "escape_template_brackets",
    "expand_tokens",
    "expand_tokens_with_captures",
    "fuzzy_literal",
    "get_available_tokens",
    "get_token_pattern",
    "referenced_tokens",
    "should_default_to_fuzzy",
    "template_to_regex",
]
