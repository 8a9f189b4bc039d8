"""Compile declarative split rules into executable regexes.

Each pattern shape maps onto one regex source:

    lineStartsWith   ^(?:p1|p2)
    lineStartsAfter  ^(?:p1|p2)(.*)      marker dropped from the segment
    lineEndsWith     (?:p1|p2)$
    template         expanded tokens, no fuzzy
    regex            verbatim

JavaScript-flavoured named groups (``(?<name>``, ``\\k<name>``) are accepted in
raw ``regex`` rules and rewritten to Python syntax before compiling.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Iterable

from page_segmenter.config import PATTERN_TYPE_ERROR, SplitRule
from page_segmenter.fuzzy import make_diacritic_insensitive
from page_segmenter.tokens import (
    ExpandResult,
    escape_template_brackets,
    expand_tokens_with_captures,
    should_default_to_fuzzy,
)

_ANONYMOUS_GROUP_RE = re.compile(r"(?<!\\)\((?!\?)")
_NAMED_GROUP_RE = re.compile(r"\(\?P?<([A-Za-z_]\w*)>")
_JS_NAMED_GROUP_RE = re.compile(r"\(\?<(?![=!])")
_JS_BACKREF_RE = re.compile(r"\\k<(\w+)>")
_BACKREFERENCE_RE = re.compile(r"\\[1-9]")

CONTENT_GROUP_SUFFIX = "__content"


@dataclass(frozen=True)
class RuleRegex:
    """A compiled rule plus what the matcher needs to read its matches."""

    regex: re.Pattern[str]
    uses_capture: bool
    capture_names: tuple[str, ...]
    uses_line_starts_after: bool

    @property
    def source(self) -> str:
        return self.regex.pattern


def has_capturing_group(pattern: str) -> bool:
    """Return ``True`` for an anonymous ``(`` group (not ``(?:``, ``(?P<``...)."""

    return bool(_ANONYMOUS_GROUP_RE.search(pattern))


def has_backreference(pattern: str) -> bool:
    return bool(_BACKREFERENCE_RE.search(pattern))


def extract_named_capture_names(pattern: str) -> list[str]:
    """Names of ``(?<name>...)`` / ``(?P<name>...)`` groups, in order."""

    return _NAMED_GROUP_RE.findall(pattern)


def to_python_regex(pattern: str) -> str:
    """Rewrite JavaScript named-group syntax to the ``re`` spelling."""

    return _JS_BACKREF_RE.sub(r"(?P=\1)", _JS_NAMED_GROUP_RE.sub("(?P<", pattern))


def compile_rule_regex(pattern: str) -> re.Pattern[str]:
    """Compile ``pattern`` with ``re.MULTILINE``; invalid syntax raises ``ValueError``."""

    try:
        return re.compile(to_python_regex(pattern), re.MULTILINE)
    except re.error as exc:
        raise ValueError(f"Invalid regex pattern: {pattern}\n  Cause: {exc}") from exc


def process_pattern(
    pattern: str,
    fuzzy: bool,
    capture_prefix: str | None = None,
    seen: Counter[str] | None = None,
) -> ExpandResult:
    """Auto-escape brackets, then expand tokens (fuzzy when asked)."""

    transform = make_diacritic_insensitive if fuzzy else None
    return expand_tokens_with_captures(
        escape_template_brackets(pattern), transform, capture_prefix, seen
    )


def _union(
    patterns: Iterable[str], fuzzy: bool, capture_prefix: str | None
) -> tuple[str, tuple[str, ...]]:
    seen: Counter[str] = Counter()
    processed = [process_pattern(p, fuzzy, capture_prefix, seen) for p in patterns]
    union = "|".join(p.pattern for p in processed)
    names = tuple(name for p in processed for name in p.capture_names)
    return union, names


def rule_is_fuzzy(rule: SplitRule) -> bool:
    """Explicit ``fuzzy`` wins; otherwise fuzzy when a fuzzy-default token is used."""

    if rule.fuzzy is not None:
        return rule.fuzzy
    return should_default_to_fuzzy(rule.patterns)


def build_rule_regex(rule: SplitRule, capture_prefix: str | None = None) -> RuleRegex:
    """Compile ``rule`` into a :class:`RuleRegex`.

    ``capture_prefix`` namespaces every named group so several rules can share
    one combined alternation.
    """

    fields = rule.pattern_fields
    if len(fields) != 1:
        raise ValueError(PATTERN_TYPE_ERROR)

    fuzzy = rule_is_fuzzy(rule)
    if rule.line_starts_after:
        union, names = _union(rule.line_starts_after, fuzzy, capture_prefix)
        content = (
            f"(?P<{capture_prefix}{CONTENT_GROUP_SUFFIX}>.*)" if capture_prefix else "(.*)"
        )
        return RuleRegex(
            regex=compile_rule_regex(f"^(?:{union}){content}"),
            uses_capture=True,
            capture_names=names,
            uses_line_starts_after=True,
        )

    if rule.line_starts_with:
        union, names = _union(rule.line_starts_with, fuzzy, capture_prefix)
        source = f"^(?:{union})"
    elif rule.line_ends_with:
        union, names = _union(rule.line_ends_with, fuzzy, capture_prefix)
        source = f"(?:{union})$"
    elif rule.template:
        expanded = process_pattern(rule.template, False, capture_prefix)
        source, names = expanded.pattern, expanded.capture_names
    else:
        source = rule.regex or ""
        names = tuple(extract_named_capture_names(source))

    return RuleRegex(
        regex=compile_rule_regex(source),
        uses_capture=has_capturing_group(source),
        capture_names=names,
        uses_line_starts_after=False,
    )


def is_combinable(rule: SplitRule) -> bool:
    """Raw regex rules with captures or backreferences must run on their own."""

    if not rule.regex:
        return True
    return not (
        extract_named_capture_names(rule.regex)
        or has_backreference(rule.regex)
        or has_capturing_group(rule.regex)
    )


def build_page_start_guard(pattern: str) -> re.Pattern[str]:
    """Compile a ``pageStartGuard`` into a regex anchored at the end of a char."""

    expanded = process_pattern(pattern, False).pattern
    return compile_rule_regex(f"(?:{expanded})$")


__all__ = [
    "CONTENT_GROUP_SUFFIX",
    "RuleRegex",
    "build_page_start_guard",
    "build_rule_regex",
    "compile_rule_regex",
    "extract_named_capture_names",
    "has_backreference",
    "has_capturing_group",
    "is_combinable",
    "process_pattern",
    "rule_is_fuzzy",
    "to_python_regex",
]
