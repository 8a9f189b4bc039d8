"""Regex replacements applied to page text before any other processing.

Replacement rules come from option files written for JavaScript-flavoured
regex, so flags use the ``gimsuy`` letters and replacement strings may use
``$1``, ``$<name>`` and ``$&`` as well as Python's own ``\\1``/``\\g<name>``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Sequence

from page_segmenter.config import Replacement
from page_segmenter.models import Page
from page_segmenter.rule_regex import to_python_regex

logger = logging.getLogger(__name__)

ALLOWED_FLAGS = "gimsuy"
_FLAG_MAP = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}

_DOLLAR_RE = re.compile(r"\$(?:(\d+)|<(\w+)>|(&)|(\$))")


@dataclass(frozen=True)
class CompiledReplacement:
    regex: re.Pattern[str]
    template: str
    page_ids: frozenset[int] | None

    def applies_to(self, page_id: int) -> bool:
        return self.page_ids is None or page_id in self.page_ids


def parse_flags(flags: str | None) -> int:
    """Translate ``gimsuy`` letters into :mod:`re` flags.

    ``g``, ``u`` and ``y`` are accepted but have no Python counterpart: every
    replacement is global and unicode-aware already.
    """

    value = 0
    for ch in flags or "":
        if ch not in ALLOWED_FLAGS:
            raise ValueError(f'Invalid replace regex flag: "{ch}" (allowed: {ALLOWED_FLAGS})')
        value |= _FLAG_MAP.get(ch, 0)
    return value


def translate_replacement(template: str) -> str:
    """Rewrite ``$1``/``$<name>``/``$&``/``$$`` into :func:`re.sub` syntax."""

    def _sub(m: re.Match[str]) -> str:
        number, name, whole, dollar = m.groups()
        if number:
            return f"\\g<{number}>"
        if name:
            return f"\\g<{name}>"
        if whole:
            return "\\g<0>"
        return "$"

    return _DOLLAR_RE.sub(_sub, template)


def compile_replacements(rules: Sequence[Replacement]) -> list[CompiledReplacement]:
    """Compile ``rules``; a rule with an empty ``page_ids`` is dropped."""

    compiled = []
    for rule in rules:
        if rule.page_ids is not None and not rule.page_ids:
            logger.debug("replace rule %r disabled by empty pageIds", rule.regex)
            continue
        try:
            regex = re.compile(to_python_regex(rule.regex), parse_flags(rule.flags))
        except re.error as exc:
            raise ValueError(f"Invalid replace regex: {rule.regex}\n  Cause: {exc}") from exc
        page_ids = frozenset(rule.page_ids) if rule.page_ids is not None else None
        compiled.append(CompiledReplacement(regex, translate_replacement(rule.replacement), page_ids))
    return compiled


def apply_replacements(pages: Sequence[Page], rules: Sequence[Replacement]) -> list[Page]:
    """Apply every rule to every page it targets, in rule order."""

    compiled = compile_replacements(rules) if rules else []
    if not compiled:
        return list(pages)

    def _apply(page: Page) -> Page:
        content = page.content
        for rule in compiled:
            if rule.applies_to(page.id):
                content = rule.regex.sub(rule.template, content)
        return page if content == page.content else Page(page.id, content)

    return [_apply(p) for p in pages]


__all__ = [
    "ALLOWED_FLAGS",
    "CompiledReplacement",
    "apply_replacements",
    "compile_replacements",
    "parse_flags",
    "translate_replacement",
]
