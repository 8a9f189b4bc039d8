"""Merge and order split rules before compilation.

Rules of the same line-pattern shape (``lineStartsWith``, ``lineStartsAfter``,
``lineEndsWith``) whose other options are identical collapse into one rule
carrying the union of their patterns. Patterns are de-duplicated and put
longest first; rules are then ordered by their longest pattern so the most
specific ones come first. ``template`` and ``regex`` rules are never merged.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Final, Iterable, List, Mapping, Tuple

from page_segmenter.config import SplitRule

MERGEABLE_FIELDS: Final = frozenset({"line_starts_with", "line_starts_after", "line_ends_with"})


@dataclass(frozen=True)
class OptimizeResult:
    rules: Tuple[SplitRule, ...]
    merged_count: int


def _as_rule(rule: SplitRule | Mapping[str, Any]) -> SplitRule:
    return rule if isinstance(rule, SplitRule) else SplitRule.model_validate(rule)


def _normalize_patterns(patterns: Iterable[str]) -> Tuple[str, ...]:
    return tuple(sorted(dict.fromkeys(patterns), key=lambda p: (-len(p), p)))


def _merge_key(rule: SplitRule, field: str) -> str:
    rest = rule.model_dump(mode="json", exclude={field})
    return f"{field}|{json.dumps(rest, sort_keys=True, ensure_ascii=False)}"


def specificity(rule: SplitRule) -> int:
    """Length of the rule's longest pattern."""
    return max((len(p) for p in rule.patterns), default=0)


def optimize_rules(rules: Iterable[SplitRule | Mapping[str, Any]]) -> OptimizeResult:
    """Merge compatible rules and sort them by :func:`specificity`.

    ``merged_count`` is the number of input rules folded into an earlier
    one. The sort is stable, so equally specific rules keep their order.
    """

    output: List[SplitRule] = []
    index_by_key: dict[str, int] = {}
    merged = 0
    for rule in map(_as_rule, rules):
        field = rule.pattern_fields[0]
        if field not in MERGEABLE_FIELDS:
            output.append(rule)
            continue
        key = _merge_key(rule, field)
        if key not in index_by_key:
            index_by_key[key] = len(output)
            output.append(rule.model_copy(update={field: _normalize_patterns(rule.patterns)}))
            continue
        at = index_by_key[key]
        existing = output[at]
        output[at] = existing.model_copy(
            update={field: _normalize_patterns((*existing.patterns, *rule.patterns))}
        )
        merged += 1

    ordered = sorted(output, key=specificity, reverse=True)
    return OptimizeResult(rules=tuple(ordered), merged_count=merged)


__all__ = ["OptimizeResult", "optimize_rules", "specificity"]
