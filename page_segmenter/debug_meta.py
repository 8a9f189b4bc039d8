"""Provenance metadata for debugging why a segment starts where it does.

With ``debug`` enabled every segment carries a patch under a single meta key
(``_debug`` unless configured otherwise) naming the rule, breakpoint or
length-safety split that produced it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping

from page_segmenter.config import DEFAULT_DEBUG_META_KEY, BreakpointRule, DebugOptions, SplitRule

SplitReason = Literal["whitespace", "unicode_boundary"]


@dataclass(frozen=True)
class DebugConfig:
    meta_key: str = DEFAULT_DEBUG_META_KEY
    include_rule: bool = True
    include_breakpoint: bool = True


def resolve_debug_config(debug: bool | DebugOptions | Mapping[str, Any] | None) -> DebugConfig | None:
    """``None`` when debugging is off; otherwise the effective :class:`DebugConfig`."""

    if debug is True:
        return DebugConfig()
    if not debug:
        return None
    opts = debug if isinstance(debug, DebugOptions) else DebugOptions.model_validate(debug)
    return DebugConfig(
        meta_key=opts.meta_key or DEFAULT_DEBUG_META_KEY,
        include_rule="rule" in opts.include,
        include_breakpoint="breakpoint" in opts.include,
    )


def merge_debug_into_meta(
    meta: Mapping[str, Any] | None, meta_key: str, patch: Mapping[str, Any]
) -> dict[str, Any]:
    """Return a copy of ``meta`` with ``patch`` merged under ``meta_key``."""

    out = dict(meta or {})
    existing = out.get(meta_key)
    out[meta_key] = {**(existing if isinstance(existing, Mapping) else {}), **patch}
    return out


def build_rule_debug_patch(rule_index: int, rule: SplitRule) -> dict[str, Any]:
    return {"rule": {"index": rule_index, "patternType": rule.pattern_type}}


def build_breakpoint_debug_patch(
    breakpoint_index: int, rule: BreakpointRule, word_index: int | None = None
) -> dict[str, Any]:
    info: dict[str, Any] = {
        "index": breakpoint_index,
        "kind": "pageBoundary" if rule.is_page_boundary else "pattern",
        "pattern": rule.source,
    }
    if word_index is not None:
        info["wordIndex"] = word_index
        if rule.words is not None:
            info["word"] = rule.words[word_index]
    return {"breakpoint": info}


def build_content_length_debug_patch(
    max_content_length: int, actual_length: int, split_reason: SplitReason = "whitespace"
) -> dict[str, Any]:
    return {
        "contentLengthSplit": {
            "actualLength": actual_length,
            "maxContentLength": max_content_length,
            "splitReason": split_reason,
        }
    }


def _rule_reason(rule: Mapping[str, Any], concise: bool) -> str:
    word, word_index = rule.get("word"), rule.get("wordIndex")
    if concise:
        return f'Rule: "{word}"' if word else f"Rule: {rule.get('patternType')}"
    index_info = f" [idx:{word_index}]" if word_index is not None else ""
    word_info = f' (Matched: "{word}")' if word else ""
    return f"Rule #{rule.get('index')} ({rule.get('patternType')}){index_info}{word_info}"


def _breakpoint_reason(bp: Mapping[str, Any], concise: bool) -> str:
    if bp.get("kind") == "pageBoundary":
        return "Breakpoint: <page-boundary>" if concise else "Page Boundary (Fallback)"
    word = bp.get("word")
    if concise:
        return f'Breakpoint: "{word or bp.get("pattern")}"'
    if word:
        return f'Breakpoint #{bp.get("index")} (Words) [idx:{bp.get("wordIndex")}] - "{word}"'
    return f'Breakpoint #{bp.get("index")} ({bp.get("kind")}) - "{bp.get("pattern")}"'


def _content_length_reason(split: Mapping[str, Any], concise: bool) -> str:
    limit, reason = split.get("maxContentLength"), split.get("splitReason")
    return f"> {limit} ({reason})" if concise else f"Safety Split ({reason}) > {limit}"


def get_debug_reason(
    meta: Mapping[str, Any] | None,
    concise: bool = False,
    meta_key: str = DEFAULT_DEBUG_META_KEY,
) -> str:
    """Render the provenance stored in ``meta`` as a short human-readable reason."""

    debug = (meta or {}).get(meta_key)
    if not debug:
        return "-"
    if debug.get("rule"):
        return _rule_reason(debug["rule"], concise)
    if debug.get("breakpoint"):
        return _breakpoint_reason(debug["breakpoint"], concise)
    if debug.get("contentLengthSplit"):
        return _content_length_reason(debug["contentLengthSplit"], concise)
    return "Unknown"


__all__ = [
    "DebugConfig",
    "build_breakpoint_debug_patch",
    "build_content_length_debug_patch",
    "build_rule_debug_patch",
    "get_debug_reason",
    "merge_debug_into_meta",
    "resolve_debug_config",
]
