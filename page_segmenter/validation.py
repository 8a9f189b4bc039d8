"""Checks for rule definitions and for produced segments.

``validate_rules`` catches authoring mistakes (typos in token names, missing
braces, duplicates) before a run. ``validate_segments`` audits a finished run
against the input pages and reports attribution problems.
"""

from __future__ import annotations

import re
from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Literal, Mapping, Sequence

from pydantic.alias_generators import to_camel

from page_segmenter.config import PATTERN_FIELDS, SegmentationOptions, SplitRule, coerce_options
from page_segmenter.models import Page, PageLike, Segment, as_pages
from page_segmenter.page_map import normalize_line_endings
from page_segmenter.preprocess import apply_preprocess_to_page
from page_segmenter.replace import apply_replacements
from page_segmenter.tokens import get_available_tokens

RuleIssueType = Literal["missing_braces", "unknown_token", "duplicate", "empty_pattern"]
Severity = Literal["error", "warn"]
SegmentIssueType = Literal[
    "max_pages_violation", "page_attribution_mismatch", "content_not_found", "page_not_found"
]

PREVIEW_LIMIT = 140
FULL_SEARCH_THRESHOLD = 500
SEARCH_BUFFER = 1000

_TOKEN_INSIDE_BRACES = re.compile(r"\{\{(\w+)(?::\w+)?\}\}")
_BRACED_RE = re.compile(r"\{\{[^}]*\}\}")


# -- Rule validation ---------------------------------------------------------------------


@dataclass(frozen=True)
class RuleIssue:
    type: RuleIssueType
    message: str
    suggestion: str | None = None
    token: str | None = None
    pattern: str | None = None


RuleValidationResult = Dict[str, Any]


def _bare_token_regex() -> re.Pattern[str]:
    names = sorted(get_available_tokens(), key=len, reverse=True)
    return re.compile(r"(?<!\w)(" + "|".join(names) + r")(?::\w+)?(?!\w)")


def _validate_pattern(pattern: str, seen: set[str]) -> RuleIssue | None:
    if not pattern.strip():
        return RuleIssue("empty_pattern", "Empty pattern is not allowed")
    if pattern in seen:
        return RuleIssue("duplicate", f'Duplicate pattern: "{pattern}"', pattern=pattern)
    seen.add(pattern)

    known = set(get_available_tokens())
    for m in _TOKEN_INSIDE_BRACES.finditer(pattern):
        name = m.group(1)
        if name not in known:
            return RuleIssue(
                "unknown_token",
                f"Unknown token: {{{{{name}}}}}. Available tokens: "
                + ", ".join(sorted(known)[:5])
                + "...",
                suggestion="Check spelling or use a known token",
                token=name,
            )

    braced = [m.span() for m in _BRACED_RE.finditer(pattern)]
    for m in _bare_token_regex().finditer(pattern):
        if any(lo <= m.start() < hi for lo, hi in braced):
            continue
        full, name = m.group(0), m.group(1)
        return RuleIssue(
            "missing_braces",
            f'Token "{name}" appears to be missing {{{{}}}}. Did you mean "{{{{{full}}}}}"?',
            suggestion=f"{{{{{full}}}}}",
            token=name,
        )
    return None


def _raw_patterns(rule: SplitRule | Mapping[str, Any]) -> Dict[str, Any]:
    """Pattern fields of ``rule`` keyed by their option-file spelling."""

    if isinstance(rule, SplitRule):
        return {to_camel(name): getattr(rule, name) for name in PATTERN_FIELDS if getattr(rule, name) is not None}
    out: Dict[str, Any] = {}
    for name in PATTERN_FIELDS:
        for key in (to_camel(name), name):
            if rule.get(key) is not None:
                out[to_camel(name)] = rule[key]
                break
    return out


def validate_rules(
    rules: Sequence[SplitRule | Mapping[str, Any]],
) -> List[RuleValidationResult | None]:
    """Return one entry per rule: ``None`` when clean, else issues by pattern field.

    Array fields map to a list parallel to the patterns (``None`` where a
    pattern is fine); ``template`` maps to a single issue. ``regex`` rules are
    not inspected.
    """

    results: List[RuleValidationResult | None] = []
    for rule in rules:
        result: RuleValidationResult = {}
        for key, value in _raw_patterns(rule).items():
            if key == "regex":
                continue
            if isinstance(value, str):
                issue = _validate_pattern(value, set())
                if issue:
                    result[key] = issue
                continue
            seen: set[str] = set()
            issues = [_validate_pattern(p, seen) for p in value]
            if any(issues):
                result[key] = issues
        results.append(result or None)
    return results


def _format_issue(location: str, issue: RuleIssue) -> str:
    if issue.type == "missing_braces":
        return f'{location}: Missing {{{{}}}} around token "{issue.token}"'
    if issue.type == "unknown_token":
        return f'{location}: Unknown token "{{{{{issue.token}}}}}"'
    if issue.type == "duplicate":
        return f'{location}: Duplicate pattern "{issue.pattern}"'
    return f"{location}: {issue.message or issue.type}"


def format_validation_report(results: Iterable[RuleValidationResult | None]) -> List[str]:
    """Flatten :func:`validate_rules` output into ``"Rule N, field: ..."`` lines."""

    lines: List[str] = []
    for i, result in enumerate(results):
        for key, issues in (result or {}).items():
            for issue in issues if isinstance(issues, list) else [issues]:
                if issue is not None:
                    lines.append(_format_issue(f"Rule {i + 1}, {key}", issue))
    return lines


# -- Segment validation ------------------------------------------------------------------


@dataclass(frozen=True)
class SegmentIssue:
    type: SegmentIssueType
    severity: Severity
    segment_index: int
    segment: Mapping[str, Any]
    evidence: str
    hint: str | None = None
    expected: Mapping[str, Any] | None = None
    actual: Mapping[str, Any] | None = None
    page_context: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class ValidationReport:
    """Structured result from :func:`validate_segments`."""

    segment_count: int
    page_count: int
    issues: List[SegmentIssue] = field(default_factory=list)

    @property
    def errors(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "warn")

    @property
    def ok(self) -> bool:
        return not self.issues

    def has_issues(self) -> bool:
        return bool(self.issues)

    def summary(self) -> Dict[str, int]:
        return {
            "errors": self.errors,
            "issues": len(self.issues),
            "pageCount": self.page_count,
            "segmentCount": self.segment_count,
            "warnings": self.warnings,
        }


@dataclass(frozen=True)
class _Joined:
    text: str
    ids: List[int]
    starts: List[int]
    ends: List[int]
    pages: Dict[int, str]

    def id_at(self, offset: int) -> int:
        i = bisect_left(self.ends, offset)
        return self.ids[min(i, len(self.ids) - 1)]

    def bounds(self, page_id: int) -> tuple[int, int] | None:
        if page_id not in self.pages:
            return None
        i = self.ids.index(page_id)
        return self.starts[i], self.ends[i]


def build_preview(text: str, limit: int = PREVIEW_LIMIT) -> str:
    normalized = " ".join(text.split())
    return normalized if len(normalized) <= limit else normalized[:limit] + "..."


def _join(pages: Sequence[Page], options: SegmentationOptions) -> _Joined:
    joiner = "\n" if options.page_joiner == "newline" else " "
    texts = [
        normalize_line_endings(apply_preprocess_to_page(p.content, p.id, options.preprocess))
        for p in apply_replacements(pages, options.replace)
    ]
    starts: List[int] = []
    ends: List[int] = []
    offset = 0
    for text in texts:
        starts.append(offset)
        ends.append(offset + len(text) - 1)
        offset += len(text) + len(joiner)
    ids = [p.id for p in pages]
    return _Joined(joiner.join(texts), ids, starts, ends, dict(zip(ids, texts)))


def _find_all(needle: str, haystack: str, start: int, stop: int) -> List[tuple[int, int]]:
    found = []
    idx = haystack.find(needle, start)
    while 0 <= idx < stop:
        found.append((idx, idx + len(needle) - 1))
        idx = haystack.find(needle, idx + 1)
    return found


def _snapshot(segment: Segment) -> Dict[str, Any]:
    return {"contentPreview": build_preview(segment.content), "from": segment.from_id, "to": segment.to_id}


def _span_issue(index: int, segment: Segment, max_pages: int | None) -> SegmentIssue | None:
    if max_pages is None or segment.to_id is None:
        return None
    actual = {"from": segment.from_id, "to": segment.to_id}
    if max_pages == 0:
        return SegmentIssue(
            "max_pages_violation",
            "error",
            index,
            _snapshot(segment),
            "maxPages=0 requires all segments to stay within one page.",
            hint="Check page boundary detection for breakpoints.",
            expected={"from": segment.from_id, "to": segment.from_id},
            actual=actual,
        )
    span = segment.to_id - segment.from_id
    if span <= max_pages:
        return None
    return SegmentIssue(
        "max_pages_violation",
        "error",
        index,
        _snapshot(segment),
        f"Segment spans {span} pages (maxPages={max_pages}).",
        hint="Check breakpoint windowing and page attribution.",
        expected={"from": segment.from_id, "to": segment.from_id + max_pages},
        actual=actual,
    )


def _attribution_issues(
    index: int, segment: Segment, max_pages: int | None, joined: _Joined
) -> List[SegmentIssue]:
    # single-page segments are trusted unless every segment must stay on one page
    if segment.to_id is None and max_pages != 0:
        return []
    bounds = joined.bounds(segment.from_id)
    if bounds is None:
        return []
    start, end = bounds
    last = joined.bounds(segment.to_id) if segment.to_id is not None else None
    stop = last[1] + 1 if last else (end + 1 if segment.to_id is None else len(joined.text))
    lo = max(0, start - SEARCH_BUFFER)
    hi = min(len(joined.text), stop + SEARCH_BUFFER)

    actual = {"from": segment.from_id, "to": segment.to_id}
    matches = _find_all(segment.content, joined.text, lo, hi)
    if not matches and len(segment.content) < FULL_SEARCH_THRESHOLD:
        matches = _find_all(segment.content, joined.text, 0, len(joined.text))
    if not matches:
        page = joined.pages.get(segment.from_id, "")
        return [
            SegmentIssue(
                "content_not_found",
                "error",
                index,
                _snapshot(segment),
                "Segment content not found in any page content.",
                hint="Check preprocessing and content normalization.",
                actual=actual,
                page_context={"pageId": segment.from_id, "pagePreview": build_preview(page)},
            )
        ]

    aligned = [m for m in matches if start <= m[0] <= end]
    if aligned:
        first_end = aligned[0][1]
        if first_end > end and max_pages == 0:
            return [
                SegmentIssue(
                    "max_pages_violation",
                    "error",
                    index,
                    _snapshot(segment),
                    f"Segment spans pages {segment.from_id}-{joined.id_at(first_end)} in joined content.",
                    expected={"from": segment.from_id, "to": segment.from_id},
                    actual=actual,
                )
            ]
        return []

    m_start, m_end = matches[0]
    actual_from = joined.id_at(m_start)
    return [
        SegmentIssue(
            "page_attribution_mismatch",
            "error",
            index,
            _snapshot(segment),
            f"Content found in joined content at page {actual_from}, but segment.from={segment.from_id}.",
            hint="Check content matching and boundary attribution.",
            expected={"from": actual_from, "to": joined.id_at(m_end)},
            actual=actual,
            page_context={
                "matchIndex": m_start,
                "pageId": actual_from,
                "pagePreview": build_preview(joined.pages.get(actual_from, "")),
            },
        )
    ]


def validate_segments(
    pages: Iterable[PageLike],
    options: SegmentationOptions | Mapping[str, Any] | None,
    segments: Sequence[Segment],
) -> ValidationReport:
    """Audit ``segments`` against ``pages`` rendered the way the segmenter renders them."""

    page_list = as_pages(pages)
    opts = coerce_options(options)
    joined = _join(page_list, opts)
    issues: List[SegmentIssue] = []
    for i, segment in enumerate(segments):
        if segment.from_id not in joined.pages:
            issues.append(
                SegmentIssue(
                    "page_not_found",
                    "error",
                    i,
                    _snapshot(segment),
                    f"Segment.from={segment.from_id} does not exist in input pages.",
                    hint="Check page IDs passed to segment_pages() and validate_segments().",
                    actual={"from": segment.from_id, "to": segment.to_id},
                )
            )
            continue
        span = _span_issue(i, segment, opts.max_pages)
        if span:
            issues.append(span)
        issues.extend(_attribution_issues(i, segment, opts.max_pages, joined))
    return ValidationReport(segment_count=len(segments), page_count=len(page_list), issues=issues)


__all__ = [
    "RuleIssue",
    "SegmentIssue",
    "ValidationReport",
    "build_preview",
    "format_validation_report",
    "validate_rules",
    "validate_segments",
]
