"""Segment paginated Arabic text into structural units with page attribution."""

# Importing the segmenter registers the pipeline passes.
from page_segmenter.config import (
    BreakpointRule,
    SegmentationOptions,
    SplitRule,
    load_options,
)
from page_segmenter.debug_meta import get_debug_reason
from page_segmenter.models import Page, Segment
from page_segmenter.optimize import OptimizeResult, optimize_rules
from page_segmenter.segmenter import run_segmentation, segment_pages
from page_segmenter.tokens import (
    TOKEN_PATTERNS,
    contains_tokens,
    expand_tokens,
    get_available_tokens,
    get_token_pattern,
    template_to_regex,
)
from page_segmenter.validation import (
    ValidationReport,
    format_validation_report,
    validate_rules,
    validate_segments,
)

__all__ = [
    "BreakpointRule",
    "OptimizeResult",
    "Page",
    "Segment",
    "SegmentationOptions",
    "SplitRule",
    "TOKEN_PATTERNS",
    "ValidationReport",
    "contains_tokens",
    "expand_tokens",
    "format_validation_report",
    "get_available_tokens",
    "get_debug_reason",
    "get_token_pattern",
    "load_options",
    "optimize_rules",
    "run_segmentation",
    "segment_pages",
    "template_to_regex",
    "validate_rules",
    "validate_segments",
]
