from __future__ import annotations

import logging

from page_segmenter.config import SegmentationOptions
from page_segmenter.debug_meta import resolve_debug_config
from page_segmenter.framework import Artifact, register
from page_segmenter.log_sink import as_sink
from page_segmenter.page_map import build_page_map
from page_segmenter.split_points import resolve_segments

logger = logging.getLogger(__name__)


class _RuleSplitPass:
    """Cut the joined page text at every structural rule match.

    Leaves the prepared pages and their normalized text in ``meta`` for the
    breakpoint pass.
    """

    name = "rule_split"
    input_type = list
    output_type = list

    def __call__(self, a: Artifact) -> Artifact:
        options: SegmentationOptions = a.options
        pages = list(a.payload or ())
        if not pages:
            return a.with_payload([], pages=[], normalized=())

        mapped = build_page_map(pages)
        sink = as_sink(options.logger, logger)
        sink.debug(
            "[segmenter] page map built",
            {"contentLength": len(mapped.content), "pageCount": len(pages), "ruleCount": len(options.rules)},
        )
        segments = resolve_segments(
            mapped.content,
            mapped.page_map,
            options.rules,
            options.page_joiner,
            resolve_debug_config(options.debug),
            sink,
        )
        return a.with_payload(segments, pages=pages, normalized=mapped.normalized).with_metrics(
            self.name, segments=len(segments)
        )


rule_split = register(_RuleSplitPass())
