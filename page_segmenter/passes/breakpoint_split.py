from __future__ import annotations

from page_segmenter.breakpoint_processor import apply_breakpoints
from page_segmenter.config import SegmentationOptions
from page_segmenter.debug_meta import resolve_debug_config
from page_segmenter.framework import Artifact, register


class _BreakpointSplitPass:
    name = "breakpoint_split"
    input_type = list
    output_type = list

    def __call__(self, a: Artifact) -> Artifact:
        meta = a.meta or {}
        options: SegmentationOptions = a.options
        if not options.breakpoints_enabled or not a.payload:
            return a

        segments = apply_breakpoints(
            a.payload,
            meta["pages"],
            meta["normalized"],
            breakpoints=options.breakpoints,
            max_pages=options.max_pages,
            max_content_length=options.max_content_length,
            prefer=options.prefer,
            page_joiner=options.page_joiner,
            debug=resolve_debug_config(options.debug),
            log=options.logger,
        )
        return a.with_payload(segments).with_metrics(
            self.name, before=len(a.payload), after=len(segments)
        )


breakpoint_split = register(_BreakpointSplitPass())
