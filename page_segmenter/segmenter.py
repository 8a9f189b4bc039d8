"""Top-level entry point: pages in, attributed segments out."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

import page_segmenter.passes  # noqa: F401  - registers the segmentation passes
from page_segmenter.config import SegmentationOptions, coerce_options
from page_segmenter.framework import DEFAULT_PIPELINE, Artifact, run_pipeline
from page_segmenter.models import PageLike, Segment, as_pages

logger = logging.getLogger(__name__)


def run_segmentation(
    pages: Iterable[PageLike],
    options: SegmentationOptions | Mapping[str, Any] | None = None,
    steps: Sequence[str] = DEFAULT_PIPELINE,
) -> Artifact:
    """Run ``steps`` over ``pages`` and return the final artifact (with metrics)."""

    opts = coerce_options(options)
    page_list = list(as_pages(pages))
    logger.debug("segmenting %d pages with %d rules", len(page_list), len(opts.rules))
    return run_pipeline(steps, Artifact(payload=page_list, meta={"options": opts}))


def segment_pages(
    pages: Iterable[PageLike],
    options: SegmentationOptions | Mapping[str, Any] | None = None,
) -> list[Segment]:
    """Split ``pages`` into segments according to ``options``.

    ``options`` may be a :class:`SegmentationOptions` or any mapping that
    validates into one (camelCase or snake_case keys). Structural rules run
    first; breakpoints then subdivide segments that exceed ``max_pages`` or
    ``max_content_length``.
    """

    return list(run_segmentation(pages, options).payload)


__all__ = ["run_segmentation", "segment_pages"]
