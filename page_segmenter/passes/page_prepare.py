from __future__ import annotations

from typing import Iterable

from page_segmenter.config import SegmentationOptions
from page_segmenter.framework import Artifact, register
from page_segmenter.models import Page, PageLike, as_pages
from page_segmenter.preprocess import apply_preprocess_to_page
from page_segmenter.replace import apply_replacements


def prepare_pages(pages: Iterable[PageLike], options: SegmentationOptions) -> list[Page]:
    """Apply ``replace`` rules, then ``preprocess`` transforms, to every page."""

    replaced = apply_replacements(as_pages(pages), options.replace)
    if not options.preprocess:
        return replaced
    return [
        Page(p.id, apply_preprocess_to_page(p.content, p.id, options.preprocess)) for p in replaced
    ]


class _PagePreparePass:
    name = "page_prepare"
    input_type = list
    output_type = list

    def __call__(self, a: Artifact) -> Artifact:
        pages = prepare_pages(a.payload or (), a.options)
        changed = sum(1 for before, after in zip(as_pages(a.payload or ()), pages) if before != after)
        return a.with_payload(pages).with_metrics(self.name, pages=len(pages), changed=changed)


page_prepare = register(_PagePreparePass())
