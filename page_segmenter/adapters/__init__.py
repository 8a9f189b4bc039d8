from . import emit_jsonl, io_pages

__all__ = ["emit_jsonl", "io_pages"]
