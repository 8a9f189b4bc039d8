from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import typer

from page_segmenter.adapters import emit_jsonl, io_pages
from page_segmenter.config import load_options
from page_segmenter.segmenter import run_segmentation
from page_segmenter.tokens import TOKEN_PATTERNS
from page_segmenter.validation import format_validation_report, validate_rules


def _exit_with_error(exc: Exception) -> None:
    """Print ``exc`` to stderr and exit with status 1."""
    print(f"error: {exc}", file=sys.stderr)
    raise typer.Exit(1)


def _safe(func: Callable[[], None]) -> None:
    """Invoke ``func`` and exit non-zero on any exception."""
    try:
        func()
    except typer.Exit:
        raise
    except Exception as exc:
        _exit_with_error(exc)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _cli_overrides(
    max_pages: int | None, max_content_length: int | None, debug: bool
) -> dict[str, Any]:
    return {
        k: v
        for k, v in {
            "max_pages": max_pages,
            "max_content_length": max_content_length,
            "debug": True if debug else None,
        }.items()
        if v is not None
    }


def _format_metrics(metrics: Mapping[str, Mapping[str, int]]) -> str:
    return "\n".join(
        f"{name}: " + ", ".join(f"{k}={v}" for k, v in values.items())
        for name, values in metrics.items()
    )


def _run_segment(
    pages_file: Path,
    options_file: Path | None,
    max_pages: int | None,
    max_content_length: int | None,
    debug: bool,
    out: Path | None,
    verbose: bool,
) -> None:
    _configure_logging(verbose)
    options = load_options(
        options_file, overrides=_cli_overrides(max_pages, max_content_length, debug)
    )
    result = run_segmentation(io_pages.read_pages(pages_file), options)
    if out:
        count = emit_jsonl.write(result.payload, out)
        print(f"segment: wrote {count} segments to {out}", file=sys.stderr)
    else:
        emit_jsonl.write_stream(result.payload, sys.stdout)
    if verbose:
        print(_format_metrics((result.meta or {}).get("metrics", {})), file=sys.stderr)


def _run_validate(options_file: Path) -> None:
    options = load_options(options_file)
    lines = format_validation_report(validate_rules(options.rules))
    if not lines:
        print("validate: OK")
        return
    print("\n".join(lines))
    raise typer.Exit(1)


app = typer.Typer(add_completion=False, no_args_is_help=True)


@app.command()
def segment(
    pages_file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    options_file: Path | None = typer.Option(None, "--options"),
    max_pages: int | None = typer.Option(None, "--max-pages"),
    max_content_length: int | None = typer.Option(None, "--max-content-length"),
    debug: bool = typer.Option(False, "--debug"),
    out: Path | None = typer.Option(None, "--out"),
    verbose: bool = typer.Option(False, "--verbose"),
) -> None:
    """Segment PAGES_FILE and emit JSONL segments."""
    _safe(
        lambda: _run_segment(
            pages_file, options_file, max_pages, max_content_length, debug, out, verbose
        )
    )


@app.command()
def validate(
    options_file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
) -> None:
    """Report authoring problems in the rules of OPTIONS_FILE."""
    _safe(lambda: _run_validate(options_file))


@app.command()
def tokens() -> None:
    """Print the template token table."""
    print(json.dumps(dict(TOKEN_PATTERNS), ensure_ascii=False, indent=2))


if __name__ == "__main__":
    app()
