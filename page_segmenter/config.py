"""Declarative segmentation options.

Options are plain data: they can be built in code, loaded from YAML, or
overridden through ``PAGE_SEGMENTER__<KEY>`` environment variables. Field
names are snake_case in Python; option files use the camelCase spelling
(``lineStartsAfter``, ``maxPages``). Both spellings are accepted.
"""

from __future__ import annotations

import os
import pathlib
import warnings
from functools import reduce
from importlib import import_module
from typing import Any, Dict, Final, Iterable, Literal, Mapping, Tuple, Union, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from page_segmenter.page_utils import PageRange, parse_page_ranges

yaml = cast(Any, import_module("yaml"))

MIN_CONTENT_LENGTH: Final = 50
DEFAULT_DEBUG_META_KEY: Final = "_debug"
ENV_PREFIX: Final = "PAGE_SEGMENTER__"

PATTERN_FIELDS: Final = (
    "line_starts_with",
    "line_starts_after",
    "line_ends_with",
    "template",
    "regex",
)
PATTERN_TYPE_ERROR: Final = (
    "Rule must specify exactly one pattern type: "
    "regex, template, lineStartsWith, lineStartsAfter, or lineEndsWith"
)

PreprocessKind = Literal["removeZeroWidth", "condenseEllipsis", "fixTrailingWaw"]


class _Options(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        extra="forbid",
        frozen=True,
        populate_by_name=True,
    )


class _PageConstraints(_Options):
    min_page: int | None = Field(default=None, alias="min")
    max_page: int | None = Field(default=None, alias="max")
    exclude: Tuple[PageRange, ...] = ()

    @field_validator("exclude", mode="before")
    @classmethod
    def _parse_exclude(cls, value: Any) -> Any:
        """Accept ``"1,3-5"`` as well as ``[1, [3, 5]]``."""
        return parse_page_ranges(value) if isinstance(value, str) else value


class SplitRule(_PageConstraints):
    """A structural rule: one pattern shape plus behaviour flags."""

    regex: str | None = None
    template: str | None = None
    line_starts_with: Tuple[str, ...] | None = None
    line_starts_after: Tuple[str, ...] | None = None
    line_ends_with: Tuple[str, ...] | None = None
    split: Literal["at", "after"] = "at"
    occurrence: Literal["all", "first", "last"] = "all"
    fuzzy: bool | None = None
    max_span: int | None = Field(default=None, ge=0)
    page_start_guard: str | None = None
    meta: Dict[str, Any] | None = None

    @model_validator(mode="after")
    def _exactly_one_pattern(self) -> "SplitRule":
        if len(self.pattern_fields) != 1:
            raise ValueError(PATTERN_TYPE_ERROR)
        return self

    @property
    def pattern_fields(self) -> tuple[str, ...]:
        """Names of the pattern fields that carry a non-empty value."""
        return tuple(name for name in PATTERN_FIELDS if getattr(self, name))

    @property
    def pattern_type(self) -> str:
        """The option-file spelling of the pattern field (``lineStartsAfter``)."""
        fields = self.pattern_fields
        return to_camel(fields[0]) if fields else "regex"

    @property
    def patterns(self) -> tuple[str, ...]:
        value = getattr(self, self.pattern_fields[0]) if self.pattern_fields else None
        if value is None:
            return ()
        return (value,) if isinstance(value, str) else tuple(value)


class BreakpointRule(_PageConstraints):
    """A fallback split pattern for oversized segments.

    ``pattern`` is token-expanded, ``regex`` is used verbatim, ``words`` is a
    list of literal phrases (trailing whitespace is significant). The empty
    ``pattern`` means "break at the page boundary".
    """

    pattern: str | None = None
    regex: str | None = None
    words: Tuple[str, ...] | None = None
    split: Literal["at", "after"] | None = None
    skip_when: str | None = None

    @model_validator(mode="after")
    def _one_source(self) -> "BreakpointRule":
        sources = [v for v in (self.pattern, self.regex, self.words) if v is not None]
        if len(sources) != 1:
            raise ValueError("Breakpoint must specify exactly one of: pattern, regex, or words")
        if self.words is not None and not any(w.strip() for w in self.words):
            raise ValueError("Breakpoint words must contain at least one non-empty word")
        return self

    @property
    def is_page_boundary(self) -> bool:
        return self.pattern == ""

    @property
    def effective_split(self) -> Literal["at", "after"]:
        if self.split:
            return self.split
        return "at" if self.words is not None else "after"

    @property
    def source(self) -> str | None:
        return self.pattern if self.pattern is not None else self.regex


class PreprocessRule(_Options):
    type: PreprocessKind
    mode: Literal["strip", "space"] = "strip"
    min_page: int | None = Field(default=None, alias="min")
    max_page: int | None = Field(default=None, alias="max")


class Replacement(_Options):
    regex: str
    replacement: str = ""
    flags: str | None = None
    page_ids: Tuple[int, ...] | None = None


class DebugOptions(_Options):
    meta_key: str = DEFAULT_DEBUG_META_KEY
    include: Tuple[Literal["rule", "breakpoint"], ...] = ("rule", "breakpoint")


class SegmentationOptions(_Options):
    """Everything :func:`page_segmenter.segment_pages` understands."""

    rules: Tuple[SplitRule, ...] = ()
    max_pages: int | None = Field(default=None, ge=0)
    max_content_length: int | None = None
    breakpoints: Tuple[BreakpointRule, ...] = ()
    prefer: Literal["longer", "shorter"] = "longer"
    page_joiner: Literal["space", "newline"] = "space"
    preprocess: Tuple[PreprocessRule, ...] = ()
    replace: Tuple[Replacement, ...] = ()
    debug: Union[bool, DebugOptions] = False
    logger: Any = Field(default=None, exclude=True)

    @field_validator("max_content_length")
    @classmethod
    def _content_length_floor(cls, value: int | None) -> int | None:
        if value is not None and value < MIN_CONTENT_LENGTH:
            raise ValueError(
                f"maxContentLength must be at least {MIN_CONTENT_LENGTH}, got {value}"
            )
        return value

    @field_validator("breakpoints", mode="before")
    @classmethod
    def _string_breakpoints(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return [{"pattern": v} if isinstance(v, str) else v for v in value]
        return value

    @field_validator("preprocess", mode="before")
    @classmethod
    def _string_transforms(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return [{"type": v} if isinstance(v, str) else v for v in value]
        return value

    @property
    def breakpoints_enabled(self) -> bool:
        limited = self.max_pages is not None or self.max_content_length is not None
        return limited and bool(self.breakpoints)


def coerce_options(
    options: SegmentationOptions | Mapping[str, Any] | None,
) -> SegmentationOptions:
    """Return ``options`` as a validated :class:`SegmentationOptions`."""
    if isinstance(options, SegmentationOptions):
        return options
    return SegmentationOptions.model_validate(dict(options or {}))


def _read_yaml(path: str | os.PathLike | None) -> Dict[str, Any]:
    """Return a dict from YAML or {} if path is None/missing/empty."""
    if not path:
        return {}
    p = pathlib.Path(path)
    if not p.exists():
        return {}
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise TypeError(f"{p.name} must contain a top-level mapping")
    return data


def _env_overrides() -> Dict[str, Any]:
    """
    Map PAGE_SEGMENTER__MAX_PAGES=10 -> {"max_pages": 10}.
    Values are YAML-coerced (so 'true', '42' etc. become bool/int).
    """
    out: Dict[str, Any] = {}
    for k, v in os.environ.items():
        if not k.startswith(ENV_PREFIX):
            continue
        key = k[len(ENV_PREFIX) :].lower()
        try:
            val = yaml.safe_load(v)
        except yaml.YAMLError:
            val = v
        out[key] = val
    return out


def _known_keys() -> frozenset[str]:
    fields = SegmentationOptions.model_fields
    return frozenset(
        name for field_name, info in fields.items() for name in (field_name, info.alias) if name
    )


def _warn_unknown_options(opts: Mapping[str, Any]) -> Dict[str, Any]:
    """Warn about and drop keys that are not segmentation options."""
    known = _known_keys()
    unknown = [key for key in opts if key not in known]
    if unknown:
        warnings.warn(
            f"Unknown segmentation options: {', '.join(sorted(unknown))}",
            stacklevel=3,
        )
    return {k: v for k, v in opts.items() if k in known}


def _canonical(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Key ``data`` by field name so camelCase and snake_case overrides merge."""
    by_alias = {
        info.alias: name for name, info in SegmentationOptions.model_fields.items() if info.alias
    }
    return {by_alias.get(k, k): v for k, v in data.items()}


def load_options(
    path: str | os.PathLike | None = "segmenter.yaml",
    overrides: Mapping[str, Any] | None = None,
) -> SegmentationOptions:
    """Load YAML + env/CLI overrides into validated SegmentationOptions."""
    sources: Iterable[Dict[str, Any]] = (
        _canonical(d) for d in (_read_yaml(path), _env_overrides(), overrides) if d
    )
    acc: Dict[str, Any] = {}
    merged = reduce(lambda base, extra: {**base, **extra}, sources, acc)
    return SegmentationOptions.model_validate(_warn_unknown_options(merged))


__all__ = [
    "BreakpointRule",
    "DebugOptions",
    "MIN_CONTENT_LENGTH",
    "PATTERN_TYPE_ERROR",
    "PreprocessRule",
    "Replacement",
    "SegmentationOptions",
    "SplitRule",
    "coerce_options",
    "load_options",
]
