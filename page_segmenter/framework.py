"""Registered segmentation passes threaded over an :class:`Artifact`.

A run is ``page_prepare`` -> ``rule_split`` -> ``breakpoint_split``. The
validated :class:`~page_segmenter.config.SegmentationOptions` travel in
``meta["options"]``; the rule pass leaves the prepared pages and their
normalized text in ``meta`` for the breakpoint pass. Every pass files its
counters under ``meta["metrics"][<pass name>]`` through
:meth:`Artifact.with_metrics`, so a caller reading the final artifact sees
one entry per pass that did work. Artifacts are never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import reduce
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Final, Mapping, Protocol, Sequence, Type, runtime_checkable

if TYPE_CHECKING:
    from page_segmenter.config import SegmentationOptions

DEFAULT_PIPELINE: Final = ("page_prepare", "rule_split", "breakpoint_split")


@dataclass(frozen=True)
class Artifact:
    """Pages or segments plus the options, intermediate state and metrics of a run."""

    payload: Any
    meta: Dict[str, Any] | None = None

    @property
    def options(self) -> "SegmentationOptions":
        try:
            return (self.meta or {})["options"]
        except KeyError:
            raise KeyError("artifact carries no segmentation options") from None

    @property
    def metrics(self) -> Dict[str, Dict[str, int]]:
        return dict((self.meta or {}).get("metrics", {}))

    def with_payload(self, payload: Any, **meta: Any) -> "Artifact":
        return Artifact(payload=payload, meta={**(self.meta or {}), **meta})

    def with_metrics(self, step: str, **counters: int) -> "Artifact":
        """Return a copy whose ``metrics[step]`` holds ``counters``."""
        return Artifact(
            payload=self.payload,
            meta={**(self.meta or {}), "metrics": {**self.metrics, step: dict(counters)}},
        )


@runtime_checkable
class Pass(Protocol):
    name: str
    input_type: Type
    output_type: Type

    def __call__(self, a: Artifact) -> Artifact:
        """Execute the pass."""
        ...


_REGISTRY: Mapping[str, Pass] = MappingProxyType({})


def register(p: Pass) -> Pass:
    """Register a pass by name; re-registering a name replaces it."""
    global _REGISTRY
    _REGISTRY = MappingProxyType({**dict(_REGISTRY), p.name: p})
    return p


def run_step(name: str, a: Artifact) -> Artifact:
    try:
        step = _REGISTRY[name]
    except KeyError:
        raise KeyError(f"unknown step: {name!r}") from None
    return step(a)


def run_pipeline(steps: Sequence[str], a: Artifact) -> Artifact:
    """Apply registered steps in order."""
    return reduce(lambda acc, s: run_step(s, acc), steps, a)


def registry() -> Dict[str, Pass]:
    """Shallow copy of the registry for inspection/testing."""
    return dict(_REGISTRY)


__all__ = ["Artifact", "DEFAULT_PIPELINE", "Pass", "register", "registry", "run_pipeline", "run_step"]
