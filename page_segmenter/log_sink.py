"""Route engine diagnostics to a caller-supplied logger.

Callers may pass any object exposing some of ``trace``, ``debug``, ``info``,
``warn``/``warning`` and ``error``. Missing methods are skipped. With no sink
the records go to the standard :mod:`logging` tree.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

logger = logging.getLogger(__name__)

_LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}
_ALIASES = {"warn": ("warning", "warn")}


class LogSink:
    """Uniform ``trace/debug/info/warn/error`` facade over an optional target."""

    def __init__(self, target: Any = None, fallback: logging.Logger | None = None) -> None:
        self._target = target
        self._fallback = fallback or logger

    @property
    def enabled(self) -> bool:
        """Whether a ``trace`` record would reach anything."""
        target = self._target
        if target is None:
            return self._fallback.isEnabledFor(TRACE)
        if isinstance(target, (logging.Logger, logging.LoggerAdapter)):
            return target.isEnabledFor(TRACE)
        return self._method("trace") is not None

    def _method(self, level: str) -> Callable[..., Any] | None:
        names = _ALIASES.get(level, (level,))
        return next(
            (getattr(self._target, n) for n in names if callable(getattr(self._target, n, None))),
            None,
        )

    def _emit(self, level: str, message: str, context: Mapping[str, Any] | None) -> None:
        target = self._target
        if target is None or isinstance(target, (logging.Logger, logging.LoggerAdapter)):
            log = target if target is not None else self._fallback
            if context:
                log.log(_LEVELS[level], "%s %s", message, dict(context))
            else:
                log.log(_LEVELS[level], "%s", message)
            return
        method = self._method(level)
        if method is None:
            return
        if context:
            method(message, dict(context))
        else:
            method(message)

    def trace(self, message: str, context: Mapping[str, Any] | None = None) -> None:
        self._emit("trace", message, context)

    def debug(self, message: str, context: Mapping[str, Any] | None = None) -> None:
        self._emit("debug", message, context)

    def info(self, message: str, context: Mapping[str, Any] | None = None) -> None:
        self._emit("info", message, context)

    def warn(self, message: str, context: Mapping[str, Any] | None = None) -> None:
        self._emit("warn", message, context)

    warning = warn

    def error(self, message: str, context: Mapping[str, Any] | None = None) -> None:
        self._emit("error", message, context)


def as_sink(target: Any = None, fallback: logging.Logger | None = None) -> LogSink:
    return target if isinstance(target, LogSink) else LogSink(target, fallback)


__all__ = ["LogSink", "TRACE", "as_sink"]
