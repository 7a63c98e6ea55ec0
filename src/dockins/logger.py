"""Structured logging setup and log sinks.

Library code only calls ``structlog.get_logger(__name__)``; the process-wide
configuration happens once, from the command line entry point (or the
embedding application), through :func:`configure_logging`.

Engine process output is not logged through a global: every driver
operation takes a :class:`LogSink` and writes raw stderr/stdout bytes to it.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Protocol, runtime_checkable

import structlog


def configure_logging(level: str = "INFO") -> None:
    level_num = getattr(logging, level.upper(), logging.INFO)

    # Configure stdlib root logger first so structlog's filter_by_level works
    logging.basicConfig(level=level_num, format="%(message)s", stream=sys.stderr)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@runtime_checkable
class LogSink(Protocol):
    """Anything that accepts raw bytes: a file, ``sys.stderr.buffer``, a BytesIO."""

    def write(self, data: bytes, /) -> Any: ...


class NullSink:
    def write(self, data: bytes, /) -> int:
        return len(data)


class StructlogSink:
    """Line-buffering sink that emits each complete line as a structlog event."""

    def __init__(self, logger: Any = None, event: str = "engine output", **context: Any) -> None:
        self._logger = logger if logger is not None else structlog.get_logger("dockins.engine")
        self._event = event
        self._context = context
        self._pending = b""

    def write(self, data: bytes, /) -> int:
        self._pending += data
        *lines, self._pending = self._pending.split(b"\n")
        for line in lines:
            self._emit(line)
        return len(data)

    def flush(self) -> None:
        if self._pending:
            self._emit(self._pending)
            self._pending = b""

    def _emit(self, line: bytes) -> None:
        text = line.decode("utf-8", errors="replace").rstrip("\r")
        if text:
            self._logger.info(self._event, line=text, **self._context)
