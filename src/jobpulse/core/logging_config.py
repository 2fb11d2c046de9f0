"""Process-wide logging setup for the jobpulse service.

`configure_logging` is called once by the composition root. It routes
DEBUG/INFO records to stdout and WARNING+ to stderr and stamps each record
with the request correlation id. Managers only emit through `LoggingPort` or
module loggers and never touch handlers themselves.

Reconciler ticks and health probes run outside any request, so their records
carry the placeholder id "-".
"""

from __future__ import annotations

import contextvars
import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional, TextIO

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default="-"
)

DEFAULT_FORMAT = "[%(asctime)s] %(levelname)s %(name)s %(correlation_id)s: %(message)s"

# Third-party loggers that are chatty while the backend is unreachable
_NOISY_LOGGERS = ("aiohttp.client", "aiohttp.internal", "asyncio")


def coerce_level(level: int | str | None) -> int:
    """Map "debug", "INFO", 10 or None onto a numeric level (default INFO)."""
    if isinstance(level, int):
        return level
    if not level:
        return logging.INFO
    return logging.getLevelNamesMapping().get(str(level).strip().upper(), logging.INFO)


@contextmanager
def correlation_scope(correlation_id: str) -> Iterator[str]:
    """Bind `correlation_id` to every record emitted inside the block."""
    token = correlation_id_var.set(correlation_id)
    try:
        yield correlation_id
    finally:
        correlation_id_var.reset(token)


class _RecordContextFilter(logging.Filter):
    """Keeps records within [min_level, max_level] and adds the correlation id."""

    def __init__(self, min_level: int = logging.NOTSET, max_level: int = logging.CRITICAL):
        super().__init__()
        self.min_level = min_level
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get()
        return self.min_level <= record.levelno <= self.max_level


def _stream_handler(
    stream: TextIO, formatter: logging.Formatter, min_level: int, max_level: int
) -> logging.Handler:
    handler = logging.StreamHandler(stream=stream)
    handler.addFilter(_RecordContextFilter(min_level, max_level))
    handler.setFormatter(formatter)
    return handler


def configure_logging(
    level: int | str | None = None,
    fmt: Optional[str] = None,
    quiet_access_log: bool = False,
) -> int:
    """Install the stdout/stderr sinks on the root logger and return the level used.

    Safe to call again (e.g. on reload): previously installed handlers are
    replaced rather than duplicated. Uvicorn inherits this setup when started
    with `log_config=None`.
    """
    numeric_level = coerce_level(level)
    formatter = logging.Formatter(fmt or DEFAULT_FORMAT)

    root = logging.getLogger()
    root.setLevel(numeric_level)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    root.addHandler(_stream_handler(sys.stdout, formatter, logging.NOTSET, logging.INFO))
    root.addHandler(_stream_handler(sys.stderr, formatter, logging.WARNING, logging.CRITICAL))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.INFO))
    if quiet_access_log:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logging.getLogger("jobpulse").debug("[logging] configured level=%s", logging.getLevelName(numeric_level))
    return numeric_level
