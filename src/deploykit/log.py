"""Structured logging helpers.

Every record emitted by deploykit may carry three extras: ``flow`` (the run's
flow id), ``src`` (the emitting operation) and ``data`` (a mapping of
details). While a pipeline runs, :func:`flow_scope` publishes the flow id in
a context variable so records without an explicit ``flow`` still get one.
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional, TextIO

from .constants import KEY_LOGGER, LOGGER, LOGGER_NAME

_current_flow: ContextVar[Optional[str]] = ContextVar("deploykit_flow", default=None)


def current_flow() -> Optional[str]:
    return _current_flow.get()


@contextmanager
def flow_scope(flow: Optional[str]) -> Iterator[None]:
    token = _current_flow.set(flow)
    try:
        yield
    finally:
        _current_flow.reset(token)


class FlowFilter(logging.Filter):
    """Fills ``flow``, ``src`` and ``data`` on records that lack them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "flow", None) is None:
            record.flow = current_flow()
        if not hasattr(record, "src"):
            record.src = record.name
        if not hasattr(record, "data"):
            record.data = None
        return True


class StructuredFormatter(logging.Formatter):
    """Renders records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "flow": getattr(record, "flow", None),
            "src": getattr(record, "src", None),
            "message": record.getMessage(),
        }
        data = getattr(record, "data", None)
        if data is not None:
            payload["data"] = data
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: int = logging.INFO, stream: Optional[TextIO] = None, structured: bool = True) -> logging.Logger:
    """Attach a single stream handler to the ``deploykit`` logger.

    Calling it again replaces the handler installed by the previous call.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for h in list(logger.handlers):
        if getattr(h, "_deploykit", False):
            logger.removeHandler(h)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler._deploykit = True
    handler.addFilter(FlowFilter())
    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(flow)s] %(src)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def get_logger(container: Any = None) -> Any:
    """The ``logger`` container entry when present, else the library logger."""
    if container is not None:
        custom = container.get(KEY_LOGGER)
        if custom is not None:
            return custom
    return LOGGER


def drain(logger: Optional[logging.Logger] = None) -> None:
    """Flush every handler of the library logger; call before process exit."""
    logger = logger or logging.getLogger(LOGGER_NAME)
    for h in logger.handlers:
        h.flush()
