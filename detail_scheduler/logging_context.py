"""Correlation ids for booking requests, weather sweeps and reminder runs.

Each unit of work gets one id, and every log line it produces carries it:

* an API request uses the caller's ``X-Request-ID`` or a fresh ``REQ-`` id,
  echoed back in the response header;
* one weather sweep is ``SWEEP-``, so the calendar read, every forecast call
  and every alert of that sweep group together;
* one pass over due reminders is ``REMIND-``.

Log lines outside any unit of work (startup, wiring) show ``-``.

Usage:
    from detail_scheduler.logging_context import SWEEP_PREFIX, get_request_logger, new_request_id

    logger = get_request_logger(__name__)
    new_request_id(SWEEP_PREFIX)
    logger.info("Weather sweep over %d upcoming appointments", 3)
    # → ... INFO [SWEEP-1a2b3c4d]: Weather sweep over 3 upcoming appointments
"""

import logging
import uuid
from contextvars import ContextVar

REQUEST_PREFIX = "REQ"
SWEEP_PREFIX = "SWEEP"
REMINDER_PREFIX = "REMIND"

_request_id: ContextVar[str] = ContextVar("request_id", default="-")


def set_request_id(request_id: str) -> None:
    """Adopt an id supplied by the caller, e.g. an inbound ``X-Request-ID``."""
    _request_id.set(request_id)


def get_request_id() -> str:
    return _request_id.get()


def new_request_id(prefix: str) -> str:
    """Start a new unit of work; returns the id, e.g. ``SWEEP-1a2b3c4d``."""
    request_id = f"{prefix}-{uuid.uuid4().hex[:8]}"
    set_request_id(request_id)
    return request_id


class RequestIdFilter(logging.Filter):
    """Stamps ``record.request_id`` for the ``%(request_id)s`` format field."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True


def get_request_logger(name: str) -> logging.Logger:
    """Module logger whose records always carry a ``request_id``.

    Handlers configured by ``load_config`` also stamp records, so this only
    matters for loggers used before or without that configuration.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, RequestIdFilter) for f in logger.filters):
        logger.addFilter(RequestIdFilter())
    return logger
