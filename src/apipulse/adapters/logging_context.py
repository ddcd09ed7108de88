"""Request-scoped logging context.

Values set here (such as the request id) are stored in a ContextVar, so
concurrent requests handled on one event loop never see each other's context.
``RequestContextFilter`` copies them onto every log record.
"""

import logging
from contextvars import ContextVar
from typing import Any

_log_context: ContextVar[dict[str, Any] | None] = ContextVar(
    "apipulse_log_context", default=None
)


def get_log_context() -> dict[str, Any]:
    """Return a copy of the current context."""
    return dict(_log_context.get() or {})


def set_log_context(**values: Any) -> None:
    """Replace the current context with ``values``."""
    _log_context.set(dict(values))


def clear_log_context() -> None:
    _log_context.set(None)


class RequestContextFilter(logging.Filter):
    """Logging filter that adds the current context to each record.

    Records always get a ``request_id`` attribute (``"-"`` outside a
    request) so format strings can reference it unconditionally.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        context = _log_context.get() or {}
        for key, value in context.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        return True
