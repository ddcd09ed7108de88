"""Standard library logging setup for apipulse services."""

import logging
import sys

from apipulse.adapters.logging_context import RequestContextFilter
from apipulse.core.logs import LIBRARY_LOGGER

DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"


def configure_logging(
    level: str | int = "INFO",
    fmt: str = DEFAULT_FORMAT,
    stream=None,
) -> logging.Handler:
    """Attach a stream handler to the ``apipulse`` logger.

    Calling this again replaces the handler installed by the previous call
    instead of adding a second one.

    Args:
        level: Level name or number for the library logger.
        fmt: Format string; may reference ``%(request_id)s``.
        stream: Target stream (default: stderr).

    Returns:
        The installed handler.
    """
    logger = logging.getLogger(LIBRARY_LOGGER)
    for existing in list(logger.handlers):
        if getattr(existing, "_apipulse_handler", False):
            logger.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))
    handler.addFilter(RequestContextFilter())
    handler._apipulse_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    return handler
