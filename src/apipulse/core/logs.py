"""Logging helpers shared by the core and the adapters."""

import logging

LIBRARY_LOGGER = "apipulse"

logging.getLogger(LIBRARY_LOGGER).addHandler(logging.NullHandler())


def get_logger(name: str) -> logging.Logger:
    """Return a logger for ``name`` under the library's logger hierarchy.

    Args:
        name: Usually the calling module's ``__name__``.

    Returns:
        A standard library Logger.
    """
    if name != LIBRARY_LOGGER and not name.startswith(f"{LIBRARY_LOGGER}."):
        name = f"{LIBRARY_LOGGER}.{name}"
    return logging.getLogger(name)


def log_exception(message: str, **attributes: str | int | float | bool) -> None:
    """Log ``message`` at ERROR with the active exception's traceback.

    Call from inside an ``except`` block.

    Args:
        message: The log message
        **attributes: Additional structured fields
    """
    get_logger(LIBRARY_LOGGER).error(message, exc_info=True, extra=attributes)
