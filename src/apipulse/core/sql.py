"""Helpers for rendering values into Analytics Engine SQL text."""

import re
from datetime import timedelta

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Largest unit first so 3600s renders as '1' HOUR rather than '60' MINUTE.
_INTERVAL_UNITS = (("DAY", 86400), ("HOUR", 3600), ("MINUTE", 60), ("SECOND", 1))


def quote_literal(value: str) -> str:
    """Quote ``value`` as a single-quoted SQL string literal.

    Backslashes and single quotes are escaped so caller-supplied keys cannot
    terminate the literal.
    """
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def is_identifier(name: str) -> bool:
    """Return True if ``name`` is safe to interpolate as a dataset name."""
    return bool(_IDENTIFIER.match(name))


def interval_literal(duration: timedelta) -> str:
    """Render a whole-second duration as an ``INTERVAL 'n' UNIT`` literal.

    Raises:
        ValueError: If the duration is not a positive whole number of seconds.
    """
    seconds = duration.total_seconds()
    if seconds <= 0 or seconds != int(seconds):
        raise ValueError(f"Interval must be a positive whole second count: {duration}")
    seconds = int(seconds)
    unit, size = next((u, s) for u, s in _INTERVAL_UNITS if seconds % s == 0)
    return f"INTERVAL '{seconds // size}' {unit}"
