"""Shared query parameter parsing utilities for framework adapters.

Every function raises ValidationFailed for bad input, so callers reject a
request before any store query is issued.
"""

from apipulse.core.errors import ValidationFailed
from apipulse.core.models import Period
from apipulse.core.ranking import DEFAULT_LIMIT

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _first(params: dict[str, list[str]], name: str) -> str | None:
    values = params.get(name)
    return values[0] if values else None


def parse_period(value: str | None) -> Period:
    """Parse the ``period`` parameter, defaulting to ``hour``."""
    if value is None or value == "":
        return Period.HOUR
    try:
        return Period(value)
    except ValueError as e:
        raise ValidationFailed('Invalid period. Use "hour" or "day".') from e


def parse_limit(value: str | None, default: int = DEFAULT_LIMIT) -> int:
    """Parse the ``limit`` parameter as a positive integer."""
    if value is None or value == "":
        return default
    try:
        limit = int(value)
    except ValueError as e:
        raise ValidationFailed(
            f"Invalid limit {value!r}. Use a positive integer."
        ) from e
    if limit < 1:
        raise ValidationFailed(f"Invalid limit {value!r}. Use a positive integer.")
    return limit


def parse_flag(value: str | None, name: str) -> bool:
    if value is None:
        return False
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValidationFailed(f"Invalid {name} {value!r}. Use true or false.")


def require(value: str | None, name: str) -> str:
    """Return ``value`` or reject the request when it is missing or blank."""
    if value is None or not value.strip():
        raise ValidationFailed(f"{name} parameter is required")
    return value


def _parse_period_param(params: dict[str, list[str]]) -> Period:
    return parse_period(_first(params, "period"))


def _parse_limit_param(params: dict[str, list[str]], default: int) -> int:
    return parse_limit(_first(params, "limit"), default)


def _parse_required_param(params: dict[str, list[str]], name: str) -> str:
    return require(_first(params, name), name)


def _parse_flag_param(params: dict[str, list[str]], name: str) -> bool:
    return parse_flag(_first(params, name), name)
