"""Ranking, truncation and display rounding of aggregated entities."""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from typing import TypeVar

from apipulse.core.errors import ValidationFailed
from apipulse.core.models import AggregatedEntity

DEFAULT_LIMIT = 10

E = TypeVar("E", bound=AggregatedEntity)


def rank(entities: Iterable[E], limit: int = DEFAULT_LIMIT) -> list[E]:
    """Return the ``limit`` entities with the most requests, largest first.

    Ties keep their input order (``sorted`` is stable). The store does not
    return rows in a deterministic order, so neither is the order of ties.

    Raises:
        ValidationFailed: If ``limit`` is less than 1.
    """
    if limit < 1:
        raise ValidationFailed(f"limit must be a positive integer, got {limit}")
    ordered = sorted(entities, key=lambda entity: entity.total_requests, reverse=True)
    return ordered[:limit]


def round_half_up(value: float, places: int = 2) -> float:
    """Round for display, halves away from zero (``0.125 -> 0.13``)."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_count(value: float) -> int:
    return int(Decimal(repr(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))
