"""Join ranked entities with API key owner records."""

import asyncio
from collections.abc import Sequence

from apipulse.core.cache import TTLCache
from apipulse.core.errors import LookupFailed
from apipulse.core.logs import get_logger
from apipulse.core.models import (
    AggregatedEntity,
    Authenticated,
    EnrichedEntity,
    IdentityRecord,
)
from apipulse.core.ports import IdentityLookupPort

logger = get_logger(__name__)

IdentityCache = TTLCache[str, IdentityRecord | None]

_MISSING = object()

MAX_CONCURRENT_LOOKUPS = 16


async def _lookup(
    api_key: str,
    lookup: IdentityLookupPort,
    cache: IdentityCache | None,
) -> IdentityRecord | None:
    if cache is not None:
        # One read: an entry expiring between two reads must count as a miss.
        cached = cache.get(api_key, _MISSING)  # type: ignore[arg-type]
        if cached is not _MISSING:
            return cached
    try:
        record = await lookup.lookup(api_key)
    except LookupFailed:
        # Lookup failures never fail the response.
        logger.warning(
            "Identity lookup failed; returning unknown identity",
            exc_info=True,
            extra={"api_key_prefix": api_key[:8]},
        )
        return None
    if cache is not None:
        cache.set(api_key, record)
    return record


async def enrich(
    entities: Sequence[AggregatedEntity],
    lookup: IdentityLookupPort,
    cache: IdentityCache | None = None,
    max_concurrency: int = MAX_CONCURRENT_LOOKUPS,
) -> list[EnrichedEntity]:
    """Attach identity records to already-ranked entities.

    Lookups run concurrently, at most ``max_concurrency`` at a time, so a
    large ``limit`` cannot flood the identity store. Output order matches input
    order. Anonymous entities and keys with nothing on file get
    ``identity=None``, as do keys whose lookup failed.

    Args:
        entities: Ranked, truncated entities.
        lookup: Identity store.
        cache: Optional cache of lookup results, including absences.
        max_concurrency: Upper bound on lookups in flight.

    Returns:
        One EnrichedEntity per input entity, in the same order.
    """

    semaphore = asyncio.Semaphore(max_concurrency)

    async def resolve(entity: AggregatedEntity) -> EnrichedEntity:
        if not isinstance(entity.identity, Authenticated):
            return EnrichedEntity(entity=entity)
        async with semaphore:
            record = await _lookup(entity.identity.api_key, lookup, cache)
        return EnrichedEntity(entity=entity, identity=record)

    return list(await asyncio.gather(*(resolve(entity) for entity in entities)))
