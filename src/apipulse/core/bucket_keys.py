"""Codec for anonymous-traffic bucket keys.

The proxy writes anonymous traffic under composite index keys of the form
``anon_{bucket_id}_{status_code}``. This module extracts bucket ids from those
keys and builds the half-open string range that selects every status-code
suffix of one bucket.

Matching is never done with ``LIKE 'anon_1_%'``-style patterns; ranges are
half-open intervals over the key prefix, so ``anon_1_`` never picks up
``anon_10_200``.
"""

import re
from dataclasses import dataclass

from apipulse.core.errors import InvalidBucketFormat
from apipulse.core.models import Anonymous
from apipulse.core.sql import quote_literal

_COMPOSITE_KEY = re.compile(r"^anon_(\d+)_")
_BUCKET_LABEL = re.compile(r"^anon_(\d+)$")

_SEPARATOR = "_"
_SEPARATOR_SUCCESSOR = chr(ord(_SEPARATOR) + 1)


@dataclass(frozen=True)
class KeyRange:
    """Half-open lexicographic range ``[lower, upper)`` over index keys."""

    lower: str
    upper: str

    def contains(self, key: str) -> bool:
        return self.lower <= key < self.upper

    def predicate(self, column: str) -> str:
        """Render the range as a SQL predicate on ``column``."""
        return (
            f"{column} >= {quote_literal(self.lower)} "
            f"AND {column} < {quote_literal(self.upper)}"
        )


def parse_bucket_key(composite_key: str) -> int | None:
    """Extract the bucket id from a composite index key.

    Args:
        composite_key: Index key such as ``anon_12_404``.

    Returns:
        The bucket id, or None when the key is not anonymous traffic. The same
        column carries authenticated keys in mixed queries, so callers skip
        None results.
    """
    match = _COMPOSITE_KEY.match(composite_key)
    if match is None:
        return None
    return int(match.group(1))


def parse_bucket_label(label: str) -> int:
    """Parse a public bucket label (``anon_12``) supplied by a caller.

    Raises:
        InvalidBucketFormat: If the label does not match ``anon_<digits>``.
    """
    match = _BUCKET_LABEL.match(label)
    if match is None:
        raise InvalidBucketFormat(f"Invalid bucket format: {label!r}")
    return int(match.group(1))


def range_for_bucket(bucket_id: int) -> KeyRange:
    """Return the key range holding every status suffix of ``bucket_id``.

    The range is ``[anon_{id}_, anon_{id}`)``: backtick is the character
    right after underscore, so the range holds exactly the keys starting
    with ``anon_{id}_``. Bounding by the next id instead (``anon_{id+1}_``)
    would let ``anon_20_200`` into bucket 1, since digits sort below
    underscore.

    Raises:
        InvalidBucketFormat: If ``bucket_id`` is negative.
    """
    if bucket_id < 0:
        raise InvalidBucketFormat(f"Bucket id must be non-negative: {bucket_id}")
    prefix = Anonymous(bucket_id).bucket
    return KeyRange(lower=prefix + _SEPARATOR, upper=prefix + _SEPARATOR_SUCCESSOR)
