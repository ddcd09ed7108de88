"""Exceptions raised by the analytics core."""


class AnalyticsError(Exception):
    """Base class for analytics failures."""


class StoreQueryFailed(AnalyticsError):
    """The telemetry store rejected or failed a query.

    Attributes:
        status: HTTP status returned by the store, or None for transport
            failures.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.status} {self.message}"


class MalformedRow(StoreQueryFailed):
    """A store row is missing a field or carries a non-numeric value."""


class DataIntegrityError(AnalyticsError):
    """Aggregation input violates an invariant, e.g. a negative sample weight."""


class InvalidBucketFormat(AnalyticsError):
    """A caller-supplied bucket label is not of the form ``anon_<digits>``."""


class ValidationFailed(AnalyticsError):
    """Caller input failed validation before any store query was issued."""


class LookupFailed(AnalyticsError):
    """An identity lookup could not complete."""
