"""Unit tests for sample-weighted aggregation and status breakdowns."""

import pytest

from apipulse.core.aggregation import (
    aggregate_buckets,
    aggregate_rows,
    status_breakdown,
)
from apipulse.core.coercion import anonymous_rows
from apipulse.core.errors import DataIntegrityError
from apipulse.core.models import Anonymous, Authenticated, RawTelemetryRow
from apipulse.core.ranking import round_half_up
from tests.helpers import anonymous_record


def _row(
    identity,
    status: int,
    weight: float,
    rt_weighted: float,
    success: float,
    ip: str | None = None,
) -> RawTelemetryRow:
    return RawTelemetryRow(
        identity=identity,
        status_code=status,
        sample_weight=weight,
        response_time_weighted=rt_weighted,
        success_weight=success,
        ip_sample=ip,
    )


class TestAggregateRows:
    """Tests for aggregate_rows()."""

    @pytest.mark.tier(0)
    @pytest.mark.core
    def test_merges_status_groups_of_one_key(self) -> None:
        k1 = Authenticated("k1")
        rows = [_row(k1, 200, 10, 1500, 10), _row(k1, 500, 2, 400, 0)]

        [entity] = aggregate_rows(rows, period_seconds=3600)

        assert entity.key == "k1"
        assert entity.total_requests == 12
        assert round_half_up(entity.avg_response_time_ms) == 158.33
        assert round_half_up(entity.success_rate_percent) == 83.33

    @pytest.mark.tier(0)
    @pytest.mark.core
    def test_counts_are_weights_not_rows(self) -> None:
        k1 = Authenticated("k1")
        rows = [_row(k1, 200, 50, 500, 50)]

        [entity] = aggregate_rows(rows, period_seconds=100)

        assert entity.total_requests == 50
        assert entity.requests_per_second == 0.5

    @pytest.mark.tier(0)
    @pytest.mark.core
    def test_all_errors_give_zero_success_rate(self) -> None:
        k1 = Authenticated("k1")
        rows = [_row(k1, 500, 3, 30, 0), _row(k1, 404, 1, 10, 0)]

        [entity] = aggregate_rows(rows, period_seconds=3600)

        assert entity.success_rate_percent == 0.0

    @pytest.mark.tier(0)
    @pytest.mark.core
    def test_zero_weight_identities_are_dropped(self) -> None:
        rows = [
            _row(Authenticated("k1"), 200, 0, 0, 0),
            _row(Authenticated("k2"), 200, 1, 5, 1),
        ]

        entities = aggregate_rows(rows, period_seconds=3600)

        assert [entity.key for entity in entities] == ["k2"]

    @pytest.mark.tier(0)
    @pytest.mark.core
    def test_negative_weight_raises(self) -> None:
        rows = [_row(Authenticated("k1"), 200, -1, 0, 0)]

        with pytest.raises(DataIntegrityError, match="Negative sample weight"):
            aggregate_rows(rows, period_seconds=3600)

    @pytest.mark.tier(0)
    @pytest.mark.core
    def test_success_rate_is_clamped(self) -> None:
        rows = [_row(Authenticated("k1"), 200, 2, 20, 3)]

        [entity] = aggregate_rows(rows, period_seconds=3600)

        assert entity.success_rate_percent == 100.0

    @pytest.mark.tier(0)
    @pytest.mark.core
    def test_empty_input(self) -> None:
        assert aggregate_rows([], period_seconds=3600) == []


class TestAggregateBuckets:
    """Tests for aggregate_buckets()."""

    @pytest.mark.tier(0)
    @pytest.mark.core
    def test_collapses_status_keys_into_one_bucket(self) -> None:
        records = [
            anonymous_record(3, 200, 5, 10),
            anonymous_record(3, 404, 1, 10),
            anonymous_record(30, 200, 7, 10),
        ]

        buckets = aggregate_buckets(anonymous_rows(records), period_seconds=3600)
        by_id = {bucket.bucket_id: bucket for bucket in buckets}

        assert by_id[3].total_requests == 6
        assert by_id[30].total_requests == 7
        assert by_id[3].bucket == "anon_3"

    @pytest.mark.tier(0)
    @pytest.mark.core
    def test_ip_sample_is_deterministic(self) -> None:
        rows = [
            _row(Anonymous(1), 200, 1, 1, 1, ip="10.0.0.9"),
            _row(Anonymous(1), 200, 1, 1, 1, ip="10.0.0.2"),
        ]

        forward = aggregate_buckets(rows, period_seconds=60)
        backward = aggregate_buckets(list(reversed(rows)), period_seconds=60)

        assert forward[0].ip_sample == backward[0].ip_sample == "10.0.0.2"

    @pytest.mark.tier(0)
    @pytest.mark.core
    def test_ignores_authenticated_rows(self) -> None:
        rows = [
            _row(Authenticated("k1"), 200, 4, 4, 4),
            _row(Anonymous(2), 200, 1, 1, 1),
        ]

        buckets = aggregate_buckets(rows, period_seconds=60)

        assert [bucket.bucket_id for bucket in buckets] == [2]
        assert buckets[0].identity == Anonymous(2)
        assert buckets[0].bucket == "anon_2"

    @pytest.mark.tier(0)
    @pytest.mark.core
    def test_negative_weight_in_bucket_raises(self) -> None:
        with pytest.raises(DataIntegrityError):
            aggregate_buckets([_row(Anonymous(2), 200, -1, 0, 0)], 60)

    @pytest.mark.tier(0)
    @pytest.mark.core
    def test_missing_ip_sample(self) -> None:
        [bucket] = aggregate_buckets([_row(Anonymous(5), 200, 1, 1, 1)], 60)

        assert bucket.ip_sample is None


class TestStatusBreakdown:
    """Tests for status_breakdown()."""

    @pytest.mark.tier(0)
    @pytest.mark.core
    def test_percentages_sorted_by_weight(self) -> None:
        result = status_breakdown([(500, 1), (200, 3)])

        assert [(item.status_code, item.percentage) for item in result] == [
            (200, 75.0),
            (500, 25.0),
        ]

    @pytest.mark.tier(0)
    @pytest.mark.core
    def test_merges_duplicate_statuses(self) -> None:
        [item] = status_breakdown([(200, 1), (200, 2)])

        assert item.request_count == 3
        assert item.percentage == 100.0

    @pytest.mark.tier(0)
    @pytest.mark.core
    def test_ties_ordered_by_status_code(self) -> None:
        result = status_breakdown([(404, 1), (200, 1)])

        assert [item.status_code for item in result] == [200, 404]

    @pytest.mark.tier(0)
    @pytest.mark.core
    def test_zero_total_is_empty(self) -> None:
        assert status_breakdown([]) == []
        assert status_breakdown([(200, 0)]) == []

    @pytest.mark.tier(0)
    @pytest.mark.core
    def test_negative_weight_raises(self) -> None:
        with pytest.raises(DataIntegrityError):
            status_breakdown([(200, -2)])
