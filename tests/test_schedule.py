"""
Tests for time-derived discount status and the list buckets.
"""
import pytest

from storedesk.discounts.model import DiscountBucket, DiscountStatus
from storedesk.discounts.schedule import (
    bucket_counts,
    effective_discount_status,
    filter_discounts,
    in_bucket,
    is_expired_by_date,
)

from conftest import make_discount


@pytest.fixture
def discounts():
    return [
        make_discount(id="ongoing", name="Weekend Special"),
        make_discount(id="lapsed", name="Summer Sale", end_datetime="2025-10-18T12:00:00Z"),
        make_discount(id="later", name="Holiday Promo", start_datetime="2025-12-01T00:00:00Z"),
        make_discount(id="off", name="Staff Deal", status="inactive"),
        make_discount(id="paused", name="Bundle", description="Paused for restock", status="paused"),
        make_discount(id="closed", name="Old Promo", status="expired", end_datetime="2026-01-01T00:00:00Z"),
    ]


def _ids(items):
    return [d.id for d in items]


class TestEffectiveStatus:

    def test_active_but_past_end_reads_as_expired(self, now):
        d = make_discount(end_datetime="2025-10-18T12:00:00Z")
        assert d.status == DiscountStatus.ACTIVE
        assert is_expired_by_date(d, now)
        assert effective_discount_status(d, now) == DiscountStatus.EXPIRED
        assert not in_bucket(d, "ongoing", now)
        assert in_bucket(d, DiscountBucket.EXPIRED, now)

    def test_open_ended_never_expires_by_date(self, now):
        d = make_discount(end_datetime=None)
        assert not is_expired_by_date(d, now)
        assert effective_discount_status(d, now) == DiscountStatus.ACTIVE

    def test_end_exactly_now_is_still_ongoing(self, now):
        d = make_discount(end_datetime="2025-10-19T12:00:00Z")
        assert in_bucket(d, "ongoing", now)

    def test_same_discount_changes_bucket_as_time_passes(self, now):
        d = make_discount(start_datetime="2025-10-20T00:00:00Z", end_datetime="2025-10-21T00:00:00Z")
        assert in_bucket(d, "scheduled", now)
        assert in_bucket(d, "ongoing", "2025-10-20T06:00:00Z")
        assert in_bucket(d, "expired", "2025-10-22T00:00:00Z")


class TestBuckets:

    @pytest.mark.parametrize("bucket,expected", [
        ("all", ["ongoing", "lapsed", "later", "off", "paused", "closed"]),
        ("ongoing", ["ongoing"]),
        ("scheduled", ["later"]),
        ("expired", ["lapsed", "closed"]),
        ("inactive", ["off", "paused"]),
    ])
    def test_bucket_membership(self, discounts, now, bucket, expected):
        assert _ids(filter_discounts(discounts, bucket, now=now)) == expected

    def test_counts_cover_every_bucket(self, discounts, now):
        assert bucket_counts(discounts, now) == {
            "all": 6,
            "ongoing": 1,
            "scheduled": 1,
            "expired": 2,
            "inactive": 2,
        }

    def test_search_matches_name_or_description(self, discounts, now):
        assert _ids(filter_discounts(discounts, "all", "  PROMO ", now)) == ["later", "closed"]
        assert _ids(filter_discounts(discounts, "inactive", "restock", now)) == ["paused"]

    def test_unknown_bucket_rejected(self, discounts, now):
        with pytest.raises(ValueError):
            filter_discounts(discounts, "archived", now=now)
