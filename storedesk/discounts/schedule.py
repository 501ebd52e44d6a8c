"""Time-derived discount status.

Nothing here is cached or stored: an active discount turns into an expired
one purely because time passes, so every read re-evaluates against ``now``.
"""
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Union

from .model import Discount, DiscountBucket, DiscountStatus
from ..common.timeutil import parse_instant, utcnow


def _now(now: Optional[datetime]) -> datetime:
    return utcnow() if now is None else parse_instant(now)


def is_expired_by_date(discount: Discount, now: Optional[datetime] = None) -> bool:
    return discount.end_datetime is not None and discount.end_datetime < _now(now)


def effective_discount_status(discount: Discount, now: Optional[datetime] = None) -> DiscountStatus:
    if is_expired_by_date(discount, now):
        return DiscountStatus.EXPIRED
    return discount.status


def in_bucket(discount: Discount, bucket: Union[DiscountBucket, str], now: Optional[datetime] = None) -> bool:
    bucket = DiscountBucket(bucket)
    now = _now(now)
    expired = is_expired_by_date(discount, now)
    if bucket == DiscountBucket.ALL:
        return True
    if bucket == DiscountBucket.ONGOING:
        return (
            not expired
            and discount.status == DiscountStatus.ACTIVE
            and discount.start_datetime <= now
            and (discount.end_datetime is None or discount.end_datetime >= now)
        )
    if bucket == DiscountBucket.SCHEDULED:
        return not expired and discount.status == DiscountStatus.ACTIVE and discount.start_datetime > now
    if bucket == DiscountBucket.EXPIRED:
        return expired or discount.status == DiscountStatus.EXPIRED
    return not expired and discount.status in (DiscountStatus.INACTIVE, DiscountStatus.PAUSED)


def _matches_query(discount: Discount, query: str) -> bool:
    if not query:
        return True
    if query in discount.name.lower():
        return True
    return bool(discount.description) and query in discount.description.lower()


def filter_discounts(
    discounts: Iterable[Discount],
    bucket: Union[DiscountBucket, str] = DiscountBucket.ALL,
    query: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[Discount]:
    now = _now(now)
    query = (query or "").strip().lower()
    return [d for d in discounts if in_bucket(d, bucket, now) and _matches_query(d, query)]


def bucket_counts(discounts: Iterable[Discount], now: Optional[datetime] = None) -> Dict[str, int]:
    now = _now(now)
    discounts = list(discounts)
    return {b.value: sum(1 for d in discounts if in_bucket(d, b, now)) for b in DiscountBucket}
