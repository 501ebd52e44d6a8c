"""Operator wall-clock <-> UTC instant conversion.

Discount windows are typed in as naive local values ("2025-10-19T11:20") and
stored upstream as UTC instants. The offset is resolved for the instant being
converted, never cached, so values on either side of a DST change survive a
round trip.
"""
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo

from .config import settings

LOCAL_FORMAT = "%Y-%m-%dT%H:%M"

TzLike = Union[tzinfo, str, None]


def resolve_tz(tz: TzLike = None) -> tzinfo:
    if tz is None:
        tz = settings.LOCAL_TIMEZONE
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_instant(value: Union[str, datetime]) -> datetime:
    """Parse an upstream timestamp; naive values are taken to be UTC."""
    if isinstance(value, datetime):
        dt = value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_local(value: str) -> datetime:
    return datetime.strptime(value.strip()[:16], LOCAL_FORMAT)


def format_local(value: datetime) -> str:
    return value.strftime(LOCAL_FORMAT)


def local_to_utc(value: str, tz: TzLike = None) -> datetime:
    naive = parse_local(value)
    return naive.replace(tzinfo=resolve_tz(tz)).astimezone(timezone.utc)


def utc_to_local(value: Union[str, datetime], tz: TzLike = None) -> str:
    return format_local(parse_instant(value).astimezone(resolve_tz(tz)))


def to_utc_iso(value: datetime) -> str:
    """ISO-8601 with millisecond precision and a Z suffix."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def local_now(tz: TzLike = None, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    return format_local(now.astimezone(resolve_tz(tz)))


def local_in(delta: timedelta, tz: TzLike = None, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    return format_local((now + delta).astimezone(resolve_tz(tz)))
