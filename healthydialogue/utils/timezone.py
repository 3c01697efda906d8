from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from typing import Optional, Tuple


def utcnow() -> datetime:
    """Current time as a UTC-naive datetime, the storage convention for all tables"""
    return datetime.now(dt_timezone.utc).replace(tzinfo=None)


def utcnow_aware() -> datetime:
    return datetime.now(dt_timezone.utc)


def to_utc_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize any datetime to UTC-naive (tzinfo=None) for consistent storage/comparison.
    - Aware datetimes are converted to UTC and tzinfo is stripped
    - Naive datetimes are returned as-is (assumed UTC)
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(dt_timezone.utc).replace(tzinfo=None)


def day_bounds(day: Optional[date] = None) -> Tuple[datetime, datetime]:
    """[start, end) of a UTC day"""
    day = day or utcnow().date()
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def week_start(now: Optional[datetime] = None) -> datetime:
    """Midnight of the Monday starting the week containing ``now``"""
    now = now or utcnow()
    monday = now.date() - timedelta(days=now.weekday())
    return datetime.combine(monday, time.min)
