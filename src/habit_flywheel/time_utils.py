from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo


DEFAULT_TZ = "Europe/Oslo"


def now_local(tz_name: str = DEFAULT_TZ) -> datetime:
    return datetime.now(tz=ZoneInfo(tz_name))


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def to_local(ts: datetime, reference: datetime) -> datetime:
    """Express ``ts`` in the zone of ``reference``. Naive ``ts`` values are UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    if reference.tzinfo is None:
        return ts.astimezone().replace(tzinfo=None)
    return ts.astimezone(reference.tzinfo)


@dataclass(frozen=True)
class WeekRange:
    start: datetime
    end: datetime


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def week_range_for(dt: datetime) -> WeekRange:
    """Sunday-based week containing ``dt``."""
    local_midnight = start_of_day(dt)
    days_since_sunday = (local_midnight.weekday() + 1) % 7
    start = local_midnight - timedelta(days=days_since_sunday)
    end = start + timedelta(days=7)
    return WeekRange(start=start, end=end)


def start_of_month(dt: datetime) -> datetime:
    return start_of_day(dt).replace(day=1)
