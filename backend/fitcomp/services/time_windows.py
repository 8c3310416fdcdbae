from __future__ import annotations
from datetime import date, datetime, time, timedelta, timezone as dt_tz
from zoneinfo import ZoneInfo


def ensure_utc(dt: datetime) -> datetime:
    """Return `dt` as an aware UTC datetime. Naive values are taken to already be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=dt_tz.utc)
    return dt.astimezone(dt_tz.utc)


def local_date(dt: datetime, tz_name: str) -> date:
    """Calendar date of instant `dt` as seen in timezone `tz_name`."""
    return ensure_utc(dt).astimezone(ZoneInfo(tz_name)).date()


def week_start(d: date) -> date:
    """
    Sunday on or before `d`.

    Examples:
        >>> week_start(date(2025, 1, 8))   # Wednesday
        datetime.date(2025, 1, 5)
        >>> week_start(date(2025, 1, 5))   # Sunday
        datetime.date(2025, 1, 5)
    """
    # date.weekday(): Monday=0 .. Sunday=6
    return d - timedelta(days=(d.weekday() + 1) % 7)


def local_days_to_utc(first: date, days: int, tz_name: str) -> tuple[datetime, datetime]:
    """
    Convert the local wall-clock span [first 00:00, first+days 00:00) in `tz_name`
    to a half-open UTC window.

    Boundaries are built from local midnights, so a DST change inside the span makes
    the window 23 or 25 hours per day rather than shifting the next day's start.
    """
    tz = ZoneInfo(tz_name)
    last = first + timedelta(days=days)
    start_local = datetime.combine(first, time(0, 0), tzinfo=tz)
    end_local = datetime.combine(last, time(0, 0), tzinfo=tz)
    return start_local.astimezone(dt_tz.utc), end_local.astimezone(dt_tz.utc)


def day_window_utc(at: datetime, tz_name: str) -> tuple[datetime, datetime]:
    """
    UTC window of the local calendar day containing instant `at`.

    Examples:
        >>> s, e = day_window_utc(datetime(2025, 1, 10, 15, tzinfo=dt_tz.utc), "America/New_York")
        >>> s.isoformat(), e.isoformat()
        ('2025-01-10T05:00:00+00:00', '2025-01-11T05:00:00+00:00')
    """
    return local_days_to_utc(local_date(at, tz_name), 1, tz_name)


def week_window_utc(at: datetime, tz_name: str) -> tuple[datetime, datetime]:
    """UTC window of the Sunday-aligned local week containing instant `at`."""
    return local_days_to_utc(week_start(local_date(at, tz_name)), 7, tz_name)
