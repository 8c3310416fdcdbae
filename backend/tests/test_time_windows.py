from __future__ import annotations
from datetime import date, datetime, timedelta, timezone
from fitcomp.services.time_windows import (
    day_window_utc, ensure_utc, local_date, local_days_to_utc, week_start, week_window_utc,
)


def test_ensure_utc():
    naive = datetime(2025, 1, 10, 12, 0)
    assert ensure_utc(naive) == datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)
    plus_two = datetime(2025, 1, 10, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    assert ensure_utc(plus_two).hour == 10 and ensure_utc(plus_two).tzinfo == timezone.utc


def test_same_instant_different_local_dates():
    """01:00Z on the 10th is still the 9th on the US west coast"""
    at = datetime(2025, 1, 10, 1, 0, tzinfo=timezone.utc)
    assert local_date(at, "UTC") == date(2025, 1, 10)
    assert local_date(at, "America/Los_Angeles") == date(2025, 1, 9)
    assert local_date(at, "Asia/Tokyo") == date(2025, 1, 10)


def test_day_window_est_and_pst():
    at = datetime(2025, 1, 10, 15, 0, tzinfo=timezone.utc)
    s_ny, e_ny = day_window_utc(at, "America/New_York")
    s_la, e_la = day_window_utc(at, "America/Los_Angeles")
    # EST = UTC-5, PST = UTC-8
    assert s_ny == datetime(2025, 1, 10, 5, tzinfo=timezone.utc)
    assert e_ny == datetime(2025, 1, 11, 5, tzinfo=timezone.utc)
    assert s_la == datetime(2025, 1, 10, 8, tzinfo=timezone.utc)
    assert (e_la - s_la).total_seconds() == 24 * 3600


def test_dst_spring_forward_day_is_23_hours():
    # US DST starts 2025-03-09; 02:00 -> 03:00 skip
    s, e = local_days_to_utc(date(2025, 3, 9), 1, "America/New_York")
    assert s.hour == 5 and e.hour == 4
    assert (e - s).total_seconds() == 23 * 3600


def test_dst_fall_back_day_is_25_hours():
    # US DST ends 2025-11-02; 02:00 -> 01:00 repeat
    s, e = local_days_to_utc(date(2025, 11, 2), 1, "America/New_York")
    assert (e - s).total_seconds() == 25 * 3600


def test_week_starts_on_sunday():
    assert week_start(date(2025, 1, 5)) == date(2025, 1, 5)    # Sunday
    assert week_start(date(2025, 1, 6)) == date(2025, 1, 5)    # Monday
    assert week_start(date(2025, 1, 11)) == date(2025, 1, 5)   # Saturday
    assert week_start(date(2025, 1, 12)) == date(2025, 1, 12)


def test_week_window_follows_local_calendar():
    # Sunday 03:00Z is still Saturday in New York, so it belongs to the previous week
    at = datetime(2025, 1, 12, 3, 0, tzinfo=timezone.utc)
    s_utc, e_utc = week_window_utc(at, "UTC")
    s_ny, e_ny = week_window_utc(at, "America/New_York")
    assert s_utc == datetime(2025, 1, 12, tzinfo=timezone.utc)
    assert e_utc == datetime(2025, 1, 19, tzinfo=timezone.utc)
    assert s_ny == datetime(2025, 1, 5, 5, tzinfo=timezone.utc)
    assert e_ny == datetime(2025, 1, 12, 5, tzinfo=timezone.utc)
