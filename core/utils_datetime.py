"""
DateTime utilities for wall-clock lesson times.
All lesson times are wall-clock times in the site timezone (Asia/Tokyo by default);
timestamps are stored in UTC.
"""
from datetime import date, datetime, time, timedelta
from typing import Tuple
import re

import pytz


DEFAULT_TIMEZONE = 'Asia/Tokyo'

HHMM_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')

JAPANESE_DAYS = ['月', '火', '水', '木', '金', '土', '日']


def get_timezone(name: str = DEFAULT_TIMEZONE) -> pytz.BaseTzInfo:
    """Resolve a timezone by name."""
    return pytz.timezone(name)


def get_current_datetime(tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """Get current datetime in the site timezone."""
    return datetime.now(get_timezone(tz_name))


def parse_hhmm(value: str) -> time:
    """
    Parse a zero-padded 24-hour "HH:mm" string.

    Raises:
        ValueError: If the value is not a valid HH:mm time.
    """
    match = HHMM_PATTERN.match(value or '')
    if not match:
        raise ValueError(f"Invalid time '{value}': expected zero-padded HH:mm")
    return time(int(match.group(1)), int(match.group(2)))


def format_hhmm(value: time) -> str:
    """Format a time as "HH:mm"."""
    return f"{value.hour:02d}:{value.minute:02d}"


def minutes_of_day(value: time) -> int:
    """Minutes elapsed since midnight."""
    return value.hour * 60 + value.minute


def to_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive datetimes are taken to already be UTC, which is how SQLite hands
    stored timestamps back.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=pytz.utc)
    return dt.astimezone(pytz.utc)


def to_local(dt: datetime, tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """Convert a datetime to the site timezone."""
    return to_utc(dt).astimezone(get_timezone(tz_name))


def localize(day: date, at: time, tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """Combine a calendar date and a wall-clock time in the site timezone."""
    return get_timezone(tz_name).localize(datetime.combine(day, at))


def local_day_bounds(day: date, tz_name: str = DEFAULT_TIMEZONE) -> Tuple[datetime, datetime]:
    """Half-open [start, end) bounds of a calendar day in the site timezone."""
    start = localize(day, time(0, 0), tz_name)
    end = localize(day + timedelta(days=1), time(0, 0), tz_name)
    return start, end


def local_range_bounds(
    start_day: date,
    end_day: date,
    tz_name: str = DEFAULT_TIMEZONE
) -> Tuple[datetime, datetime]:
    """Half-open bounds covering every day from start_day to end_day inclusive."""
    start, _ = local_day_bounds(start_day, tz_name)
    _, end = local_day_bounds(end_day, tz_name)
    return start, end


def format_datetime_japanese(dt: datetime, tz_name: str = DEFAULT_TIMEZONE) -> str:
    """
    Format datetime object to a Japanese-friendly string.

    Returns:
        Formatted string like "2025年3月17日(月) 13:00"
    """
    dt = to_local(dt, tz_name)
    return f"{dt.year}年{dt.month}月{dt.day}日({JAPANESE_DAYS[dt.weekday()]}) {dt.hour:02d}:{dt.minute:02d}"


def ensure_aware(dt: datetime, tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """Read naive datetimes as wall-clock time in the site timezone."""
    if dt.tzinfo is None:
        return get_timezone(tz_name).localize(dt)
    return dt
