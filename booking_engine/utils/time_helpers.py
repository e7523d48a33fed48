# booking_engine/utils/time_helpers.py
"""
Time helpers shared by the scheduling services.

Appointment times are naive provider-local wall-clock values. Bookkeeping
instants (hold expiry, creation stamps) are naive UTC.
"""
from datetime import date, datetime, time, timedelta
from typing import Callable, Iterator, Optional

import pytz

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as naive UTC"""
    return datetime.now(pytz.UTC).replace(tzinfo=None)


def get_timezone(tz_name: Optional[str]):
    try:
        return pytz.timezone(tz_name or "UTC")
    except pytz.UnknownTimeZoneError:
        return pytz.UTC


def utc_to_local(value: datetime, tz_name: Optional[str]) -> datetime:
    """Convert a naive UTC instant to naive wall-clock time in tz_name"""
    aware = pytz.UTC.localize(value)
    return aware.astimezone(get_timezone(tz_name)).replace(tzinfo=None)


def local_to_utc(value: datetime, tz_name: Optional[str]) -> datetime:
    """Convert naive wall-clock time in tz_name to a naive UTC instant"""
    aware = get_timezone(tz_name).localize(value)
    return aware.astimezone(pytz.UTC).replace(tzinfo=None)


def day_of_week(value: date) -> int:
    """Day index with Sunday = 0 ... Saturday = 6"""
    return (value.weekday() + 1) % 7


def parse_hhmm(value) -> time:
    """Accept "HH:MM" strings or time objects"""
    if isinstance(value, time):
        return value
    hours, minutes = str(value).strip().split(":")[:2]
    return time(int(hours), int(minutes))


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open interval intersection; touching edges do not overlap"""
    return start_a < end_b and start_b < end_a


def date_range(start: date, end: date) -> Iterator[date]:
    """Inclusive range of dates"""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
