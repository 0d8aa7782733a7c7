"""Time-of-day arithmetic shared by slot generation and booking.

Times of day are ``HH:MM`` strings within a single day; there is no
rollover past midnight.
"""

import re
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

MINUTES_PER_DAY = 24 * 60

TIME_OF_DAY_RE = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9]$")


def is_valid_time(value: str) -> bool:
    """True for a well-formed 24h ``HH:MM`` string."""
    return bool(TIME_OF_DAY_RE.match(value or ""))


def time_to_minutes(t: str) -> int:
    """Convert HH:MM string to minutes since midnight."""
    if not is_valid_time(t):
        raise ValueError(f"Invalid time of day: {t!r} (expected HH:MM)")
    h, m = map(int, t.split(":"))
    return h * 60 + m


def minutes_to_time(minutes: int) -> str:
    """Convert minutes since midnight to HH:MM string."""
    minutes %= MINUTES_PER_DAY
    h = minutes // 60
    m = minutes % 60
    return f"{h:02d}:{m:02d}"


def add_minutes(t: str, minutes: int) -> str:
    """Shift a time of day by ``minutes``."""
    return minutes_to_time(time_to_minutes(t) + minutes)


def combine_date_time(day: date, t: str, tz: str | None = None) -> datetime:
    """Timestamp for ``t`` on ``day``.

    Without ``tz`` the result is naive wall-clock time. With an IANA zone
    name the wall-clock time is read in that zone and returned as naive UTC,
    which is how appointment timestamps are stored.
    """
    minutes = time_to_minutes(t)
    local = datetime(day.year, day.month, day.day) + timedelta(minutes=minutes)
    if tz is None:
        return local
    aware = local.replace(tzinfo=ZoneInfo(tz))
    return aware.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """Normalize an incoming timestamp to naive UTC, seconds zeroed.

    Naive input is taken to already be UTC.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(second=0, microsecond=0)


def to_local(value: datetime, tz: str) -> datetime:
    """Naive UTC timestamp -> naive wall-clock time in ``tz``."""
    return value.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz)).replace(tzinfo=None)


def has_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open interval overlap; touching endpoints do not overlap."""
    return start_a < end_b and start_b < end_a


def day_of_week(day: date) -> int:
    """0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def iter_days(start: date, end: date):
    """Every calendar day from ``start`` to ``end`` inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def utc_now() -> datetime:
    """Current time as naive UTC; the default clock for the services."""
    return datetime.utcnow()
