"""
utils/dates.py
--------------
Millisecond-epoch helpers. Subscriptions store instants as integer
milliseconds since the Unix epoch; all calendar work happens in the
reference timezone configured by TIMEZONE.
"""

import time
from datetime import date, datetime, time as dt_time, timedelta, timezone, tzinfo
from typing import Optional

from dateutil import tz as dateutil_tz

from config import TIMEZONE

MS_PER_DAY = 24 * 60 * 60 * 1000

# Range where datetime can represent an instant in any zone.
MIN_MS = int(datetime(1, 1, 2, tzinfo=timezone.utc).timestamp() * 1000)
MAX_MS = int(datetime(9999, 12, 30, tzinfo=timezone.utc).timestamp() * 1000)


def reference_tz(name: Optional[str] = None) -> tzinfo:
    """Resolve a zone name (default: TIMEZONE) to a tzinfo, falling back to UTC."""
    return dateutil_tz.gettz(name or TIMEZONE) or dateutil_tz.UTC


def now_ms() -> int:
    """Current instant in epoch milliseconds."""
    return int(time.time() * 1000)


def to_datetime(ms: int, tz: Optional[tzinfo] = None) -> datetime:
    """Convert epoch milliseconds to an aware datetime in `tz`."""
    return datetime.fromtimestamp(ms / 1000, tz or reference_tz())


def from_datetime(dt: datetime) -> int:
    """Convert an aware datetime to epoch milliseconds."""
    return int(round(dt.timestamp() * 1000))


def from_date(day: date, tz: Optional[tzinfo] = None) -> int:
    """Local midnight of `day` in `tz`, as epoch milliseconds."""
    return from_datetime(datetime.combine(day, dt_time.min, tzinfo=tz or reference_tz()))


def end_of_day(day: date, tz: Optional[tzinfo] = None) -> int:
    """Last millisecond of `day` in `tz`, as epoch milliseconds."""
    return from_date(day + timedelta(days=1), tz) - 1


def utc_offset_ms(ms: int, tz: Optional[tzinfo] = None) -> int:
    """UTC offset of `tz` at instant `ms`; out-of-range instants use the nearest bound."""
    clamped = min(max(ms, MIN_MS), MAX_MS)
    offset = to_datetime(clamped, tz).utcoffset() or timedelta(0)
    return int(offset.total_seconds() * 1000)


def local_day_number(ms: int, tz: Optional[tzinfo] = None) -> int:
    """Number of whole local calendar days between the epoch and `ms`."""
    return (ms + utc_offset_ms(ms, tz)) // MS_PER_DAY


def format_date(ms: int, tz: Optional[tzinfo] = None) -> str:
    """Render an instant as YYYY-MM-DD in the reference timezone."""
    return to_datetime(ms, tz).strftime("%Y-%m-%d")


def is_valid_instant(value) -> bool:
    """True for a finite number of epoch milliseconds inside MIN_MS..MAX_MS."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return MIN_MS <= value <= MAX_MS
