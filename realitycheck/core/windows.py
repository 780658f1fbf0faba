"""Query window computation.

All windows are derived from an injected ``now``; its ``tzinfo`` (or
naive local time) is the device calendar. Every midnight truncation goes
through :func:`start_of_day` so daily and weekly boundaries line up.
"""

from datetime import datetime, time, timedelta, tzinfo
from typing import Optional

WEEK_DAYS = 7
FOREGROUND_LOOKBACK = timedelta(minutes=1)


def start_of_day(now: datetime) -> datetime:
    """Return local midnight of *now*'s calendar date."""
    return datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)


def today_window(now: datetime) -> tuple[datetime, datetime]:
    return start_of_day(now), now


def weekly_window(now: datetime) -> tuple[datetime, datetime]:
    """Return the window from midnight seven calendar days ago until *now*."""
    start = start_of_day(now - timedelta(days=WEEK_DAYS))
    return start, now


def foreground_window(now: datetime) -> tuple[datetime, datetime]:
    """Return the short lookback window used to detect the foreground app."""
    return now - FOREGROUND_LOOKBACK, now


def to_epoch_ms(dt: datetime) -> int:
    """Convert a datetime to epoch milliseconds (naive means local time)."""
    return int(round(dt.timestamp() * 1000))


def from_epoch_ms(ms: int, tz: Optional[tzinfo] = None) -> datetime:
    """Convert epoch milliseconds to a datetime in *tz* (local if None)."""
    return datetime.fromtimestamp(ms / 1000, tz=tz)
