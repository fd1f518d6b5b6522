"""
Timezone utilities for publication dates.
All bulletins are published on Spanish mainland time (Europe/Madrid).
"""

from datetime import date, datetime, timedelta
from typing import Iterator, List, Optional
import zoneinfo

# Canonical timezone for all publication dates
TZ_MADRID = zoneinfo.ZoneInfo("Europe/Madrid")


def now_madrid() -> datetime:
    """
    Get current datetime in Madrid local time.

    Returns:
        datetime: Current time with Europe/Madrid timezone
    """
    return datetime.now(TZ_MADRID)


def today_madrid() -> date:
    """Current publication date."""
    return now_madrid().date()


def is_weekend(day: date) -> bool:
    """BOE and BORME do not publish on Saturdays or Sundays."""
    return day.weekday() >= 5


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day from start to end, inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def recent_business_days(count: int, until: Optional[date] = None,
                         max_lookback: Optional[int] = None) -> List[date]:
    """
    Return the last `count` weekdays up to `until` (inclusive), oldest first.

    Args:
        count: Number of weekdays wanted
        until: Last day to consider (defaults to today in Madrid)
        max_lookback: Maximum calendar days to walk back (defaults to 2 * count + 7)

    Returns:
        List of dates sorted ascending
    """
    until = until or today_madrid()
    max_lookback = max_lookback or (count * 2 + 7)

    days = []
    for offset in range(max_lookback):
        day = until - timedelta(days=offset)
        if is_weekend(day):
            continue
        days.append(day)
        if len(days) >= count:
            break

    return sorted(days)
