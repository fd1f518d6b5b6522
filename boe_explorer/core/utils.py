"""
Shared utility functions for date parsing.
"""

import re
from datetime import date, datetime
from typing import Optional, Union
from dateutil import parser as dateparser


def parse_date_maybe(text: Optional[str]) -> Optional[datetime]:
    """
    Attempt to parse a date string, returning None on failure.

    Uses dateutil.parser with day-first=True for Spanish date formats.

    Args:
        text: Date string (e.g., "10/02/2026", "2026-02-10T09:00:00")

    Returns:
        Parsed datetime or None if parsing fails

    Examples:
        >>> parse_date_maybe("10/02/2026")
        datetime.datetime(2026, 2, 10, 0, 0)
        >>> parse_date_maybe("not a date") is None
        True
    """
    if not text:
        return None
    text = text.strip()
    if not text:
        return None

    # ISO dates must not be read day-first
    if re.match(r"^\d{4}-\d{2}-\d{2}", text):
        try:
            return dateparser.isoparse(text)
        except (ValueError, TypeError, OverflowError):
            return None

    try:
        return dateparser.parse(text, dayfirst=True)
    except (ValueError, TypeError, OverflowError):
        return None


def to_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Coerce a stored date value (usually 'YYYY-MM-DD') to a date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = parse_date_maybe(str(value))
    return parsed.date() if parsed else None


def iso(day: Union[date, datetime]) -> str:
    """Format a date as 'YYYY-MM-DD' (the storage key format)."""
    if isinstance(day, datetime):
        day = day.date()
    return day.isoformat()
