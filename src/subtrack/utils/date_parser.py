"""Date and time parsing utilities."""

import re
from datetime import date, datetime, time, timedelta, UTC
from typing import Optional
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from subtrack.utils.clock import Clock, utc_now

_RELATIVE_DAYS = re.compile(r"^(?:in\s+(\d+)\s+days?|(\d+)\s+days?\s+ago)$")
_CLOCK_TIME = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_date(date_str: str, today: Optional[date] = None) -> date:
    """Parse a date string into a date object.

    Supports various formats including relative dates:
    - Absolute dates: "2024-01-15", "January 15, 2024", etc.
    - Relative dates: "today", "tomorrow", "next month", "in 7 days", etc.

    Args:
        date_str: Date string in various formats
        today: Reference date for relative dates (defaults to today)

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = today or date.today()

    # Handle relative dates
    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
        "next week": today + timedelta(days=7),
        "next month": today + relativedelta(months=1),
        "next year": today + relativedelta(years=1),
    }

    if date_str in relative_dates:
        return relative_dates[date_str]

    match = _RELATIVE_DAYS.match(date_str)
    if match:
        if match.group(1) is not None:
            return today + timedelta(days=int(match.group(1)))
        return today - timedelta(days=int(match.group(2)))

    # Try parsing as absolute date
    try:
        dt = date_parser.parse(date_str)
        return dt.date()
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def parse_datetime(value: str, clock: Clock = utc_now) -> datetime:
    """Parse a timestamp string into an aware UTC datetime.

    Supports "now", "in N days", "N days ago" and absolute timestamps.
    Timestamps without an offset are read as local time.

    Args:
        value: Timestamp string
        clock: Reference clock for relative values

    Returns:
        Timezone-aware UTC datetime

    Raises:
        ValueError: If the string cannot be parsed
    """
    text = value.strip().lower()
    now = clock()

    if text == "now":
        return now

    match = _RELATIVE_DAYS.match(text)
    if match:
        if match.group(1) is not None:
            return now + timedelta(days=int(match.group(1)))
        return now - timedelta(days=int(match.group(2)))

    try:
        dt = date_parser.parse(value.strip())
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse timestamp '{value}': {e}")

    if dt.tzinfo is None:
        # Treat as local time
        dt = dt.astimezone()
    return dt.astimezone(UTC)


def parse_clock_time(value: str) -> time:
    """Parse an "HH:MM" wall-clock time.

    Raises:
        ValueError: If the string is not a valid 24-hour time
    """
    match = _CLOCK_TIME.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time '{value}': expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)))
