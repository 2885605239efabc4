"""Utility functions for subtrack."""

from subtrack.utils.date_parser import parse_date, parse_datetime, parse_clock_time
from subtrack.utils.amount_parser import parse_price
from subtrack.utils.clock import utc_now

__all__ = ["parse_date", "parse_datetime", "parse_clock_time", "parse_price", "utc_now"]
