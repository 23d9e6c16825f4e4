#!/usr/bin/env python3
"""
Shared date and duration utilities for issue cycle time analysis
Used by lifecycle.py, cycle_time.py and report_generator.py
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from dateutil import parser as dtparser


SECONDS_PER_DAY = 86400.0


def parse_issue_date(date_str: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse a tracker timestamp.

    Args:
        date_str: Tracker timestamp like "2025-09-18T15:25:13.000+0000"

    Returns:
        timezone-aware datetime, or None if the value is empty or unparseable.
        Values without an offset, such as "2024-01-01", are read as UTC.
    """
    if isinstance(date_str, datetime):
        moment = date_str
    elif not date_str:
        return None
    else:
        try:
            moment = dtparser.isoparse(date_str)
        except (ValueError, OverflowError):
            return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def elapsed_days(start: datetime, end: datetime) -> float:
    """Raw elapsed time between two instants, in fractional days"""
    return (end - start).total_seconds() / SECONDS_PER_DAY


def calendar_days(start: datetime, end: datetime) -> int:
    """Whole calendar days between two instants, rounded up. Inverted pairs give 0."""
    days = elapsed_days(start, end)
    if days <= 0:
        return 0
    return math.ceil(days)


def weekend_days_between(start: datetime, end: datetime) -> int:
    """Count Saturdays and Sundays in the inclusive date range start..end"""
    if end.tzinfo is not None and start.tzinfo is not None:
        end = end.astimezone(start.tzinfo)
    first, last = start.date(), end.date()
    count = 0
    day = first
    while day <= last:
        if day.weekday() >= 5:
            count += 1
        day += timedelta(days=1)
    return count


def business_days(start: datetime, end: datetime) -> float:
    """
    Elapsed days with one day removed for every weekend date the span touches.

    This is a day-granularity approximation. The result is kept within
    0..calendar_days(start, end).
    """
    days = elapsed_days(start, end)
    if days <= 0:
        return 0.0
    result = days - weekend_days_between(start, end)
    return min(max(result, 0.0), float(calendar_days(start, end)))


def round_duration(value: float) -> float:
    """Round a duration to at most two decimal places"""
    return round(value, 2)


def format_duration(value: float) -> str:
    """Format a duration for CSV output: up to two decimals, no trailing zeros"""
    text = f"{round_duration(value):.2f}".rstrip('0').rstrip('.')
    return '0' if text in ('', '-0') else text
