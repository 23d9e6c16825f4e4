#!/usr/bin/env python3
"""
Unit tests for date parsing and duration calculation
"""

import unittest
import os
import sys
from datetime import datetime, timedelta, timezone

# Add parent directory to path to import utils_dates module
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from utils_dates import (
    business_days,
    calendar_days,
    format_duration,
    parse_issue_date,
    round_duration,
    weekend_days_between,
)


def at(day, hour=9, minute=0):
    """January 2024 instant in UTC; the 15th is a Monday"""
    return datetime(2024, 1, day, hour, minute, tzinfo=timezone.utc)


class TestParseIssueDate(unittest.TestCase):
    """Test tracker timestamp parsing"""

    def test_tracker_format(self):
        """Test the tracker's millisecond and compact offset format"""
        parsed = parse_issue_date('2024-01-15T09:30:00.000+0000')

        self.assertEqual(parsed, at(15, 9, 30))
        self.assertIsNotNone(parsed.tzinfo)

    def test_offset_is_respected(self):
        """Test non-UTC offsets convert to the same instant"""
        parsed = parse_issue_date('2024-01-15T11:30:00.000+0200')

        self.assertEqual(parsed, at(15, 9, 30))

    def test_empty_and_invalid(self):
        """Test empty or garbage values parse to None"""
        self.assertIsNone(parse_issue_date(None))
        self.assertIsNone(parse_issue_date(''))
        self.assertIsNone(parse_issue_date('not a date'))

    def test_missing_offset_reads_as_utc(self):
        """Test date-only and offset-less values become UTC instants"""
        self.assertEqual(parse_issue_date('2024-01-15'), at(15, 0))
        self.assertEqual(parse_issue_date('2024-01-15T09:30'), at(15, 9, 30))
        self.assertEqual(parse_issue_date(datetime(2024, 1, 15, 9, 30)), at(15, 9, 30))

    def test_datetime_passthrough(self):
        """Test datetime values are returned unchanged"""
        moment = at(16)
        self.assertIs(parse_issue_date(moment), moment)


class TestCalendarDays(unittest.TestCase):
    """Test whole calendar day durations"""

    def test_whole_days(self):
        self.assertEqual(calendar_days(at(15), at(18)), 3)

    def test_partial_days_round_up(self):
        """Test any part of a day counts as a day"""
        self.assertEqual(calendar_days(at(15, 9), at(15, 10)), 1)
        self.assertEqual(calendar_days(at(15, 9), at(16, 10)), 2)

    def test_inverted_pair_is_zero(self):
        self.assertEqual(calendar_days(at(18), at(15)), 0)
        self.assertEqual(calendar_days(at(15), at(15)), 0)


class TestBusinessDays(unittest.TestCase):
    """Test weekday-only durations"""

    def test_weekdays_only(self):
        """Test a Monday to Thursday span has no weekend removed"""
        self.assertEqual(business_days(at(15), at(18)), 3.0)

    def test_weekend_removed(self):
        """Test Friday to Monday loses Saturday and Sunday"""
        self.assertEqual(business_days(at(19), at(22)), 1.0)

    def test_fractional_days(self):
        self.assertEqual(business_days(at(15, 9), at(16, 15)), 1.25)

    def test_weekend_only_span_clamps_to_zero(self):
        """Test an hour on a Saturday never goes negative"""
        self.assertEqual(business_days(at(20, 10), at(20, 11)), 0.0)

    def test_inverted_pair_is_zero(self):
        self.assertEqual(business_days(at(18), at(15)), 0.0)

    def test_bounded_by_calendar_days(self):
        """Test 0 <= business days <= calendar days across many spans"""
        start = at(12, 17)  # Friday evening
        for hours in range(0, 24 * 16, 7):
            end = start + timedelta(hours=hours)
            result = business_days(start, end)
            self.assertGreaterEqual(result, 0.0, msg=f"{start} -> {end}")
            self.assertLessEqual(result, calendar_days(start, end), msg=f"{start} -> {end}")

    def test_weekend_count_uses_start_timezone(self):
        """Test the end instant is read in the start's timezone"""
        start = datetime(2024, 1, 19, 20, 0, tzinfo=timezone(timedelta(hours=-5)))  # Friday evening
        end = datetime(2024, 1, 20, 2, 0, tzinfo=timezone.utc)  # still Friday at -05:00
        self.assertEqual(weekend_days_between(start, end), 0)


class TestFormatting(unittest.TestCase):
    """Test rounding and CSV formatting of durations"""

    def test_round_duration(self):
        self.assertEqual(round_duration(1.23456), 1.23)
        self.assertEqual(round_duration(2.0), 2.0)

    def test_format_duration(self):
        self.assertEqual(format_duration(3.0), '3')
        self.assertEqual(format_duration(2.5), '2.5')
        self.assertEqual(format_duration(1.25), '1.25')
        self.assertEqual(format_duration(1 / 3), '0.33')
        self.assertEqual(format_duration(10.0), '10')
        self.assertEqual(format_duration(0.0), '0')


if __name__ == '__main__':
    unittest.main()
