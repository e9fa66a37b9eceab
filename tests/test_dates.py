"""Tests for boundary date parsing and formatting."""

from datetime import date, datetime

import pytest

from dates import format_display, format_iso, inclusive_days, parse_date


class TestParseDate:

    @pytest.mark.parametrize('text, expected', [
        ('10/01/2025', date(2025, 1, 10)),
        ('1/2/2025', date(2025, 2, 1)),
        ('2025-01-10', date(2025, 1, 10)),
        ('2025-01-10T00:00:00', date(2025, 1, 10)),
        ('2025-01-10T18:30:00Z', date(2025, 1, 10)),
        ('10-01-2025', date(2025, 1, 10)),
        ('10.01.2025', date(2025, 1, 10)),
        ('  10/01/2025 ', date(2025, 1, 10)),
    ])
    def test_accepted_formats(self, text, expected):
        assert parse_date(text) == expected

    def test_day_first_wins_over_us_format(self):
        assert parse_date('03/04/2025') == date(2025, 4, 3)

    def test_us_format_as_last_resort(self):
        assert parse_date('12/25/2025') == date(2025, 12, 25)

    @pytest.mark.parametrize('value', [None, '', '   ', 'not a date', '31/02/2025', '2025-13-01', 42])
    def test_unreadable_values_become_none(self, value):
        assert parse_date(value) is None

    def test_date_and_datetime_objects(self):
        assert parse_date(date(2024, 2, 29)) == date(2024, 2, 29)
        assert parse_date(datetime(2024, 2, 29, 13, 5)) == date(2024, 2, 29)


def test_format_display():
    assert format_display(date(2025, 1, 5)) == '05/01/2025'
    assert format_display(None) == ''


def test_format_iso():
    assert format_iso(date(2025, 1, 5)) == '2025-01-05'
    assert format_iso(None) == ''


def test_inclusive_days():
    assert inclusive_days(date(2025, 1, 10), date(2025, 1, 12)) == 3
    assert inclusive_days(date(2025, 1, 10), date(2025, 1, 10)) == 1
    assert inclusive_days(date(2025, 1, 12), date(2025, 1, 10)) is None
    assert inclusive_days(None, date(2025, 1, 10)) is None
