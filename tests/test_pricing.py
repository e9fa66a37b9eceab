"""Tests for the agreement and online booking quotes."""

from datetime import date
from decimal import Decimal

import pytest

from pricing import (compute_balance, parse_amount, parse_positive_int,
                     public_quote, quote_total)

JAN_10 = date(2025, 1, 10)
JAN_12 = date(2025, 1, 12)


@pytest.mark.parametrize('text, expected', [
    ('12,500', Decimal('12500')),
    ('₹ 900.50', Decimal('900.50')),
    (' 42 ', Decimal('42')),
    (1500, Decimal('1500')),
    ('', None),
    ('abc', None),
    ('NaN', None),
    (None, None),
])
def test_parse_amount(text, expected):
    assert parse_amount(text) == expected


@pytest.mark.parametrize('text, expected', [
    ('3', 3),
    (' 12 ', 12),
    ('1,200', 1200),
    (2, 2),
    ('1.5', None),
    ('-3', None),
    ('abc', None),
    ('3 buses', None),
    ('2 buses of 4', None),
    ('0', None),
    ('', None),
    (None, None),
])
def test_parse_positive_int(text, expected):
    assert parse_positive_int(text) == expected


class TestQuoteTotal:

    def test_flat_rate(self):
        # 3 days, 2 buses
        assert quote_total(JAN_10, JAN_12, '2', '10000') == Decimal('60000.00')

    def test_flat_rate_with_mountain_rent(self):
        total = quote_total(JAN_10, JAN_12, 2, '10,000', include_mountain_rent=True, mountain_rent='1500')
        assert total == Decimal('63000.00')

    def test_mountain_rent_ignored_when_not_included(self):
        assert quote_total(JAN_10, JAN_12, 1, '10000', mountain_rent='1500') == Decimal('30000.00')

    def test_individual_rates(self):
        rates = [
            {'per_day_rent': '10000', 'include_mountain_rent': False, 'mountain_rent': ''},
            {'per_day_rent': '8000', 'include_mountain_rent': True, 'mountain_rent': '500'},
        ]
        assert quote_total(JAN_10, JAN_12, 2, None, bus_rates=rates) == Decimal('54500.00')

    @pytest.mark.parametrize('kwargs', [
        {'from_date': None, 'to_date': JAN_12, 'bus_count': 1, 'per_day_rent': '100'},
        {'from_date': JAN_12, 'to_date': JAN_10, 'bus_count': 1, 'per_day_rent': '100'},
        {'from_date': JAN_10, 'to_date': JAN_12, 'bus_count': '0', 'per_day_rent': '100'},
        {'from_date': JAN_10, 'to_date': JAN_12, 'bus_count': '1.5', 'per_day_rent': '100'},
        {'from_date': JAN_10, 'to_date': JAN_12, 'bus_count': 1, 'per_day_rent': ''},
        {'from_date': JAN_10, 'to_date': JAN_12, 'bus_count': 1, 'per_day_rent': '100',
         'include_mountain_rent': True, 'mountain_rent': ''},
        {'from_date': JAN_10, 'to_date': JAN_12, 'bus_count': 1, 'per_day_rent': '100',
         'bus_rates': [{'per_day_rent': 'x'}]},
    ])
    def test_missing_inputs(self, kwargs):
        assert quote_total(**kwargs) is None


def test_compute_balance():
    assert compute_balance('36000', '10000') == Decimal('26000.00')
    assert compute_balance('36000', '') == Decimal('36000.00')
    assert compute_balance('1000', '1000') == Decimal('0.00')
    assert compute_balance(None, None) is None


def test_public_quote():
    extras = ['500', '', '250.50', None]
    assert public_quote(JAN_10, JAN_12, '9000', extras) == Decimal('18750.50')
    assert public_quote(JAN_10, JAN_10, '9000') == Decimal('9000.00')
    assert public_quote(None, None, '') == Decimal('0.00')
