"""Quote helpers for the agreement and public booking forms.

The amounts are only a suggestion shown while filling the form; the API
stores whatever total the operator submits.
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from dates import inclusive_days


def parse_amount(text) -> Optional[Decimal]:
    """Read a money amount typed by a user ('12,500', '₹ 900.50')."""
    if text is None:
        return None
    if isinstance(text, (int, float, Decimal)):
        return Decimal(str(text))
    cleaned = re.sub(r'[\s,₹]', '', str(text))
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def parse_positive_int(text) -> Optional[int]:
    """Read a whole, positive count ('1', ' 12 ', '1,200'); anything else is None."""
    if text is None:
        return None
    cleaned = re.sub(r'[\s,]', '', str(text))
    if not re.fullmatch(r'[0-9]+', cleaned):
        return None
    value = int(cleaned)
    return value if value > 0 else None


def _normalise(amount: Decimal) -> Decimal:
    amount = amount.quantize(Decimal('0.01'))
    # '-0.00' would otherwise show up when advance equals total
    return amount if amount else Decimal('0.00')


def quote_total(from_date: Optional[date], to_date: Optional[date], bus_count,
                per_day_rent, include_mountain_rent: bool = False,
                mountain_rent=None, bus_rates: Optional[Iterable[dict]] = None) -> Optional[Decimal]:
    """
    Suggested total for an agreement.

    With a flat rate: ``buses * per_day * days + buses * mountain``.  With
    individual bus rates each entry contributes ``per_day * days +
    mountain``.  Returns None when the dates or any required rate are
    missing or invalid.
    """
    days = inclusive_days(from_date, to_date)
    if not days:
        return None

    if bus_rates is not None:
        rates = list(bus_rates)
        if not rates:
            return None
        total = Decimal('0')
        for rate in rates:
            per_day = parse_amount(rate.get('per_day_rent'))
            if per_day is None:
                return None
            mountain = Decimal('0')
            if rate.get('include_mountain_rent'):
                mountain = parse_amount(rate.get('mountain_rent'))
                if mountain is None:
                    return None
            total += per_day * days + mountain
        return _normalise(total)

    buses = parse_positive_int(bus_count)
    per_day = parse_amount(per_day_rent)
    if not buses or per_day is None:
        return None
    mountain = Decimal('0')
    if include_mountain_rent:
        mountain = parse_amount(mountain_rent)
        if mountain is None:
            return None
    return _normalise(buses * per_day * days + buses * mountain)


def compute_balance(total, advance) -> Optional[Decimal]:
    total = parse_amount(total)
    advance = parse_amount(advance)
    if total is None and advance is None:
        return None
    return _normalise((total or Decimal('0')) - (advance or Decimal('0')))


def public_quote(from_date: Optional[date], to_date: Optional[date], per_day_rent,
                 extras: Iterable = ()) -> Decimal:
    """
    Total for an online booking: rate times trip length plus extra charges
    (driver, toll, FASTag ...).  A same-day or undated trip counts as one
    day; blank extras count as zero.
    """
    days = 1
    if from_date and to_date:
        days = max(abs((to_date - from_date).days), 1)
    total = (parse_amount(per_day_rent) or Decimal('0')) * days
    for extra in extras:
        total += parse_amount(extra) or Decimal('0')
    return _normalise(total)
