"""
Display-side aggregation for the accounts ledger, tour lists and dashboard.

The API computes profit/loss per agreement; the functions here only sum and
filter what has already been fetched.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence

LEDGER_FILTERS = ('all', 'profit', 'loss')
TOUR_FILTERS = ('all', 'active', 'completed')


@dataclass(frozen=True)
class LedgerTotals:
    revenue: Decimal
    expenses: Decimal
    profit: Decimal
    outstanding: Decimal
    margin: Decimal

    @property
    def is_profit(self) -> bool:
        return self.profit >= 0


def merge_balances(items: Sequence, agreements: Iterable) -> list:
    """Attach each agreement's outstanding balance to its summary item."""
    balances = {a.id: a.balance for a in agreements}
    return [item.model_copy(update={'balance': balances.get(item.agreement_id) or Decimal('0')})
            for item in items]


def filter_ledger(items: Sequence, mode: str) -> list:
    mode = (mode or 'all').lower()
    if mode == 'profit':
        return [i for i in items if i.profit_or_loss > 0]
    if mode == 'loss':
        return [i for i in items if i.profit_or_loss <= 0]
    return list(items)


def ledger_totals(items: Sequence) -> LedgerTotals:
    """
    Sum a list of accounts summary items.

    Expenses are derived as income minus profit so that the three headline
    figures always agree with each other, whatever the API rounded.
    """
    revenue = sum((i.income_total_amount for i in items), Decimal('0'))
    profit = sum((i.profit_or_loss for i in items), Decimal('0'))
    expenses = sum((i.income_total_amount - i.profit_or_loss for i in items), Decimal('0'))
    outstanding = sum((i.balance or Decimal('0') for i in items), Decimal('0'))
    margin = (profit / revenue * 100).quantize(Decimal('0.01')) if revenue > 0 else Decimal('0.00')
    return LedgerTotals(revenue=revenue, expenses=expenses, profit=profit,
                        outstanding=outstanding, margin=margin)


def search_ledger(items: Sequence, query: str) -> list:
    query = (query or '').strip().lower()
    if not query:
        return list(items)
    return [i for i in items
            if query in i.customer_name.lower() or query in i.agreement_id.lower()]


# ---------------------------------------------------------------------------
# Tours and bookings

def filter_tours(agreements: Sequence, mode: str) -> list:
    mode = (mode or 'all').lower()
    if mode == 'active':
        return [a for a in agreements if not a.is_completed]
    if mode == 'completed':
        return [a for a in agreements if a.is_completed]
    return list(agreements)


def tour_counts(agreements: Sequence) -> Dict[str, int]:
    completed = sum(1 for a in agreements if a.is_completed)
    return {'all': len(agreements), 'active': len(agreements) - completed, 'completed': completed}


def cancelled_tours(agreements: Sequence, search: str = '') -> list:
    needle = (search or '').strip().lower()
    found = []
    for a in agreements:
        if not a.is_cancelled:
            continue
        if needle and not any(needle in (text or '').lower()
                              for text in (a.customer_name, a.phone, a.places_to_cover)):
            continue
        found.append(a)
    return found


def _start_key(agreement):
    # Undated agreements sort after everything else
    start = agreement.from_date
    return (start is None, start or date.min)


def upcoming_bookings(agreements: Sequence, today: date) -> list:
    """
    Bookings still to run or running, earliest departure first.

    Cancelled agreements and those that ended before ``today`` are dropped;
    an agreement whose end date cannot be read is kept.
    """
    upcoming = [a for a in agreements
                if not a.is_cancelled and (a.to_date is None or a.to_date >= today)]
    return sorted(upcoming, key=_start_key)


def sort_by_created(agreements: Sequence) -> list:
    """Newest first, as on the all-tours page."""
    return sorted(agreements, key=lambda a: a.created_at_utc or '', reverse=True)


def dashboard_stats(buses: Sequence, agreements: Sequence, summary: Sequence) -> Dict[str, object]:
    return {
        'active_fleet': sum(1 for b in buses if b.is_active),
        'upcoming_tours': sum(1 for a in agreements if not a.is_completed and not a.is_cancelled),
        'revenue': sum((i.income_total_amount for i in summary), Decimal('0')),
        'customers': len(summary),
    }


def upcoming_departures(agreements: Sequence, limit: int = 5) -> List:
    return [a for a in agreements if not a.is_completed and not a.is_cancelled][:limit]
