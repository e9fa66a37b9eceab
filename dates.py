"""Date helpers shared by the calendar, ledger and form views.

The booking API stores agreement dates as free text, usually in European
format (DD/MM/YYYY), while the schedule endpoint expects ISO dates.  Every
value coming from the API is parsed here once, at the boundary, so the rest
of the application only ever compares ``datetime.date`` objects.
"""

from datetime import date, datetime
from typing import Optional

# Tried in order.  European day-first formats win over the US fallback.
_DATE_FORMATS = (
    '%d/%m/%Y',
    '%Y-%m-%d',
    '%d-%m-%Y',
    '%d.%m.%Y',
    '%m/%d/%Y',
)


def parse_date(value) -> Optional[date]:
    """
    Parse a date coming from the API or a form field.

    Accepts ``date`` and ``datetime`` objects as well as strings such as
    ``10/01/2025``, ``1/2/2025``, ``2025-01-10`` and ``2025-01-10T00:00:00Z``.
    Returns None for anything that cannot be read as a calendar date; this
    function never raises.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    # ISO datetimes: keep the calendar date, drop the time of day
    if 'T' in text:
        text = text.split('T', 1)[0]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def format_display(d: Optional[date]) -> str:
    """Format a date in European format (DD/MM/YYYY) for display."""
    return d.strftime('%d/%m/%Y') if d else ''


def format_iso(d: Optional[date]) -> str:
    return d.isoformat() if d else ''


def inclusive_days(start: Optional[date], end: Optional[date]) -> Optional[int]:
    """Return the number of calendar days in [start, end], or None."""
    if start is None or end is None or end < start:
        return None
    return (end - start).days + 1
