"""
Fleet scheduling calendar.

Maps the agreements returned by ``/api/schedule`` onto a month grid.  The
pieces are small and pure and can be tested without a running Flask
app:

* ``matches`` picks the agreements whose date range covers a given day;
* ``build_month`` lays out a month as padding cells followed by one cell
  per day, each annotated with its occupants;
* ``MonthView`` with ``next_month``/``previous_month`` is the navigation
  state, passed in and returned rather than mutated;
* ``render_day_cell`` projects a day into what the template shows.

``build_bus_timeline`` is the per-bus "scheduler" grid shown next to the
calendar on the availability page.

Months are 0-based here (0 = January) and 1-based in URLs and on screen.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional, Sequence, Tuple

MONTH_NAMES = (
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December',
)

WEEKDAY_LABELS = ('Sun', 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat')

DISPLAY_CAP = 3


def matches(day: date, agreements: Sequence) -> list:
    """
    Return the agreements whose [from_date, to_date] range contains ``day``.

    Agreements are expected to expose ``from_date`` and ``to_date`` as dates
    (or None when the API sent something unreadable).  Records with a
    missing date or a reversed range simply never match.  Input order is
    preserved.
    """
    found = []
    for agreement in agreements:
        start = getattr(agreement, 'from_date', None)
        end = getattr(agreement, 'to_date', None)
        if start is None or end is None:
            continue
        if start <= day <= end:
            found.append(agreement)
    return found


def _normalise(year: int, month: int) -> Tuple[int, int]:
    # Carry month overflow into the year: (2025, 12) -> (2026, 0)
    carry, month = divmod(month, 12)
    return year + carry, month


def days_in_month(year: int, month: int) -> int:
    """Number of days in ``month`` (0-based), leap years included."""
    year, month = _normalise(year, month)
    return calendar.monthrange(year, month + 1)[1]


def leading_blanks(year: int, month: int) -> int:
    """Weekday of the 1st with Sunday = 0 .. Saturday = 6."""
    year, month = _normalise(year, month)
    # date.weekday() counts from Monday
    return (date(year, month + 1, 1).weekday() + 1) % 7


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last calendar day of the month, for the schedule request."""
    year, month = _normalise(year, month)
    first = date(year, month + 1, 1)
    return first, first + timedelta(days=days_in_month(year, month) - 1)


@dataclass(frozen=True)
class CalendarDay:
    date: Optional[date]
    is_today: bool = False
    occupants: tuple = ()

    @property
    def is_blank(self) -> bool:
        return self.date is None


def build_month(year: int, month: int, agreements: Sequence,
                today: Optional[date] = None) -> List[CalendarDay]:
    """
    Build the cells of a month grid.

    The result starts with ``leading_blanks`` padding cells so that day 1
    lines up under its weekday column, followed by one ``CalendarDay`` per
    day of the month.  ``today`` only drives the ``is_today`` flag and
    defaults to the current date.
    """
    year, month = _normalise(year, month)
    if today is None:
        today = date.today()
    cells = [CalendarDay(date=None) for _ in range(leading_blanks(year, month))]
    for day_number in range(1, days_in_month(year, month) + 1):
        day = date(year, month + 1, day_number)
        cells.append(CalendarDay(
            date=day,
            is_today=(day == today),
            occupants=tuple(matches(day, agreements)),
        ))
    return cells


def weeks(cells: Sequence[CalendarDay]) -> List[List[CalendarDay]]:
    """Split cells into rows of seven, padding the last row with blanks."""
    cells = list(cells)
    remainder = len(cells) % 7
    if remainder:
        cells.extend(CalendarDay(date=None) for _ in range(7 - remainder))
    return [cells[i:i + 7] for i in range(0, len(cells), 7)]


# ---------------------------------------------------------------------------
# Navigation state

@dataclass(frozen=True)
class MonthView:
    year: int
    month: int  # 0-based

    def __post_init__(self):
        year, month = _normalise(self.year, self.month)
        object.__setattr__(self, 'year', year)
        object.__setattr__(self, 'month', month)

    @classmethod
    def containing(cls, day: date) -> 'MonthView':
        return cls(day.year, day.month - 1)

    @classmethod
    def from_query(cls, year, month, today: Optional[date] = None) -> 'MonthView':
        """
        Build the view from request arguments (month is 1-based in URLs).

        Missing or malformed values fall back to the month containing today.
        """
        fallback = cls.containing(today or date.today())
        try:
            year = int(year)
            month = int(month)
        except (TypeError, ValueError):
            return fallback
        if not 1 <= month <= 12 or not 1 <= year <= 9999:
            return fallback
        return cls(year, month - 1)

    @property
    def month_number(self) -> int:
        return self.month + 1

    @property
    def title(self) -> str:
        return f"{MONTH_NAMES[self.month]} {self.year}"

    def bounds(self) -> Tuple[date, date]:
        return month_bounds(self.year, self.month)

    def next(self) -> 'MonthView':
        return next_month(self)

    def previous(self) -> 'MonthView':
        return previous_month(self)


def next_month(view: MonthView) -> MonthView:
    if view.month == 11:
        return MonthView(view.year + 1, 0)
    return MonthView(view.year, view.month + 1)


def previous_month(view: MonthView) -> MonthView:
    if view.month == 0:
        return MonthView(view.year - 1, 11)
    return MonthView(view.year, view.month - 1)


# ---------------------------------------------------------------------------
# Day cell

@dataclass(frozen=True)
class DayCell:
    label: str
    is_today: bool
    names: Tuple[str, ...]
    overflow: Optional[str]
    booked_count: int
    iso_date: str = ''


def render_day_cell(day: CalendarDay, cap: int = DISPLAY_CAP) -> DayCell:
    """Project a calendar day into the labels shown in its grid cell."""
    if day.is_blank:
        return DayCell(label='', is_today=False, names=(), overflow=None, booked_count=0)
    occupants = day.occupants
    names = tuple(getattr(a, 'customer_name', '') or '' for a in occupants[:cap])
    hidden = len(occupants) - cap
    return DayCell(
        label=str(day.date.day),
        is_today=day.is_today,
        names=names,
        overflow=f"+{hidden} more" if hidden > 0 else None,
        booked_count=len(occupants),
        iso_date=day.date.isoformat(),
    )


# ---------------------------------------------------------------------------
# Bus timeline

MAX_TIMELINE_DAYS = 62


@dataclass
class TimelineRow:
    bus: object
    cells: List[Optional[object]] = field(default_factory=list)


def timeline_dates(start: date, days: int) -> List[date]:
    days = max(1, min(int(days), MAX_TIMELINE_DAYS))
    return [start + timedelta(days=offset) for offset in range(days)]


def build_bus_timeline(buses: Sequence, agreements: Sequence, start: date,
                       days: int = 14, search: str = '') -> List[TimelineRow]:
    """
    One row per bus, one cell per day starting at ``start``.

    A cell holds the first agreement (in input order) that is assigned to
    the bus and covers the day, or None when the bus is free.  ``search``
    filters buses by vehicle number or name, case-insensitively.
    """
    columns = timeline_dates(start, days)
    needle = (search or '').strip().lower()
    rows = []
    for bus in buses:
        if needle:
            haystack = f"{getattr(bus, 'vehicle_number', '')} {getattr(bus, 'name', '') or ''}".lower()
            if needle not in haystack:
                continue
        assigned = [a for a in agreements if bus.id in (getattr(a, 'assigned_bus_ids', None) or ())]
        row = TimelineRow(bus=bus)
        for day in columns:
            occupants = matches(day, assigned)
            row.cells.append(occupants[0] if occupants else None)
        rows.append(row)
    return rows
