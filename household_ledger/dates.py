"""
Calendar helpers for monthly schedules.

All month arithmetic in the ledger goes through these functions so that
leap years and short months are handled in one place.
"""

import calendar
from datetime import date


def month_start(d: date) -> date:
    """First day of the month containing `d`."""
    return d.replace(day=1)


def month_end(d: date) -> date:
    """Last day of the month containing `d`."""
    return d.replace(day=calendar.monthrange(d.year, d.month)[1])


def add_months(d: date, months: int) -> date:
    """
    Shift `d` by a number of calendar months, clamping the day.

    add_months(date(2025, 1, 31), 1) -> date(2025, 2, 28)
    """
    index = d.year * 12 + (d.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def months_between(earlier: date, later: date) -> int:
    """Whole calendar months from `earlier`'s month to `later`'s month."""
    return (later.year - earlier.year) * 12 + (later.month - earlier.month)


def calculate_actual_due_date(due_day: int, year: int, month: int) -> date:
    """
    Place a day-of-month inside a concrete month.

    Days past the end of the month clamp to its last day (31 in February
    gives the 28th, or the 29th in a leap year). Non-positive days clamp
    to the 1st.
    """
    last_day = calendar.monthrange(year, month)[1]
    if due_day <= 0:
        due_day = 1
    return date(year, month, min(due_day, last_day))


def iter_month_starts(first: date, last: date):
    """Yield the first day of every month from `first` through `last`."""
    current = month_start(first)
    while current <= last:
        yield current
        current = add_months(current, 1)
