"""Billing-day rule: decides whether today is the day to issue the invoice.

Invoices go out on the day before month-end. When month-end or the day
before it falls on a weekend, issuance moves forward to the preceding
Thursday so someone can still act on it before the weekend.
"""

from datetime import date, datetime, timedelta

from .period import last_day_of_month

THURSDAY = 4


def weekday_sun0(day: date) -> int:
    """Weekday with 0=Sunday .. 6=Saturday."""
    return day.isoweekday() % 7


def is_weekend(day: date) -> bool:
    return weekday_sun0(day) in (0, 6)


def thursday_on_or_before(day: date) -> date:
    """The Thursday on or before ``day``."""
    return day - timedelta(days=(weekday_sun0(day) + 3) % 7)


def billing_day(year: int, month: int) -> date:
    """The single day in the month on which the invoice run happens."""
    last_day = last_day_of_month(year, month)
    day_before_last = last_day - timedelta(days=1)

    if is_weekend(last_day):
        return thursday_on_or_before(last_day)
    if is_weekend(day_before_last):
        return thursday_on_or_before(day_before_last)
    return day_before_last


def should_run_today(today: date) -> bool:
    """Whether invoice generation should execute on ``today``."""
    if isinstance(today, datetime):
        today = today.date()
    return today == billing_day(today.year, today.month)


def next_billing_day(today: date) -> date:
    """The first billing day on or after ``today``."""
    if isinstance(today, datetime):
        today = today.date()
    day = billing_day(today.year, today.month)
    if day >= today:
        return day
    if today.month == 12:
        return billing_day(today.year + 1, 1)
    return billing_day(today.year, today.month + 1)
