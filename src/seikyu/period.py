"""Billing periods and the invoice identifiers derived from them."""

import calendar
import re
from dataclasses import dataclass
from datetime import date

from .errors import ConfigurationError

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{1,2})$")


def last_day_of_month(year: int, month: int) -> date:
    """Final calendar day of the given month (month is 1-based)."""
    return date(year, month, calendar.monthrange(year, month)[1])


@dataclass(frozen=True)
class BillingPeriod:
    """A calendar month whose logged hours go onto one invoice."""
    year: int
    month: int

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise ConfigurationError(f"Invalid billing month: {self.month}")

    @classmethod
    def containing(cls, day: date) -> "BillingPeriod":
        return cls(day.year, day.month)

    @classmethod
    def parse(cls, value: str) -> "BillingPeriod":
        """Parse a ``YYYY-MM`` string."""
        match = _PERIOD_RE.match(value.strip())
        if not match:
            raise ConfigurationError(f"Invalid period (expected YYYY-MM): {value!r}")
        return cls(int(match.group(1)), int(match.group(2)))

    @property
    def last_day(self) -> date:
        return last_day_of_month(self.year, self.month)

    @property
    def invoice_number(self) -> str:
        """Last day of the period as ``YYYYMMDD``.

        Built from the digits directly so the result never depends on
        locale or timezone.
        """
        d = self.last_day
        return f"{d.year:04d}{d.month:02d}{d.day:02d}"

    @property
    def invoice_date(self) -> str:
        """Last day of the period as ``YYYY/MM/DD``."""
        d = self.last_day
        return f"{d.year:04d}/{d.month:02d}/{d.day:02d}"

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"
