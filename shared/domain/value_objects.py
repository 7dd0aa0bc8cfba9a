"""
Common Value Objects

- Money: a non-negative amount with a currency code
- DateRange: a half-open range of calendar dates [start_date, end_date)
"""

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from shared.domain.base import ValueObject

CURRENCY_CODE = re.compile(r'^[A-Z]{3}$')


@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    Immutable; multiplication is used to price a stay by nights.
    """
    amount: Decimal
    currency: str = 'INR'

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))
        if self.amount < 0:
            raise ValueError("Amount cannot be negative")
        if not CURRENCY_CODE.match(self.currency or ''):
            raise ValueError(f"Unsupported currency: {self.currency}")

    def __mul__(self, factor) -> 'Money':
        if not isinstance(factor, (int, Decimal)):
            raise TypeError("Can only multiply Money by an integer or Decimal")
        return Money(self.amount * factor, self.currency)

    def __str__(self):
        return f"{self.amount:,.2f} {self.currency}"

    def __repr__(self):
        return f"Money({self.amount}, '{self.currency}')"


@dataclass(frozen=True, order=True)
class DateRange(ValueObject):
    """
    Date range value object

    start_date is inclusive, end_date is exclusive, so a stay ending on a
    day and another starting on that same day do not overlap.
    """
    start_date: date
    end_date: date

    def __post_init__(self):
        if self.start_date >= self.end_date:
            raise ValueError(f"Start date ({self.start_date}) must be before end date ({self.end_date})")

    def overlaps_with(self, other: 'DateRange') -> bool:
        """
        Check if this range overlaps with another

        Examples:
            - DateRange(25, 28) overlaps with DateRange(27, 30) -> True
            - DateRange(25, 28) overlaps with DateRange(28, 31) -> False (adjacent)
        """
        if not isinstance(other, DateRange):
            raise TypeError("Can only check overlap with another DateRange")

        return (self.start_date < other.end_date and
                self.end_date > other.start_date)

    def contains(self, check_date: date) -> bool:
        return self.start_date <= check_date < self.end_date

    def __len__(self) -> int:
        """Number of nights"""
        return (self.end_date - self.start_date).days

    def __str__(self):
        return f"{self.start_date.isoformat()} - {self.end_date.isoformat()}"

    def __repr__(self):
        return f"DateRange({self.start_date}, {self.end_date})"
