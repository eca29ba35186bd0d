"""Data models for the payment allocation engine.

This module defines dataclasses for the entities the engine works with: the
obligation being paid off, the payments applied against it, the split of a
single payment, the running totals threaded through a payment sequence and
the periods of a payment schedule. Monetary values are ``Decimal``
throughout.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional, Union


@dataclass
class Obligation:
    """A debt-like target split into principal and interest.

    Attributes
    ----------
    principal: Decimal
        Total amount owed for principal.
    interest: Decimal
        Total amount owed for interest.
    """

    principal: Decimal
    interest: Decimal

    @property
    def total(self) -> Decimal:
        return self.principal + self.interest


@dataclass
class Payment:
    """A single contribution applied against an obligation.

    The position of a payment in the sequence handed to the engine is its
    allocation order. ``paid_at`` is optional; when every payment in a
    sequence carries one, the engine checks that the sequence is
    chronological.
    """

    amount: Decimal
    period_id: Optional[Union[int, str]] = None
    paid_at: Optional[date] = None  # date or datetime
    description: Optional[str] = None
    payer: Optional[str] = None


@dataclass(frozen=True)
class Allocation:
    """How one payment was split between the interest and principal buckets.

    ``overpayment`` is the part of ``amount`` that neither bucket could
    absorb. It is reported, never applied elsewhere.
    """

    amount: Decimal
    to_interest: Decimal
    to_principal: Decimal

    @property
    def allocated(self) -> Decimal:
        return self.to_interest + self.to_principal

    @property
    def overpayment(self) -> Decimal:
        return self.amount - self.allocated


@dataclass(frozen=True)
class RunningTotals:
    """Aggregate state after applying a sequence of payments."""

    total_interest_paid: Decimal
    total_principal_paid: Decimal
    remaining_interest: Decimal
    remaining_principal: Decimal

    @property
    def total_paid(self) -> Decimal:
        return self.total_interest_paid + self.total_principal_paid

    @property
    def remaining(self) -> Decimal:
        return self.remaining_interest + self.remaining_principal


@dataclass
class SchedulePeriod:
    """One installment of a payment schedule with its own sub-target."""

    period_id: Union[int, str]
    due_date: date
    principal: Decimal
    interest: Decimal

    @property
    def total(self) -> Decimal:
        return self.principal + self.interest


@dataclass(frozen=True)
class PeriodStatus:
    """Payments tagged to a period compared against that period's total.

    ``to_interest`` and ``to_principal`` come from running the allocator over
    the period's payments against the period's own sub-target.
    """

    period: SchedulePeriod
    paid: Decimal
    to_interest: Decimal
    to_principal: Decimal
    overpayment: Decimal
    remaining: Decimal
    complete: bool


# Anything the engine accepts as a monetary amount.
Money = Union[Decimal, int, float, str]


@dataclass
class Ledger:
    """Everything known about one shared expense: targets, schedule, payments."""

    obligation: Obligation
    schedule: List[SchedulePeriod] = field(default_factory=list)
    payments: List[Payment] = field(default_factory=list)
