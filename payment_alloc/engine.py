"""Core allocation engine for shared-expense payment schedules.

Payments are applied against an obligation made of two buckets, interest and
principal. Each payment retires outstanding interest first and only the
leftover reduces principal; whatever neither bucket can absorb is reported as
overpayment and never applied elsewhere. The functions here are pure: every
call recomputes its result from the inputs it is given.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from decimal import ROUND_DOWN, Decimal, getcontext
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .data_models import (
    Allocation,
    Money,
    Obligation,
    PeriodStatus,
    Payment,
    RunningTotals,
    SchedulePeriod,
)
from .utils import CENT, add_months

getcontext().prec = 28  # increase precision for financial calculations

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class AllocationError(ValueError):
    """Base class for errors raised by the allocation engine."""


class InvalidPaymentError(AllocationError):
    """A payment amount or target is negative, NaN, infinite or not numeric."""


class PaymentOrderError(AllocationError):
    """Payments were not supplied in chronological order."""


class ScheduleMismatchError(AllocationError):
    """A payment schedule does not add up to its obligation."""


def to_money(value: Money, what: str = "amount") -> Decimal:
    """Convert ``value`` to a finite, non-negative ``Decimal``.

    Floats go through ``str`` first so that ``0.1`` becomes ``Decimal('0.1')``
    rather than its binary expansion.
    """
    if isinstance(value, bool):
        raise InvalidPaymentError(f"{what} must be numeric, got {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except ArithmeticError as exc:
        raise InvalidPaymentError(f"{what} must be numeric, got {value!r}") from exc
    if not amount.is_finite():
        raise InvalidPaymentError(f"{what} must be finite, got {value!r}")
    if amount < 0:
        raise InvalidPaymentError(f"{what} must not be negative, got {value!r}")
    return amount


def _clamp_balance(value: Money, what: str) -> Decimal:
    """Return a remaining balance as a ``Decimal``, clamping negatives to zero."""
    if isinstance(value, Decimal):
        balance = value
    else:
        try:
            balance = Decimal(str(value).strip())
        except ArithmeticError as exc:
            raise InvalidPaymentError(f"{what} must be numeric, got {value!r}") from exc
    if balance.is_nan():
        raise InvalidPaymentError(f"{what} must not be NaN")
    if balance < 0:
        logger.debug("Clamping negative %s %s to zero", what, balance)
        return ZERO
    return balance


def _amount_of(payment: Any) -> Decimal:
    amount = payment.amount if hasattr(payment, "amount") else payment
    return to_money(amount, "payment amount")


def allocate(payment: Money, remaining_interest: Money, remaining_principal: Money) -> Allocation:
    """Split a single payment between interest and principal.

    Interest is always cleared before principal: ``to_interest`` is
    ``min(payment, remaining_interest)`` and only the leftover goes toward
    principal, capped at ``remaining_principal``. Anything beyond both
    balances stays unallocated and shows up as ``Allocation.overpayment``.

    Raises
    ------
    InvalidPaymentError
        If ``payment`` is negative, NaN, infinite or not numeric.
    """
    amount = to_money(payment, "payment amount")
    interest_left = _clamp_balance(remaining_interest, "remaining interest")
    principal_left = _clamp_balance(remaining_principal, "remaining principal")

    to_interest = ZERO
    leftover = amount
    if interest_left > 0:
        to_interest = min(amount, interest_left)
        leftover = amount - to_interest

    to_principal = ZERO
    if leftover > 0 and principal_left > 0:
        to_principal = min(leftover, principal_left)

    return Allocation(amount=amount, to_interest=to_interest, to_principal=to_principal)


def allocate_each(
    payments: Iterable[Any], principal_target: Money, interest_target: Money
) -> Tuple[List[Allocation], RunningTotals]:
    """Apply ``payments`` in order and keep the split of every payment.

    Returns the per-payment allocations together with the final running
    totals. ``payments`` may contain plain amounts or objects with an
    ``amount`` attribute.
    """
    remaining_principal = to_money(principal_target, "principal target")
    remaining_interest = to_money(interest_target, "interest target")
    interest_paid = ZERO
    principal_paid = ZERO
    allocations: List[Allocation] = []

    for payment in payments:
        allocation = allocate(_amount_of(payment), remaining_interest, remaining_principal)
        interest_paid += allocation.to_interest
        principal_paid += allocation.to_principal
        remaining_interest -= allocation.to_interest
        remaining_principal -= allocation.to_principal
        allocations.append(allocation)

    totals = RunningTotals(
        total_interest_paid=interest_paid,
        total_principal_paid=principal_paid,
        remaining_interest=remaining_interest,
        remaining_principal=remaining_principal,
    )
    return allocations, totals


def accumulate(payments: Iterable[Any], principal_target: Money, interest_target: Money) -> RunningTotals:
    """Return the running totals after applying ``payments`` in order.

    Both remaining balances start at their targets and both paid totals at
    zero. The result depends only on the ordered payments and the targets.
    """
    _, totals = allocate_each(payments, principal_target, interest_target)
    return totals


def _timestamp_key(paid_at: date) -> datetime:
    # dates, naive and aware datetimes do not compare with each other
    if isinstance(paid_at, datetime):
        if paid_at.tzinfo is not None:
            return paid_at.astimezone(timezone.utc).replace(tzinfo=None)
        return paid_at
    return datetime.combine(paid_at, time.min)


def order_payments(payments: Iterable[Payment]) -> List[Payment]:
    """Return ``payments`` sorted oldest first by ``paid_at``.

    The sort is stable, so payments made at the same moment keep their
    relative order.

    Raises
    ------
    PaymentOrderError
        If any payment has no ``paid_at`` timestamp.
    """
    items = list(payments)
    missing = [index for index, p in enumerate(items) if p.paid_at is None]
    if missing:
        raise PaymentOrderError(
            f"Cannot order payments without a paid_at timestamp (positions {missing})"
        )
    return sorted(items, key=lambda p: _timestamp_key(p.paid_at))


def ensure_chronological(payments: Sequence[Any]) -> None:
    """Raise ``PaymentOrderError`` if timestamped payments go back in time.

    The check only applies when every payment carries ``paid_at``; a
    sequence of bare amounts is taken in the order given.
    """
    stamps = [getattr(p, "paid_at", None) for p in payments]
    if not stamps or any(s is None for s in stamps):
        return
    keys = [_timestamp_key(s) for s in stamps]
    for position in range(1, len(keys)):
        if keys[position] < keys[position - 1]:
            raise PaymentOrderError(
                f"Payment {position} (paid {stamps[position]}) is older than the "
                f"payment before it (paid {stamps[position - 1]})"
            )


def allocate_payments(
    payments: Sequence[Any], obligation: Obligation
) -> Tuple[List[Allocation], RunningTotals]:
    """Compute the per-payment breakdown and final totals for an obligation.

    Parameters
    ----------
    payments: Sequence
        Payments in allocation order. When every payment has ``paid_at`` the
        sequence must be chronological.
    obligation: Obligation
        The principal and interest targets.

    Returns
    -------
    allocations: List[Allocation]
        One entry per payment, in the order applied.
    totals: RunningTotals
        Paid and remaining figures after the last payment.
    """
    payments = list(payments)
    ensure_chronological(payments)
    return allocate_each(payments, obligation.principal, obligation.interest)


def period_status(period: SchedulePeriod, payments: Iterable[Payment]) -> PeriodStatus:
    """Compare the payments tagged to ``period`` against the period's total.

    Payments tagged to other periods are ignored. Overpayment on a period is
    clamped at zero from below and never reduces any other period.
    """
    period_total = to_money(period.principal, "period principal") + to_money(
        period.interest, "period interest"
    )
    tagged = [p for p in payments if getattr(p, "period_id", None) == period.period_id]
    totals = accumulate(tagged, period.principal, period.interest)
    paid = sum((_amount_of(p) for p in tagged), ZERO)
    return PeriodStatus(
        period=period,
        paid=paid,
        to_interest=totals.total_interest_paid,
        to_principal=totals.total_principal_paid,
        overpayment=max(ZERO, paid - period_total),
        remaining=max(ZERO, period_total - paid),
        complete=paid >= period_total,
    )


def compute_period_statuses(
    schedule: Iterable[SchedulePeriod], payments: Iterable[Payment]
) -> List[PeriodStatus]:
    """Return the status of every schedule period, in schedule order."""
    payments = list(payments)
    return [period_status(period, payments) for period in schedule]


def schedule_totals(schedule: Iterable[SchedulePeriod]) -> Obligation:
    """Sum a schedule's periods into the obligation they describe."""
    principal = ZERO
    interest = ZERO
    for period in schedule:
        principal += to_money(period.principal, "period principal")
        interest += to_money(period.interest, "period interest")
    return Obligation(principal=principal, interest=interest)


def validate_schedule(schedule: Sequence[SchedulePeriod], obligation: Obligation) -> None:
    """Check that ``schedule`` adds up to ``obligation``.

    Raises
    ------
    ScheduleMismatchError
        If period ids repeat or the principal/interest sums differ from the
        obligation targets.
    """
    seen = set()
    for period in schedule:
        if period.period_id in seen:
            raise ScheduleMismatchError(f"Duplicate schedule period {period.period_id}")
        seen.add(period.period_id)
    totals = schedule_totals(schedule)
    if totals.principal != obligation.principal:
        raise ScheduleMismatchError(
            f"Schedule principal {totals.principal} does not match obligation principal {obligation.principal}"
        )
    if totals.interest != obligation.interest:
        raise ScheduleMismatchError(
            f"Schedule interest {totals.interest} does not match obligation interest {obligation.interest}"
        )


def renumber_periods(schedule: Iterable[SchedulePeriod]) -> List[SchedulePeriod]:
    """Return the schedule with periods renumbered 1..n in their current order."""
    return [
        SchedulePeriod(
            period_id=number,
            due_date=period.due_date,
            principal=period.principal,
            interest=period.interest,
        )
        for number, period in enumerate(schedule, start=1)
    ]


def _split(amount: Decimal, parts: int) -> List[Decimal]:
    share = (amount / Decimal(parts)).quantize(CENT, rounding=ROUND_DOWN)
    shares = [share] * parts
    # rounding remainder goes to the last period
    shares[-1] = amount - share * (parts - 1)
    return shares


def build_even_schedule(obligation: Obligation, periods: int, first_due: date) -> List[SchedulePeriod]:
    """Spread an obligation evenly over ``periods`` monthly installments.

    Each share is rounded to cents and the final period absorbs the rounding
    remainder, so the schedule always sums to the obligation exactly. Due
    dates advance one month at a time from ``first_due``.
    """
    if periods <= 0:
        raise ValueError("Number of periods must be positive")
    principal = to_money(obligation.principal, "principal")
    interest = to_money(obligation.interest, "interest")
    principal_shares = _split(principal, periods)
    interest_shares = _split(interest, periods)
    return [
        SchedulePeriod(
            period_id=index + 1,
            due_date=add_months(first_due, index),
            principal=principal_shares[index],
            interest=interest_shares[index],
        )
        for index in range(periods)
    ]


def summarize(
    obligation: Obligation,
    payments: Sequence[Any],
    schedule: Optional[Sequence[SchedulePeriod]] = None,
) -> Dict[str, object]:
    """Compute the headline figures for an obligation and its payments.

    ``overpayment`` is what the obligation as a whole could not absorb;
    ``period_overpayment`` sums the per-period overpayments of the schedule.
    ``progress_percent`` is 0 when the obligation total is zero.
    """
    allocations, totals = allocate_payments(payments, obligation)
    statuses = compute_period_statuses(schedule, payments) if schedule else []
    return summarize_results(obligation, allocations, totals, statuses)


def summarize_results(
    obligation: Obligation,
    allocations: Sequence[Allocation],
    totals: RunningTotals,
    statuses: Sequence[PeriodStatus] = (),
) -> Dict[str, object]:
    """Build the ``summarize`` figures from an engine run that already happened."""
    total_amount = to_money(obligation.principal, "principal") + to_money(obligation.interest, "interest")
    total_paid = sum((a.amount for a in allocations), ZERO)
    allocated = totals.total_paid

    period_overpayment = sum((s.overpayment for s in statuses), ZERO)
    periods_complete = sum(1 for s in statuses if s.complete)

    progress = ZERO
    if total_amount > 0:
        progress = allocated / total_amount * Decimal(100)

    return {
        "total_amount": float(total_amount),
        "total_paid": float(total_paid),
        "allocated": float(allocated),
        "remaining": float(totals.remaining),
        "interest_paid": float(totals.total_interest_paid),
        "principal_paid": float(totals.total_principal_paid),
        "interest_remaining": float(totals.remaining_interest),
        "principal_remaining": float(totals.remaining_principal),
        "overpayment": float(total_paid - allocated),
        "period_overpayment": float(period_overpayment),
        "periods_complete": periods_complete,
        "periods_total": len(statuses),
        "payments_made": len(allocations),
        "progress_percent": float(progress),
    }
