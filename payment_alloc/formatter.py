"""Output helpers for the payment allocation toolkit.

This module renders allocation summaries, per-payment splits, schedule
period status and dashboard figures as plain text tables using built-in
printing and string formatting. Currency symbols are left to the caller.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .data_models import Allocation, PeriodStatus, SchedulePeriod


def print_summary(summary: Dict[str, object]) -> None:
    """Print the headline figures for an obligation in a human-readable format."""
    print("Summary")
    print("-" * 72)
    print(f"Total amount       : {summary['total_amount']:.2f}")
    print(f"Total paid         : {summary['total_paid']:.2f}")
    print(f"Remaining          : {summary['remaining']:.2f}")
    print(f"Interest paid      : {summary['interest_paid']:.2f}")
    print(f"Interest left      : {summary['interest_remaining']:.2f}")
    print(f"Principal paid     : {summary['principal_paid']:.2f}")
    print(f"Principal left     : {summary['principal_remaining']:.2f}")
    if summary.get('overpayment'):
        print(f"Overpayment        : {summary['overpayment']:.2f}")
    if summary.get('period_overpayment'):
        print(f"Period overpay     : {summary['period_overpayment']:.2f}")
    if summary.get('periods_total'):
        print(f"Periods complete   : {summary['periods_complete']} of {summary['periods_total']}")
    print(f"Progress           : {summary['progress_percent']:.1f}%")
    print("-" * 72)


def print_allocations(allocations: Iterable[Allocation], payments: Optional[Sequence[object]] = None) -> None:
    """Print how each payment was split, in the order the payments were applied.

    Parameters
    ----------
    allocations: Iterable[Allocation]
        The per-payment allocations.
    payments: Sequence, optional
        The payments the allocations came from. When given, the paid date
        and description columns are filled from them.
    """
    headers = ["#", "Date", "Amount", "Interest", "Principal", "Overpay", "Description"]
    print("\t".join(headers))
    for index, allocation in enumerate(allocations):
        payment = payments[index] if payments is not None else None
        paid_at = getattr(payment, "paid_at", None)
        row = [
            str(index + 1),
            paid_at.strftime("%Y-%m-%d") if paid_at else "-",
            f"{allocation.amount:.2f}",
            f"{allocation.to_interest:.2f}",
            f"{allocation.to_principal:.2f}",
            f"{allocation.overpayment:.2f}",
            getattr(payment, "description", None) or "",
        ]
        print("\t".join(row))


def print_schedule(schedule: Iterable[SchedulePeriod]) -> None:
    """Print a payment schedule with a totals row."""
    print("\t".join(["Period", "Due", "Principal", "Interest", "Total"]))
    principal = Decimal("0")
    interest = Decimal("0")
    for period in schedule:
        principal += period.principal
        interest += period.interest
        print(
            "\t".join(
                [
                    str(period.period_id),
                    period.due_date.strftime("%Y-%m-%d"),
                    f"{period.principal:.2f}",
                    f"{period.interest:.2f}",
                    f"{period.total:.2f}",
                ]
            )
        )
    print("\t".join(["Total", "", f"{principal:.2f}", f"{interest:.2f}", f"{principal + interest:.2f}"]))


def print_periods(statuses: Iterable[PeriodStatus]) -> None:
    """Print the completion status of each schedule period.

    Overpayment on a period is shown with a leading ``+``; incomplete periods
    show what is still owed.
    """
    print("\t".join(["Period", "Due", "Total", "Paid", "Overpay", "Status"]))
    for status in statuses:
        period = status.period
        overpay = f"+{status.overpayment:.2f}" if status.overpayment > 0 else "-"
        state = "Complete" if status.complete else f"Remaining: {status.remaining:.2f}"
        print(
            "\t".join(
                [
                    str(period.period_id),
                    period.due_date.strftime("%Y-%m-%d"),
                    f"{period.total:.2f}",
                    f"{status.paid:.2f}",
                    overpay,
                    state,
                ]
            )
        )


def print_dashboard(
    totals: Dict[str, Decimal],
    categories: List[Tuple[str, Decimal]],
    months: Dict[str, Dict[str, Decimal]],
) -> None:
    """Print income/expense totals, the top categories and monthly figures."""
    print("Overview")
    print("=" * 72)
    print(f"Income             : {totals['income']:.2f}")
    print(f"Expenses           : {totals['expenses']:.2f}")
    print(f"Balance            : {totals['balance']:.2f}")
    if categories:
        print("")
        print(f"{'Category':30s} {'Spent':>15s}")
        for name, value in categories:
            print(f"{name:30s} {value:15.2f}")
    if months:
        print("")
        print(f"{'Month':10s} {'Income':>15s} {'Expenses':>15s} {'Net':>15s}")
        for key, bucket in months.items():
            net = bucket['income'] - bucket['expenses']
            print(f"{key:10s} {bucket['income']:15.2f} {bucket['expenses']:15.2f} {net:15.2f}")
    print("=" * 72)


def print_budgets(statuses: List[Dict[str, object]]) -> None:
    """Print each budget with what was spent and how much is left or overspent."""
    print(f"{'Month':8s} {'Category':20s} {'Budget':>12s} {'Spent':>12s} {'Used':>7s}  Status")
    for status in statuses:
        if status["over_budget"]:
            note = f"Over by {status['over_by']:.2f}"
        elif status["warning"]:
            note = f"Warning, {status['left']:.2f} left"
        else:
            note = f"{status['left']:.2f} left"
        print(
            f"{status['month']:8s} {status['category']:20s} {status['amount']:12.2f} "
            f"{status['spent']:12.2f} {status['progress_percent']:6.1f}%  {note}"
        )
