"""Dashboard aggregation over transactions and shared items.

Stateless helpers that take full lists and return grouped figures: income
and expense totals, the biggest expense categories, per-month totals and an
overview of shared expenses still being paid off, plus monthly budget and
savings goal progress.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple

from .utils import month_key

ZERO = Decimal("0")

TRANSACTION_TYPES = ("income", "expense")


@dataclass
class Transaction:
    """A single income or expense entry.

    Expense amounts may be stored with either sign; they are always counted
    by absolute value.
    """

    amount: Decimal
    type: str  # "income" or "expense"
    category: str
    date: date
    description: str = ""


@dataclass
class SharedItem:
    title: str
    total_amount: Decimal
    total_paid: Decimal

    @property
    def remaining(self) -> Decimal:
        return self.total_amount - self.total_paid


def _expense_value(t: Transaction) -> Decimal:
    return abs(t.amount)


def summarize_transactions(transactions: Iterable[Transaction]) -> Dict[str, Decimal]:
    """Return total income, total expenses and the resulting balance."""
    income = ZERO
    expenses = ZERO
    for t in transactions:
        if t.type == "income":
            income += t.amount
        elif t.type == "expense":
            expenses += _expense_value(t)
    return {"income": income, "expenses": expenses, "balance": income - expenses}


def expenses_by_category(transactions: Iterable[Transaction], top: int = 5) -> List[Tuple[str, Decimal]]:
    """Return the ``top`` expense categories by total spent, largest first.

    Categories with equal totals keep the order in which they first appear.
    """
    totals: Dict[str, Decimal] = {}
    for t in transactions:
        if t.type != "expense":
            continue
        totals[t.category] = totals.get(t.category, ZERO) + _expense_value(t)
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return ranked[:top]


def totals_by_month(transactions: Iterable[Transaction]) -> Dict[str, Dict[str, Decimal]]:
    """Group income and expenses by ``YYYY-MM``, in ascending month order."""
    months: Dict[str, Dict[str, Decimal]] = {}
    for t in transactions:
        bucket = months.setdefault(month_key(t.date), {"income": ZERO, "expenses": ZERO})
        if t.type == "income":
            bucket["income"] += t.amount
        elif t.type == "expense":
            bucket["expenses"] += _expense_value(t)
    return {key: months[key] for key in sorted(months)}


def shared_overview(items: Iterable[SharedItem], active_limit: int = 3) -> Dict[str, object]:
    """Totals across shared items plus the first few that are still owing."""
    items = list(items)
    shared_total = sum((i.total_amount for i in items), ZERO)
    shared_paid = sum((i.total_paid for i in items), ZERO)
    active = [i.title for i in items if i.total_paid < i.total_amount][:active_limit]
    return {
        "shared_total": shared_total,
        "shared_paid": shared_paid,
        "shared_remaining": shared_total - shared_paid,
        "active": active,
    }


BUDGET_WARNING_RATIO = Decimal("0.8")


@dataclass
class Budget:
    """A spending limit for one category in one month."""

    category: str
    month: date  # first day of the month
    amount: Decimal


@dataclass
class SavingsGoal:
    name: str
    target_amount: Decimal
    current_amount: Decimal


def _capped_percent(part: Decimal, whole: Decimal) -> Decimal:
    if whole <= 0:
        return Decimal(100) if part > 0 else ZERO
    return min(part / whole * Decimal(100), Decimal(100))


def spending_by_category_month(transactions: Iterable[Transaction]) -> Dict[Tuple[str, str], Decimal]:
    """Sum expenses per ``(YYYY-MM, category)``; income is ignored."""
    spending: Dict[Tuple[str, str], Decimal] = {}
    for t in transactions:
        if t.type != "expense":
            continue
        key = (month_key(t.date), t.category)
        spending[key] = spending.get(key, ZERO) + _expense_value(t)
    return spending


def budget_status(budget: Budget, spending: Dict[Tuple[str, str], Decimal]) -> Dict[str, object]:
    """Compare a budget against the month's spending in its category.

    ``progress_percent`` is capped at 100. A zero budget counts as fully used
    as soon as anything is spent. ``warning`` is raised from 80% of the
    budget upwards; ``left`` and ``over_by`` are never negative.
    """
    spent = spending.get((month_key(budget.month), budget.category), ZERO)
    return {
        "category": budget.category,
        "month": month_key(budget.month),
        "amount": budget.amount,
        "spent": spent,
        "progress_percent": _capped_percent(spent, budget.amount),
        "over_budget": spent > budget.amount,
        "warning": spent >= budget.amount * BUDGET_WARNING_RATIO,
        "left": max(ZERO, budget.amount - spent),
        "over_by": max(ZERO, spent - budget.amount),
    }


def goal_progress(goal: SavingsGoal) -> Dict[str, object]:
    """Capped progress towards a savings goal."""
    return {
        "name": goal.name,
        "target_amount": goal.target_amount,
        "current_amount": goal.current_amount,
        "progress_percent": _capped_percent(goal.current_amount, goal.target_amount),
        "completed": goal.current_amount >= goal.target_amount,
        "remaining": max(ZERO, goal.target_amount - goal.current_amount),
    }
