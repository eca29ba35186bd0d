"""Command-line interface for the payment allocation toolkit.

This module uses the ``click`` library to implement a multi-command
interface. Users can allocate payments against a shared expense, check the
status of each schedule period, lay out an even payment schedule or
summarize a transaction list. Results can be printed to the terminal or
exported to JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import click

from .aggregation import (
    TRANSACTION_TYPES,
    Budget,
    SavingsGoal,
    SharedItem,
    Transaction,
    budget_status,
    expenses_by_category,
    spending_by_category_month,
    summarize_transactions,
    totals_by_month,
)
from .data_models import Allocation, Ledger, Obligation, Payment, PeriodStatus, SchedulePeriod
from .engine import (
    AllocationError,
    allocate_payments,
    build_even_schedule,
    compute_period_statuses,
    order_payments,
    schedule_totals,
    summarize_results,
    validate_schedule,
)
from .formatter import (
    print_allocations,
    print_budgets,
    print_dashboard,
    print_periods,
    print_schedule,
    print_summary,
)
from .utils import decimal_from_str, parse_date, parse_year_month


def parse_amount(value: Any) -> Decimal:
    """Parse a monetary amount with optional suffixes.

    Accepts numbers, plain numeric strings ("1500", "1,500.50") and
    shorthand with ``k``/``m`` suffixes (e.g., "2.5k" meaning 2500).
    """
    if isinstance(value, bool):
        raise click.BadParameter(f"Invalid amount: {value}")
    if isinstance(value, (int, float, Decimal)):
        return decimal_from_str(str(value))
    text = str(value).strip().lower().replace(",", "")
    factor = Decimal(1)
    if text.endswith("k"):
        factor = Decimal(1_000)
        text = text[:-1]
    elif text.endswith("m"):
        factor = Decimal(1_000_000)
        text = text[:-1]
    try:
        return decimal_from_str(text) * factor
    except ValueError:
        raise click.BadParameter(f"Invalid amount: {value}")


def _parse_period_id(value: Any) -> Union[int, str]:
    """Return a period id: numbers and numeric strings become ``int``, other
    non-empty strings (e.g. "2024-01") are kept as stripped text."""
    if isinstance(value, bool):
        raise click.BadParameter(f"Invalid period id: {value}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise click.BadParameter(f"Invalid period id: {value}")
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise click.BadParameter("Period id must not be empty")
        try:
            return int(text)
        except ValueError:
            return text
    raise click.BadParameter(f"Invalid period id: {value!r}")


def _parse_date_field(value: Any, field_name: str):
    try:
        return parse_date(value)
    except ValueError as exc:
        raise click.BadParameter(f"{field_name}: {exc}")


def parse_schedule_records(records: Iterable[Dict[str, Any]]) -> List[SchedulePeriod]:
    """Build schedule periods from ``{period, due_date, principal, interest}`` records.

    Periods without a number are numbered by their position, starting at 1.
    """
    schedule: List[SchedulePeriod] = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise click.BadParameter(f"Schedule entry {index + 1} must be an object")
        if "due_date" not in record:
            raise click.BadParameter(f"Schedule entry {index + 1} is missing due_date")
        raw_id = record.get("period", record.get("period_id", index + 1))
        schedule.append(
            SchedulePeriod(
                period_id=_parse_period_id(raw_id),
                due_date=_parse_date_field(record["due_date"], "due_date"),
                principal=parse_amount(record.get("principal", 0)),
                interest=parse_amount(record.get("interest", 0)),
            )
        )
    return schedule


def parse_payment_records(records: Iterable[Any]) -> List[Payment]:
    """Build payments from records; a bare number is a payment with no metadata."""
    payments: List[Payment] = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            payments.append(Payment(amount=parse_amount(record)))
            continue
        if "amount" not in record:
            raise click.BadParameter(f"Payment {index + 1} is missing amount")
        raw_period = record.get("period", record.get("period_id"))
        paid_at = record.get("paid_at")
        payments.append(
            Payment(
                amount=parse_amount(record["amount"]),
                period_id=_parse_period_id(raw_period) if raw_period is not None else None,
                paid_at=_parse_date_field(paid_at, "paid_at") if paid_at else None,
                description=record.get("description"),
                payer=record.get("payer"),
            )
        )
    return payments


def build_ledger(data: Dict[str, Any]) -> Ledger:
    """Turn a ledger document into a ``Ledger``.

    When ``principal`` and ``interest`` are both absent they are derived from
    the schedule; when given alongside a schedule they must agree with it.
    Payments that all carry ``paid_at`` are put in chronological order,
    otherwise the document order is kept.
    """
    if not isinstance(data, dict):
        raise click.BadParameter("Ledger must be a JSON object")
    schedule = parse_schedule_records(data.get("schedule") or [])
    payments = parse_payment_records(data.get("payments") or [])

    derive_targets = "principal" not in data and "interest" not in data
    if derive_targets and not schedule:
        raise click.BadParameter("Ledger needs principal/interest or a schedule")
    try:
        if derive_targets:
            obligation = schedule_totals(schedule)
        else:
            obligation = Obligation(
                principal=parse_amount(data.get("principal", 0)),
                interest=parse_amount(data.get("interest", 0)),
            )
        if schedule:
            validate_schedule(schedule, obligation)
        if payments and all(p.paid_at is not None for p in payments):
            payments = order_payments(payments)
    except AllocationError as exc:
        raise click.BadParameter(str(exc))
    return Ledger(obligation=obligation, schedule=schedule, payments=payments)


def build_ledger_from_options(
    principal: Optional[str],
    interest: Optional[str],
    payment: Tuple[str, ...],
    ledger_path: Optional[str],
) -> Ledger:
    if ledger_path:
        if principal or interest or payment:
            raise click.BadParameter("Use either --ledger or --principal/--interest/--payment, not both")
        return build_ledger(load_json(Path(ledger_path)))
    if principal is None and interest is None:
        raise click.BadParameter("Provide --principal/--interest or --ledger")
    return Ledger(
        obligation=Obligation(
            principal=parse_amount(principal or "0"),
            interest=parse_amount(interest or "0"),
        ),
        payments=[Payment(amount=parse_amount(p)) for p in payment],
    )


def load_json(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"{path} is not valid JSON: {exc}")


def parse_transaction_records(records: Iterable[Dict[str, Any]]) -> List[Transaction]:
    transactions: List[Transaction] = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise click.BadParameter(f"Transaction {index + 1} must be an object")
        kind = str(record.get("type", "")).strip().lower()
        if kind not in TRANSACTION_TYPES:
            raise click.BadParameter(
                f"Transaction {index + 1} type must be 'income' or 'expense'; got {record.get('type')!r}"
            )
        transactions.append(
            Transaction(
                amount=parse_amount(record.get("amount", 0)),
                type=kind,
                category=str(record.get("category") or "Uncategorized"),
                date=_parse_date_field(record.get("date", ""), "date"),
                description=str(record.get("description") or ""),
            )
        )
    return transactions


def parse_budget_records(records: Iterable[Any]) -> List[Budget]:
    """Build budgets from ``{category, month, amount}`` records.

    ``month`` is ``YYYY-MM``; a full ``YYYY-MM-DD`` date is accepted and its
    day ignored.
    """
    budgets: List[Budget] = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise click.BadParameter(f"Budget {index + 1} must be an object")
        if not record.get("category"):
            raise click.BadParameter(f"Budget {index + 1} is missing category")
        try:
            month = parse_year_month(str(record.get("month", "")))
        except ValueError as exc:
            raise click.BadParameter(f"Budget {index + 1} month: {exc}")
        amount = parse_amount(record.get("amount", 0))
        if amount < 0:
            raise click.BadParameter(f"Budget {index + 1} amount must not be negative")
        budgets.append(Budget(category=str(record["category"]), month=month, amount=amount))
    return budgets


def parse_shared_item_records(records: Iterable[Any]) -> List[SharedItem]:
    items: List[SharedItem] = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise click.BadParameter(f"Shared item {index + 1} must be an object")
        items.append(
            SharedItem(
                title=str(record.get("title", "")),
                total_amount=parse_amount(record.get("total_amount", 0)),
                total_paid=parse_amount(record.get("total_paid", 0)),
            )
        )
    return items


def parse_savings_goal_records(records: Iterable[Any]) -> List[SavingsGoal]:
    goals: List[SavingsGoal] = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise click.BadParameter(f"Savings goal {index + 1} must be an object")
        goals.append(
            SavingsGoal(
                name=str(record.get("name", "")),
                target_amount=parse_amount(record.get("target_amount", 0)),
                current_amount=parse_amount(record.get("current_amount", 0)),
            )
        )
    return goals


def load_transactions(path: Path) -> List[Transaction]:
    """Read transactions from a JSON list or a CSV file with a header row."""
    suffix = path.suffix.lower()
    if suffix == ".csv":
        with path.open("r", newline="", encoding="utf-8") as f:
            return parse_transaction_records(csv.DictReader(f))
    if suffix == ".json":
        data = load_json(path)
        if isinstance(data, dict):
            data = data.get("transactions", [])
        if not isinstance(data, list):
            raise click.BadParameter(f"{path} must hold a list of transactions")
        return parse_transaction_records(data)
    raise click.BadParameter("Unsupported transactions format; use .json or .csv")


def load_budgets(path: Path) -> List[Budget]:
    """Read budgets from a JSON list or a ``{"budgets": [...]}`` object."""
    data = load_json(path)
    if isinstance(data, dict):
        data = data.get("budgets", [])
    if not isinstance(data, list):
        raise click.BadParameter(f"{path} must hold a list of budgets")
    return parse_budget_records(data)


def serialize_allocations(allocations: Sequence[Allocation], payments: Sequence[Payment]) -> List[Dict[str, Any]]:
    rows = []
    for index, (allocation, payment) in enumerate(zip(allocations, payments), start=1):
        paid_at = getattr(payment, "paid_at", None)
        rows.append(
            {
                "index": index,
                "paid_at": paid_at.isoformat() if paid_at else None,
                "period": getattr(payment, "period_id", None),
                "amount": float(allocation.amount),
                "interest": float(allocation.to_interest),
                "principal": float(allocation.to_principal),
                "overpayment": float(allocation.overpayment),
                "description": getattr(payment, "description", None),
            }
        )
    return rows


def serialize_schedule(schedule: Iterable[SchedulePeriod]) -> List[Dict[str, Any]]:
    return [
        {
            "period": p.period_id,
            "due_date": p.due_date.isoformat(),
            "principal": float(p.principal),
            "interest": float(p.interest),
            "total": float(p.total),
        }
        for p in schedule
    ]


def serialize_periods(statuses: Iterable[PeriodStatus]) -> List[Dict[str, Any]]:
    rows = []
    for status in statuses:
        row = serialize_schedule([status.period])[0]
        row.update(
            {
                "paid": float(status.paid),
                "to_interest": float(status.to_interest),
                "to_principal": float(status.to_principal),
                "overpayment": float(status.overpayment),
                "remaining": float(status.remaining),
                "complete": status.complete,
            }
        )
        rows.append(row)
    return rows


def run_ledger(ledger: Ledger) -> Tuple[List[Allocation], Dict[str, Any]]:
    """Run the engine once over a ledger.

    Returns the ``Allocation`` objects for printing together with the
    JSON-serialisable results built from them.
    """
    allocations, totals = allocate_payments(ledger.payments, ledger.obligation)
    statuses = compute_period_statuses(ledger.schedule, ledger.payments)
    results = {
        "summary": summarize_results(ledger.obligation, allocations, totals, statuses),
        "allocations": serialize_allocations(allocations, ledger.payments),
        "periods": serialize_periods(statuses),
    }
    return allocations, results


def analyse_ledger(ledger: Ledger) -> Dict[str, Any]:
    """Run the engine over a ledger and return JSON-serialisable results."""
    return run_ledger(ledger)[1]


def export_to_json(path: Path, data: Dict[str, Any]) -> None:
    """Export analysis results to a JSON file."""
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_to_csv(path: Path, rows: List[Dict[str, Any]]) -> None:
    """Export per-payment allocations to a CSV file."""
    header = ["Index", "Paid_At", "Period", "Amount", "Interest", "Principal", "Overpayment", "Description"]
    keys = ["index", "paid_at", "period", "amount", "interest", "principal", "overpayment", "description"]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for row in rows:
            writer.writerow(["" if row[k] is None else row[k] for k in keys])


@click.group()
def cli() -> None:
    """Interest-first payment allocation for shared expenses."""
    pass


@cli.command()
@click.option("--principal", "-p", "principal", help="Principal owed")
@click.option("--interest", "-i", "interest", help="Interest owed")
@click.option("--payment", "payment", multiple=True, help="Payment amount, in the order paid")
@click.option("--ledger", "-l", "ledger_path", type=click.Path(exists=True, dir_okay=False), help="Ledger JSON file")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def allocate(
    principal: Optional[str],
    interest: Optional[str],
    payment: Tuple[str, ...],
    ledger_path: Optional[str],
    output: Optional[str],
) -> None:
    """Split payments between interest and principal and print the totals."""
    ledger = build_ledger_from_options(principal, interest, payment, ledger_path)
    try:
        allocations, results = run_ledger(ledger)
    except AllocationError as exc:
        raise click.ClickException(str(exc))
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, results)
        elif path.suffix.lower() == ".csv":
            export_to_csv(path, results["allocations"])
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Allocation exported to {path}")
        return
    print_summary(results["summary"])
    if allocations:
        print_allocations(allocations, ledger.payments)


@cli.command()
@click.option("--ledger", "-l", "ledger_path", required=True, type=click.Path(exists=True, dir_okay=False), help="Ledger JSON file with a schedule")
@click.option("--output", "output", type=str, help="Output file path (.json)")
def periods(ledger_path: str, output: Optional[str]) -> None:
    """Show which schedule periods are complete and any per-period overpayment."""
    ledger = build_ledger(load_json(Path(ledger_path)))
    if not ledger.schedule:
        raise click.ClickException("Ledger has no payment schedule")
    try:
        statuses = compute_period_statuses(ledger.schedule, ledger.payments)
    except AllocationError as exc:
        raise click.ClickException(str(exc))
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Period export must use .json extension")
        export_to_json(path, {"periods": serialize_periods(statuses)})
        click.echo(f"Periods exported to {path}")
    else:
        print_periods(statuses)


@cli.command()
@click.option("--principal", "-p", "principal", required=True, help="Principal owed")
@click.option("--interest", "-i", "interest", default="0", help="Interest owed")
@click.option("--periods", "-n", "period_count", required=True, type=click.IntRange(min=1), help="Number of monthly periods")
@click.option("--first-due", "-s", "first_due", required=True, help="First due date (YYYY-MM-DD)")
@click.option("--output", "output", type=str, help="Output file path (.json)")
def schedule(principal: str, interest: str, period_count: int, first_due: str, output: Optional[str]) -> None:
    """Spread principal and interest evenly over monthly periods."""
    obligation = Obligation(principal=parse_amount(principal), interest=parse_amount(interest))
    due = _parse_date_field(first_due, "--first-due")
    try:
        periods_list = build_even_schedule(obligation, period_count, due)
    except AllocationError as exc:
        raise click.ClickException(str(exc))
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Schedule export must use .json extension")
        export_to_json(
            path,
            {
                "principal": float(obligation.principal),
                "interest": float(obligation.interest),
                "schedule": serialize_schedule(periods_list),
                "payments": [],
            },
        )
        click.echo(f"Schedule exported to {path}")
    else:
        print_schedule(periods_list)


@cli.command()
@click.option("--transactions", "-t", "transactions_path", required=True, type=click.Path(exists=True, dir_okay=False), help="Transactions file (.json or .csv)")
@click.option("--top", "top", default=5, show_default=True, type=click.IntRange(min=1), help="Number of expense categories to show")
@click.option("--budgets", "-b", "budgets_path", type=click.Path(exists=True, dir_okay=False), help="Budgets JSON file")
def dashboard(transactions_path: str, top: int, budgets_path: Optional[str]) -> None:
    """Summarize income and expenses by category and month."""
    transactions = load_transactions(Path(transactions_path))
    budgets = load_budgets(Path(budgets_path)) if budgets_path else []
    print_dashboard(
        summarize_transactions(transactions),
        expenses_by_category(transactions, top=top),
        totals_by_month(transactions),
    )
    if budgets:
        spending = spending_by_category_month(transactions)
        click.echo("")
        print_budgets([budget_status(budget, spending) for budget in budgets])


if __name__ == "__main__":
    cli()
