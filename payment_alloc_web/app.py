import json
import os
from decimal import Decimal

import click
from flask import Flask, jsonify, render_template, request

from payment_alloc.aggregation import (
    budget_status,
    expenses_by_category,
    goal_progress,
    shared_overview,
    spending_by_category_month,
    summarize_transactions,
    totals_by_month,
)
from payment_alloc.data_models import Obligation
from payment_alloc.engine import AllocationError, build_even_schedule
from payment_alloc.main import (
    analyse_ledger,
    build_ledger,
    parse_amount,
    parse_budget_records,
    parse_savings_goal_records,
    parse_shared_item_records,
    parse_transaction_records,
    serialize_schedule,
)
from payment_alloc.utils import parse_date

app = Flask(__name__)
app.config["ASSET_VERSION"] = os.environ.get("ASSET_VERSION", "1")
app.config["MAX_ROWS"] = int(os.environ.get("PAYMENT_ALLOC_MAX_ROWS", "120"))
app.secret_key = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")

CURRENCY_OPTIONS = {
    'THB': {'label': 'Thai baht', 'prefix': '฿', 'suffix': ''},
    'USD': {'label': 'US dollar', 'prefix': '$', 'suffix': ''},
    'EUR': {'label': 'Euro', 'prefix': '€', 'suffix': ''},
    'GBP': {'label': 'British pound', 'prefix': '£', 'suffix': ''},
}
DEFAULT_CURRENCY = os.environ.get("PAYMENT_ALLOC_CURRENCY", "THB").upper()
if DEFAULT_CURRENCY not in CURRENCY_OPTIONS:
    DEFAULT_CURRENCY = "THB"

# Errors caused by the request contents rather than by the server.
INPUT_ERRORS = (click.ClickException, AllocationError, ValueError, TypeError, AttributeError)


def _normalized_currency(form) -> str:
    code = form.get("currency", DEFAULT_CURRENCY).upper()
    return code if code in CURRENCY_OPTIONS else DEFAULT_CURRENCY


def _error_message(exc: Exception) -> str:
    if isinstance(exc, click.ClickException):
        return exc.format_message()
    return str(exc)


def _bad_request(exc: Exception):
    app.logger.info("Rejected %s %s: %s", request.method, request.path, exc)
    return jsonify({"error": _error_message(exc)}), 400


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    return data


def _truncate(rows: list, max_rows: int):
    """Return the rows to display and how many were left out."""
    if len(rows) <= max_rows:
        return rows, 0
    return rows[:max_rows], len(rows) - max_rows


def _floats(row: dict) -> dict:
    return {key: float(value) if isinstance(value, Decimal) else value for key, value in row.items()}


@app.route("/", methods=["GET", "POST"])
def index():
    results = None
    allocations = []
    truncated = 0
    error = None
    ledger_text = ""
    currency_code = DEFAULT_CURRENCY

    if request.method == "POST":
        currency_code = _normalized_currency(request.form)
        ledger_text = request.form.get("ledger", "")
        try:
            ledger = build_ledger(json.loads(ledger_text))
            results = analyse_ledger(ledger)
            allocations, truncated = _truncate(results["allocations"], app.config["MAX_ROWS"])
        except json.JSONDecodeError as exc:
            error = f"Ledger is not valid JSON: {exc}"
        except INPUT_ERRORS as exc:
            error = _error_message(exc)
            app.logger.info("Ledger rejected: %s", error)

    currency_meta = CURRENCY_OPTIONS[currency_code]
    return render_template(
        "index.html",
        results=results,
        allocations=allocations,
        truncated=truncated,
        error=error,
        ledger_text=ledger_text,
        currency_code=currency_code,
        currency_options=CURRENCY_OPTIONS,
        currency_prefix=currency_meta["prefix"],
        currency_suffix=currency_meta["suffix"],
        asset_version=app.config["ASSET_VERSION"],
    )


@app.post("/api/allocate")
def api_allocate():
    try:
        ledger = build_ledger(_json_body())
        return jsonify(analyse_ledger(ledger))
    except INPUT_ERRORS as exc:
        return _bad_request(exc)


@app.post("/api/schedule")
def api_schedule():
    try:
        data = _json_body()
        obligation = Obligation(
            principal=parse_amount(data.get("principal", 0)),
            interest=parse_amount(data.get("interest", 0)),
        )
        periods = int(data.get("periods", 0))
        first_due = parse_date(data.get("first_due", ""))
        schedule = build_even_schedule(obligation, periods, first_due)
    except INPUT_ERRORS as exc:
        return _bad_request(exc)
    return jsonify({"schedule": serialize_schedule(schedule)})


@app.post("/api/dashboard")
def api_dashboard():
    try:
        data = _json_body()
        transactions = parse_transaction_records(data.get("transactions") or [])
        items = parse_shared_item_records(data.get("shared_items") or [])
        budgets = parse_budget_records(data.get("budgets") or [])
        goals = parse_savings_goal_records(data.get("savings_goals") or [])
        top = int(data.get("top", 5))
    except INPUT_ERRORS as exc:
        return _bad_request(exc)

    totals = summarize_transactions(transactions)
    overview = shared_overview(items)
    spending = spending_by_category_month(transactions)
    return jsonify(
        {
            "totals": {key: float(value) for key, value in totals.items()},
            "categories": [
                {"name": name, "value": float(value)}
                for name, value in expenses_by_category(transactions, top=top)
            ],
            "months": {
                key: {name: float(value) for name, value in bucket.items()}
                for key, bucket in totals_by_month(transactions).items()
            },
            "shared": {
                "shared_total": float(overview["shared_total"]),
                "shared_paid": float(overview["shared_paid"]),
                "shared_remaining": float(overview["shared_remaining"]),
                "active": overview["active"],
            },
            "budgets": [_floats(budget_status(budget, spending)) for budget in budgets],
            "savings_goals": [_floats(goal_progress(goal)) for goal in goals],
        }
    )


if __name__ == "__main__":
    print("Starting payment allocation web app...")
    app.run(host="0.0.0.0", port=8710, debug=True)
