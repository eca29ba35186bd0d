import json
from datetime import date

import click
import pytest
from click.testing import CliRunner

from payment_alloc.main import build_ledger, cli, parse_amount, parse_budget_records, run_ledger


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def ledger_file(tmp_path):
    data = {
        "schedule": [
            {"period": 1, "due_date": "2024-01-31", "principal": 300, "interest": 20},
            {"period": 2, "due_date": "2024-02-29", "principal": 300, "interest": 20},
            {"period": 3, "due_date": "2024-03-31", "principal": 300, "interest": 60},
        ],
        "payments": [
            {"amount": 150, "period": 1, "paid_at": "2024-01-20", "description": "second half"},
            {"amount": 200, "period": 1, "paid_at": "2024-01-10", "description": "first half"},
            {"amount": 100, "period": 2, "paid_at": "2024-02-25"},
        ],
    }
    path = tmp_path / "ledger.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_parse_amount_suffixes():
    assert parse_amount("2.5k") == 2500
    assert parse_amount("1,250.75") == parse_amount("1250.75")
    assert parse_amount("1m") == 1_000_000
    assert parse_amount(12.5) == parse_amount("12.5")


def test_build_ledger_derives_targets_and_orders_payments(ledger_file):
    ledger = build_ledger(json.loads(ledger_file.read_text(encoding="utf-8")))

    assert ledger.obligation.principal == 900
    assert ledger.obligation.interest == 100
    assert [p.description for p in ledger.payments][:2] == ["first half", "second half"]


def test_build_ledger_rejects_mismatched_schedule():
    data = {
        "principal": 1000,
        "interest": 100,
        "schedule": [{"period": 1, "due_date": "2024-01-31", "principal": 900, "interest": 100}],
    }
    with pytest.raises(Exception) as excinfo:
        build_ledger(data)
    assert "does not match" in str(excinfo.value)


def test_allocate_prints_summary(runner):
    result = runner.invoke(
        cli, ["allocate", "-p", "900", "-i", "100", "--payment", "50", "--payment", "200"]
    )

    assert result.exit_code == 0, result.output
    assert "Principal left     : 750.00" in result.output
    assert "Interest left      : 0.00" in result.output
    assert "Progress           : 25.0%" in result.output


def test_allocate_reports_overpayment(runner):
    result = runner.invoke(cli, ["allocate", "-p", "500", "-i", "100", "--payment", "1k"])

    assert result.exit_code == 0, result.output
    assert "Overpayment        : 400.00" in result.output
    assert "Principal left     : 0.00" in result.output


def test_allocate_rejects_negative_payment(runner):
    result = runner.invoke(cli, ["allocate", "-p", "500", "-i", "100", "--payment", "-5"])

    assert result.exit_code != 0
    assert "must not be negative" in result.output


def test_allocate_needs_targets(runner):
    result = runner.invoke(cli, ["allocate", "--payment", "5"])

    assert result.exit_code != 0


def test_allocate_ledger_exports_json(runner, ledger_file, tmp_path):
    out = tmp_path / "result.json"

    result = runner.invoke(cli, ["allocate", "--ledger", str(ledger_file), "--output", str(out)])

    assert result.exit_code == 0, result.output
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["summary"]["total_paid"] == 450.0
    assert data["summary"]["period_overpayment"] == 30.0
    assert data["allocations"][0]["paid_at"] == "2024-01-10"
    assert data["allocations"][0]["interest"] == 100.0
    assert data["allocations"][0]["principal"] == 100.0
    assert [p["complete"] for p in data["periods"]] == [True, False, False]


def test_allocate_ledger_exports_csv(runner, ledger_file, tmp_path):
    out = tmp_path / "result.csv"

    result = runner.invoke(cli, ["allocate", "-l", str(ledger_file), "--output", str(out)])

    assert result.exit_code == 0, result.output
    lines = out.read_text(encoding="utf-8").splitlines()
    assert lines[0].startswith("Index,Paid_At,Period,Amount")
    assert len(lines) == 4


def test_allocate_rejects_ledger_with_options(runner, ledger_file):
    result = runner.invoke(cli, ["allocate", "-l", str(ledger_file), "-p", "100"])

    assert result.exit_code != 0


def test_periods_shows_status(runner, ledger_file):
    result = runner.invoke(cli, ["periods", "--ledger", str(ledger_file)])

    assert result.exit_code == 0, result.output
    assert "+30.00" in result.output
    assert "Complete" in result.output
    assert "Remaining: 220.00" in result.output


def test_schedule_writes_even_schedule(runner, tmp_path):
    out = tmp_path / "schedule.json"

    result = runner.invoke(
        cli,
        ["schedule", "-p", "100", "-i", "10", "-n", "3", "--first-due", "2024-01-31", "--output", str(out)],
    )

    assert result.exit_code == 0, result.output
    data = json.loads(out.read_text(encoding="utf-8"))
    assert [p["due_date"] for p in data["schedule"]] == ["2024-01-31", "2024-02-29", "2024-03-31"]
    assert data["schedule"][-1]["principal"] == 33.34
    # the exported file is itself a valid ledger
    assert build_ledger(data).obligation.principal == 100


def test_schedule_prints_totals(runner):
    result = runner.invoke(cli, ["schedule", "-p", "1000", "-n", "4", "-s", "2024-05-15"])

    assert result.exit_code == 0, result.output
    assert "Total\t\t1000.00\t0.00\t1000.00" in result.output


def test_dashboard_reads_csv(runner, tmp_path):
    path = tmp_path / "transactions.csv"
    path.write_text(
        "date,description,category,type,amount\n"
        "2024-01-03,Groceries,Food,expense,-450.50\n"
        "2024-01-25,Payday,Salary,income,30000\n"
        "2024-02-01,Dinner,Food,expense,300\n",
        encoding="utf-8",
    )

    result = runner.invoke(cli, ["dashboard", "--transactions", str(path)])

    assert result.exit_code == 0, result.output
    assert "Expenses           : 750.50" in result.output
    assert "2024-02" in result.output


def test_dashboard_rejects_unknown_type(runner, tmp_path):
    path = tmp_path / "transactions.json"
    path.write_text(json.dumps([{"date": "2024-01-01", "type": "transfer", "amount": 5}]), encoding="utf-8")

    result = runner.invoke(cli, ["dashboard", "-t", str(path)])

    assert result.exit_code != 0


def _write_json(tmp_path, name, data):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_periods_rejects_negative_schedule_amount(runner, tmp_path):
    path = _write_json(
        tmp_path,
        "ledger.json",
        {"schedule": [{"period": 1, "due_date": "2024-01-31", "principal": -300, "interest": 20}]},
    )

    result = runner.invoke(cli, ["periods", "--ledger", str(path)])

    assert result.exit_code != 0
    assert isinstance(result.exception, SystemExit)
    assert "must not be negative" in result.output


def test_allocate_rejects_negative_schedule_interest(runner, tmp_path):
    path = _write_json(
        tmp_path,
        "ledger.json",
        {
            "schedule": [{"period": 1, "due_date": "2024-01-31", "principal": 300, "interest": "-5"}],
            "payments": [{"amount": 10, "period": 1}],
        },
    )

    result = runner.invoke(cli, ["allocate", "--ledger", str(path)])

    assert result.exit_code != 0
    assert isinstance(result.exception, SystemExit)
    assert "must not be negative" in result.output


def test_run_ledger_returns_allocations_with_results(ledger_file):
    ledger = build_ledger(json.loads(ledger_file.read_text(encoding="utf-8")))

    allocations, results = run_ledger(ledger)

    assert len(allocations) == len(results["allocations"]) == 3
    assert allocations[0].to_interest == 100
    assert results["summary"]["payments_made"] == 3


def test_allocate_ledger_prints_each_payment(runner, ledger_file):
    result = runner.invoke(cli, ["allocate", "--ledger", str(ledger_file)])

    assert result.exit_code == 0, result.output
    assert "first half" in result.output
    assert "Principal left     : 550.00" in result.output


def test_build_ledger_accepts_string_period_ids():
    ledger = build_ledger(
        {
            "schedule": [
                {"period": "jan", "due_date": "2024-01-31", "principal": 100, "interest": 10},
                {"period": " feb ", "due_date": "2024-02-29", "principal": 100, "interest": 10},
                {"period": "3", "due_date": "2024-03-31", "principal": 100, "interest": 10},
            ],
            "payments": [
                {"amount": 110, "period": "jan"},
                {"amount": 20, "period": "feb"},
                {"amount": 5, "period": 3},
            ],
        }
    )

    assert [p.period_id for p in ledger.schedule] == ["jan", "feb", 3]
    periods = run_ledger(ledger)[1]["periods"]
    assert [p["complete"] for p in periods] == [True, False, False]
    assert [p["paid"] for p in periods] == [110.0, 20.0, 5.0]


@pytest.mark.parametrize("period", ["", "   ", 1.5, True, [1]])
def test_build_ledger_rejects_bad_period_ids(period):
    with pytest.raises(click.BadParameter):
        build_ledger(
            {"principal": 10, "interest": 0, "payments": [{"amount": 5, "period": period}]}
        )


def test_dashboard_rejects_non_object_transaction(runner, tmp_path):
    path = _write_json(tmp_path, "transactions.json", [5])

    result = runner.invoke(cli, ["dashboard", "-t", str(path)])

    assert result.exit_code != 0
    assert isinstance(result.exception, SystemExit)
    assert "must be an object" in result.output


def test_parse_budget_records_reads_month():
    budgets = parse_budget_records(
        [
            {"category": "Food", "month": "2024-01", "amount": "2k"},
            {"category": "Rent", "month": "2024-02-15", "amount": 900},
        ]
    )

    assert budgets[0].month == date(2024, 1, 1)
    assert budgets[0].amount == 2000
    assert budgets[1].month == date(2024, 2, 1)


@pytest.mark.parametrize(
    "record",
    [
        {"category": "Food", "month": "January", "amount": 10},
        {"category": "Food", "month": "2024-13", "amount": 10},
        {"month": "2024-01", "amount": 10},
        {"category": "Food", "month": "2024-01", "amount": -1},
        "Food",
    ],
)
def test_parse_budget_records_rejects_bad_records(record):
    with pytest.raises(click.BadParameter):
        parse_budget_records([record])


def test_dashboard_prints_budgets(runner, tmp_path):
    transactions = _write_json(
        tmp_path,
        "transactions.json",
        [
            {"date": "2024-01-03", "type": "expense", "category": "Food", "amount": -450},
            {"date": "2024-01-09", "type": "expense", "category": "Transport", "amount": 1200},
        ],
    )
    budgets = _write_json(
        tmp_path,
        "budgets.json",
        {
            "budgets": [
                {"category": "Food", "month": "2024-01", "amount": 500},
                {"category": "Transport", "month": "2024-01", "amount": 1000},
            ]
        },
    )

    result = runner.invoke(cli, ["dashboard", "-t", str(transactions), "--budgets", str(budgets)])

    assert result.exit_code == 0, result.output
    assert "Warning, 50.00 left" in result.output
    assert "Over by 200.00" in result.output
