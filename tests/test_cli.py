"""Tests for the command-line interface."""

import csv
import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import List

import click
import pytest
from click.testing import CliRunner

from payment_plans.main import cli, parse_amount, parse_percent, parse_size

BALANCED = ["-p", "2,500,000", "--down-payment-percent", "20", "-m", "83333", "-t", "24"]
SHORT = ["-p", "2.5m", "--down-payment-percent", "20%", "-m", "80k", "-t", "24"]


@pytest.fixture(autouse=True)
def restore_logging(monkeypatch: pytest.MonkeyPatch):
    # The CLI installs a handler on the runner's stderr; put things back after.
    for name in ("SHORTFALL_TOLERANCE", "OVERPAYMENT_RATIO", "LINK_TOLERANCE", "PRICE_TOLERANCE", "LOG_LEVEL"):
        monkeypatch.delenv(f"PAYMENT_PLANS_{name}", raising=False)
    root = logging.getLogger()
    package = logging.getLogger("payment_plans")
    handlers, level, package_level = root.handlers[:], root.level, package.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    package.setLevel(package_level)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _invoke(runner: CliRunner, args: List[str]):
    return runner.invoke(cli, args, obj={})


class TestParsers:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("2500000", Decimal("2500000")),
            ("2,500,000", Decimal("2500000")),
            ("80k", Decimal("80000")),
            ("2.5M", Decimal("2500000")),
        ],
    )
    def test_parse_amount(self, text: str, expected: Decimal) -> None:
        assert parse_amount(text) == expected

    def test_parse_amount_invalid(self) -> None:
        with pytest.raises(click.BadParameter):
            parse_amount("lots")

    def test_parse_percent(self) -> None:
        assert parse_percent("20%") == Decimal("20")

    @pytest.mark.parametrize("text", ["120", "-5", "half"])
    def test_parse_percent_invalid(self, text: str) -> None:
        with pytest.raises(click.BadParameter):
            parse_percent(text)

    def test_parse_size(self) -> None:
        assert parse_size("7.5") == Decimal("7.5")

    @pytest.mark.parametrize("text", ["abc", "0", "-5"])
    def test_parse_size_invalid(self, text: str) -> None:
        with pytest.raises(click.BadParameter):
            parse_size(text)


class TestValidateCommand:
    def test_shortfall_exits_nonzero(self, runner: CliRunner) -> None:
        result = _invoke(runner, ["validate", *SHORT])

        assert result.exit_code == 1
        assert "Payment shortfall: 80,000" in result.output

    def test_valid_plan(self, runner: CliRunner) -> None:
        result = _invoke(runner, ["validate", *BALANCED])

        assert result.exit_code == 0
        assert "Plan is valid" in result.output
        assert "Total planned      : 2499992" in result.output

    def test_json_export(self, runner: CliRunner, tmp_path: Path) -> None:
        out = tmp_path / "validation.json"

        result = _invoke(runner, ["validate", *SHORT, "--output", str(out)])

        assert result.exit_code == 1
        data = json.loads(out.read_text())
        assert data["valid"] is False
        assert data["shortfall"] == 80000
        assert data["errors"] == [{"kind": "shortfall", "message": "Payment shortfall: 80,000"}]

    def test_bad_amount(self, runner: CliRunner) -> None:
        result = _invoke(runner, ["validate", "-p", "cheap"])

        assert result.exit_code == 2

    def test_bad_size(self, runner: CliRunner) -> None:
        result = _invoke(runner, ["validate", *BALANCED, "--size", "abc"])

        assert result.exit_code == 2
        assert "Invalid plot size: abc" in result.output

    def test_bad_environment(self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PAYMENT_PLANS_LINK_TOLERANCE", "wide")

        result = _invoke(runner, ["validate", *BALANCED])

        assert result.exit_code == 1
        assert "PAYMENT_PLANS_LINK_TOLERANCE" in result.output


class TestScheduleCommand:
    def test_prints_schedule(self, runner: CliRunner) -> None:
        result = _invoke(runner, ["schedule", *BALANCED, "-s", "2024-01-15", "-i", "200000"])

        assert result.exit_code == 0
        assert "25 installments from 2024-01-15 to 2026-01-15" in result.output
        assert "1\t2024-01-15\tdown_payment_balance\t300000" in result.output
        assert "2\t2024-02-15\tmonthly\t83333" in result.output

    def test_csv_export(self, runner: CliRunner, tmp_path: Path) -> None:
        out = tmp_path / "schedule.csv"

        result = _invoke(runner, ["schedule", *BALANCED, "-s", "2024-01-15", "--output", str(out)])

        assert result.exit_code == 0
        with out.open(newline="") as f:
            rows = list(csv.DictReader(f))
        assert len(rows) == 25
        assert rows[0]["Type"] == "down_payment_balance"
        assert rows[0]["Amount"] == "500000.0"

    def test_json_export(self, runner: CliRunner, tmp_path: Path) -> None:
        out = tmp_path / "schedule.json"

        result = _invoke(runner, ["schedule", *BALANCED, "-s", "2024-01-15", "-i", "500000", "--output", str(out)])

        assert result.exit_code == 0
        data = json.loads(out.read_text())
        assert len(data["installments"]) == 24
        assert data["end_date"] == "2026-01-15"
        assert data["installments"][0]["description"] == "Monthly installment 1"

    def test_unsupported_export(self, runner: CliRunner, tmp_path: Path) -> None:
        result = _invoke(runner, ["schedule", *BALANCED, "-s", "2024-01-15", "--output", str(tmp_path / "s.txt")])

        assert result.exit_code == 2

    def test_bad_start_date(self, runner: CliRunner) -> None:
        result = _invoke(runner, ["schedule", *BALANCED, "-s", "15/01/2024"])

        assert result.exit_code == 2


class TestReconcileCommand:
    def test_json_payments(self, runner: CliRunner, tmp_path: Path) -> None:
        payments = tmp_path / "payments.json"
        payments.write_text(
            json.dumps(
                [
                    {"amount": 300000, "payment_date": "2024-01-20", "notes": "Down payment balance"},
                    {"amount": "83,333", "date": "2024-02-15", "payment_id": "p-2"},
                    {"amount": 83333, "payment_date": "2024-03-15", "status": "failed"},
                ]
            )
        )
        out = tmp_path / "reconciliation.json"

        result = _invoke(
            runner,
            [
                "reconcile",
                *BALANCED,
                "-s",
                "2024-01-15",
                "-i",
                "200000",
                "--payments",
                str(payments),
                "--today",
                "2024-03-20",
                "--output",
                str(out),
            ],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(out.read_text())
        summary = data["summary"]
        assert summary["paid_amount"] == 583333
        assert summary["payment_count"] == 2
        assert summary["down_payment"]["pending"] == 0
        assert summary["status_counts"]["paid"] == 2
        assert summary["status_counts"]["overdue"] == 1
        assert data["installments"][1]["linked_payments"] == ["p-2"]

    def test_csv_payments(self, runner: CliRunner, tmp_path: Path) -> None:
        payments = tmp_path / "payments.csv"
        payments.write_text("amount,payment_date,notes\n300000,2024-01-20,down payment\n5000,2024-01-21,\n")

        result = _invoke(
            runner,
            [
                "reconcile",
                *BALANCED,
                "-s",
                "2024-01-15",
                "-i",
                "200000",
                "--payments",
                str(payments),
                "--today",
                "2024-01-25",
            ],
        )

        assert result.exit_code == 0, result.output
        assert "Unlinked payments  : 1" in result.output
        assert "1\t2024-01-15\tdown_payment_balance\t300000\t300000\tpaid\t2024-01-20" in result.output

    def test_invalid_payments_file(self, runner: CliRunner, tmp_path: Path) -> None:
        payments = tmp_path / "payments.json"
        payments.write_text(json.dumps([{"amount": 1000}]))

        result = _invoke(
            runner,
            ["reconcile", *BALANCED, "-s", "2024-01-15", "--payments", str(payments), "--today", "2024-01-25"],
        )

        assert result.exit_code == 2

    def test_initial_payment_above_down_payment(self, runner: CliRunner, tmp_path: Path) -> None:
        payments = tmp_path / "payments.json"
        payments.write_text("[]")

        result = _invoke(
            runner,
            ["reconcile", *BALANCED, "-s", "2024-01-15", "-i", "600k", "--payments", str(payments)],
        )

        assert result.exit_code == 1
        assert "Initial payment cannot be greater than the down payment" in result.output


class TestBookCommand:
    def test_accepted(self, runner: CliRunner) -> None:
        result = _invoke(runner, ["book", *BALANCED, "--size", "5", "--customer", "cust-1", "--paid", "200k"])

        assert result.exit_code == 0
        assert "Booking accepted" in result.output
        assert "Down payment due   : 300000" in result.output

    def test_rejected(self, runner: CliRunner) -> None:
        result = _invoke(runner, ["book", *BALANCED])

        assert result.exit_code == 1
        assert "Customer is required" in result.output

    def test_full_payment(self, runner: CliRunner) -> None:
        result = _invoke(
            runner,
            ["book", *BALANCED, "--customer", "cust-1", "--payment-type", "full_payment", "--paid", "2.5m"],
        )

        assert result.exit_code == 0
        assert "full_payment" in result.output

    def test_mismatch_warning(self, runner: CliRunner) -> None:
        result = _invoke(
            runner,
            ["book", *BALANCED, "--size", "5", "--customer", "cust-1", "--plot-size", "10"],
        )

        assert result.exit_code == 0
        assert "Warning: This payment plan is for 5 marla plots" in result.output

    def test_bad_plot_size(self, runner: CliRunner) -> None:
        result = _invoke(runner, ["book", *BALANCED, "--customer", "cust-1", "--plot-size", "ten"])

        assert result.exit_code == 2
        assert "Invalid plot size: ten" in result.output


class TestPlansCommand:
    @pytest.fixture
    def plans_file(self, tmp_path: Path) -> Path:
        path = tmp_path / "plans.json"
        path.write_text(
            json.dumps(
                [
                    {
                        "plan_id": "p-5",
                        "name": "5 Marla Easy",
                        "plot_price": 2500000,
                        "plot_size": 5,
                        "tenure_months": 24,
                        "monthly_payment": 83333,
                        "down_payment_percentage": 20,
                    },
                    {
                        "plan_id": "p-10",
                        "name": "10 Marla Legacy",
                        "plot_price": 5000000,
                        "plot_size": 10,
                        "tenure_months": 36,
                        "monthly_payment": 110000,
                        "down_payment_amount": 1040000,
                        "status": "inactive",
                    },
                ]
            )
        )
        return path

    def test_lists_plans(self, runner: CliRunner, plans_file: Path) -> None:
        result = _invoke(runner, ["plans", "--file", str(plans_file)])

        assert result.exit_code == 0
        assert "p-5\t5 Marla Easy" in result.output
        assert "p-10\t10 Marla Legacy" in result.output

    def test_status_filter(self, runner: CliRunner, plans_file: Path) -> None:
        result = _invoke(runner, ["plans", "--file", str(plans_file), "--status", "active"])

        assert "p-10" not in result.output

    def test_marks_compatible_plan(self, runner: CliRunner, plans_file: Path) -> None:
        result = _invoke(
            runner, ["plans", "--file", str(plans_file), "--plot-price", "2.5m", "--plot-size", "5"]
        )

        assert "p-5\t5 Marla Easy\t5\t2500000\tactive\t*" in result.output

    def test_bad_status_in_file(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "plans.json"
        path.write_text(json.dumps([{"plot_price": 1, "tenure_months": 1, "status": "archived"}]))

        result = _invoke(runner, ["plans", "--file", str(path)])

        assert result.exit_code == 2
