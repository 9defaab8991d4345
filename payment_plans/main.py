"""Command-line interface for the payment-plan engine.

This module uses the ``click`` library to implement a multi-command
interface. Users can validate a plan template, print or export the
installment schedule it produces, reconcile a file of recorded payments
against that schedule, run the booking intake rules and browse a catalog of
saved plans. Results are printed to the terminal or exported to JSON/CSV.
"""

from __future__ import annotations

import csv
import json
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import click

from .catalog import filter_plans, find_compatible_plan
from .config import EngineConfig
from .data_models import (
    BookingRequest,
    Installment,
    PaymentType,
    Payment,
    PaymentStatus,
    PlanStatus,
    PlanTemplate,
    PlanValidation,
    Plot,
    ReconciledInstallment,
    Reconciliation,
    Schedule,
)
from .engine import generate_booking_schedule, generate_schedule
from .exceptions import ConfigurationError, InvalidInputError
from .formatter import print_intake, print_plans, print_schedule, print_summary, print_validation
from .intake import evaluate_intake, remaining_down_payment
from .log import get_logger, setup_logging
from .reconciler import apply_payment, reconcile
from .utils import ZERO, decimal_from_str, optional_decimal, parse_date, to_decimal
from .validator import validate_plan

logger = get_logger(__name__)


def parse_amount(value: str) -> Decimal:
    """Parse a numeric string with optional suffixes.

    Accepts plain numbers ("2500000", "2,500,000") and shorthand with
    ``k``/``m`` suffixes (e.g., "80k" meaning 80_000).
    """
    value = value.strip().lower().replace(",", "")
    factor = Decimal(1)
    if value.endswith("k"):
        factor = Decimal(1_000)
        value = value[:-1]
    elif value.endswith("m"):
        factor = Decimal(1_000_000)
        value = value[:-1]
    try:
        return decimal_from_str(value) * factor
    except InvalidInputError:
        raise click.BadParameter(f"Invalid amount: {value}")


def parse_percent(value: str) -> Decimal:
    """Parse a percentage string (e.g. "20" or "20%") in the 0-100 range."""
    value = value.strip()
    if value.endswith("%"):
        value = value[:-1]
    try:
        percent = decimal_from_str(value)
    except InvalidInputError:
        raise click.BadParameter(f"Invalid percentage: {value}")
    if percent < 0 or percent > 100:
        raise click.BadParameter(f"Percentage must be between 0 and 100; got {value}")
    return percent


def parse_size(value: str) -> Decimal:
    """Parse a plot size in marla (e.g. "5" or "7.5")."""
    try:
        size = decimal_from_str(value)
    except InvalidInputError:
        raise click.BadParameter(f"Invalid plot size: {value}")
    if size <= 0:
        raise click.BadParameter(f"Plot size must be positive; got {value}")
    return size


def _parse_cli_date(value: Optional[str], default: Optional[date] = None) -> date:
    if not value:
        if default is None:
            raise click.BadParameter("A date is required")
        return default
    try:
        return parse_date(value)
    except InvalidInputError as exc:
        raise click.BadParameter(str(exc))


def build_plan_from_options(
    price: str,
    tenure: int,
    monthly: Optional[str],
    down_payment: Optional[str],
    down_payment_percent: Optional[str],
    quarterly: Optional[str] = None,
    bi_yearly: Optional[str] = None,
    triannual: Optional[str] = None,
    size: Optional[str] = None,
) -> PlanTemplate:
    if down_payment and down_payment_percent:
        click.echo("Both --down-payment and --down-payment-percent given; the amount takes precedence.", err=True)
    return PlanTemplate(
        plot_price=parse_amount(price),
        tenure_months=tenure,
        monthly_payment=parse_amount(monthly) if monthly else ZERO,
        down_payment_amount=parse_amount(down_payment) if down_payment else None,
        down_payment_percentage=parse_percent(down_payment_percent) if down_payment_percent else None,
        quarterly_payment=parse_amount(quarterly) if quarterly else None,
        bi_yearly_payment=parse_amount(bi_yearly) if bi_yearly else None,
        triannual_payment=parse_amount(triannual) if triannual else None,
        plot_size=parse_size(size) if size else None,
    )


def _enum_value(enum_cls, raw: Any, default):
    if raw is None or raw == "":
        return default
    try:
        return enum_cls(str(raw).strip().lower())
    except ValueError:
        raise InvalidInputError(f"Unknown {enum_cls.__name__} value: {raw!r}") from None


def payment_from_dict(data: Dict[str, Any]) -> Payment:
    """Build a ``Payment`` from a JSON object or CSV row."""
    raw_date = data.get("payment_date") or data.get("date")
    if not raw_date:
        raise InvalidInputError(f"Payment without a date: {data!r}")
    amount = to_decimal(data.get("amount"))
    if amount <= 0:
        raise InvalidInputError(f"Payment amount must be positive: {data!r}")
    return Payment(
        amount=amount,
        payment_date=parse_date(str(raw_date)),
        payment_method=data.get("payment_method") or "cash",
        status=_enum_value(PaymentStatus, data.get("status"), PaymentStatus.COMPLETED),
        payment_id=data.get("payment_id") or data.get("id") or None,
        transaction_id=data.get("transaction_id") or None,
        reference_number=data.get("reference_number") or None,
        notes=data.get("notes") or "",
    )


def plan_from_dict(data: Dict[str, Any]) -> PlanTemplate:
    """Build a ``PlanTemplate`` from a JSON object."""
    try:
        tenure = int(data.get("tenure_months", 0))
    except (TypeError, ValueError):
        raise InvalidInputError(f"Invalid tenure_months: {data.get('tenure_months')!r}") from None
    return PlanTemplate(
        plot_price=to_decimal(data.get("plot_price")),
        tenure_months=tenure,
        monthly_payment=to_decimal(data.get("monthly_payment")),
        down_payment_amount=optional_decimal(data.get("down_payment_amount")),
        down_payment_percentage=optional_decimal(data.get("down_payment_percentage")),
        quarterly_payment=optional_decimal(data.get("quarterly_payment")),
        bi_yearly_payment=optional_decimal(data.get("bi_yearly_payment")),
        triannual_payment=optional_decimal(data.get("triannual_payment")),
        plot_size=optional_decimal(data.get("plot_size")),
        status=_enum_value(PlanStatus, data.get("status"), PlanStatus.ACTIVE),
        plan_id=str(data["plan_id"]) if data.get("plan_id") is not None else None,
        name=data.get("name") or "",
        description=data.get("description") or "",
    )


def _read_records(path: Path) -> List[Dict[str, Any]]:
    with path.open("r", encoding="utf-8", newline="") as f:
        if path.suffix.lower() == ".csv":
            return list(csv.DictReader(f))
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("payments") or data.get("plans") or []
    if not isinstance(data, list):
        raise InvalidInputError(f"{path} must contain a list of records")
    return data


def load_payments(path: Path) -> List[Payment]:
    """Load payments from a JSON list or a CSV file with a header row."""
    payments = [payment_from_dict(record) for record in _read_records(path)]
    logger.debug("Loaded %d payments from %s", len(payments), path)
    return payments


def load_plans(path: Path) -> List[PlanTemplate]:
    """Load plan templates from a JSON list."""
    return [plan_from_dict(record) for record in _read_records(path)]


def _num(value: Decimal) -> float:
    return float(value)


def serialize_validation(result: PlanValidation) -> Dict[str, Any]:
    return {
        "down_payment": _num(result.down_payment),
        "total_monthly": _num(result.total_monthly),
        "total_secondary": _num(result.total_secondary),
        "total_planned": _num(result.total_planned),
        "shortfall": _num(result.shortfall),
        "overpayment": _num(result.overpayment),
        "valid": result.is_valid,
        "errors": [{"kind": issue.kind.value, "message": issue.message} for issue in result.issues],
    }


def serialize_installment(row) -> Dict[str, Any]:
    inst: Installment = row.installment if isinstance(row, ReconciledInstallment) else row
    data: Dict[str, Any] = {
        "number": inst.number,
        "type": inst.installment_type.value,
        "due_date": inst.due_date.isoformat(),
        "amount": _num(inst.amount),
        "description": inst.description,
    }
    if isinstance(row, ReconciledInstallment):
        data.update(
            {
                "paid_amount": _num(row.paid_amount),
                "status": row.status.value,
                "paid_date": row.paid_date.isoformat() if row.paid_date else None,
                "linked_payments": [p.payment_id for p in row.linked_payments],
            }
        )
    return data


def serialize_schedule(schedule: Schedule) -> Dict[str, Any]:
    return {
        "start_date": schedule.start_date.isoformat(),
        "end_date": schedule.end_date.isoformat(),
        "total_amount": _num(schedule.total_amount),
        "installments": [serialize_installment(i) for i in schedule.installments],
    }


def serialize_reconciliation(result: Reconciliation) -> Dict[str, Any]:
    summary = result.summary
    dp = summary.down_payment
    return {
        "summary": {
            "total_amount": _num(summary.total_amount),
            "paid_amount": _num(summary.paid_amount),
            "pending_amount": _num(summary.pending_amount),
            "linked_amount": _num(summary.linked_amount),
            "unapplied_amount": _num(summary.unapplied_amount),
            "unlinked_count": summary.unlinked_count,
            "payment_count": summary.payment_count,
            "last_payment_date": summary.last_payment_date.isoformat() if summary.last_payment_date else None,
            "status_counts": {status.value: count for status, count in summary.status_counts.items()},
            "down_payment": {
                "required": _num(dp.required),
                "initial_paid": _num(dp.initial_paid),
                "remaining_required": _num(dp.remaining_required),
                "remaining_paid": _num(dp.remaining_paid),
                "total_paid": _num(dp.total_paid),
                "pending": _num(dp.pending),
            },
        },
        "installments": [serialize_installment(row) for row in result.installments],
        "unlinked_payments": [
            {"payment_id": p.payment_id, "amount": _num(p.amount), "payment_date": p.payment_date.isoformat()}
            for p in result.unlinked_payments
        ],
    }


def write_json(path: Path, data: Dict[str, Any]) -> None:
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_schedule_csv(path: Path, rows) -> None:
    """Export installments (plain or reconciled) to a CSV file."""
    rows = list(rows)
    header = ["Number", "Due_Date", "Type", "Amount", "Description"]
    reconciled = bool(rows) and isinstance(rows[0], ReconciledInstallment)
    if reconciled:
        header += ["Paid_Amount", "Status", "Paid_Date"]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for row in rows:
            data = serialize_installment(row)
            line = [data["number"], data["due_date"], data["type"], data["amount"], data["description"]]
            if reconciled:
                line += [data["paid_amount"], data["status"], data["paid_date"] or ""]
            writer.writerow(line)


def plan_options(func: Callable) -> Callable:
    """Attach the plan template options shared by every command."""
    options = [
        click.option("--price", "-p", "price", required=True, help="Plot price"),
        click.option("--tenure", "-t", "tenure", type=click.IntRange(min=0), default=24, show_default=True, help="Tenure in months"),
        click.option("--monthly", "-m", "monthly", help="Monthly payment"),
        click.option("--down-payment", "-d", "down_payment", help="Down payment amount"),
        click.option("--down-payment-percent", "down_payment_percent", help="Down payment as a percentage of the price"),
        click.option("--quarterly", "quarterly", help="Quarterly payment (every 3 months)"),
        click.option("--bi-yearly", "bi_yearly", help="Bi-yearly payment (every 6 months)"),
        click.option("--triannual", "triannual", help="Triannual payment (every 4 months)"),
        click.option("--size", "size", help="Plot size in marla"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _plan_from_kwargs(kwargs: Dict[str, Any]) -> PlanTemplate:
    return build_plan_from_options(
        kwargs["price"],
        kwargs["tenure"],
        kwargs["monthly"],
        kwargs["down_payment"],
        kwargs["down_payment_percent"],
        kwargs["quarterly"],
        kwargs["bi_yearly"],
        kwargs["triannual"],
        kwargs["size"],
    )


def _config(ctx: click.Context) -> EngineConfig:
    return ctx.obj["config"]


@click.group()
@click.option("--log-level", "log_level", default=None, help="Log level (defaults to PAYMENT_PLANS_LOG_LEVEL or INFO)")
@click.option("--log-format", "log_format", type=click.Choice(["standard", "json"]), default="standard")
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str], log_format: str) -> None:
    """Plot payment plans: validate plans, build schedules and reconcile payments."""
    try:
        config = EngineConfig.from_env()
    except ConfigurationError as exc:
        raise click.ClickException(str(exc))
    setup_logging(log_level or config.log_level, log_format)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command()
@plan_options
@click.option("--output", "output", type=str, help="Output file path (.json)")
@click.pass_context
def validate(ctx: click.Context, output: Optional[str], **kwargs: Any) -> None:
    """Check that a plan's payments add up to the plot price."""
    plan = _plan_from_kwargs(kwargs)
    result = validate_plan(plan, _config(ctx))
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Validation export must use .json extension")
        write_json(path, serialize_validation(result))
        click.echo(f"Validation exported to {path}")
    else:
        print_validation(result)
    if not result.is_valid:
        ctx.exit(1)


@cli.command()
@plan_options
@click.option("--start-date", "-s", "start_date", required=True, help="Booking start date (YYYY-MM-DD)")
@click.option("--initial-payment", "-i", "initial_payment", help="Amount paid towards the down payment at intake")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
@click.pass_context
def schedule(
    ctx: click.Context,
    start_date: str,
    initial_payment: Optional[str],
    output: Optional[str],
    **kwargs: Any,
) -> None:
    """Compute and print the installment schedule of a plan."""
    plan = _plan_from_kwargs(kwargs)
    validation = validate_plan(plan, _config(ctx))
    for message in validation.errors:
        click.echo(f"Warning: {message}", err=True)
    initial = parse_amount(initial_payment) if initial_payment else ZERO
    result = generate_schedule(plan, _parse_cli_date(start_date), initial)
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            write_json(path, serialize_schedule(result))
        elif path.suffix.lower() == ".csv":
            export_schedule_csv(path, result.installments)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Schedule exported to {path}")
    else:
        click.echo(
            f"{len(result.installments)} installments from {result.start_date.isoformat()} "
            f"to {result.end_date.isoformat()}, total {result.total_amount:.0f}"
        )
        print_schedule(result.installments)


@cli.command("reconcile")
@plan_options
@click.option("--start-date", "-s", "start_date", required=True, help="Booking start date (YYYY-MM-DD)")
@click.option("--initial-payment", "-i", "initial_payment", help="Amount paid towards the down payment at intake")
@click.option("--payments", "payments_file", required=True, type=click.Path(exists=True, dir_okay=False), help="Payments file (.json or .csv)")
@click.option("--today", "today", help="Date used to flag overdue installments (defaults to today)")
@click.option("--output", "output", type=str, help="Output file path (.json)")
@click.pass_context
def reconcile_command(
    ctx: click.Context,
    start_date: str,
    initial_payment: Optional[str],
    payments_file: str,
    today: Optional[str],
    output: Optional[str],
    **kwargs: Any,
) -> None:
    """Attribute recorded payments to a plan's installments."""
    plan = _plan_from_kwargs(kwargs)
    initial = parse_amount(initial_payment) if initial_payment else ZERO
    try:
        payments = load_payments(Path(payments_file))
    except (InvalidInputError, json.JSONDecodeError) as exc:
        raise click.BadParameter(str(exc), param_hint="--payments")

    request = BookingRequest(customer_id="cli", payment_type=PaymentType.INSTALLMENT, paid_amount=initial)
    plot = Plot(plot_id="cli", price=plan.plot_price, size=plan.plot_size)
    intake = evaluate_intake(request, plot, plan, _config(ctx))
    if not intake.accepted:
        raise click.ClickException("; ".join(intake.errors.values()))

    booking = intake.booking
    for payment in payments:
        booking = apply_payment(booking, payment)

    booking_schedule = generate_booking_schedule(intake.booking, plan, _parse_cli_date(start_date))
    result = reconcile(booking_schedule, payments, booking, _parse_cli_date(today, date.today()), _config(ctx))
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Reconciliation export must use .json extension")
        write_json(path, serialize_reconciliation(result))
        click.echo(f"Reconciliation exported to {path}")
    else:
        print_summary(result)
        print_schedule(result.installments)


@cli.command()
@plan_options
@click.option("--customer", "customer_id", help="Customer identifier")
@click.option("--plot-id", "plot_id", default="PLOT-1", show_default=True, help="Plot identifier")
@click.option("--plot-price", "plot_price", help="Plot price (defaults to the plan price)")
@click.option("--plot-size", "plot_size", help="Plot size in marla (defaults to the plan size)")
@click.option("--payment-type", "payment_type", type=click.Choice([t.value for t in PaymentType]), default=PaymentType.INSTALLMENT.value, show_default=True)
@click.option("--paid", "paid", help="Amount paid at intake")
@click.option("--installments", "installments", type=int, help="Override the plan's installment count")
@click.pass_context
def book(
    ctx: click.Context,
    customer_id: Optional[str],
    plot_id: str,
    plot_price: Optional[str],
    plot_size: Optional[str],
    payment_type: str,
    paid: Optional[str],
    installments: Optional[int],
    **kwargs: Any,
) -> None:
    """Run the booking intake rules for a plot and plan."""
    plan = _plan_from_kwargs(kwargs)
    plot = Plot(
        plot_id=plot_id,
        price=parse_amount(plot_price) if plot_price else plan.plot_price,
        size=parse_size(plot_size) if plot_size else plan.plot_size,
    )
    request = BookingRequest(
        customer_id=customer_id,
        payment_type=PaymentType(payment_type),
        paid_amount=parse_amount(paid) if paid else ZERO,
        installment_count=installments,
    )
    result = evaluate_intake(request, plot, plan, _config(ctx))
    remaining = remaining_down_payment(result.booking) if result.booking is not None else ZERO
    print_intake(result, remaining)
    if not result.accepted:
        ctx.exit(1)


@cli.command()
@click.option("--file", "plans_file", required=True, type=click.Path(exists=True, dir_okay=False), help="Plans file (.json)")
@click.option("--search", "search", default="", help="Match name, description or plot size")
@click.option("--status", "status", type=click.Choice(["all"] + [s.value for s in PlanStatus]), default="all", show_default=True)
@click.option("--plot-price", "plot_price", help="Mark the plan compatible with a plot of this price")
@click.option("--plot-size", "plot_size", help="Mark the plan compatible with a plot of this size")
@click.pass_context
def plans(
    ctx: click.Context,
    plans_file: str,
    search: str,
    status: str,
    plot_price: Optional[str],
    plot_size: Optional[str],
) -> None:
    """List saved plans, optionally marking the one that fits a plot."""
    try:
        catalog = load_plans(Path(plans_file))
    except (InvalidInputError, json.JSONDecodeError) as exc:
        raise click.BadParameter(str(exc), param_hint="--file")
    matched = filter_plans(catalog, search, status)
    compatible = None
    if plot_price:
        plot = Plot(
            plot_id="query",
            price=parse_amount(plot_price),
            size=parse_size(plot_size) if plot_size else None,
        )
        compatible = find_compatible_plan(matched, plot)
    print_plans(matched, compatible)
    invalid = [plan for plan in matched if not validate_plan(plan, _config(ctx)).is_valid]
    if invalid:
        click.echo(f"{len(invalid)} plan(s) fail validation", err=True)


if __name__ == "__main__":
    cli(obj={})
