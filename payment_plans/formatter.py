"""Output helpers for the payment-plan command-line interface.

This module renders plan validations, installment schedules, reconciliation
summaries and intake results as plain text tables. Amounts are printed as
bare numbers; display formatting of currency belongs to whatever front end
consumes the engine.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional, Sequence, Union

from .data_models import (
    Installment,
    IntakeResult,
    PlanTemplate,
    PlanValidation,
    ReconciledInstallment,
    Reconciliation,
)


def _amount(value: Decimal) -> str:
    return f"{value:.0f}"


def print_validation(result: PlanValidation) -> None:
    """Print a plan's planned cash flow and any validation errors."""
    print("Plan totals")
    print("-" * 72)
    print(f"Down payment       : {_amount(result.down_payment)}")
    print(f"Monthly total      : {_amount(result.total_monthly)}")
    if result.total_secondary:
        print(f"Additional total   : {_amount(result.total_secondary)}")
    print(f"Total planned      : {_amount(result.total_planned)}")
    if result.shortfall:
        print(f"Shortfall          : {_amount(result.shortfall)}")
    if result.overpayment:
        print(f"Overpayment        : {_amount(result.overpayment)}")
    print("-" * 72)
    if result.is_valid:
        print("Plan is valid")
    else:
        print("Errors")
        for message in result.errors:
            print(f"  - {message}")


def print_schedule(rows: Iterable[Union[Installment, ReconciledInstallment]]) -> None:
    """Print installments as a tab-separated table.

    Reconciled installments get the paid amount, status and paid date
    columns as well.
    """
    rows = list(rows)
    reconciled = bool(rows) and isinstance(rows[0], ReconciledInstallment)
    headers = ["No", "Due", "Type", "Amount"]
    if reconciled:
        headers += ["Paid", "Status", "PaidOn"]
    print("\t".join(headers))
    for row in rows:
        inst = row.installment if isinstance(row, ReconciledInstallment) else row
        cells = [
            str(inst.number),
            inst.due_date.isoformat(),
            inst.installment_type.value,
            _amount(inst.amount),
        ]
        if isinstance(row, ReconciledInstallment):
            cells += [
                _amount(row.paid_amount),
                row.status.value,
                row.paid_date.isoformat() if row.paid_date else "-",
            ]
        print("\t".join(cells))


def print_summary(reconciliation: Reconciliation) -> None:
    """Print the booking summary produced by the reconciler."""
    summary = reconciliation.summary
    dp = summary.down_payment
    print("Summary")
    print("-" * 72)
    print(f"Total amount       : {_amount(summary.total_amount)}")
    print(f"Paid amount        : {_amount(summary.paid_amount)}")
    print(f"Pending amount     : {_amount(summary.pending_amount)}")
    print(f"Linked to schedule : {_amount(summary.linked_amount)}")
    print(f"Payments           : {summary.payment_count}")
    if summary.last_payment_date:
        print(f"Last payment       : {summary.last_payment_date.isoformat()}")
    if summary.unlinked_count:
        print(f"Unlinked payments  : {summary.unlinked_count}")
    if summary.unapplied_amount:
        print(f"Unapplied amount   : {_amount(summary.unapplied_amount)}")
    counts = ", ".join(f"{status.value} {count}" for status, count in summary.status_counts.items())
    print(f"Installments       : {counts}")
    if summary.next_due is not None:
        nxt = summary.next_due
        print(f"Next due           : {nxt.due_date.isoformat()} ({_amount(nxt.balance)})")
    print("Down payment")
    print(f"  Required         : {_amount(dp.required)}")
    print(f"  Paid at intake   : {_amount(dp.initial_paid)}")
    print(f"  Balance due      : {_amount(dp.remaining_required)}")
    print(f"  Balance paid     : {_amount(dp.remaining_paid)}")
    print(f"  Pending          : {_amount(dp.pending)}")
    print("-" * 72)


def print_intake(result: IntakeResult, remaining_down_payment: Decimal) -> None:
    """Print the outcome of booking intake."""
    for warning in result.warnings:
        print(f"Warning: {warning}")
    if not result.accepted:
        print("Booking rejected")
        for field_name, message in result.errors.items():
            print(f"  {field_name:18s} {message}")
        return
    booking = result.booking
    print("Booking accepted")
    print("-" * 72)
    print(f"Payment type       : {booking.payment_type.value}")
    print(f"Total amount       : {_amount(booking.total_amount)}")
    print(f"Down payment       : {_amount(booking.down_payment)}")
    print(f"Paid at intake     : {_amount(booking.paid_amount)}")
    if booking.installment_count:
        print(f"Installments       : {booking.installment_count}")
    if remaining_down_payment:
        print(f"Down payment due   : {_amount(remaining_down_payment)}")
    print("-" * 72)


def print_plans(plans: Sequence[PlanTemplate], compatible: Optional[PlanTemplate] = None) -> None:
    """Print a one-line overview per plan, marking the plan matching the plot."""
    print("\t".join(["Id", "Name", "Size", "Price", "Status", ""]))
    for plan in plans:
        size = f"{plan.plot_size:f}" if plan.plot_size is not None else "-"
        marker = "*" if compatible is not None and plan == compatible else ""
        print(
            "\t".join(
                [plan.plan_id or "-", plan.name, size, _amount(plan.plot_price), plan.status.value, marker]
            )
        )
