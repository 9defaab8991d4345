"""Payment reconciliation: attribute recorded payments to scheduled installments.

Payments are stored against a booking, not against an installment, so the
link is inferred from amounts. A completed payment is attributed to an
installment that still has a balance and whose amount is within the link
tolerance of the payment. Installments with nothing paid yet are preferred,
then the closest amount, then the earliest installment. Money beyond the
chosen installment's balance goes to the other open installments of the same
type and anything still left is reported as unapplied. This is a best-effort
reading of the payment history, not authoritative accounting: payments that
match nothing stay unlinked and are reported instead of being forced onto an
installment.

Installment status is a pure function of the amount, the amount attributed,
the due date and ``today``, which the caller passes in on every call.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from .config import DEFAULT_CONFIG, EngineConfig
from .data_models import (
    Booking,
    BookingSummary,
    DownPaymentBreakdown,
    InstallmentStatus,
    InstallmentType,
    Payment,
    ReconciledInstallment,
    Reconciliation,
    Schedule,
)
from .log import get_logger
from .utils import ZERO

logger = get_logger(__name__)


def installment_status(amount: Decimal, paid_amount: Decimal, due_date: date, today: date) -> InstallmentStatus:
    """Derive an installment's status.

    ``paid`` once fully covered, ``partial`` when something but not all has
    been paid, ``overdue`` when nothing has been paid and the due date has
    passed, otherwise ``pending``.
    """
    if paid_amount >= amount:
        return InstallmentStatus.PAID
    if paid_amount > 0:
        return InstallmentStatus.PARTIAL
    if due_date < today:
        return InstallmentStatus.OVERDUE
    return InstallmentStatus.PENDING


def _find_installment(
    rows: Sequence[ReconciledInstallment],
    payment: Payment,
    tolerance: Decimal,
) -> Optional[ReconciledInstallment]:
    candidates = [
        row for row in rows if row.balance > 0 and abs(payment.amount - row.amount) < tolerance
    ]
    if not candidates:
        return None
    if payment.mentions_down_payment:
        for row in candidates:
            if row.installment_type == InstallmentType.DOWN_PAYMENT_BALANCE:
                return row
    # Untouched rows first, then the closest amount; min() keeps the first of
    # equal keys and rows are in schedule order.
    return min(candidates, key=lambda row: (row.paid_amount > 0, abs(payment.amount - row.amount)))


def _credit(row: ReconciledInstallment, payment: Payment, available: Decimal) -> Decimal:
    applied = min(available, row.balance)
    row.paid_amount += applied
    row.linked_payments.append(payment)
    if row.paid_amount >= row.amount and row.paid_date is None:
        row.paid_date = payment.payment_date
    return available - applied


def _apply(rows: Sequence[ReconciledInstallment], row: ReconciledInstallment, payment: Payment) -> Decimal:
    """Credit ``payment`` to ``row`` and return the amount left unapplied.

    Whatever exceeds the row's balance goes to the other open installments of
    the same type, in schedule order.
    """
    remainder = _credit(row, payment, payment.amount)
    for other in rows:
        if remainder <= 0:
            break
        if other is row or other.installment_type != row.installment_type or other.balance <= 0:
            continue
        remainder = _credit(other, payment, remainder)
    return remainder


def _down_payment_breakdown(
    booking: Booking,
    rows: Sequence[ReconciledInstallment],
    completed: Sequence[Payment],
) -> DownPaymentBreakdown:
    required = booking.down_payment
    noted = sum((p.amount for p in completed if p.mentions_down_payment), ZERO)
    initial_paid = booking.paid_amount - noted

    balance_row = next(
        (row for row in rows if row.installment_type == InstallmentType.DOWN_PAYMENT_BALANCE),
        None,
    )
    remaining_required = balance_row.amount if balance_row is not None else ZERO
    remaining_paid = (
        remaining_required
        if balance_row is not None and balance_row.status == InstallmentStatus.PAID
        else ZERO
    )
    pending = max(ZERO, required - (initial_paid + remaining_paid))

    return DownPaymentBreakdown(
        required=required,
        initial_paid=initial_paid,
        remaining_required=remaining_required,
        remaining_paid=remaining_paid,
        pending=pending,
    )


def reconcile(
    schedule: Schedule,
    payments: Sequence[Payment],
    booking: Booking,
    today: date,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Reconciliation:
    """Attribute a booking's payments to its installments and summarise.

    Parameters
    ----------
    schedule: Schedule
        The booking's generated schedule.
    payments: Sequence[Payment]
        Every payment recorded against the booking. Only completed ones are
        considered; they are applied in payment-date order.
    booking: Booking
        Supplies the total, the required down payment and the cumulative paid
        amount.
    today: date
        The day used to decide whether an unpaid installment is overdue.
    config: EngineConfig
        Supplies the link tolerance.

    Returns
    -------
    Reconciliation
        One ``ReconciledInstallment`` per scheduled installment (same order),
        the booking summary and the payments that could not be linked.
    """
    rows = [ReconciledInstallment(installment=inst) for inst in schedule.installments]
    completed = sorted((p for p in payments if p.is_completed), key=lambda p: p.payment_date)

    unlinked: List[Payment] = []
    unapplied = ZERO
    for payment in completed:
        row = _find_installment(rows, payment, config.link_tolerance)
        if row is None:
            unlinked.append(payment)
            continue
        unapplied += _apply(rows, row, payment)

    status_counts: Dict[InstallmentStatus, int] = {status: 0 for status in InstallmentStatus}
    for row in rows:
        row.status = installment_status(row.amount, row.paid_amount, row.due_date, today)
        status_counts[row.status] += 1

    if unlinked or unapplied:
        unlinked_total = sum((p.amount for p in unlinked), ZERO)
        logger.warning(
            "Booking %s: %d payment(s) totalling %s could not be linked to an installment, %s left unapplied",
            booking.booking_id or "<unsaved>",
            len(unlinked),
            unlinked_total,
            unapplied,
            extra={
                "extra": {
                    "booking_id": booking.booking_id,
                    "unlinked_count": len(unlinked),
                    "unlinked_amount": unlinked_total,
                    "unapplied_amount": unapplied,
                }
            },
        )

    summary = BookingSummary(
        total_amount=booking.total_amount,
        paid_amount=booking.paid_amount,
        pending_amount=max(ZERO, booking.total_amount - booking.paid_amount),
        down_payment=_down_payment_breakdown(booking, rows, completed),
        linked_amount=sum((row.paid_amount for row in rows), ZERO),
        unlinked_count=len(unlinked),
        payment_count=len(completed),
        last_payment_date=completed[-1].payment_date if completed else None,
        status_counts=status_counts,
        next_due=next((row for row in rows if row.status != InstallmentStatus.PAID), None),
        unapplied_amount=unapplied,
    )
    logger.debug(
        "Booking %s reconciled: %d payments, %s linked, %s pending",
        booking.booking_id or "<unsaved>",
        len(completed),
        summary.linked_amount,
        summary.pending_amount,
    )
    return Reconciliation(installments=rows, summary=summary, unlinked_payments=unlinked)


def apply_payment(booking: Booking, payment: Payment) -> Booking:
    """Return ``booking`` with a newly recorded payment added to its paid amount.

    Pending and failed payments leave the booking unchanged. The input booking
    is never modified.
    """
    if not payment.is_completed:
        return booking
    return replace(booking, paid_amount=booking.paid_amount + payment.amount)
