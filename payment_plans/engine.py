"""Schedule generator for plot payment plans.

This module turns a plan template and a start date into the concrete list of
dated installments a customer owes: an optional down-payment balance due on
the start date, one installment per month of the tenure, and the installments
of at most one secondary cadence (quarterly, triannual or bi-yearly) layered on
top of the monthly ones. Results are returned as a ``Schedule``.

Generation is deterministic. Nothing here reads the clock; the only date in
play is the caller-supplied start date.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from .data_models import (
    Booking,
    Installment,
    InstallmentType,
    PaymentType,
    PlanTemplate,
    Schedule,
    secondary_period,
)
from .log import get_logger
from .utils import ZERO, add_months, round_currency
from .validator import compute_down_payment, secondary_cadence

logger = get_logger(__name__)

# Position among installments falling due on the same day.
_SAME_DAY_ORDER: Dict[InstallmentType, int] = {
    InstallmentType.DOWN_PAYMENT_BALANCE: 0,
    InstallmentType.MONTHLY: 1,
    InstallmentType.QUARTERLY: 2,
    InstallmentType.TRIANNUAL: 2,
    InstallmentType.BI_YEARLY: 2,
}

_LABELS: Dict[InstallmentType, str] = {
    InstallmentType.DOWN_PAYMENT_BALANCE: "Down payment balance",
    InstallmentType.MONTHLY: "Monthly installment",
    InstallmentType.QUARTERLY: "Quarterly installment",
    InstallmentType.TRIANNUAL: "Triannual installment",
    InstallmentType.BI_YEARLY: "Bi-yearly installment",
}


def _same_day_order(installment_type: InstallmentType) -> int:
    try:
        return _SAME_DAY_ORDER[installment_type]
    except KeyError:
        raise ValueError(f"Unhandled installment type: {installment_type}") from None


def describe(installment_type: InstallmentType, sequence: Optional[int] = None) -> str:
    """Return a human-readable label such as ``"Monthly installment 3"``."""
    try:
        label = _LABELS[installment_type]
    except KeyError:
        raise ValueError(f"Unhandled installment type: {installment_type}") from None
    return f"{label} {sequence}" if sequence is not None else label


# (installment_type, amount, due_date, sequence within its type)
_Draft = Tuple[InstallmentType, Decimal, date, Optional[int]]


def _cadence_drafts(
    installment_type: InstallmentType,
    amount: Decimal,
    start_date: date,
    period: int,
    count: int,
) -> List[_Draft]:
    # Offsets are taken from the start date each time so a 31st start day is
    # clamped per month instead of drifting down after February.
    return [
        (installment_type, amount, add_months(start_date, period * k), k)
        for k in range(1, count + 1)
    ]


def generate_schedule(
    plan: PlanTemplate,
    start_date: date,
    initial_payment: Decimal = ZERO,
) -> Schedule:
    """Generate the installment schedule for a plan.

    Parameters
    ----------
    plan: PlanTemplate
        The plan template (or an ad-hoc one from :func:`adhoc_plan`).
    start_date: date
        Booking start. The down-payment balance is due on this date and the
        first monthly installment one calendar month later.
    initial_payment: Decimal
        Amount already paid towards the down payment at intake.

    Returns
    -------
    Schedule
        Installments ordered by due date. On a shared due date the
        down-payment balance comes first, then the monthly installment, then
        the secondary one. ``end_date`` is the last due date, or the start
        date when the schedule is empty.
    """
    drafts: List[_Draft] = []

    required_down_payment = compute_down_payment(plan)
    if initial_payment < required_down_payment:
        drafts.append(
            (
                InstallmentType.DOWN_PAYMENT_BALANCE,
                required_down_payment - initial_payment,
                start_date,
                None,
            )
        )

    tenure = max(plan.tenure_months, 0)
    # Zero-amount monthly installments are kept so the cadence count does not
    # change when a plan is edited.
    drafts.extend(_cadence_drafts(InstallmentType.MONTHLY, plan.monthly_payment, start_date, 1, tenure))

    cadence = secondary_cadence(plan)
    if cadence is not None:
        kind, amount = cadence
        period = secondary_period(kind)
        drafts.extend(_cadence_drafts(kind, amount, start_date, period, tenure // period))

    drafts.sort(key=lambda d: (d[2], _same_day_order(d[0]), d[3] or 0))

    installments = [
        Installment(
            number=position,
            installment_type=kind,
            amount=amount,
            due_date=due_date,
            description=describe(kind, sequence),
        )
        for position, (kind, amount, due_date, sequence) in enumerate(drafts, start=1)
    ]
    end_date = installments[-1].due_date if installments else start_date

    logger.debug(
        "Generated %d installments from %s to %s (required down payment %s, paid at intake %s)",
        len(installments),
        start_date,
        end_date,
        required_down_payment,
        initial_payment,
    )
    return Schedule(installments=installments, start_date=start_date, end_date=end_date)


def generate_booking_schedule(booking: Booking, plan: Optional[PlanTemplate], start_date: date) -> Schedule:
    """Generate the schedule for an accepted booking.

    Full-payment bookings owe nothing on a schedule and get an empty one.
    Installment bookings use the amount paid at intake as the initial
    contribution towards the down payment.
    """
    if booking.payment_type == PaymentType.FULL_PAYMENT:
        return Schedule(installments=[], start_date=start_date, end_date=start_date)
    if booking.payment_type == PaymentType.INSTALLMENT:
        if plan is None:
            raise ValueError("An installment booking needs a payment plan to build its schedule")
        return generate_schedule(plan, start_date, booking.paid_amount)
    raise ValueError(f"Unhandled payment type: {booking.payment_type}")


def adhoc_plan(
    total_amount: Decimal,
    down_payment: Decimal,
    installment_count: int,
    monthly_payment: Optional[Decimal] = None,
) -> PlanTemplate:
    """Build a plan template for a booking configured without a saved plan.

    Unless ``monthly_payment`` is given, the balance after the down payment is
    split evenly over ``installment_count`` months, rounded to whole units.
    """
    if installment_count < 0:
        raise ValueError("Installment count cannot be negative")
    if monthly_payment is None:
        if installment_count == 0:
            monthly_payment = ZERO
        else:
            monthly_payment = round_currency((total_amount - down_payment) / Decimal(installment_count))
    return PlanTemplate(
        plot_price=total_amount,
        tenure_months=installment_count,
        monthly_payment=monthly_payment,
        down_payment_amount=down_payment,
        name="Ad-hoc plan",
    )
