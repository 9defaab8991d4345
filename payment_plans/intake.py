"""Booking intake rules applied when a booking is created.

The total is always the plot's price. For an installment booking the down
payment comes from the selected plan and whatever is paid at intake counts
towards it; for a full-payment booking there is no down payment and the
amount paid at intake counts towards the total. Every violated rule is
reported against the field it concerns, all at once, so the caller can
highlight each offending field.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional

from .catalog import plan_mismatch_warnings
from .config import DEFAULT_CONFIG, EngineConfig
from .data_models import (
    Booking,
    BookingRequest,
    IntakeResult,
    PaymentType,
    PlanStatus,
    PlanTemplate,
    Plot,
)
from .log import get_logger
from .utils import ZERO
from .validator import compute_down_payment

logger = get_logger(__name__)


def _add(errors: Dict[str, str], field_name: str, message: str) -> None:
    # The first problem found for a field is the one shown.
    errors.setdefault(field_name, message)


def evaluate_intake(
    request: BookingRequest,
    plot: Optional[Plot],
    plan: Optional[PlanTemplate] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> IntakeResult:
    """Apply the intake rules to a booking request.

    Parameters
    ----------
    request: BookingRequest
        Customer, payment type, amount paid at intake and an optional
        installment-count override.
    plot: Optional[Plot]
        The selected plot; ``None`` when nothing was selected.
    plan: Optional[PlanTemplate]
        The selected plan. Required for installment bookings, ignored for
        full-payment ones.

    Returns
    -------
    IntakeResult
        The booking to persist when every rule passes, otherwise the errors
        keyed by field. Warnings (plan and plot disagree) never block intake.
    """
    errors: Dict[str, str] = {}
    warnings: List[str] = []

    if not request.customer_id:
        _add(errors, "customer_id", "Customer is required")
    if plot is None:
        _add(errors, "plot_id", "Plot is required")

    total_amount = plot.price if plot is not None else ZERO
    paid_amount = request.paid_amount
    down_payment = ZERO
    installment_count = 0

    if request.payment_type == PaymentType.INSTALLMENT:
        if plan is None:
            _add(errors, "plan_id", "Payment plan is required for installment bookings")
        else:
            if plan.status != PlanStatus.ACTIVE:
                _add(errors, "plan_id", "Selected payment plan is not active")
            if plot is not None:
                warnings.extend(plan_mismatch_warnings(plot, plan, config))
            down_payment = compute_down_payment(plan)
            installment_count = plan.tenure_months
        if request.installment_count is not None:
            installment_count = request.installment_count
        if installment_count < 1:
            _add(errors, "installment_count", "Installment count must be at least 1")
    elif request.payment_type != PaymentType.FULL_PAYMENT:
        raise ValueError(f"Unhandled payment type: {request.payment_type}")

    if plot is not None and total_amount <= 0:
        _add(errors, "total_amount", "Total amount must be greater than 0")
    if down_payment < 0:
        _add(errors, "down_payment", "Down payment cannot be negative")
    if down_payment > total_amount:
        _add(errors, "down_payment", "Down payment cannot be greater than total amount")

    if paid_amount < 0:
        _add(errors, "paid_amount", "Initial payment cannot be negative")
    if request.payment_type == PaymentType.INSTALLMENT and plan is not None and paid_amount > down_payment:
        _add(errors, "paid_amount", "Initial payment cannot be greater than the down payment")
    if paid_amount > total_amount:
        _add(errors, "paid_amount", "Initial payment cannot be greater than total amount")

    if warnings:
        logger.warning("Booking intake warnings: %s", "; ".join(warnings))

    if errors:
        logger.debug("Booking intake rejected: %s", errors)
        return IntakeResult(booking=None, errors=errors, warnings=warnings)

    booking = Booking(
        total_amount=total_amount,
        payment_type=request.payment_type,
        down_payment=down_payment,
        paid_amount=paid_amount,
        installment_count=installment_count,
        customer_id=request.customer_id,
        plot_id=plot.plot_id if plot is not None else None,
        plan_id=plan.plan_id if plan is not None and request.payment_type == PaymentType.INSTALLMENT else None,
        notes=request.notes,
    )
    return IntakeResult(booking=booking, errors=errors, warnings=warnings)


def remaining_down_payment(booking: Booking) -> Decimal:
    """Down payment still owed after intake; zero for full-payment bookings."""
    return max(ZERO, booking.down_payment - booking.paid_amount)
