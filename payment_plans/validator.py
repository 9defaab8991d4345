"""Plan validation: down payment, planned cash-flow totals and plan errors.

The validator answers one question about a plan template: do its down
payment, monthly installments and secondary installments add up to the plot
price? Problems are collected into a list rather than raised so that a caller
can show every one of them at once and decide for itself whether to block
saving the plan.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional, Tuple

from .config import DEFAULT_CONFIG, EngineConfig
from .data_models import (
    InstallmentType,
    PlanIssue,
    PlanIssueKind,
    PlanTemplate,
    PlanValidation,
    secondary_period,
)
from .log import get_logger
from .utils import ZERO, round_currency

logger = get_logger(__name__)


def compute_down_payment(plan: PlanTemplate) -> Decimal:
    """Return the down payment a plan requires.

    An absolute ``down_payment_amount`` wins over ``down_payment_percentage``.
    A zero amount counts as not supplied, so a plan carrying both a zero amount
    and a percentage uses the percentage. The percentage result is rounded to
    whole units, halves up.
    """
    if plan.down_payment_amount:
        return plan.down_payment_amount
    if plan.down_payment_percentage and plan.plot_price > 0:
        return round_currency(plan.plot_price * plan.down_payment_percentage / Decimal(100))
    return ZERO


def secondary_cadence(plan: PlanTemplate) -> Optional[Tuple[InstallmentType, Decimal]]:
    """Return the plan's secondary cadence and amount, or ``None``.

    If several cadences are populated (an invalid plan) the first one in the
    order quarterly, bi-yearly, triannual is returned.
    """
    return next(iter(plan.secondary_amounts().items()), None)


def compute_totals(plan: PlanTemplate) -> PlanValidation:
    """Compute the planned cash flow of a plan without judging it."""
    down_payment = compute_down_payment(plan)
    tenure = max(plan.tenure_months, 0)
    total_monthly = plan.monthly_payment * tenure

    total_secondary = ZERO
    for kind, amount in plan.secondary_amounts().items():
        count = tenure // secondary_period(kind)
        total_secondary += amount * count

    total_planned = down_payment + total_monthly + total_secondary
    shortfall = max(ZERO, plan.plot_price - total_planned)
    overpayment = max(ZERO, total_planned - plan.plot_price)

    return PlanValidation(
        down_payment=down_payment,
        total_monthly=total_monthly,
        total_secondary=total_secondary,
        total_planned=total_planned,
        shortfall=shortfall,
        overpayment=overpayment,
    )


def _format_amount(amount: Decimal) -> str:
    return f"{amount:,.0f}"


def validate_plan(plan: PlanTemplate, config: EngineConfig = DEFAULT_CONFIG) -> PlanValidation:
    """Compute a plan's totals and every validation problem with it.

    Checks run in a fixed order and never stop early:

    1. more than one secondary cadence is populated;
    2. the plot has a price but no down payment;
    3. the down payment meets or exceeds the plot price;
    4. the shortfall exceeds ``config.shortfall_tolerance``;
    5. the overpayment exceeds ``config.overpayment_ratio`` of the price.
    """
    result = compute_totals(plan)
    price = plan.plot_price
    issues: List[PlanIssue] = []

    if len(plan.secondary_amounts()) > 1:
        issues.append(
            PlanIssue(PlanIssueKind.MULTIPLE_SECONDARY, "Only one additional payment type can be selected")
        )

    if price > 0 and result.down_payment <= 0:
        issues.append(PlanIssue(PlanIssueKind.DOWN_PAYMENT_MISSING, "Down payment must be specified"))

    if price > 0 and result.down_payment >= price:
        issues.append(
            PlanIssue(
                PlanIssueKind.DOWN_PAYMENT_TOO_HIGH,
                "Down payment cannot be equal to or greater than plot price",
            )
        )

    if result.shortfall > config.shortfall_tolerance:
        issues.append(
            PlanIssue(PlanIssueKind.SHORTFALL, f"Payment shortfall: {_format_amount(result.shortfall)}")
        )

    if result.overpayment > price * config.overpayment_ratio:
        percent = _format_amount(config.overpayment_ratio * 100)
        issues.append(
            PlanIssue(
                PlanIssueKind.OVERPAYMENT,
                f"Overpayment exceeds {percent}%: {_format_amount(result.overpayment)}",
            )
        )

    result.issues = issues
    logger.debug(
        "Plan %s: planned %s against price %s (shortfall %s, overpayment %s)",
        plan.plan_id or plan.name or "<unsaved>",
        result.total_planned,
        price,
        result.shortfall,
        result.overpayment,
    )
    if issues:
        logger.warning(
            "Plan %s failed validation: %s",
            plan.plan_id or plan.name or "<unsaved>",
            "; ".join(result.errors),
        )
    return result
