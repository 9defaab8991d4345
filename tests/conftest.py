"""Pytest configuration and fixtures."""

from datetime import date
from decimal import Decimal

import pytest

from payment_plans.data_models import Booking, PaymentType, PlanStatus, PlanTemplate, Plot


@pytest.fixture
def start_date() -> date:
    """Booking start date used across schedule tests."""
    return date(2024, 1, 15)


@pytest.fixture
def short_plan() -> PlanTemplate:
    """24-month plan that leaves an 80,000 shortfall."""
    return PlanTemplate(
        plot_price=Decimal("2500000"),
        tenure_months=24,
        monthly_payment=Decimal("80000"),
        down_payment_percentage=Decimal("20"),
        plot_size=Decimal("5"),
        plan_id="plan-short",
        name="5 Marla Standard",
    )


@pytest.fixture
def balanced_plan() -> PlanTemplate:
    """24-month plan whose shortfall (8) is within tolerance."""
    return PlanTemplate(
        plot_price=Decimal("2500000"),
        tenure_months=24,
        monthly_payment=Decimal("83333"),
        down_payment_percentage=Decimal("20"),
        plot_size=Decimal("5"),
        plan_id="plan-balanced",
        name="5 Marla Easy",
        description="Two years, monthly only",
    )


@pytest.fixture
def quarterly_plan() -> PlanTemplate:
    """12-month plan with a quarterly cadence that adds up exactly."""
    return PlanTemplate(
        plot_price=Decimal("1200000"),
        tenure_months=12,
        monthly_payment=Decimal("50000"),
        down_payment_amount=Decimal("200000"),
        quarterly_payment=Decimal("100000"),
        plot_size=Decimal("3"),
        plan_id="plan-quarterly",
        name="3 Marla Quarterly",
    )


@pytest.fixture
def inactive_plan() -> PlanTemplate:
    return PlanTemplate(
        plot_price=Decimal("5000000"),
        tenure_months=36,
        monthly_payment=Decimal("110000"),
        down_payment_amount=Decimal("1040000"),
        plot_size=Decimal("10"),
        status=PlanStatus.INACTIVE,
        plan_id="plan-old",
        name="10 Marla Legacy",
    )


@pytest.fixture
def plot() -> Plot:
    """5 marla plot priced like the balanced plan."""
    return Plot(plot_id="plot-001", price=Decimal("2500000"), size=Decimal("5"), plot_number="A-12")


@pytest.fixture
def installment_booking() -> Booking:
    """Installment booking on the balanced plan with 200,000 paid at intake."""
    return Booking(
        total_amount=Decimal("2500000"),
        payment_type=PaymentType.INSTALLMENT,
        down_payment=Decimal("500000"),
        paid_amount=Decimal("200000"),
        installment_count=24,
        customer_id="cust-test-001",
        plot_id="plot-001",
        plan_id="plan-balanced",
        booking_id="bk-test-001",
    )
