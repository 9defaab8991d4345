"""Data models for the payment-plan engine.

This module defines the dataclasses and enumerations shared by the validator,
the schedule generator, the reconciler and the booking intake rules: plan
templates, plots, bookings, installments, payments and the result objects each
component returns. All currency amounts are ``Decimal`` whole units and all
dates are ``datetime.date`` values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from .utils import ZERO


class PlanStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class PaymentType(str, Enum):
    FULL_PAYMENT = "full_payment"
    INSTALLMENT = "installment"


class InstallmentType(str, Enum):
    DOWN_PAYMENT_BALANCE = "down_payment_balance"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    BI_YEARLY = "bi_yearly"
    TRIANNUAL = "triannual"


class InstallmentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PlanIssueKind(str, Enum):
    MULTIPLE_SECONDARY = "multiple_secondary"
    DOWN_PAYMENT_MISSING = "down_payment_missing"
    DOWN_PAYMENT_TOO_HIGH = "down_payment_too_high"
    SHORTFALL = "shortfall"
    OVERPAYMENT = "overpayment"


# Months between two installments of each secondary cadence.
SECONDARY_PERIODS: Dict[InstallmentType, int] = {
    InstallmentType.QUARTERLY: 3,
    InstallmentType.TRIANNUAL: 4,
    InstallmentType.BI_YEARLY: 6,
}


def secondary_period(installment_type: InstallmentType) -> int:
    """Return the cadence period in months for a secondary installment type."""
    try:
        return SECONDARY_PERIODS[installment_type]
    except KeyError:
        raise ValueError(f"{installment_type} is not a secondary cadence") from None


@dataclass(frozen=True)
class PlanTemplate:
    """A reusable pricing template for one plot size and price tier.

    Attributes
    ----------
    plot_price: Decimal
        Price of the plot the plan is designed for.
    tenure_months: int
        Number of monthly installments.
    monthly_payment: Decimal
        Amount of each monthly installment; zero is allowed.
    down_payment_amount: Optional[Decimal]
        Absolute down payment. Takes precedence over the percentage.
    down_payment_percentage: Optional[Decimal]
        Down payment as a percentage (0-100) of ``plot_price``.
    quarterly_payment, bi_yearly_payment, triannual_payment: Optional[Decimal]
        Secondary cadence amounts. At most one may be positive.
    plot_size: Optional[Decimal]
        Plot size in marla.
    status: PlanStatus
        Only active plans can be selected for new bookings.

    The template is frozen: a booking's schedule is derived from it once and
    never re-derived when the template changes.
    """

    plot_price: Decimal
    tenure_months: int
    monthly_payment: Decimal = ZERO
    down_payment_amount: Optional[Decimal] = None
    down_payment_percentage: Optional[Decimal] = None
    quarterly_payment: Optional[Decimal] = None
    bi_yearly_payment: Optional[Decimal] = None
    triannual_payment: Optional[Decimal] = None
    plot_size: Optional[Decimal] = None
    status: PlanStatus = PlanStatus.ACTIVE
    plan_id: Optional[str] = None
    name: str = ""
    description: str = ""

    def secondary_amounts(self) -> Dict[InstallmentType, Decimal]:
        """Return the positive secondary cadence amounts keyed by type.

        Order is quarterly, bi-yearly, triannual. Zero and negative amounts
        do not populate a cadence.
        """
        candidates = [
            (InstallmentType.QUARTERLY, self.quarterly_payment),
            (InstallmentType.BI_YEARLY, self.bi_yearly_payment),
            (InstallmentType.TRIANNUAL, self.triannual_payment),
        ]
        return {kind: amount for kind, amount in candidates if amount is not None and amount > 0}


@dataclass(frozen=True)
class Plot:
    """The parts of a plot record the engine needs."""

    plot_id: str
    price: Decimal
    size: Optional[Decimal] = None
    plot_number: str = ""


@dataclass(frozen=True)
class Booking:
    """A sale of one plot to one customer.

    ``paid_amount`` is cumulative: the amount collected at intake plus every
    completed payment recorded afterwards.
    """

    total_amount: Decimal
    payment_type: PaymentType
    down_payment: Decimal = ZERO
    paid_amount: Decimal = ZERO
    installment_count: int = 0
    customer_id: Optional[str] = None
    plot_id: Optional[str] = None
    plan_id: Optional[str] = None
    booking_id: Optional[str] = None
    notes: str = ""


@dataclass(frozen=True)
class Installment:
    """One scheduled obligation. Installments are never re-dated."""

    number: int
    installment_type: InstallmentType
    amount: Decimal
    due_date: date
    description: str = ""


@dataclass(frozen=True)
class Payment:
    """A recorded money movement against a booking."""

    amount: Decimal
    payment_date: date
    payment_method: str = "cash"
    status: PaymentStatus = PaymentStatus.COMPLETED
    payment_id: Optional[str] = None
    transaction_id: Optional[str] = None
    reference_number: Optional[str] = None
    notes: str = ""

    @property
    def is_completed(self) -> bool:
        return self.status == PaymentStatus.COMPLETED

    @property
    def mentions_down_payment(self) -> bool:
        """True when the notes say the payment settles the down payment."""
        return "down payment" in (self.notes or "").lower()


@dataclass
class Schedule:
    """An ordered list of installments with the span it covers."""

    installments: List[Installment]
    start_date: date
    end_date: date

    def of_type(self, installment_type: InstallmentType) -> List[Installment]:
        return [i for i in self.installments if i.installment_type == installment_type]

    @property
    def down_payment_installment(self) -> Optional[Installment]:
        found = self.of_type(InstallmentType.DOWN_PAYMENT_BALANCE)
        return found[0] if found else None

    @property
    def total_amount(self) -> Decimal:
        return sum((i.amount for i in self.installments), ZERO)


@dataclass
class PlanIssue:
    """A single validation problem with a plan template."""

    kind: PlanIssueKind
    message: str


@dataclass
class PlanValidation:
    """Totals computed for a plan template plus every problem found."""

    down_payment: Decimal
    total_monthly: Decimal
    total_secondary: Decimal
    total_planned: Decimal
    shortfall: Decimal
    overpayment: Decimal
    issues: List[PlanIssue] = field(default_factory=list)

    @property
    def errors(self) -> List[str]:
        return [issue.message for issue in self.issues]

    @property
    def is_valid(self) -> bool:
        return not self.issues


@dataclass
class ReconciledInstallment:
    """An installment with the payments attributed to it.

    ``status`` is derived from ``paid_amount``, ``due_date`` and the day the
    reconciliation ran; it is recomputed on every reconciliation.
    """

    installment: Installment
    paid_amount: Decimal = ZERO
    paid_date: Optional[date] = None
    status: InstallmentStatus = InstallmentStatus.PENDING
    linked_payments: List[Payment] = field(default_factory=list)

    @property
    def number(self) -> int:
        return self.installment.number

    @property
    def amount(self) -> Decimal:
        return self.installment.amount

    @property
    def due_date(self) -> date:
        return self.installment.due_date

    @property
    def installment_type(self) -> InstallmentType:
        return self.installment.installment_type

    @property
    def balance(self) -> Decimal:
        return max(ZERO, self.amount - self.paid_amount)


@dataclass
class DownPaymentBreakdown:
    """How much of the required down payment has been settled, and how."""

    required: Decimal
    initial_paid: Decimal
    remaining_required: Decimal
    remaining_paid: Decimal
    pending: Decimal

    @property
    def total_paid(self) -> Decimal:
        return self.initial_paid + self.remaining_paid


@dataclass
class BookingSummary:
    """Aggregate figures for one booking after reconciliation.

    ``unapplied_amount`` is the part of linked payments that exceeded every
    open balance of the installment type it was linked to.
    """

    total_amount: Decimal
    paid_amount: Decimal
    pending_amount: Decimal
    down_payment: DownPaymentBreakdown
    linked_amount: Decimal
    unlinked_count: int
    payment_count: int
    last_payment_date: Optional[date]
    status_counts: Dict[InstallmentStatus, int]
    next_due: Optional[ReconciledInstallment] = None
    unapplied_amount: Decimal = ZERO


@dataclass
class Reconciliation:
    """Output of the payment reconciler."""

    installments: List[ReconciledInstallment]
    summary: BookingSummary
    unlinked_payments: List[Payment] = field(default_factory=list)


@dataclass
class BookingRequest:
    """The raw fields submitted when a booking is created."""

    customer_id: Optional[str]
    payment_type: PaymentType = PaymentType.INSTALLMENT
    paid_amount: Decimal = ZERO
    installment_count: Optional[int] = None
    notes: str = ""


@dataclass
class IntakeResult:
    """Outcome of the booking intake rules.

    ``booking`` is set only when ``errors`` is empty. ``errors`` maps a field
    name to the message to show next to it; ``warnings`` never block intake.
    """

    booking: Optional[Booking]
    errors: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return not self.errors
