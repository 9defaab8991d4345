"""Exception hierarchy for the payment-plan engine.

Plan validation, intake checks and reconciliation never raise: they report
problems as data. These exceptions cover malformed raw input only.
"""


class PaymentPlanError(Exception):
    """Base exception for all payment-plan errors."""


class InvalidInputError(PaymentPlanError, ValueError):
    """Raised when a raw value (date, amount, enum name) cannot be parsed."""


class ConfigurationError(PaymentPlanError):
    """Raised when engine configuration is invalid."""
