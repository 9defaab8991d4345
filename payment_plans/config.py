"""Engine configuration: tolerances used by validation, intake and reconciliation."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from .exceptions import ConfigurationError

ENV_PREFIX = "PAYMENT_PLANS_"


def _env_decimal(name: str, default: Decimal) -> Decimal:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = Decimal(raw.strip())
    except InvalidOperation as exc:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be numeric, got {raw!r}") from exc
    if not value.is_finite() or value < 0:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be a non-negative number, got {raw!r}")
    return value


@dataclass(frozen=True)
class EngineConfig:
    """Tolerances applied by the engine.

    Attributes
    ----------
    shortfall_tolerance: Decimal
        Largest gap below the plot price a plan may leave unfunded.
    overpayment_ratio: Decimal
        Largest share of the plot price a plan may collect above it.
    link_tolerance: Decimal
        A payment links to an installment only when the amounts differ by
        strictly less than this.
    price_mismatch_tolerance: Decimal
        Plot and plan prices further apart than this raise an intake warning.
    log_level: str
        Level used by the command-line interface.
    """

    shortfall_tolerance: Decimal = Decimal("1000")
    overpayment_ratio: Decimal = Decimal("0.05")
    link_tolerance: Decimal = Decimal("1000")
    price_mismatch_tolerance: Decimal = Decimal("1000")
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Create config from ``PAYMENT_PLANS_*`` environment variables."""
        defaults = cls()
        overpayment_ratio = _env_decimal("OVERPAYMENT_RATIO", defaults.overpayment_ratio)
        if overpayment_ratio > 1:
            raise ConfigurationError(
                f"{ENV_PREFIX}OVERPAYMENT_RATIO must be between 0 and 1, got {overpayment_ratio}"
            )
        return cls(
            shortfall_tolerance=_env_decimal("SHORTFALL_TOLERANCE", defaults.shortfall_tolerance),
            overpayment_ratio=overpayment_ratio,
            link_tolerance=_env_decimal("LINK_TOLERANCE", defaults.link_tolerance),
            price_mismatch_tolerance=_env_decimal("PRICE_TOLERANCE", defaults.price_mismatch_tolerance),
            log_level=os.environ.get(ENV_PREFIX + "LOG_LEVEL", defaults.log_level).upper(),
        )


DEFAULT_CONFIG = EngineConfig()
