"""Utility functions for the payment-plan engine.

This module provides helpers for parsing user input into Python data types and
for handling dates, including adding calendar months to a due date and
rounding currency amounts to whole units. It uses Python's ``datetime`` and
``decimal`` modules only.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, getcontext
from typing import Any, Optional

from .exceptions import InvalidInputError

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

ZERO = Decimal("0")
WHOLE_UNIT = Decimal("1")


def parse_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string into a ``date`` object.

    A bare ``YYYY-MM`` is accepted as well and maps to the first day of the
    month, which is convenient on the command line.

    Raises
    ------
    InvalidInputError
        If the string is not a valid calendar date.
    """
    text = (value or "").strip()
    for fmt in ("%Y-%m-%d", "%Y-%m"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise InvalidInputError(f"Invalid date string: {value}")


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def decimal_from_str(value: str) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas and handles both integer and float-like
    strings. It raises ``InvalidInputError`` if conversion fails.
    """
    try:
        cleaned = value.replace(",", "").strip()
        result = Decimal(cleaned)
    except (InvalidOperation, AttributeError) as exc:
        raise InvalidInputError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise InvalidInputError(f"Invalid numeric value: {value}")
    return result


def to_decimal(value: Any) -> Decimal:
    """Coerce ints, floats, strings and ``None`` into a ``Decimal``.

    ``None`` and empty strings become zero, matching how blank form fields are
    treated. Floats go through ``str`` so ``0.1`` stays ``0.1``.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidInputError(f"Invalid numeric value: {value!r}")
    return decimal_from_str(str(value))


def optional_decimal(value: Any) -> Optional[Decimal]:
    """Like :func:`to_decimal` but keeps blank values as ``None``."""
    if value is None or value == "":
        return None
    return to_decimal(value)


def round_currency(amount: Decimal) -> Decimal:
    """Round an amount to whole currency units, halves away from zero."""
    return amount.quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)
