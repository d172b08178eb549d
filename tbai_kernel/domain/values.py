"""
Values -- Decimal helpers for regulator-facing amounts.

Responsibility:
    Coerces inputs to ``Decimal`` and renders amounts and percentages in the
    fixed two-decimal form TicketBAI documents require.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Decimal-only arithmetic: floats are rejected, never silently converted.
    - Rendering always produces exactly two decimals, rounded half-up.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

TWO_PLACES = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """
    Convert a str / int / Decimal to Decimal.

    Raises:
        TypeError: If value is a float (binary floats are never money).
        ValueError: If value cannot be parsed.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise TypeError(f"float values are not accepted for amounts: {value!r}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid amount: {value!r}") from e


def round_amount(value: Decimal) -> Decimal:
    """Round to two decimal places, half-up."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_amount(value: Decimal) -> str:
    """Render an amount as a fixed two-decimal string (e.g. ``"1000.00"``)."""
    return f"{round_amount(value):f}"


def percent_of(base: Decimal, percent: Decimal) -> Decimal:
    """Apply a percentage (``21.0`` meaning 21%) to a base, unrounded."""
    return base * percent / HUNDRED
