"""
Pure domain layer.

Immutable input models and value helpers with NO dependencies on:
- XML or signing libraries
- Time/clock (except the injectable Clock)
- I/O
"""

from tbai_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from tbai_kernel.domain.invoice import (
    Address,
    Invoice,
    InvoiceType,
    Item,
    Line,
    Party,
    PrecedingDocument,
    TaxCombo,
    TaxIdentity,
    Totals,
)
from tbai_kernel.domain.values import format_amount, round_amount, to_decimal

__all__ = [
    "Address",
    "Clock",
    "DeterministicClock",
    "Invoice",
    "InvoiceType",
    "Item",
    "Line",
    "Party",
    "PrecedingDocument",
    "SystemClock",
    "TaxCombo",
    "TaxIdentity",
    "Totals",
    "format_amount",
    "round_amount",
    "to_decimal",
]
