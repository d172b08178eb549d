"""
Module: tbai_engines
Responsibility:
    Package entrypoint that re-exports the pure TicketBAI engines:
    validation, line classification and tax breakdown construction.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import tbai_kernel (and sibling engine modules).
    MUST NOT import tbai_document or tbai_services.

Invariants enforced:
    - Decimal-only arithmetic: all amounts use ``Decimal``.
    - Determinism: identical inputs always produce identical outputs,
      including the order of grouped entries.

Usage:
    from tbai_engines import select_breakdown, validate
"""

from tbai_engines.breakdown import (
    Breakdown,
    BreakdownType,
    ExemptDetail,
    NotExemptDetail,
    NotSubjectDetail,
    OperationBreakdown,
    SURCHARGE_RATES,
    VATDetail,
    build_breakdown,
    is_domestic,
    select_breakdown,
)
from tbai_engines.classifier import has_vat, is_goods, partition_goods
from tbai_engines.validation import SUPPORTED_ZONES, validate

__all__ = [
    "Breakdown",
    "BreakdownType",
    "ExemptDetail",
    "NotExemptDetail",
    "NotSubjectDetail",
    "OperationBreakdown",
    "SUPPORTED_ZONES",
    "SURCHARGE_RATES",
    "VATDetail",
    "build_breakdown",
    "has_vat",
    "is_domestic",
    "is_goods",
    "partition_goods",
    "select_breakdown",
    "validate",
]
