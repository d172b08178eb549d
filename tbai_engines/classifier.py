"""
Line Classifier -- goods / services and VAT subjection of invoice lines.

Pure functions over ``tbai_kernel.domain.invoice.Line``.  Goods are the
exception: a line is goods only when its item carries the "goods" key; no
key, or any other key, means services.
"""

from __future__ import annotations

from tbai_kernel.domain.invoice import (
    CATEGORY_VAT,
    ITEM_GOODS,
    ITEM_RESALE,
    RATE_EXEMPT,
    Line,
    TaxCombo,
)


def is_goods(line: Line) -> bool:
    return line.item.key == ITEM_GOODS


def is_resale(line: Line) -> bool:
    return line.item.key == ITEM_RESALE


def vat_combos(line: Line) -> tuple[TaxCombo, ...]:
    """VAT combos of the line, in declaration order."""
    return tuple(c for c in line.taxes if c.category == CATEGORY_VAT)


def has_vat(line: Line) -> bool:
    """True when the line is subject to VAT (any VAT combo at all)."""
    return any(c.category == CATEGORY_VAT for c in line.taxes)


def is_exempt(combo: TaxCombo) -> bool:
    return combo.rate == RATE_EXEMPT


def partition_goods(lines: tuple[Line, ...] | list[Line]) -> tuple[list[Line], list[Line]]:
    """Split lines into (goods, services), preserving order."""
    goods: list[Line] = []
    services: list[Line] = []
    for line in lines:
        (goods if is_goods(line) else services).append(line)
    return goods, services
