"""
Tax Breakdown Engine - Build the TicketBAI "desglose" of an invoice.

Classifies already-calculated invoice lines into the regulator's
subject / exempt / not-subject taxonomy and aggregates their pre-computed
amounts per cause, rate and regime marker.  No tax rates are resolved here;
the only arithmetic is summing bases and applying the line's own rate to
report the quota.

Usage:
    from tbai_engines.breakdown import select_breakdown

    breakdown_type = select_breakdown(invoice)
    if breakdown_type.is_domestic:
        for detail in breakdown_type.invoice.not_subject:
            print(detail.cause, detail.amount)

Grouping keeps first-seen order (plain dict insertion order); the order is
part of the canonical XML that gets signed, so it must never be sorted.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType

from tbai_engines.classifier import has_vat, is_exempt, is_resale, partition_goods, vat_combos
from tbai_engines.tracer import traced_engine
from tbai_kernel.domain.invoice import (
    DOMESTIC_COUNTRY,
    EXT_KEY_TBAI_EXEMPTION,
    TAG_CUSTOMER_RATES,
    TAG_REVERSE_CHARGE,
    TAG_SIMPLIFIED_SCHEME,
    Invoice,
    Line,
)
from tbai_kernel.domain.values import ZERO, percent_of, round_amount
from tbai_kernel.exceptions import InvalidBreakdownError
from tbai_kernel.logging_config import get_logger

logger = get_logger("engines.breakdown")

# Not-subject causes
CAUSE_OUT_OF_SCOPE = "OT"  # Not subject by territorial rules
CAUSE_DESTINATION_RULE = "RL"  # Taxed in the customer's country

# Not-exempt subtypes
SUBTYPE_ORDINARY = "S1"
SUBTYPE_REVERSE_CHARGE = "S2"

# Marker for equivalence surcharge or simplified (modules) regime lines
REGIME_MARKER = "S"

# Equivalence surcharge percentage per surcharge-bearing rate class
SURCHARGE_RATES: MappingProxyType[str, Decimal] = MappingProxyType({
    "standard+eqs": Decimal("5.20"),
    "reduced+eqs": Decimal("1.75"),
    "super-reduced+eqs": Decimal("0.50"),
})


@dataclass(frozen=True)
class NotSubjectDetail:
    """Amount outside the scope of VAT, per cause."""

    cause: str
    amount: Decimal


@dataclass(frozen=True)
class ExemptDetail:
    """Exempt taxable base, per exemption cause."""

    cause: str
    base: Decimal


@dataclass(frozen=True)
class VATDetail:
    """One rate bucket of the not-exempt breakdown."""

    base: Decimal
    rate: Decimal
    quota: Decimal
    surcharge_rate: Decimal | None = None
    surcharge_quota: Decimal | None = None
    regime_marker: str = ""


@dataclass(frozen=True)
class NotExemptDetail:
    """Subject and not exempt operations, per subtype (S1 / S2)."""

    subtype: str
    vat_details: tuple[VATDetail, ...]


@dataclass(frozen=True)
class Breakdown:
    """
    Three-way split of one line subset.

    Any of the three groups may be empty when no line falls into it.
    """

    not_subject: tuple[NotSubjectDetail, ...] = ()
    exempt: tuple[ExemptDetail, ...] = ()
    not_exempt: tuple[NotExemptDetail, ...] = ()

    @property
    def is_subject(self) -> bool:
        return bool(self.exempt or self.not_exempt)

    @property
    def base_total(self) -> Decimal:
        """Sum of every base and not-subject amount in this breakdown."""
        total = sum((d.amount for d in self.not_subject), ZERO)
        total += sum((d.base for d in self.exempt), ZERO)
        for detail in self.not_exempt:
            total += sum((v.base for v in detail.vat_details), ZERO)
        return total


@dataclass(frozen=True)
class OperationBreakdown:
    """Cross-border shape: services and goods deliveries kept apart."""

    services: Breakdown | None = None
    delivery: Breakdown | None = None


@dataclass(frozen=True)
class BreakdownType:
    """
    Discriminated breakdown slot: exactly one arm is populated.

    Use ``BreakdownType.for_invoice(...)`` / ``for_operations(...)`` rather
    than the raw constructor.
    """

    invoice: Breakdown | None = None
    operations: OperationBreakdown | None = None

    def __post_init__(self) -> None:
        populated = (self.invoice is not None) + (self.operations is not None)
        if populated != 1:
            raise InvalidBreakdownError(populated)

    @classmethod
    def for_invoice(cls, breakdown: Breakdown) -> BreakdownType:
        return cls(invoice=breakdown)

    @classmethod
    def for_operations(cls, operations: OperationBreakdown) -> BreakdownType:
        return cls(operations=operations)

    @property
    def is_domestic(self) -> bool:
        return self.invoice is not None


class _RateBucket:
    """Mutable accumulator used while grouping; never escapes the builder."""

    __slots__ = ("rate", "surcharge_rate", "marker", "base")

    def __init__(self, rate: Decimal, surcharge_rate: Decimal | None, marker: str):
        self.rate = rate
        self.surcharge_rate = surcharge_rate
        self.marker = marker
        self.base = ZERO

    def to_detail(self) -> VATDetail:
        base = round_amount(self.base)
        surcharge_quota = None
        surcharge_rate = None
        if self.surcharge_rate is not None:
            surcharge_rate = round_amount(self.surcharge_rate)
            surcharge_quota = round_amount(percent_of(self.base, self.surcharge_rate))
        return VATDetail(
            base=base,
            rate=round_amount(self.rate),
            quota=round_amount(percent_of(self.base, self.rate)),
            surcharge_rate=surcharge_rate,
            surcharge_quota=surcharge_quota,
            regime_marker=self.marker,
        )


def not_subject_cause(tags: Iterable[str]) -> str:
    """Invoice level cause for every not-subject amount."""
    return CAUSE_DESTINATION_RULE if TAG_CUSTOMER_RATES in tags else CAUSE_OUT_OF_SCOPE


def not_exempt_subtype(tags: Iterable[str]) -> str:
    return SUBTYPE_REVERSE_CHARGE if TAG_REVERSE_CHARGE in tags else SUBTYPE_ORDINARY


def regime_marker(line: Line, tags: Iterable[str]) -> str:
    if is_resale(line) or TAG_SIMPLIFIED_SCHEME in tags:
        return REGIME_MARKER
    return ""


@traced_engine("breakdown", "1.0", fingerprint_fields=("lines", "tags"))
def build_breakdown(lines: Sequence[Line], tags: Sequence[str] = ()) -> Breakdown:
    """
    Build the subject / exempt / not-subject split for a set of lines.

    Args:
        lines: Lines of one subset (the whole invoice, or goods / services).
        tags: Invoice level tax tags.

    Returns:
        Breakdown with groups in first-seen order.  Never raises.
    """
    tags = tuple(tags)
    not_subject: dict[str, Decimal] = {}
    exempt: dict[str, Decimal] = {}
    buckets: dict[tuple[Decimal, Decimal | None, str], _RateBucket] = {}

    for line in lines:
        if not has_vat(line):
            cause = not_subject_cause(tags)
            not_subject[cause] = not_subject.get(cause, ZERO) + line.total
            continue

        marker = regime_marker(line, tags)
        for combo in vat_combos(line):
            if is_exempt(combo):
                cause = combo.ext.get(EXT_KEY_TBAI_EXEMPTION, "")
                exempt[cause] = exempt.get(cause, ZERO) + line.total
                continue

            rate = combo.percent if combo.percent is not None else ZERO
            surcharge = SURCHARGE_RATES.get(combo.rate)
            key = (rate, surcharge, marker)
            bucket = buckets.get(key)
            if bucket is None:
                bucket = buckets[key] = _RateBucket(rate, surcharge, marker)
            bucket.base += line.total

    not_exempt: tuple[NotExemptDetail, ...] = ()
    if buckets:
        not_exempt = (
            NotExemptDetail(
                subtype=not_exempt_subtype(tags),
                vat_details=tuple(b.to_detail() for b in buckets.values()),
            ),
        )

    return Breakdown(
        not_subject=tuple(
            NotSubjectDetail(cause=cause, amount=round_amount(amount))
            for cause, amount in not_subject.items()
        ),
        exempt=tuple(
            ExemptDetail(cause=cause, base=round_amount(base))
            for cause, base in exempt.items()
        ),
        not_exempt=not_exempt,
    )


def is_domestic(invoice: Invoice) -> bool:
    """
    True when the domestic (single) breakdown shape applies.

    Applies when there is no customer, the customer has no tax identity, or
    the customer is taxed in the supplier's country.
    """
    customer = invoice.customer
    if customer is None or customer.tax_id is None:
        return True
    domestic_country = invoice.supplier.tax_country or DOMESTIC_COUNTRY
    return customer.tax_country == domestic_country


def select_breakdown(invoice: Invoice) -> BreakdownType:
    """
    Choose between the domestic and cross-border shapes and build it.

    Cross-border invoices are split into goods deliveries and services; an
    empty side produces no entry.
    """
    if is_domestic(invoice):
        logger.debug(
            "breakdown_shape_selected",
            extra={"shape": "invoice", "line_count": len(invoice.lines)},
        )
        return BreakdownType.for_invoice(build_breakdown(invoice.lines, invoice.tags))

    goods, services = partition_goods(invoice.lines)
    operations = OperationBreakdown(
        services=build_breakdown(services, invoice.tags) if services else None,
        delivery=build_breakdown(goods, invoice.tags) if goods else None,
    )
    logger.debug(
        "breakdown_shape_selected",
        extra={
            "shape": "operations",
            "goods_lines": len(goods),
            "service_lines": len(services),
            "services_base": operations.services.base_total if operations.services else ZERO,
            "delivery_base": operations.delivery.base_total if operations.delivery else ZERO,
        },
    )
    return BreakdownType.for_operations(operations)
