"""
Invoice -- Read-only input model for the conversion pipeline.

Responsibility:
    Frozen dataclasses describing an invoice whose taxes and totals have
    already been calculated upstream: parties, lines, tax combos, invoice
    level tags and totals.  Nothing in this module computes tax.

Architecture position:
    Kernel > Domain -- pure data containers, zero I/O.

Invariants enforced:
    - All models are ``frozen=True`` (immutable after construction).
    - All monetary and percentage fields are ``Decimal`` -- NEVER ``float``.

Failure modes:
    - ``Invoice.from_dict`` raises ``KeyError`` for missing required keys and
      ``ValueError`` / ``TypeError`` for amounts that cannot be coerced.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, time
from decimal import Decimal
from enum import Enum
from typing import Any

from tbai_kernel.domain.values import ZERO, to_decimal

# Invoice level tax tags
TAG_CUSTOMER_RATES = "customer-rates"
TAG_REVERSE_CHARGE = "reverse-charge"
TAG_SIMPLIFIED_SCHEME = "simplified-scheme"
TAG_SIMPLIFIED = "simplified"

# Item classification keys
ITEM_GOODS = "goods"
ITEM_RESALE = "resale"

# Tax categories
CATEGORY_VAT = "VAT"
CATEGORY_IRPF = "IRPF"
RETAINED_CATEGORIES = frozenset({CATEGORY_IRPF})

# Rate classes
RATE_EXEMPT = "exempt"

# Extension keys
EXT_KEY_TBAI_EXEMPTION = "es-tbai-exemption"

DOMESTIC_COUNTRY = "ES"


class InvoiceType(str, Enum):
    """Kinds of invoice the upstream model can produce."""

    STANDARD = "standard"
    CORRECTIVE = "corrective"
    CREDIT_NOTE = "credit-note"
    DEBIT_NOTE = "debit-note"


@dataclass(frozen=True)
class TaxIdentity:
    """Tax identification of a party."""

    country: str
    code: str = ""
    zone: str = ""


@dataclass(frozen=True)
class Address:
    street: str = ""
    locality: str = ""
    code: str = ""
    region: str = ""
    country: str = ""


@dataclass(frozen=True)
class Party:
    """Supplier or customer."""

    name: str
    tax_id: TaxIdentity | None = None
    addresses: tuple[Address, ...] = ()

    @property
    def tax_country(self) -> str | None:
        return self.tax_id.country if self.tax_id else None


@dataclass(frozen=True)
class TaxCombo:
    """
    One tax applied to a line.

    ``rate`` is the rate class key (e.g. "standard", "standard+eqs"),
    ``percent`` the already resolved numeric rate as a percentage.
    """

    category: str
    rate: str = ""
    percent: Decimal | None = None
    ext: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_retained(self) -> bool:
        return self.category in RETAINED_CATEGORIES


@dataclass(frozen=True)
class Item:
    name: str
    price: Decimal
    key: str = ""


@dataclass(frozen=True)
class Line:
    """
    Invoice line with its pre-computed taxable amount.

    ``total`` is the net amount after discounts; it is the taxable base
    used for every grouping in the breakdown.
    """

    index: int
    quantity: Decimal
    item: Item
    total: Decimal
    taxes: tuple[TaxCombo, ...] = ()
    sum: Decimal | None = None
    discount: Decimal = ZERO


@dataclass(frozen=True)
class Totals:
    sum: Decimal
    total: Decimal
    tax: Decimal = ZERO
    total_with_tax: Decimal | None = None
    payable: Decimal | None = None


@dataclass(frozen=True)
class PrecedingDocument:
    """Reference to the invoice a credit or debit note corrects."""

    code: str
    issue_date: date
    series: str = ""


@dataclass(frozen=True)
class Invoice:
    """A fully calculated invoice, as handed over by the upstream model."""

    code: str
    issue_date: date
    supplier: Party
    lines: tuple[Line, ...]
    totals: Totals
    type: InvoiceType = InvoiceType.STANDARD
    series: str = ""
    issue_time: time | None = None
    currency: str = "EUR"
    customer: Party | None = None
    tags: tuple[str, ...] = ()
    notes: str = ""
    preceding: tuple[PrecedingDocument, ...] = ()

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    @property
    def identifier(self) -> str:
        """Series and code joined, as printed on the invoice."""
        if self.series:
            return f"{self.series}-{self.code}"
        return self.code

    @property
    def supplier_zone(self) -> str:
        """Tax locality of the supplier, empty when it declares none."""
        if self.supplier is None or self.supplier.tax_id is None:
            return ""
        return self.supplier.tax_id.zone

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Invoice:
        """Build an invoice from a JSON-compatible mapping."""
        customer = data.get("customer")
        totals = data["totals"]
        issue_time = data.get("issue_time")
        return cls(
            code=str(data["code"]),
            series=str(data.get("series", "")),
            type=InvoiceType(data.get("type", InvoiceType.STANDARD.value)),
            issue_date=date.fromisoformat(data["issue_date"]),
            issue_time=time.fromisoformat(issue_time) if issue_time else None,
            currency=data.get("currency", "EUR"),
            supplier=_party_from_dict(data["supplier"]),
            customer=_party_from_dict(customer) if customer else None,
            lines=tuple(_line_from_dict(line) for line in data.get("lines", [])),
            tags=tuple(data.get("tags", ())),
            notes=data.get("notes", ""),
            totals=Totals(
                sum=to_decimal(totals["sum"]),
                total=to_decimal(totals["total"]),
                tax=to_decimal(totals.get("tax", "0")),
                total_with_tax=_optional_decimal(totals.get("total_with_tax")),
                payable=_optional_decimal(totals.get("payable")),
            ),
            preceding=tuple(
                PrecedingDocument(
                    code=str(p["code"]),
                    series=str(p.get("series", "")),
                    issue_date=date.fromisoformat(p["issue_date"]),
                )
                for p in data.get("preceding", [])
            ),
        )


def _optional_decimal(value: Any) -> Decimal | None:
    return None if value is None else to_decimal(value)


def _party_from_dict(data: Mapping[str, Any]) -> Party:
    tax_id = data.get("tax_id")
    return Party(
        name=data["name"],
        tax_id=TaxIdentity(
            country=tax_id["country"],
            code=tax_id.get("code", ""),
            zone=tax_id.get("zone", ""),
        ) if tax_id else None,
        addresses=tuple(
            Address(
                street=a.get("street", ""),
                locality=a.get("locality", ""),
                code=a.get("code", ""),
                region=a.get("region", ""),
                country=a.get("country", ""),
            )
            for a in data.get("addresses", [])
        ),
    )


def _line_from_dict(data: Mapping[str, Any]) -> Line:
    item = data["item"]
    return Line(
        index=int(data["index"]),
        quantity=to_decimal(data["quantity"]),
        item=Item(
            name=item["name"],
            price=to_decimal(item["price"]),
            key=item.get("key", ""),
        ),
        taxes=tuple(
            TaxCombo(
                category=t["cat"],
                rate=t.get("rate", ""),
                percent=_optional_decimal(t.get("percent")),
                ext=dict(t.get("ext", {})),
            )
            for t in data.get("taxes", [])
        ),
        sum=_optional_decimal(data.get("sum")),
        discount=to_decimal(data.get("discount", "0")),
        total=to_decimal(data["total"]),
    )
