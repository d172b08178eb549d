"""
TicketBAI Document Models.

Responsibility:
    Frozen dataclasses for the parts of a TicketBAI document: header,
    parties ("Sujetos"), invoice body ("Factura") with its breakdown slot,
    the fingerprint section ("HuellaTBAI") and the signed document wrapper.

Invariants:
    - Every part is ``frozen=True``.
    - ``TicketBAI.signature`` is the only slot written after assembly, and
      it is written once (``DocumentAlreadySignedError`` otherwise).
    - All amounts are ``Decimal``; rendering happens in ``tbai_document.xml``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from decimal import Decimal
from enum import Enum

from tbai_document.xmldsig import Signature
from tbai_engines.breakdown import BreakdownType
from tbai_kernel.exceptions import DocumentAlreadySignedError

VERSION_TBAI = "1.2"

# Corrective invoice reason and type for credit / debit notes
CORRECTIVE_CODE = "R1"
CORRECTIVE_TYPE_DIFFERENCES = "I"

# ClaveRegimenIvaOpTrascendencia
REGIME_KEY_GENERAL = "01"
REGIME_KEY_EQUIVALENCE_SURCHARGE = "51"
REGIME_KEY_SIMPLIFIED = "52"

# Maximum characters of the previous signature kept when chaining
PREVIOUS_SIGNATURE_LENGTH = 100


class IssuerRole(str, Enum):
    """EmitidaPorTercerosODestinatario: who technically issues the invoice."""

    SUPPLIER = "N"
    CUSTOMER = "D"
    THIRD_PARTY = "T"


@dataclass(frozen=True)
class Header:
    version: str = VERSION_TBAI


@dataclass(frozen=True)
class OtherID:
    """IDOtro: identification of a non Spanish party."""

    country: str
    id: str
    id_type: str = "02"


@dataclass(frozen=True)
class Recipient:
    name: str
    nif: str | None = None
    other_id: OtherID | None = None
    postal_code: str = ""
    address: str = ""


@dataclass(frozen=True)
class Subjects:
    issuer_nif: str
    issuer_name: str
    issuer_role: IssuerRole
    recipients: tuple[Recipient, ...] = ()


@dataclass(frozen=True)
class CorrectedInvoice:
    number: str
    issue_date: date
    series: str = ""


@dataclass(frozen=True)
class CorrectiveInfo:
    code: str = CORRECTIVE_CODE
    type: str = CORRECTIVE_TYPE_DIFFERENCES
    corrected: tuple[CorrectedInvoice, ...] = ()


@dataclass(frozen=True)
class InvoiceHeader:
    series: str
    number: str
    issue_date: date
    issue_time: time
    simplified: bool
    corrective: CorrectiveInfo | None = None


@dataclass(frozen=True)
class DetailLine:
    description: str
    quantity: Decimal
    unit_price: Decimal
    discount: Decimal
    total: Decimal


@dataclass(frozen=True)
class InvoiceData:
    description: str
    details: tuple[DetailLine, ...]
    total: Decimal
    regime_keys: tuple[str, ...] = (REGIME_KEY_GENERAL,)


@dataclass(frozen=True)
class InvoiceBody:
    """Factura: header, data and the breakdown slot."""

    header: InvoiceHeader
    data: InvoiceData
    breakdown: BreakdownType


@dataclass(frozen=True)
class Software:
    license: str
    developer_nif: str
    name: str
    version: str


@dataclass(frozen=True)
class PreviousInvoice:
    """EncadenamientoFacturaAnterior: link to the last issued invoice."""

    number: str
    issue_date: date
    signature_value: str
    series: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "signature_value", self.signature_value[:PREVIOUS_SIGNATURE_LENGTH]
        )


@dataclass(frozen=True)
class Fingerprint:
    software: Software
    previous: PreviousInvoice | None = None


@dataclass(frozen=True)
class TicketBAI:
    """
    A TicketBAI document, ready to be canonicalized and signed.

    ``zone`` is the supplier's tax locality; it drives the signature policy
    and is not rendered in the XML.
    """

    header: Header
    subjects: Subjects
    invoice: InvoiceBody
    fingerprint: Fingerprint
    zone: str
    signature: Signature | None = field(default=None, compare=False)

    @property
    def doc_id(self) -> str:
        head = self.invoice.header
        return f"{head.series}-{head.number}" if head.series else head.number

    def canonical(self) -> bytes:
        """Declaration-free, unindented bytes of the unsigned document."""
        from tbai_document.xml import canonical_bytes

        return canonical_bytes(self)

    def to_bytes(self) -> bytes:
        """Complete document, signature included, with an XML declaration."""
        from tbai_document.xml import document_bytes

        return document_bytes(self)

    def signature_value(self) -> str:
        """Final signature value, or "" when unsigned."""
        if self.signature is None:
            return ""
        return self.signature.value

    def attach_signature(self, signature: Signature) -> None:
        if self.signature is not None:
            raise DocumentAlreadySignedError(self.doc_id)
        object.__setattr__(self, "signature", signature)
