"""
Document Assembler -- build a TicketBAI document from a calculated invoice.

Runs validation, selects the breakdown shape and fills in the remaining
document sections (parties, invoice header and data, fingerprint).  Tax
amounts are taken from the invoice as given; the line totals with tax are
the line base plus the line's own combos applied to it.
"""

from __future__ import annotations

from datetime import datetime, time
from zoneinfo import ZoneInfo

from tbai_document.models import (
    CorrectedInvoice,
    CorrectiveInfo,
    DetailLine,
    Fingerprint,
    Header,
    InvoiceBody,
    InvoiceData,
    InvoiceHeader,
    IssuerRole,
    OtherID,
    PreviousInvoice,
    Recipient,
    REGIME_KEY_EQUIVALENCE_SURCHARGE,
    REGIME_KEY_GENERAL,
    REGIME_KEY_SIMPLIFIED,
    Software,
    Subjects,
    TicketBAI,
)
from tbai_engines.breakdown import SURCHARGE_RATES, select_breakdown
from tbai_engines.classifier import vat_combos
from tbai_engines.validation import validate
from tbai_kernel.domain.invoice import (
    DOMESTIC_COUNTRY,
    TAG_SIMPLIFIED,
    TAG_SIMPLIFIED_SCHEME,
    Address,
    Invoice,
    InvoiceType,
    Line,
    Party,
)
from tbai_kernel.domain.values import ZERO, percent_of, round_amount
from tbai_kernel.logging_config import get_logger

logger = get_logger("document.assembler")

DEFAULT_DESCRIPTION = "Factura"

# Issue times are local to the Basque Country
LOCAL_TIMEZONE = ZoneInfo("Europe/Madrid")


def new_ticketbai(
    invoice: Invoice,
    issued_at: datetime,
    role: IssuerRole,
    *,
    zone: str | None = None,
    software: Software,
    previous: PreviousInvoice | None = None,
) -> TicketBAI:
    """
    Assemble the unsigned TicketBAI document.

    Args:
        invoice: Fully calculated invoice.
        issued_at: Issue timestamp; its Europe/Madrid wall-clock time becomes
            the issue time when the invoice carries none. Naive values are
            taken as already local.
        role: Which party technically issues the document.
        zone: Supplier tax locality (BI, SS, VI); defaults to the zone on
            the supplier's tax identity.
        software: Registered software identification.
        previous: Last invoice issued by the same supplier, for chaining.

    Raises:
        ValidationError: any precondition failure, before breakdown work.
    """
    zone = zone or invoice.supplier_zone
    validate(invoice, zone)
    breakdown = select_breakdown(invoice)

    doc = TicketBAI(
        header=Header(),
        subjects=_new_subjects(invoice, role),
        invoice=InvoiceBody(
            header=_new_invoice_header(invoice, issued_at),
            data=_new_invoice_data(invoice),
            breakdown=breakdown,
        ),
        fingerprint=Fingerprint(software=software, previous=previous),
        zone=zone or "",
    )
    logger.info(
        "ticketbai_assembled",
        extra={
            "doc_id": doc.doc_id,
            "shape": "invoice" if breakdown.is_domestic else "operations",
            "line_count": len(invoice.lines),
        },
    )
    return doc


def _new_subjects(invoice: Invoice, role: IssuerRole) -> Subjects:
    supplier = invoice.supplier
    recipients: tuple[Recipient, ...] = ()
    if invoice.customer is not None:
        recipients = (_new_recipient(invoice.customer),)
    return Subjects(
        issuer_nif=supplier.tax_id.code if supplier.tax_id else "",
        issuer_name=supplier.name,
        issuer_role=role,
        recipients=recipients,
    )


def _new_recipient(customer: Party) -> Recipient:
    nif = None
    other_id = None
    if customer.tax_id is not None:
        if customer.tax_id.country == DOMESTIC_COUNTRY:
            nif = customer.tax_id.code
        else:
            other_id = OtherID(country=customer.tax_id.country, id=customer.tax_id.code)

    postal_code = ""
    address = ""
    if customer.addresses:
        first = customer.addresses[0]
        postal_code = first.code
        address = _format_address(first)

    return Recipient(
        name=customer.name,
        nif=nif,
        other_id=other_id,
        postal_code=postal_code,
        address=address,
    )


def _format_address(address: Address) -> str:
    parts = [address.street, address.locality, address.region]
    return ", ".join(p for p in parts if p)


def _new_invoice_header(invoice: Invoice, issued_at: datetime) -> InvoiceHeader:
    corrective = None
    if invoice.type in (InvoiceType.CREDIT_NOTE, InvoiceType.DEBIT_NOTE):
        corrective = CorrectiveInfo(
            corrected=tuple(
                CorrectedInvoice(number=p.code, series=p.series, issue_date=p.issue_date)
                for p in invoice.preceding
            ),
        )
    return InvoiceHeader(
        series=invoice.series,
        number=invoice.code,
        issue_date=invoice.issue_date,
        issue_time=invoice.issue_time or _local_time(issued_at),
        simplified=invoice.customer is None or invoice.has_tag(TAG_SIMPLIFIED),
        corrective=corrective,
    )


def _local_time(issued_at: datetime) -> time:
    if issued_at.tzinfo is not None:
        issued_at = issued_at.astimezone(LOCAL_TIMEZONE)
    return issued_at.time().replace(microsecond=0)


def _new_invoice_data(invoice: Invoice) -> InvoiceData:
    totals = invoice.totals
    total = totals.total_with_tax
    if total is None:
        total = totals.total + totals.tax
    return InvoiceData(
        description=invoice.notes or DEFAULT_DESCRIPTION,
        details=tuple(_new_detail_line(line) for line in invoice.lines),
        total=round_amount(total),
        regime_keys=(_regime_key(invoice),),
    )


def _new_detail_line(line: Line) -> DetailLine:
    total = line.total
    for combo in line.taxes:
        if combo.percent is None:
            continue
        amount = percent_of(line.total, combo.percent)
        total = total - amount if combo.is_retained else total + amount
        surcharge = SURCHARGE_RATES.get(combo.rate)
        if surcharge is not None:
            total += percent_of(line.total, surcharge)
    return DetailLine(
        description=line.item.name,
        quantity=line.quantity,
        unit_price=line.item.price,
        discount=line.discount or ZERO,
        total=round_amount(total),
    )


def _regime_key(invoice: Invoice) -> str:
    if invoice.has_tag(TAG_SIMPLIFIED_SCHEME):
        return REGIME_KEY_SIMPLIFIED
    for line in invoice.lines:
        if any(c.rate in SURCHARGE_RATES for c in vat_combos(line)):
            return REGIME_KEY_EQUIVALENCE_SURCHARGE
    return REGIME_KEY_GENERAL

