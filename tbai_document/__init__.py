"""
TicketBAI document layer: assembly, XML encoding and signing.

Usage:
    from tbai_document import new_ticketbai, sign, IssuerRole

    doc = new_ticketbai(invoice, issued_at, IssuerRole.SUPPLIER, zone="BI", software=software)
    sign(doc, certificate)
    xml = doc.to_bytes()
"""

from tbai_document.assembler import new_ticketbai
from tbai_document.models import IssuerRole, PreviousInvoice, Software, TicketBAI
from tbai_document.signatures import sign, signer_role, xades_config
from tbai_document.xmldsig import Certificate, Signature

__all__ = [
    "Certificate",
    "IssuerRole",
    "PreviousInvoice",
    "Signature",
    "Software",
    "TicketBAI",
    "new_ticketbai",
    "sign",
    "signer_role",
    "xades_config",
]
