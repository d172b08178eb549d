"""
tbai_services.conversion_service -- Invoice to signed TicketBAI document.

Responsibility:
    Orchestrates one conversion call: validation, breakdown selection,
    document assembly and (optionally) signing, under a bound LogContext.

Architecture position:
    Services -- orchestration over engines + document layer.
    Holds no state between calls other than the injected settings and clock.

Invariants enforced:
    - No partial success: either a complete document is returned (signed when
      a certificate is given) or the original exception propagates.
    - Each call builds a fresh document; nothing is cached.

Failure modes:
    - ValidationError subclasses, raised before any breakdown work.
    - SigningError / CertificateError from the signing step, unchanged.

Usage:
    from tbai_config import get_settings
    from tbai_services.conversion_service import ConversionService

    service = ConversionService(get_settings("settings.yaml"))
    doc = service.convert(invoice, certificate=certificate)
    xml_bytes = doc.to_bytes()
"""

from __future__ import annotations

from uuid import uuid4

from tbai_config.schema import ConversionSettings
from tbai_document.assembler import new_ticketbai
from tbai_document.models import IssuerRole, PreviousInvoice, Software, TicketBAI
from tbai_document.signatures import sign
from tbai_document.xmldsig import Certificate
from tbai_kernel.domain.clock import Clock, SystemClock
from tbai_kernel.domain.invoice import Invoice
from tbai_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.conversion")

ISSUER_ROLES = {
    "supplier": IssuerRole.SUPPLIER,
    "customer": IssuerRole.CUSTOMER,
    "third_party": IssuerRole.THIRD_PARTY,
}


class ConversionService:
    """Converts calculated invoices into (signed) TicketBAI documents."""

    def __init__(self, settings: ConversionSettings, clock: Clock | None = None):
        self._settings = settings
        self._clock = clock or SystemClock()
        self._software = Software(
            license=settings.software.license,
            developer_nif=settings.software.developer_nif,
            name=settings.software.name,
            version=settings.software.version,
        )

    @property
    def issuer_role(self) -> IssuerRole:
        return ISSUER_ROLES[self._settings.issuer_role]

    def resolve_zone(self, invoice: Invoice, override: str | None = None) -> str:
        """Explicit override, then the supplier's tax zone, then the configured one."""
        return override or invoice.supplier_zone or self._settings.zone

    def convert(
        self,
        invoice: Invoice,
        *,
        certificate: Certificate | None = None,
        previous: PreviousInvoice | None = None,
        zone: str | None = None,
    ) -> TicketBAI:
        """
        Build the document and sign it when a certificate is supplied.

        Args:
            invoice: Fully calculated invoice.
            certificate: Signing certificate; ``None`` returns it unsigned.
            previous: Previous invoice for HuellaTBAI chaining.
            zone: Overrides the supplier's own zone for this call.
        """
        zone = self.resolve_zone(invoice, zone)
        with LogContext.bind(
            invoice_id=invoice.identifier,
            zone=zone,
            issuer_role=self._settings.issuer_role,
            trace_id=str(uuid4()),
        ):
            try:
                doc = new_ticketbai(
                    invoice,
                    self._clock.now(),
                    self.issuer_role,
                    zone=zone,
                    software=self._software,
                    previous=previous,
                )
                if certificate is not None:
                    sign(doc, certificate, clock=self._clock)
            except Exception:
                logger.exception("ticketbai_conversion_failed")
                raise

            logger.info(
                "ticketbai_converted",
                extra={"doc_id": doc.doc_id, "signed": doc.signature is not None},
            )
            return doc
