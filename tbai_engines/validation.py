"""
Validator -- structural preconditions checked before any breakdown work.

Rules are evaluated in order and the first failure wins.  Documents whose
supplier carries no tax identifier are not fiscal documents and bypass the
zone checks entirely.
"""

from __future__ import annotations

from tbai_kernel.domain.invoice import Invoice, InvoiceType
from tbai_kernel.exceptions import (
    CustomerAddressRequiredError,
    LineLimitExceededError,
    UnsupportedInvoiceTypeError,
    UnsupportedZoneError,
    ZoneRequiredError,
)
from tbai_kernel.logging_config import get_logger

logger = get_logger("engines.validation")

ZONE_BI = "BI"  # Bizkaia
ZONE_SS = "SS"  # Gipuzkoa
ZONE_VI = "VI"  # Araba

SUPPORTED_ZONES = frozenset({ZONE_BI, ZONE_SS, ZONE_VI})

# Localities that cap the line count and require a customer address
RESTRICTED_ZONES = frozenset({ZONE_SS, ZONE_VI})
MAX_LINES = 1000


def validate(invoice: Invoice, zone: str | None) -> None:
    """
    Check invoice and zone preconditions.

    Raises:
        UnsupportedInvoiceTypeError: corrective invoice.
        ZoneRequiredError: fiscal document without zone.
        UnsupportedZoneError: zone outside BI / SS / VI.
        LineLimitExceededError: more than 1000 lines in SS or VI.
        CustomerAddressRequiredError: SS / VI customer without address.
    """
    if invoice.type == InvoiceType.CORRECTIVE:
        raise UnsupportedInvoiceTypeError(invoice.type.value)

    if invoice.supplier is None or invoice.supplier.tax_id is None:
        logger.debug(
            "validation_skipped_non_fiscal",
            extra={"invoice": invoice.identifier},
        )
        return

    if not zone:
        raise ZoneRequiredError()

    if zone not in SUPPORTED_ZONES:
        raise UnsupportedZoneError(zone)

    if zone in RESTRICTED_ZONES:
        if len(invoice.lines) > MAX_LINES:
            raise LineLimitExceededError(zone, len(invoice.lines), MAX_LINES)
        if invoice.customer is not None and not invoice.customer.addresses:
            raise CustomerAddressRequiredError(zone)
