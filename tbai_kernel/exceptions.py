"""
Typed Exception Hierarchy for the TicketBAI pipeline.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers submitting documents to a tax authority must react to failures
precisely. Parsing message strings is fragile, so:
  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        doc = new_ticketbai(invoice, issued_at, role, zone=zone, software=software)
    except UnsupportedZoneError as e:
        log.warning("zone rejected", extra={"zone": e.zone})
        api_response(code=e.code, zone=e.zone)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    TicketBAIError (base)
    |
    +-- ValidationError
    |   +-- UnsupportedInvoiceTypeError
    |   +-- ZoneRequiredError
    |   +-- UnsupportedZoneError
    |   +-- LineLimitExceededError
    |   +-- CustomerAddressRequiredError
    |
    +-- DocumentError
    |   +-- InvalidBreakdownError
    |   +-- DocumentAlreadySignedError
    |
    +-- SigningError
    |   +-- CertificateError
    |
    +-- ConfigError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                       | When Raised
------------|----------------------------|------------------------------------------
Validation  | UNSUPPORTED_INVOICE_TYPE   | Corrective invoice supplied
            | ZONE_REQUIRED              | Supplier has tax ID but no zone given
            | UNSUPPORTED_ZONE           | Zone outside BI / SS / VI
            | LINE_LIMIT_EXCEEDED        | More than 1000 lines in SS or VI
            | CUSTOMER_ADDRESS_REQUIRED  | SS / VI customer without an address
------------|----------------------------|------------------------------------------
Document    | INVALID_BREAKDOWN          | Breakdown with zero or two variants
            | DOCUMENT_ALREADY_SIGNED    | Signing an already signed document
------------|----------------------------|------------------------------------------
Signing     | SIGNING_ERROR              | Canonicalization or signature failure
            | CERTIFICATE_ERROR          | PKCS#12 bundle cannot be loaded
------------|----------------------------|------------------------------------------
Config      | CONFIG_ERROR               | Settings file missing keys / bad values

===============================================================================
"""


class TicketBAIError(Exception):
    """
    Base exception for all TicketBAI errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "TICKETBAI_ERROR"


# Validation exceptions


class ValidationError(TicketBAIError):
    """Base exception for invoice / zone precondition failures."""

    code: str = "VALIDATION_ERROR"


class UnsupportedInvoiceTypeError(ValidationError):
    """Corrective invoices cannot be expressed as TicketBAI documents."""

    code: str = "UNSUPPORTED_INVOICE_TYPE"

    def __init__(self, invoice_type: str):
        self.invoice_type = invoice_type
        super().__init__("corrective invoices not supported, use credit or debit notes")


class ZoneRequiredError(ValidationError):
    """No tax zone was supplied for a fiscal document."""

    code: str = "ZONE_REQUIRED"

    def __init__(self) -> None:
        super().__init__("zone is required")


class UnsupportedZoneError(ValidationError):
    """Tax zone is not one of the TicketBAI localities."""

    code: str = "UNSUPPORTED_ZONE"

    def __init__(self, zone: str):
        self.zone = zone
        super().__init__(f"zone not supported by TicketBAI: {zone}")


class LineLimitExceededError(ValidationError):
    """Invoice has more lines than the tax locality accepts."""

    code: str = "LINE_LIMIT_EXCEEDED"

    def __init__(self, zone: str, line_count: int, limit: int):
        self.zone = zone
        self.line_count = line_count
        self.limit = limit
        super().__init__(f"line count over limit ({limit}) for tax locality")


class CustomerAddressRequiredError(ValidationError):
    """Tax locality requires the customer to carry an address."""

    code: str = "CUSTOMER_ADDRESS_REQUIRED"

    def __init__(self, zone: str):
        self.zone = zone
        super().__init__("customer address required")


# Document exceptions


class DocumentError(TicketBAIError):
    """Base exception for document assembly errors."""

    code: str = "DOCUMENT_ERROR"


class InvalidBreakdownError(DocumentError):
    """
    Breakdown slot populated with zero or both variants.

    Exactly one of the domestic and cross-border shapes may be present.
    """

    code: str = "INVALID_BREAKDOWN"

    def __init__(self, populated: int):
        self.populated = populated
        super().__init__(
            f"breakdown must have exactly one populated variant, got {populated}"
        )


class DocumentAlreadySignedError(DocumentError):
    """Signature slot is written once per document."""

    code: str = "DOCUMENT_ALREADY_SIGNED"

    def __init__(self, doc_id: str):
        self.doc_id = doc_id
        super().__init__(f"document already signed: {doc_id}")


# Signing exceptions


class SigningError(TicketBAIError):
    """Canonicalization or signature computation failed."""

    code: str = "SIGNING_ERROR"


class CertificateError(SigningError):
    """Certificate bundle could not be loaded."""

    code: str = "CERTIFICATE_ERROR"


# Configuration exceptions


class ConfigError(TicketBAIError):
    """Settings could not be parsed or failed validation."""

    code: str = "CONFIG_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)
