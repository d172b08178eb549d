"""Tests for invoice / zone precondition checks."""

import pytest

from tbai_engines.validation import MAX_LINES, validate
from tbai_kernel.domain.invoice import InvoiceType, Party
from tbai_kernel.exceptions import (
    CustomerAddressRequiredError,
    LineLimitExceededError,
    UnsupportedInvoiceTypeError,
    UnsupportedZoneError,
    ValidationError,
    ZoneRequiredError,
)
from tests.conftest import make_customer, make_invoice, make_line, vat


def _many_lines(count: int):
    return tuple(make_line(i, quantity="1", price="1", taxes=(vat("21.0"),)) for i in range(1, count + 1))


class TestInvoiceType:
    def test_corrective_rejected(self):
        invoice = make_invoice(type=InvoiceType.CORRECTIVE)

        with pytest.raises(UnsupportedInvoiceTypeError) as exc_info:
            validate(invoice, "BI")

        assert exc_info.value.code == "UNSUPPORTED_INVOICE_TYPE"
        assert "corrective invoices not supported" in str(exc_info.value)

    def test_corrective_rejected_even_without_supplier_tax_id(self):
        """Type check runs before the non-fiscal bypass."""
        invoice = make_invoice(type=InvoiceType.CORRECTIVE, supplier=Party(name="Anon"))

        with pytest.raises(UnsupportedInvoiceTypeError):
            validate(invoice, None)

    @pytest.mark.parametrize(
        "invoice_type",
        [InvoiceType.STANDARD, InvoiceType.CREDIT_NOTE, InvoiceType.DEBIT_NOTE],
    )
    def test_other_types_accepted(self, invoice_type):
        validate(make_invoice(type=invoice_type), "BI")


class TestZone:
    @pytest.mark.parametrize("zone", ["BI", "SS", "VI"])
    def test_supported_zones(self, zone):
        validate(make_invoice(customer=make_customer()), zone)

    @pytest.mark.parametrize("zone", [None, ""])
    def test_zone_required(self, zone):
        with pytest.raises(ZoneRequiredError) as exc_info:
            validate(make_invoice(), zone)
        assert str(exc_info.value) == "zone is required"

    def test_unsupported_zone(self):
        with pytest.raises(UnsupportedZoneError) as exc_info:
            validate(make_invoice(), "NA")

        assert exc_info.value.zone == "NA"
        assert "NA" in str(exc_info.value)

    def test_supplier_without_tax_id_skips_zone_checks(self):
        invoice = make_invoice(supplier=Party(name="Anon"))

        validate(invoice, None)
        validate(invoice, "XX")


class TestRestrictedZones:
    """Gipuzkoa and Araba limits."""

    @pytest.mark.parametrize("zone", ["SS", "VI"])
    def test_line_limit(self, zone):
        invoice = make_invoice(_many_lines(MAX_LINES + 1), customer=make_customer())

        with pytest.raises(LineLimitExceededError) as exc_info:
            validate(invoice, zone)

        assert exc_info.value.line_count == MAX_LINES + 1
        assert exc_info.value.limit == MAX_LINES
        assert str(exc_info.value) == "line count over limit (1000) for tax locality"

    def test_line_limit_boundary_accepted(self):
        invoice = make_invoice(_many_lines(MAX_LINES), customer=make_customer())

        validate(invoice, "SS")

    def test_bizkaia_has_no_line_limit(self):
        invoice = make_invoice(_many_lines(MAX_LINES + 1), customer=make_customer())

        validate(invoice, "BI")

    @pytest.mark.parametrize("zone", ["SS", "VI"])
    def test_customer_address_required(self, zone):
        invoice = make_invoice(customer=make_customer(with_address=False))

        with pytest.raises(CustomerAddressRequiredError) as exc_info:
            validate(invoice, zone)

        assert str(exc_info.value) == "customer address required"
        assert isinstance(exc_info.value, ValidationError)

    def test_bizkaia_accepts_customer_without_address(self):
        validate(make_invoice(customer=make_customer(with_address=False)), "BI")

    def test_no_customer_needs_no_address(self):
        validate(make_invoice(customer=None), "VI")

    def test_line_limit_checked_before_address(self):
        invoice = make_invoice(
            _many_lines(MAX_LINES + 1), customer=make_customer(with_address=False)
        )

        with pytest.raises(LineLimitExceededError):
            validate(invoice, "VI")
