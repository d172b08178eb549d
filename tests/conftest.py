"""
Pytest fixtures for the TicketBAI conversion test suite.

Provides:
- Invoice / line builders with sensible Spanish defaults
- A self-signed RSA certificate (built with ``cryptography``)
- Deterministic clock and conversion settings
- Structured log capture
"""

import json
import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from io import StringIO

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from tbai_config.schema import ConversionSettings, SoftwareSettings
from tbai_document.models import Software
from tbai_document.xmldsig import Certificate
from tbai_kernel.domain.clock import DeterministicClock
from tbai_kernel.domain.invoice import (
    Address,
    Invoice,
    InvoiceType,
    Item,
    Line,
    Party,
    TaxCombo,
    TaxIdentity,
    Totals,
)
from tbai_kernel.domain.values import ZERO, percent_of, round_amount
from tbai_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

CERT_PASSWORD = b"test-password"
FIXED_NOW = datetime(2024, 3, 15, 10, 30, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ticketbai logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service, sample_invoice):
            service.convert(sample_invoice)
            logs = captured_logs()
            assert any(r["message"] == "ticketbai_converted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ticketbai")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Domain builders
# =============================================================================


def vat(percent: str, rate: str = "standard", **ext: str) -> TaxCombo:
    return TaxCombo(category="VAT", rate=rate, percent=Decimal(percent), ext=dict(ext))


def exempt(cause: str = "") -> TaxCombo:
    ext = {"es-tbai-exemption": cause} if cause else {}
    return TaxCombo(category="VAT", rate="exempt", ext=ext)


def irpf(percent: str) -> TaxCombo:
    return TaxCombo(category="IRPF", rate="pro", percent=Decimal(percent))


def make_line(
    index: int = 1,
    *,
    price: str = "100.00",
    quantity: str = "10",
    discount: str = "0",
    taxes: tuple[TaxCombo, ...] = (),
    key: str = "",
    name: str | None = None,
) -> Line:
    """Line whose total is quantity x price minus discount."""
    qty = Decimal(quantity)
    unit = Decimal(price)
    disc = Decimal(discount)
    return Line(
        index=index,
        quantity=qty,
        item=Item(name=name or f"Item {index}", price=unit, key=key),
        sum=qty * unit,
        discount=disc,
        total=qty * unit - disc,
        taxes=taxes,
    )


def make_supplier(zone: str = "BI") -> Party:
    return Party(
        name="Provide One S.L.",
        tax_id=TaxIdentity(country="ES", code="B98602642", zone=zone),
        addresses=(Address(street="Calle Pradillo 42", locality="Bilbao", code="48001"),),
    )


def make_customer(country: str = "ES", code: str = "54387763P", with_address: bool = True) -> Party:
    addresses = ()
    if with_address:
        addresses = (
            Address(street="Calle Mayor 1", locality="Donostia", code="20001", region="Gipuzkoa"),
        )
    return Party(
        name="Sample Consumer",
        tax_id=TaxIdentity(country=country, code=code),
        addresses=addresses,
    )


def make_invoice(
    lines: tuple[Line, ...] | None = None,
    *,
    supplier: Party | None = None,
    customer: Party | None = None,
    tags: tuple[str, ...] = (),
    type: InvoiceType = InvoiceType.STANDARD,
    series: str = "SAMPLE",
    code: str = "001",
    **kwargs,
) -> Invoice:
    """
    Invoice with totals derived from its lines.

    Tax totals apply each combo's percent to the line total; retained
    categories are subtracted.
    """
    if lines is None:
        lines = (make_line(1, taxes=(vat("21.0"),)),)
    total = sum((line.total for line in lines), ZERO)
    tax = ZERO
    for line in lines:
        for combo in line.taxes:
            if combo.percent is None:
                continue
            amount = percent_of(line.total, combo.percent)
            tax = tax - amount if combo.is_retained else tax + amount
    return Invoice(
        code=code,
        series=series,
        type=type,
        issue_date=kwargs.pop("issue_date", date(2024, 3, 15)),
        supplier=supplier or make_supplier(),
        customer=customer,
        lines=lines,
        tags=tags,
        totals=Totals(
            sum=total,
            total=total,
            tax=round_amount(tax),
            total_with_tax=round_amount(total + tax),
            payable=round_amount(total + tax),
        ),
        **kwargs,
    )


@pytest.fixture
def sample_invoice() -> Invoice:
    """Domestic B2B invoice: one 21% line of 1000.00."""
    return make_invoice(customer=make_customer())


@pytest.fixture
def software() -> Software:
    return Software(
        license="TBAIBI00000000PRUEBA",
        developer_nif="B00000000",
        name="ticketbai-convert",
        version="0.1.0",
    )


# =============================================================================
# Infrastructure fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(FIXED_NOW)


@pytest.fixture
def settings() -> ConversionSettings:
    return ConversionSettings(
        zone="BI",
        issuer_role="supplier",
        software=SoftwareSettings(
            license="TBAIBI00000000PRUEBA",
            developer_nif="B00000000",
            name="ticketbai-convert",
            version="0.1.0",
        ),
    )


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def pkcs12_bytes(rsa_key) -> bytes:
    """Self-signed certificate and key bundled as PKCS#12."""
    name = x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, "ES"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Provide One S.L."),
        x509.NameAttribute(NameOID.COMMON_NAME, "ticketbai test signer"),
    ])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(rsa_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=365))
        .sign(rsa_key, hashes.SHA256())
    )
    return pkcs12.serialize_key_and_certificates(
        name=b"ticketbai",
        key=rsa_key,
        cert=cert,
        cas=None,
        encryption_algorithm=serialization.BestAvailableEncryption(CERT_PASSWORD),
    )


@pytest.fixture(scope="session")
def certificate(pkcs12_bytes) -> Certificate:
    return Certificate.from_pkcs12(pkcs12_bytes, CERT_PASSWORD)
