"""
Tests for XAdES signing of TicketBAI documents.

Covers:
- Signer role and zone policy selection
- Signature slot written once
- Cryptographic verification of the produced XML (SignedInfo signature and
  reference digests)
- Certificate loading failures
"""

import base64
import hashlib

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from lxml import etree

from tbai_document.assembler import new_ticketbai
from tbai_document.models import IssuerRole
from tbai_document.signatures import ZONE_POLICIES, sign, signer_role, xades_config
from tbai_document.xmldsig import DSIG_NS, XADES_NS, Certificate, sign as xmldsig_sign
from tbai_kernel.exceptions import CertificateError, DocumentAlreadySignedError, SigningError
from tests.conftest import CERT_PASSWORD, FIXED_NOW, make_customer, make_invoice

NS = {"ds": DSIG_NS, "xades": XADES_NS}

BATUZ_POLICY_HASH = "Quzn98x3PMbSHwbUzaj5f5KOpiH0u8bvmwbbbNkO9Es="


def _c14n(el) -> bytes:
    return etree.tostring(el, method="c14n", exclusive=False, with_comments=False)


def _b64_sha256(data: bytes) -> str:
    return base64.b64encode(hashlib.sha256(data).digest()).decode("ascii")


@pytest.fixture
def make_doc(software):
    def _make(zone="BI", role=IssuerRole.SUPPLIER):
        invoice = make_invoice(customer=make_customer())
        return new_ticketbai(invoice, FIXED_NOW, role, zone=zone, software=software)

    return _make


@pytest.fixture
def signed_root(make_doc, certificate, deterministic_clock):
    doc = make_doc()
    sign(doc, certificate, clock=deterministic_clock)
    return doc, etree.fromstring(doc.to_bytes())


class TestSignerRole:
    @pytest.mark.parametrize(
        "role,expected",
        [
            (IssuerRole.SUPPLIER, "Supplier"),
            (IssuerRole.CUSTOMER, "Customer"),
            (IssuerRole.THIRD_PARTY, "Thirdparty"),
            ("N", "Supplier"),
        ],
    )
    def test_known_roles(self, role, expected):
        assert signer_role(role) == expected

    @pytest.mark.parametrize("role", ["X", "", None])
    def test_unknown_role_is_empty(self, role):
        assert signer_role(role) == ""


class TestZonePolicy:
    def test_bizkaia_has_policy(self):
        config = xades_config("BI", "Supplier")

        assert config.role == "Supplier"
        assert config.policy.hash == BATUZ_POLICY_HASH
        assert config.policy.url.startswith("https://www.batuz.eus/")

    @pytest.mark.parametrize("zone", ["SS", "VI", ""])
    def test_other_zones_have_no_policy(self, zone):
        assert xades_config(zone, "Supplier") is None

    def test_only_bizkaia_configured(self):
        assert set(ZONE_POLICIES) == {"BI"}


class TestSign:
    def test_signature_attached(self, signed_root):
        doc, root = signed_root

        assert doc.signature is not None
        assert doc.signature.id == "Signature-SAMPLE-001"
        assert doc.signature_value() == root.findtext("ds:Signature/ds:SignatureValue", namespaces=NS)

    def test_signature_is_last_child(self, signed_root):
        _, root = signed_root

        assert root[-1].tag == f"{{{DSIG_NS}}}Signature"
        assert [child.tag for child in root][:4] == ["Cabecera", "Sujetos", "Factura", "HuellaTBAI"]

    def test_signing_twice_rejected(self, make_doc, certificate, deterministic_clock):
        doc = make_doc()
        sign(doc, certificate, clock=deterministic_clock)
        first = doc.signature_value()

        with pytest.raises(DocumentAlreadySignedError):
            sign(doc, certificate, clock=deterministic_clock)

        assert doc.signature_value() == first

    def test_signing_time_from_clock(self, signed_root):
        _, root = signed_root

        signing_time = root.findtext(".//xades:SigningTime", namespaces=NS)

        assert signing_time == FIXED_NOW.isoformat()

    def test_bizkaia_policy_in_signed_properties(self, signed_root):
        _, root = signed_root

        policy = root.find(".//xades:SignaturePolicyId", namespaces=NS)

        assert policy is not None
        assert policy.findtext("xades:SigPolicyHash/ds:DigestValue", namespaces=NS) == BATUZ_POLICY_HASH
        assert root.findtext(".//xades:ClaimedRole", namespaces=NS) == "Supplier"

    def test_gipuzkoa_uses_implied_policy(self, make_doc, certificate, deterministic_clock):
        doc = make_doc(zone="SS")
        sign(doc, certificate, clock=deterministic_clock)
        root = etree.fromstring(doc.to_bytes())

        assert root.find(".//xades:SignaturePolicyImplied", namespaces=NS) is not None
        assert root.find(".//xades:SignaturePolicyId", namespaces=NS) is None
        assert root.find(".//xades:ClaimedRole", namespaces=NS) is None

    def test_custom_doc_id(self, make_doc, certificate, deterministic_clock):
        doc = make_doc()

        sign(doc, certificate, doc_id="custom", clock=deterministic_clock)

        assert doc.signature.id == "Signature-custom"


class TestVerification:
    """The produced XML verifies with the signer's public key."""

    def test_signed_info_signature_verifies(self, signed_root, certificate):
        _, root = signed_root
        signature = root.find("ds:Signature", namespaces=NS)
        signed_info = signature.find("ds:SignedInfo", namespaces=NS)
        value = base64.b64decode(signature.findtext("ds:SignatureValue", namespaces=NS))

        # Raises InvalidSignature on mismatch
        certificate.certificate.public_key().verify(
            value, _c14n(signed_info), padding.PKCS1v15(), hashes.SHA256()
        )

    def test_document_digest(self, signed_root):
        doc, root = signed_root
        signature = root.find("ds:Signature", namespaces=NS)
        reference = signature.find("ds:SignedInfo/ds:Reference[@URI='']", namespaces=NS)

        root.remove(signature)

        assert reference.findtext("ds:DigestValue", namespaces=NS) == _b64_sha256(_c14n(root))
        assert _c14n(root) == _c14n(etree.fromstring(doc.canonical()))

    def test_key_info_and_properties_digests(self, signed_root):
        doc_id = "SAMPLE-001"
        _, root = signed_root
        signature = root.find("ds:Signature", namespaces=NS)
        key_info = signature.find("ds:KeyInfo", namespaces=NS)
        props = signature.find(".//xades:SignedProperties", namespaces=NS)

        refs = {
            ref.get("URI"): ref.findtext("ds:DigestValue", namespaces=NS)
            for ref in signature.findall("ds:SignedInfo/ds:Reference", namespaces=NS)
        }

        assert refs[f"#KeyInfo-{doc_id}"] == _b64_sha256(_c14n(key_info))
        assert refs[f"#SignedProperties-{doc_id}"] == _b64_sha256(_c14n(props))

    def test_certificate_embedded(self, signed_root, certificate):
        _, root = signed_root

        embedded = root.findtext(".//ds:X509Certificate", namespaces=NS)

        assert embedded == certificate.der_base64()


class TestLowLevelSign:
    def test_malformed_xml(self, certificate):
        with pytest.raises(SigningError):
            xmldsig_sign(
                b"<not-closed>", doc_id="x", xades=None, certificate=certificate, signing_time=FIXED_NOW
            )

    def test_unbound_namespace_prefix(self, certificate):
        with pytest.raises(SigningError):
            xmldsig_sign(
                b"<root/>",
                doc_id="x",
                xades=None,
                certificate=certificate,
                signing_time=FIXED_NOW,
                namespace=("T", "urn:ticketbai:emision"),
            )

    def test_plain_document(self, certificate):
        signature = xmldsig_sign(
            b"<root><a>1</a></root>", doc_id="x", xades=None, certificate=certificate, signing_time=FIXED_NOW
        )

        assert signature.value
        assert signature.element.tag == f"{{{DSIG_NS}}}Signature"


class TestCertificate:
    def test_load_from_file(self, tmp_path, pkcs12_bytes):
        path = tmp_path / "signer.p12"
        path.write_bytes(pkcs12_bytes)

        cert = Certificate.load(path, CERT_PASSWORD.decode())

        assert cert.certificate.serial_number > 0

    def test_wrong_password(self, pkcs12_bytes):
        with pytest.raises(CertificateError):
            Certificate.from_pkcs12(pkcs12_bytes, "wrong")

    def test_garbage_bundle(self):
        with pytest.raises(CertificateError):
            Certificate.from_pkcs12(b"not a pkcs12 bundle", "x")

    def test_missing_file(self, tmp_path):
        with pytest.raises(CertificateError) as exc_info:
            Certificate.load(tmp_path / "missing.p12")

        assert exc_info.value.code == "CERTIFICATE_ERROR"
