"""
XML signature (XMLDSig + XAdES-EPES) for TicketBAI documents.

Responsibility:
    Produce an enveloped ``ds:Signature`` over a serialized document:
    SHA-256 digests over inclusive C14N, RSA-SHA256 signature value, the
    signer certificate in ``KeyInfo`` and the XAdES qualifying properties
    (signing time, signing certificate, policy, claimed role).

Architecture position:
    Document layer -- the boundary with the cryptographic primitives, which
    come from ``cryptography``.  XML handling uses ``lxml``.

Signed references:
    1. The whole document (URI="", enveloped-signature transform).
    2. ``KeyInfo``.
    3. ``SignedProperties`` (Type = XAdES SignedProperties).

Failure modes:
    - ``SigningError`` when the input is not well-formed XML, the required
      namespace prefix is not bound on the root, or the key cannot sign.
    - ``CertificateError`` when a PKCS#12 bundle cannot be loaded.
"""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography import x509
from lxml import etree

from tbai_kernel.exceptions import CertificateError, SigningError
from tbai_kernel.logging_config import get_logger

logger = get_logger("document.xmldsig")

DSIG_NS = "http://www.w3.org/2000/09/xmldsig#"
XADES_NS = "http://uri.etsi.org/01903/v1.3.2#"

ALG_C14N = "http://www.w3.org/TR/2001/REC-xml-c14n-20010315"
ALG_ENVELOPED = "http://www.w3.org/2000/09/xmldsig#enveloped-signature"
ALG_SHA256 = "http://www.w3.org/2001/04/xmlenc#sha256"
ALG_DSIG_RSA_SHA256 = "http://www.w3.org/2001/04/xmldsig-more#rsa-sha256"

SIGNED_PROPERTIES_TYPE = "http://uri.etsi.org/01903#SignedProperties"
MIME_TYPE_XML = "text/xml"


def _ds(tag: str) -> str:
    return f"{{{DSIG_NS}}}{tag}"


def _xades(tag: str) -> str:
    return f"{{{XADES_NS}}}{tag}"


@dataclass(frozen=True)
class XAdESPolicyConfig:
    """Published signature policy referenced from the signed properties."""

    url: str
    description: str
    algorithm: str
    hash: str


@dataclass(frozen=True)
class XAdESConfig:
    role: str
    description: str = ""
    policy: XAdESPolicyConfig | None = None


@dataclass(frozen=True)
class Certificate:
    """Signing key plus X.509 certificate (and optional CA chain)."""

    private_key: rsa.RSAPrivateKey
    certificate: x509.Certificate
    ca_chain: tuple[x509.Certificate, ...] = ()

    @classmethod
    def from_pkcs12(cls, data: bytes, password: str | bytes | None = None) -> Certificate:
        """
        Load from PKCS#12 (.p12 / .pfx) bytes.

        Raises:
            CertificateError: bundle unreadable, missing key or certificate,
                or the key is not RSA.
        """
        if isinstance(password, str):
            password = password.encode("utf-8")
        try:
            key, cert, extra = pkcs12.load_key_and_certificates(data, password)
        except (ValueError, UnsupportedAlgorithm) as e:
            raise CertificateError(f"cannot load PKCS#12 bundle: {e}") from e
        if key is None or cert is None:
            raise CertificateError("PKCS#12 bundle must contain a key and a certificate")
        if not isinstance(key, rsa.RSAPrivateKey):
            raise CertificateError("only RSA keys are supported")
        return cls(private_key=key, certificate=cert, ca_chain=tuple(extra or ()))

    @classmethod
    def load(cls, path: str | Path, password: str | bytes | None = None) -> Certificate:
        """Load a PKCS#12 bundle from disk."""
        try:
            data = Path(path).read_bytes()
        except OSError as e:
            raise CertificateError(f"cannot read certificate {path}: {e}") from e
        return cls.from_pkcs12(data, password)

    def der_base64(self, cert: x509.Certificate | None = None) -> str:
        cert = cert or self.certificate
        return base64.b64encode(cert.public_bytes(serialization.Encoding.DER)).decode("ascii")

    def digest_base64(self) -> str:
        """Base64 SHA-256 of the DER certificate."""
        der = self.certificate.public_bytes(serialization.Encoding.DER)
        return base64.b64encode(hashlib.sha256(der).digest()).decode("ascii")


@dataclass(frozen=True)
class Signature:
    """
    Result of signing: the ``ds:Signature`` element and its value.

    ``element`` belongs to a private tree; callers copy it into their own
    document when serializing.
    """

    id: str
    value: str
    signing_time: datetime
    element: etree._Element = field(compare=False, repr=False)


def _c14n(element: etree._Element) -> bytes:
    return etree.tostring(element, method="c14n", exclusive=False, with_comments=False)


def _digest(data: bytes) -> str:
    return base64.b64encode(hashlib.sha256(data).digest()).decode("ascii")


def _sub(parent: etree._Element, tag: str, text: str | None = None, **attrib: str) -> etree._Element:
    el = etree.SubElement(parent, tag, attrib)
    if text is not None:
        el.text = text
    return el


def _add_reference(
    signed_info: etree._Element,
    uri: str,
    digest: str,
    *,
    ref_id: str | None = None,
    ref_type: str | None = None,
    transforms: tuple[str, ...] = (),
) -> None:
    attrib = {}
    if ref_id:
        attrib["Id"] = ref_id
    if ref_type:
        attrib["Type"] = ref_type
    attrib["URI"] = uri
    ref = _sub(signed_info, _ds("Reference"), **attrib)
    if transforms:
        transforms_el = _sub(ref, _ds("Transforms"))
        for alg in transforms:
            _sub(transforms_el, _ds("Transform"), Algorithm=alg)
    _sub(ref, _ds("DigestMethod"), Algorithm=ALG_SHA256)
    _sub(ref, _ds("DigestValue"), digest)


def _build_key_info(parent: etree._Element, key_info_id: str, certificate: Certificate) -> etree._Element:
    key_info = _sub(parent, _ds("KeyInfo"), Id=key_info_id)
    x509_data = _sub(key_info, _ds("X509Data"))
    for cert in (certificate.certificate, *certificate.ca_chain):
        _sub(x509_data, _ds("X509Certificate"), certificate.der_base64(cert))
    numbers = certificate.private_key.public_key().public_numbers()
    rsa_value = _sub(_sub(key_info, _ds("KeyValue")), _ds("RSAKeyValue"))
    _sub(rsa_value, _ds("Modulus"), _int_base64(numbers.n))
    _sub(rsa_value, _ds("Exponent"), _int_base64(numbers.e))
    return key_info


def _build_signed_properties(
    parent: etree._Element,
    *,
    signature_id: str,
    properties_id: str,
    reference_id: str,
    xades: XAdESConfig | None,
    certificate: Certificate,
    signing_time: datetime,
) -> etree._Element:
    obj = _sub(parent, _ds("Object"))
    qualifying = etree.SubElement(
        obj, _xades("QualifyingProperties"), {"Target": f"#{signature_id}"},
        nsmap={"xades": XADES_NS},
    )
    props = _sub(qualifying, _xades("SignedProperties"), Id=properties_id)
    sig_props = _sub(props, _xades("SignedSignatureProperties"))
    _sub(sig_props, _xades("SigningTime"), signing_time.isoformat())

    cert_el = _sub(_sub(sig_props, _xades("SigningCertificate")), _xades("Cert"))
    cert_digest = _sub(cert_el, _xades("CertDigest"))
    _sub(cert_digest, _ds("DigestMethod"), Algorithm=ALG_SHA256)
    _sub(cert_digest, _ds("DigestValue"), certificate.digest_base64())
    issuer_serial = _sub(cert_el, _xades("IssuerSerial"))
    _sub(issuer_serial, _ds("X509IssuerName"), certificate.certificate.issuer.rfc4514_string())
    _sub(issuer_serial, _ds("X509SerialNumber"), str(certificate.certificate.serial_number))

    policy_id = _sub(sig_props, _xades("SignaturePolicyIdentifier"))
    policy = xades.policy if xades else None
    if policy is None:
        _sub(policy_id, _xades("SignaturePolicyImplied"))
    else:
        policy_el = _sub(policy_id, _xades("SignaturePolicyId"))
        sig_policy_id = _sub(policy_el, _xades("SigPolicyId"))
        _sub(sig_policy_id, _xades("Identifier"), policy.url)
        _sub(sig_policy_id, _xades("Description"), policy.description)
        policy_hash = _sub(policy_el, _xades("SigPolicyHash"))
        _sub(policy_hash, _ds("DigestMethod"), Algorithm=policy.algorithm)
        _sub(policy_hash, _ds("DigestValue"), policy.hash)

    if xades and xades.role:
        roles = _sub(_sub(sig_props, _xades("SignerRole")), _xades("ClaimedRoles"))
        _sub(roles, _xades("ClaimedRole"), xades.role)

    data_props = _sub(props, _xades("SignedDataObjectProperties"))
    data_format = _sub(data_props, _xades("DataObjectFormat"), ObjectReference=f"#{reference_id}")
    if xades and xades.description:
        _sub(data_format, _xades("Description"), xades.description)
    _sub(data_format, _xades("MimeType"), MIME_TYPE_XML)
    return props


def _int_base64(value: int) -> str:
    raw = value.to_bytes((value.bit_length() + 7) // 8 or 1, "big")
    return base64.b64encode(raw).decode("ascii")


def sign(
    data: bytes,
    *,
    doc_id: str,
    xades: XAdESConfig | None,
    certificate: Certificate,
    signing_time: datetime,
    namespace: tuple[str, str] | None = None,
) -> Signature:
    """
    Sign serialized XML with an enveloped XAdES-EPES signature.

    Args:
        data: Document bytes without any signature.
        doc_id: Identifier used to derive the signature element ids.
        xades: Role / policy bundle; ``None`` signs with an implied policy.
        certificate: Signing key and certificate.
        signing_time: Recorded as XAdES SigningTime.
        namespace: (prefix, uri) that must be bound on the document root.

    Raises:
        SigningError: malformed input, unbound namespace, or key failure.
    """
    try:
        root = etree.fromstring(data)
    except etree.XMLSyntaxError as e:
        raise SigningError(f"document is not well-formed XML: {e}") from e

    if namespace is not None:
        prefix, uri = namespace
        if root.nsmap.get(prefix) != uri:
            raise SigningError(f"namespace prefix {prefix!r} is not bound to {uri}")

    signature_id = f"Signature-{doc_id}"
    reference_id = f"Reference-{doc_id}"
    key_info_id = f"KeyInfo-{doc_id}"
    properties_id = f"SignedProperties-{doc_id}"

    # Digest before the signature exists: same bytes as the enveloped transform
    document_digest = _digest(_c14n(root))

    signature = etree.SubElement(root, _ds("Signature"), {"Id": signature_id}, nsmap={"ds": DSIG_NS})
    signed_info = _sub(signature, _ds("SignedInfo"))
    _sub(signed_info, _ds("CanonicalizationMethod"), Algorithm=ALG_C14N)
    _sub(signed_info, _ds("SignatureMethod"), Algorithm=ALG_DSIG_RSA_SHA256)
    value_el = _sub(signature, _ds("SignatureValue"), Id=f"SignatureValue-{doc_id}")
    key_info = _build_key_info(signature, key_info_id, certificate)
    signed_props = _build_signed_properties(
        signature,
        signature_id=signature_id,
        properties_id=properties_id,
        reference_id=reference_id,
        xades=xades,
        certificate=certificate,
        signing_time=signing_time,
    )

    _add_reference(
        signed_info, "", document_digest,
        ref_id=reference_id, transforms=(ALG_ENVELOPED,),
    )
    _add_reference(signed_info, f"#{key_info_id}", _digest(_c14n(key_info)))
    _add_reference(
        signed_info, f"#{properties_id}", _digest(_c14n(signed_props)),
        ref_type=SIGNED_PROPERTIES_TYPE,
    )

    try:
        raw = certificate.private_key.sign(
            _c14n(signed_info), padding.PKCS1v15(), hashes.SHA256()
        )
    except (ValueError, TypeError) as e:
        raise SigningError(f"signature computation failed: {e}") from e

    value = base64.b64encode(raw).decode("ascii")
    value_el.text = value

    logger.debug(
        "xml_signature_created",
        extra={"doc_id": doc_id, "policy": bool(xades and xades.policy)},
    )
    return Signature(id=signature_id, value=value, signing_time=signing_time, element=signature)
