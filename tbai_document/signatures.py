"""
Signer -- XAdES role and policy for TicketBAI documents.

Derives the signer role from the issuer role and the signature policy from
the supplier's tax zone, then delegates to ``tbai_document.xmldsig``.

Only Bizkaia (BI) publishes a signature policy; Gipuzkoa and Araba get no
XAdES policy and are signed with an implied one.
"""

from __future__ import annotations

from types import MappingProxyType

from tbai_document.models import IssuerRole, TicketBAI
from tbai_document.xml import TICKETBAI_NAMESPACE, TICKETBAI_PREFIX
from tbai_document.xmldsig import (
    ALG_DSIG_RSA_SHA256,
    Certificate,
    XAdESConfig,
    XAdESPolicyConfig,
    sign as xmldsig_sign,
)
from tbai_engines.validation import ZONE_BI
from tbai_kernel.domain.clock import Clock, SystemClock
from tbai_kernel.exceptions import DocumentAlreadySignedError
from tbai_kernel.logging_config import get_logger

logger = get_logger("document.signatures")

# XAdES signer roles
XADES_SUPPLIER = "Supplier"
XADES_CUSTOMER = "Customer"
XADES_THIRD_PARTY = "Thirdparty"

SIGNER_ROLES: MappingProxyType[IssuerRole, str] = MappingProxyType({
    IssuerRole.SUPPLIER: XADES_SUPPLIER,
    IssuerRole.CUSTOMER: XADES_CUSTOMER,
    IssuerRole.THIRD_PARTY: XADES_THIRD_PARTY,
})

ZONE_POLICIES: MappingProxyType[str, XAdESPolicyConfig] = MappingProxyType({
    ZONE_BI: XAdESPolicyConfig(
        url=(
            "https://www.batuz.eus/fitxategiak/batuz/ticketbai/"
            "sinadura_elektronikoaren_zehaztapenak_especificaciones_de_la_firma_electronica_v1_0.pdf"
        ),
        description="",
        algorithm=ALG_DSIG_RSA_SHA256,
        hash="Quzn98x3PMbSHwbUzaj5f5KOpiH0u8bvmwbbbNkO9Es=",
    ),
})


def signer_role(role: IssuerRole | str | None) -> str:
    """XAdES role for an issuer role; unknown roles give ""."""
    try:
        return SIGNER_ROLES.get(IssuerRole(role), "")
    except ValueError:
        return ""


def xades_config(zone: str, role: str) -> XAdESConfig | None:
    """Role and policy bundle for a zone, or None when it has no policy."""
    policy = ZONE_POLICIES.get(zone)
    if policy is None:
        return None
    return XAdESConfig(role=role, description="", policy=policy)


def sign(
    doc: TicketBAI,
    certificate: Certificate,
    *,
    doc_id: str | None = None,
    clock: Clock | None = None,
) -> None:
    """
    Sign the document in place.

    Raises:
        DocumentAlreadySignedError: the document already carries a signature.
        SigningError: canonicalization or signature failure, unchanged.
    """
    if doc.signature is not None:
        raise DocumentAlreadySignedError(doc.doc_id)

    clock = clock or SystemClock()
    doc_id = doc_id or doc.doc_id
    data = doc.canonical()
    role = signer_role(doc.subjects.issuer_role)

    signature = xmldsig_sign(
        data,
        doc_id=doc_id,
        xades=xades_config(doc.zone, role),
        certificate=certificate,
        signing_time=clock.now_utc(),
        namespace=(TICKETBAI_PREFIX, TICKETBAI_NAMESPACE),
    )
    doc.attach_signature(signature)
    logger.info(
        "ticketbai_signed",
        extra={"doc_id": doc_id, "signer_role": role, "zone": doc.zone},
    )
