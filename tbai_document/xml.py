"""
XML encoding of TicketBAI documents (``lxml``).

Only the root element is namespace qualified (``T:TicketBai``); children are
unqualified, as the TicketBAI schema requires.  Element order follows the
schema, and breakdown entries keep the order the engine produced them in.

Empty optional values are omitted rather than rendered as empty elements.
"""

from __future__ import annotations

import copy
from decimal import Decimal

from lxml import etree

from tbai_document.models import (
    Fingerprint,
    InvoiceBody,
    Subjects,
    TicketBAI,
)
from tbai_engines.breakdown import Breakdown, BreakdownType
from tbai_kernel.domain.values import format_amount

TICKETBAI_NAMESPACE = "urn:ticketbai:emision"
TICKETBAI_PREFIX = "T"

DATE_FORMAT = "%d-%m-%Y"
TIME_FORMAT = "%H:%M:%S"


def _sub(parent: etree._Element, tag: str, text: str | None = None) -> etree._Element:
    el = etree.SubElement(parent, tag)
    if text is not None:
        el.text = text
    return el


def _opt(parent: etree._Element, tag: str, text: str | None) -> None:
    if text:
        _sub(parent, tag, text)


def _amount(value: Decimal | None) -> str | None:
    return None if value is None else format_amount(value)


def _encode_subjects(parent: etree._Element, subjects: Subjects) -> None:
    el = _sub(parent, "Sujetos")
    issuer = _sub(el, "Emisor")
    _sub(issuer, "NIF", subjects.issuer_nif)
    _sub(issuer, "ApellidosNombreRazonSocial", subjects.issuer_name)

    if subjects.recipients:
        recipients = _sub(el, "Destinatarios")
        for recipient in subjects.recipients:
            r = _sub(recipients, "IDDestinatario")
            if recipient.nif:
                _sub(r, "NIF", recipient.nif)
            elif recipient.other_id is not None:
                other = _sub(r, "IDOtro")
                _sub(other, "CodigoPais", recipient.other_id.country)
                _sub(other, "IDType", recipient.other_id.id_type)
                _sub(other, "ID", recipient.other_id.id)
            _sub(r, "ApellidosNombreRazonSocial", recipient.name)
            _opt(r, "CodigoPostal", recipient.postal_code)
            _opt(r, "Direccion", recipient.address)

    _sub(el, "EmitidaPorTercerosODestinatario", subjects.issuer_role.value)


def _encode_breakdown(parent: etree._Element, tag: str, breakdown: Breakdown) -> None:
    el = _sub(parent, tag)
    if breakdown.is_subject:
        subject = _sub(el, "Sujeta")
        if breakdown.exempt:
            exempt = _sub(subject, "Exenta")
            for detail in breakdown.exempt:
                d = _sub(exempt, "DetalleExenta")
                _opt(d, "CausaExencion", detail.cause)
                _sub(d, "BaseImponible", format_amount(detail.base))
        if breakdown.not_exempt:
            not_exempt = _sub(subject, "NoExenta")
            for detail in breakdown.not_exempt:
                d = _sub(not_exempt, "DetalleNoExenta")
                _sub(d, "TipoNoExenta", detail.subtype)
                vat = _sub(d, "DesgloseIVA")
                for rate in detail.vat_details:
                    r = _sub(vat, "DetalleIVA")
                    _sub(r, "BaseImponible", format_amount(rate.base))
                    _sub(r, "TipoImpositivo", format_amount(rate.rate))
                    _sub(r, "CuotaImpuesto", format_amount(rate.quota))
                    _opt(r, "TipoRecargoEquivalencia", _amount(rate.surcharge_rate))
                    _opt(r, "CuotaRecargoEquivalencia", _amount(rate.surcharge_quota))
                    _opt(
                        r,
                        "OperacionEnRecargoDeEquivalenciaORegimenSimplificado",
                        rate.regime_marker,
                    )
    if breakdown.not_subject:
        not_subject = _sub(el, "NoSujeta")
        for detail in breakdown.not_subject:
            d = _sub(not_subject, "DetalleNoSujeta")
            _sub(d, "Causa", detail.cause)
            _sub(d, "Importe", format_amount(detail.amount))


def _encode_breakdown_type(parent: etree._Element, breakdown: BreakdownType) -> None:
    el = _sub(parent, "TipoDesglose")
    if breakdown.invoice is not None:
        _encode_breakdown(el, "DesgloseFactura", breakdown.invoice)
        return
    operations = _sub(el, "DesgloseTipoOperacion")
    if breakdown.operations.services is not None:
        _encode_breakdown(operations, "PrestacionServicios", breakdown.operations.services)
    if breakdown.operations.delivery is not None:
        _encode_breakdown(operations, "Entrega", breakdown.operations.delivery)


def _encode_invoice(parent: etree._Element, body: InvoiceBody) -> None:
    el = _sub(parent, "Factura")

    head = body.header
    header = _sub(el, "CabeceraFactura")
    _opt(header, "SerieFactura", head.series)
    _sub(header, "NumFactura", head.number)
    _sub(header, "FechaExpedicionFactura", head.issue_date.strftime(DATE_FORMAT))
    _sub(header, "HoraExpedicionFactura", head.issue_time.strftime(TIME_FORMAT))
    _sub(header, "FacturaSimplificada", "S" if head.simplified else "N")
    if head.corrective is not None:
        corrective = _sub(header, "FacturaRectificativa")
        _sub(corrective, "Codigo", head.corrective.code)
        _sub(corrective, "Tipo", head.corrective.type)
        if head.corrective.corrected:
            corrected = _sub(header, "FacturasRectificadasSustituidas")
            for ref in head.corrective.corrected:
                r = _sub(corrected, "IDFacturaRectificadaSustituida")
                _opt(r, "SerieFactura", ref.series)
                _sub(r, "NumFactura", ref.number)
                _sub(r, "FechaExpedicionFactura", ref.issue_date.strftime(DATE_FORMAT))

    data = _sub(el, "DatosFactura")
    _sub(data, "DescripcionFactura", body.data.description)
    if body.data.details:
        details = _sub(data, "DetallesFactura")
        for line in body.data.details:
            d = _sub(details, "IDDetalleFactura")
            _sub(d, "DescripcionDetalle", line.description)
            _sub(d, "Cantidad", format_amount(line.quantity))
            _sub(d, "ImporteUnitario", format_amount(line.unit_price))
            _sub(d, "Descuento", format_amount(line.discount))
            _sub(d, "ImporteTotal", format_amount(line.total))
    _sub(data, "ImporteTotalFactura", format_amount(body.data.total))
    keys = _sub(data, "Claves")
    for key in body.data.regime_keys:
        _sub(_sub(keys, "IDClave"), "ClaveRegimenIvaOpTrascendencia", key)

    _encode_breakdown_type(el, body.breakdown)


def _encode_fingerprint(parent: etree._Element, fingerprint: Fingerprint) -> None:
    el = _sub(parent, "HuellaTBAI")
    previous = fingerprint.previous
    if previous is not None:
        chain = _sub(el, "EncadenamientoFacturaAnterior")
        _opt(chain, "SerieFacturaAnterior", previous.series)
        _sub(chain, "NumFacturaAnterior", previous.number)
        _sub(chain, "FechaExpedicionFacturaAnterior", previous.issue_date.strftime(DATE_FORMAT))
        _sub(chain, "SignatureValueFirmaFacturaAnterior", previous.signature_value)
    software = _sub(el, "Software")
    _sub(software, "LicenciaTBAI", fingerprint.software.license)
    _sub(_sub(software, "EntidadDesarrolladora"), "NIF", fingerprint.software.developer_nif)
    _sub(software, "Nombre", fingerprint.software.name)
    _sub(software, "Version", fingerprint.software.version)


def encode(doc: TicketBAI) -> etree._Element:
    """Build the unsigned ``T:TicketBai`` element tree."""
    root = etree.Element(
        f"{{{TICKETBAI_NAMESPACE}}}TicketBai",
        nsmap={TICKETBAI_PREFIX: TICKETBAI_NAMESPACE},
    )
    _sub(_sub(root, "Cabecera"), "IDVersionTBAI", doc.header.version)
    _encode_subjects(root, doc.subjects)
    _encode_invoice(root, doc.invoice)
    _encode_fingerprint(root, doc.fingerprint)
    return root


def canonical_bytes(doc: TicketBAI) -> bytes:
    """Unsigned document, no declaration, no indentation."""
    return etree.tostring(encode(doc), xml_declaration=False, encoding="UTF-8")


def document_bytes(doc: TicketBAI) -> bytes:
    """Full document including the signature, with an XML declaration."""
    root = encode(doc)
    if doc.signature is not None:
        root.append(copy.deepcopy(doc.signature.element))
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8")
