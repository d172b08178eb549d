#!/usr/bin/env python3
"""
Convert a calculated invoice (JSON) into a TicketBAI XML document.

Settings (zone, issuer role, software licence) come from a YAML settings
file; the packaged defaults are used when --config is omitted.  The zone on
the supplier's tax identity wins over the configured one.  With
--cert the document is signed (XAdES-EPES), otherwise it is written
unsigned.

Usage:
    python3 scripts/convert_invoice.py <invoice.json> [options]

Examples:
    # Unsigned document to stdout, default settings
    python3 scripts/convert_invoice.py invoice.json

    # Signed document for Gipuzkoa
    python3 scripts/convert_invoice.py invoice.json --zone SS \\
        --cert company.p12 --password secret -o invoice.xml

    # Chain to the previously issued invoice
    python3 scripts/convert_invoice.py invoice.json --cert company.p12 \\
        --previous-number 41 --previous-date 2024-01-10 \\
        --previous-signature "<SignatureValue of invoice 41>"
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Convert an invoice JSON file into a (signed) TicketBAI XML document.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "invoice",
        type=Path,
        help="Path to the calculated invoice (JSON).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Settings YAML (default: packaged tbai_config/sets/default.yaml).",
    )
    parser.add_argument(
        "--zone",
        default=None,
        help="Override the supplier's tax zone (BI, SS or VI).",
    )
    parser.add_argument(
        "--cert",
        type=Path,
        default=None,
        help="PKCS#12 certificate used to sign the document.",
    )
    parser.add_argument(
        "--password",
        default=os.environ.get("TICKETBAI_CERT_PASSWORD"),
        help="Certificate password (default: $TICKETBAI_CERT_PASSWORD).",
    )
    parser.add_argument("--previous-number", default=None, help="Number of the previous invoice.")
    parser.add_argument("--previous-series", default="", help="Series of the previous invoice.")
    parser.add_argument(
        "--previous-date",
        type=date.fromisoformat,
        default=None,
        help="Issue date of the previous invoice (YYYY-MM-DD).",
    )
    parser.add_argument(
        "--previous-signature",
        default="",
        help="SignatureValue of the previous invoice.",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Write the XML here instead of stdout.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    invoice_path = args.invoice.resolve()
    if not invoice_path.is_file():
        print(f"ERROR: File not found: {invoice_path}", file=sys.stderr)
        return 1
    if args.previous_number and args.previous_date is None:
        print("ERROR: --previous-date is required with --previous-number", file=sys.stderr)
        return 1

    # Lazy imports so we fail fast on args first
    from tbai_config import get_settings
    from tbai_document import Certificate, PreviousInvoice
    from tbai_kernel.domain.invoice import Invoice
    from tbai_kernel.exceptions import TicketBAIError
    from tbai_kernel.logging_config import configure_logging
    from tbai_services import ConversionService

    try:
        settings = get_settings(args.config)
    except TicketBAIError as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1
    configure_logging(level=settings.logging.level)

    try:
        with open(invoice_path) as f:
            invoice = Invoice.from_dict(json.load(f, parse_float=Decimal))
    except (KeyError, TypeError, ValueError) as e:
        print(f"ERROR: Invalid invoice {invoice_path}: {e}", file=sys.stderr)
        return 1

    previous = None
    if args.previous_number:
        previous = PreviousInvoice(
            number=args.previous_number,
            series=args.previous_series,
            issue_date=args.previous_date,
            signature_value=args.previous_signature,
        )

    try:
        certificate = Certificate.load(args.cert, args.password) if args.cert else None
        doc = ConversionService(settings).convert(
            invoice,
            certificate=certificate,
            previous=previous,
            zone=args.zone.upper() if args.zone else None,
        )
    except TicketBAIError as e:
        print(f"ERROR [{e.code}]: {e}", file=sys.stderr)
        return 2

    xml_bytes = doc.to_bytes()
    if args.output:
        args.output.write_bytes(xml_bytes)
        print(f"Wrote {doc.doc_id} to {args.output}", file=sys.stderr)
    else:
        sys.stdout.buffer.write(xml_bytes)
        sys.stdout.buffer.write(b"\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
