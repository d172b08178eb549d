"""Utility modules for the TicketBAI kernel."""

from tbai_kernel.utils.hashing import canonicalize_json, hash_payload

__all__ = [
    "canonicalize_json",
    "hash_payload",
]
