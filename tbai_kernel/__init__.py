"""
TicketBAI Kernel

Shared foundation for the TicketBAI conversion pipeline:
- Read-only invoice input model
- Typed exception hierarchy
- Structured JSON logging
- Deterministic clock and hashing helpers
"""

__version__ = "0.1.0"
