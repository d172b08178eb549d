"""Orchestration services for the TicketBAI pipeline."""

from tbai_services.conversion_service import ConversionService

__all__ = ["ConversionService"]
