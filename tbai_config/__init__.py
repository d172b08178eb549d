"""
tbai_config -- single entrypoint for conversion settings.

Responsibility:
    ``get_settings()`` returns the validated ``ConversionSettings`` either
    from an explicit YAML file or from the packaged default set.  Every
    successful call emits a ``TICKETBAI_CONFIG_TRACE`` log record with the
    zone, issuer role and checksum.

Failure modes:
    - ``ConfigError`` for missing files, malformed YAML or invalid values.
"""

from __future__ import annotations

from pathlib import Path

from tbai_config.loader import compute_checksum, load_settings, parse_settings
from tbai_config.schema import ConversionSettings, LoggingSettings, SoftwareSettings
from tbai_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_settings(path: Path | str | None = None) -> ConversionSettings:
    """Load settings from ``path`` or the packaged defaults."""
    settings = load_settings(path or DEFAULT_SETTINGS_PATH)
    _logger.info(
        "TICKETBAI_CONFIG_TRACE",
        extra={
            "trace_type": "TICKETBAI_CONFIG_TRACE",
            "config_path": str(path or DEFAULT_SETTINGS_PATH),
            "config_zone": settings.zone,
            "config_issuer_role": settings.issuer_role,
            "checksum": settings.checksum,
        },
    )
    return settings


__all__ = [
    "ConversionSettings",
    "DEFAULT_SETTINGS_PATH",
    "LoggingSettings",
    "SoftwareSettings",
    "compute_checksum",
    "get_settings",
    "load_settings",
    "parse_settings",
]
