"""
Conversion settings schema.

YAML settings files are parsed into these frozen dataclasses by
``tbai_config.loader``.  They carry what the invoice itself does not: the
supplier's tax locality, the issuing role, the registered software
identification and logging preferences.
"""

from __future__ import annotations

from dataclasses import dataclass, field

ISSUER_ROLE_NAMES = ("supplier", "customer", "third_party")


@dataclass(frozen=True)
class SoftwareSettings:
    """Software registered with the tax authority (LicenciaTBAI)."""

    license: str
    developer_nif: str
    name: str
    version: str


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class ConversionSettings:
    zone: str
    software: SoftwareSettings
    issuer_role: str = "supplier"
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str = field(default="", compare=False)
