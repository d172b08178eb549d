"""
Settings Loader (``tbai_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the typed
``tbai_config.schema`` dataclasses.

Invariants enforced
-------------------
* All parse and validation failures raise ``ConfigError`` naming the field;
  no silent defaults for required fields.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  settings for audit and change detection.

Failure modes
-------------
* Missing file -> ``ConfigError`` (wrapping ``FileNotFoundError``).
* Malformed YAML -> ``ConfigError`` (wrapping ``yaml.YAMLError``).
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml

from tbai_config.schema import (
    ISSUER_ROLE_NAMES,
    ConversionSettings,
    LoggingSettings,
    SoftwareSettings,
)
from tbai_engines.validation import SUPPORTED_ZONES
from tbai_kernel.exceptions import ConfigError
from tbai_kernel.utils.hashing import hash_payload


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        ConfigError: file missing, unreadable or not a YAML mapping.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ConfigError(f"settings file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"settings file must contain a mapping: {path}")
    return data


def _require(data: dict[str, Any], key: str, prefix: str = "") -> Any:
    value = data.get(key)
    if value is None or value == "":
        name = f"{prefix}{key}"
        raise ConfigError(f"missing required setting: {name}", field=name)
    return value


def parse_software(data: dict[str, Any]) -> SoftwareSettings:
    return SoftwareSettings(
        license=str(_require(data, "license", "software.")),
        developer_nif=str(_require(data, "developer_nif", "software.")),
        name=str(_require(data, "name", "software.")),
        version=str(_require(data, "version", "software.")),
    )


def parse_settings(data: dict[str, Any]) -> ConversionSettings:
    """
    Parse and validate a settings mapping.

    Raises:
        ConfigError: missing keys, unsupported zone, unknown issuer role or
            unknown logging level.
    """
    zone = str(_require(data, "zone")).upper()
    if zone not in SUPPORTED_ZONES:
        raise ConfigError(f"zone not supported by TicketBAI: {zone}", field="zone")

    issuer_role = str(data.get("issuer_role", "supplier")).lower()
    if issuer_role not in ISSUER_ROLE_NAMES:
        raise ConfigError(
            f"issuer_role must be one of {ISSUER_ROLE_NAMES}, got {issuer_role!r}",
            field="issuer_role",
        )

    software = data.get("software")
    if not isinstance(software, dict):
        raise ConfigError("missing required setting: software", field="software")

    level = str((data.get("logging") or {}).get("level", "INFO")).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigError(f"unknown logging level: {level}", field="logging.level")

    settings = ConversionSettings(
        zone=zone,
        issuer_role=issuer_role,
        software=parse_software(software),
        logging=LoggingSettings(level=level),
    )
    return replace(settings, checksum=compute_checksum(settings))


def load_settings(path: Path | str) -> ConversionSettings:
    """Load and parse a YAML settings file."""
    return parse_settings(load_yaml_file(Path(path)))


def compute_checksum(settings: ConversionSettings) -> str:
    """
    Compute SHA-256 checksum of the settings, excluding the checksum itself.

    Identical settings always produce identical checksums.
    """
    return hash_payload(replace(settings, checksum=""))
