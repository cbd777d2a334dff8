"""
Configuration Loader (``invoicing_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``invoicing_config.schema`` dataclasses.  Runtime callers go through
``invoicing_config.get_active_config()`` instead.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required keys.
* Every billable line type (all but diary) must be present.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed document for configuration identity.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from invoicing_config.schema import InvoiceBasisConfig, LineTypeDefaults, TextLimits
from invoicing_kernel.domain.lines import LineType

BILLABLE_LINE_TYPES = tuple(t for t in LineType if t != LineType.DIARY)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, key: str) -> Decimal:
    """Parse a Decimal from a YAML scalar (YAML floats go through str)."""
    if value is None or isinstance(value, bool):
        raise ValueError(f"{key}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except ArithmeticError as exc:
        raise ValueError(f"{key}: expected a number, got {value!r}") from exc


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def parse_line_type_defaults(name: str, data: dict[str, Any]) -> LineTypeDefaults:
    """Parse one ``line_types.<name>`` block."""
    return LineTypeDefaults(
        article=_optional_str(data.get("article")),
        account=_optional_str(data.get("account")),
        default_vat_rate=parse_decimal(
            data["default_vat_rate"], f"line_types.{name}.default_vat_rate"
        ),
        default_vat_code=_optional_str(data.get("default_vat_code")),
        unit=_optional_str(data.get("unit")),
    )


def parse_text_limits(data: dict[str, Any]) -> TextLimits:
    limits = TextLimits(**{k: int(v) for k, v in data.items()})
    for name, value in vars(limits).items():
        if value < 2:
            raise ValueError(f"text_limits.{name} must be at least 2, got {value}")
    return limits


def parse_config(data: dict[str, Any], checksum: str = "") -> InvoiceBasisConfig:
    """
    Parse a full configuration document.

    Raises:
        KeyError: if ``config_id``, ``version`` or a billable line type is missing.
        ValueError: on malformed values.
    """
    raw_types = data["line_types"]
    line_types: dict[LineType, LineTypeDefaults] = {}
    for line_type in BILLABLE_LINE_TYPES:
        if line_type.value not in raw_types:
            raise KeyError(f"line_types.{line_type.value} is required")
        line_types[line_type] = parse_line_type_defaults(
            line_type.value, raw_types[line_type.value]
        )
    unknown = set(raw_types) - {t.value for t in BILLABLE_LINE_TYPES}
    if unknown:
        raise ValueError(f"Unknown line types in configuration: {sorted(unknown)}")

    payment_terms = int(data.get("payment_terms_days", 30))
    if payment_terms < 0:
        raise ValueError(f"payment_terms_days must be >= 0, got {payment_terms}")

    return InvoiceBasisConfig(
        config_id=str(data["config_id"]),
        version=int(data["version"]),
        currency=str(data.get("currency", "SEK")),
        payment_terms_days=payment_terms,
        fx_rate=parse_decimal(data.get("fx_rate", 1), "fx_rate"),
        default_invoice_series=str(data.get("default_invoice_series", "A")),
        line_types=MappingProxyType(line_types),
        text_limits=parse_text_limits(data.get("text_limits") or {}),
        unlock_reason_min_length=int(data.get("unlock_reason_min_length", 5)),
        max_payment_terms_days=int(data.get("max_payment_terms_days", 365)),
        refresh_max_workers=int(data.get("refresh_max_workers", 6)),
        scheduler_max_workers=int(data.get("scheduler_max_workers", 4)),
        checksum=checksum,
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a parsed YAML document."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def load_config(path: Path) -> InvoiceBasisConfig:
    """Load and parse a configuration file."""
    data = load_yaml_file(path)
    return parse_config(data, checksum=compute_checksum(data))
