"""
InvoiceBasisConfig schema.

Defines the typed, immutable configuration consumed by the line normalizer
and the invoice basis service.  YAML files are parsed into these types by
the loader; nothing downstream ever sees the raw YAML dict.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

from invoicing_kernel.domain.lines import LineType

# ---------------------------------------------------------------------------
# Line type defaults
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineTypeDefaults:
    """Per line type article/account/VAT/unit defaults."""

    article: str | None
    account: str | None
    default_vat_rate: Decimal
    default_vat_code: str | None
    unit: str | None = None


# ---------------------------------------------------------------------------
# Text limits
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextLimits:
    """Maximum lengths applied by the sanitizer before truncation."""

    line_description: int = 512
    diary_line_description: int = 1024
    diary_summary: int = 2000
    diary_raw: int = 4000
    diary_fallback: int = 500
    ata_nested_description: int = 400


# ---------------------------------------------------------------------------
# Root configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InvoiceBasisConfig:
    """
    Root configuration for invoice basis aggregation.

    Guarantees:
        - ``line_types`` is read-only and covers every billable line type.
        - ``checksum`` identifies the source document (empty when built
          in code).
    """

    config_id: str
    version: int
    currency: str = "SEK"
    payment_terms_days: int = 30
    fx_rate: Decimal = Decimal("1")
    default_invoice_series: str = "A"
    line_types: Mapping[LineType, LineTypeDefaults] = field(
        default_factory=lambda: MappingProxyType({})
    )
    text_limits: TextLimits = field(default_factory=TextLimits)
    unlock_reason_min_length: int = 5
    max_payment_terms_days: int = 365
    refresh_max_workers: int = 6
    scheduler_max_workers: int = 4
    checksum: str = ""

    def defaults_for(self, line_type: LineType) -> LineTypeDefaults:
        """
        Defaults for a billable line type.

        Raises:
            KeyError: if the type has no configured defaults (diary).
        """
        return self.line_types[line_type]
