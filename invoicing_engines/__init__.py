"""
Module: invoicing_engines
Responsibility:
    Package entrypoint that re-exports the pure calculation engines used by
    the invoice basis pipeline.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import invoicing_kernel and invoicing_config.
    MUST NOT import invoicing_modules or invoicing_services.

Invariants enforced:
    - Purity: engines never call ``datetime.now()``; time comes from an
      injected Clock.
    - Decimal-only arithmetic with ROUND_HALF_UP at 2 dp.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from invoicing_engines import LineNormalizer, calculate_totals_from_lines
"""

from invoicing_engines.normalizer import LineNormalizer, NormalizedBasis, build_diary_summary
from invoicing_engines.ocr import generate_ocr_mod10, invoice_ocr_reference, is_valid_ocr
from invoicing_engines.text import sanitize_text, truncate
from invoicing_engines.totals import (
    InvoiceTotals,
    TotalsAccumulator,
    VatRateTotals,
    calculate_totals_from_lines,
    line_amount_ex_vat,
)
from invoicing_engines.weeks import iso_week_bounds

__all__ = [
    "LineNormalizer",
    "NormalizedBasis",
    "build_diary_summary",
    "generate_ocr_mod10",
    "invoice_ocr_reference",
    "is_valid_ocr",
    "sanitize_text",
    "truncate",
    "InvoiceTotals",
    "TotalsAccumulator",
    "VatRateTotals",
    "calculate_totals_from_lines",
    "line_amount_ex_vat",
    "iso_week_bounds",
]
