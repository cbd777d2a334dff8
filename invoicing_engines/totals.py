"""
Totals Accumulator - per VAT rate and grand totals for invoice basis lines.

Pure functions with no I/O.  Rounding happens at the point of each
computation (line amount, then VAT amount, then every bucket addition),
never once after summation, so the persisted totals reproduce exactly
what an invoice printed line by line would show.

Usage:
    from invoicing_engines.totals import calculate_totals_from_lines

    totals = calculate_totals_from_lines(lines, currency="SEK")
    totals.per_vat_rate["25"].total   # Decimal("7750.00")
    totals.to_dict()                  # JSON-ready document for the snapshot row

Rounding example (ROUND_HALF_UP, 2 dp):
    3 x 10.005 = 30.015 -> 30.02
    30.02 x 25% = 7.505 -> 7.51
    total 37.53
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Mapping

from invoicing_kernel.db.types import ZERO, decimal_to_str, format_money, round_money, to_decimal
from invoicing_kernel.domain.lines import InvoiceBasisLine

_HUNDRED = Decimal("100")
_ONE = Decimal("1")


@dataclass(frozen=True)
class VatRateTotals:
    """Totals for a single VAT rate bucket."""

    base: Decimal
    vat: Decimal
    total: Decimal

    def to_dict(self) -> dict[str, str]:
        return {
            "base": format_money(self.base),
            "vat": format_money(self.vat),
            "total": format_money(self.total),
        }


@dataclass(frozen=True)
class InvoiceTotals:
    """
    Aggregated totals for an invoice basis.

    ``per_vat_rate`` keys are the rate's plain string form ("25", "0",
    "12.5") in first-contribution order.
    """

    currency: str
    total_ex_vat: Decimal = ZERO
    total_vat: Decimal = ZERO
    total_inc_vat: Decimal = ZERO
    per_vat_rate: dict[str, VatRateTotals] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "currency": self.currency,
            "total_ex_vat": format_money(self.total_ex_vat),
            "total_vat": format_money(self.total_vat),
            "total_inc_vat": format_money(self.total_inc_vat),
            "per_vat_rate": {
                key: bucket.to_dict() for key, bucket in self.per_vat_rate.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> InvoiceTotals:
        return cls(
            currency=str(data.get("currency") or ""),
            total_ex_vat=to_decimal(data.get("total_ex_vat", 0)),
            total_vat=to_decimal(data.get("total_vat", 0)),
            total_inc_vat=to_decimal(data.get("total_inc_vat", 0)),
            per_vat_rate={
                str(key): VatRateTotals(
                    base=to_decimal(bucket.get("base", 0)),
                    vat=to_decimal(bucket.get("vat", 0)),
                    total=to_decimal(bucket.get("total", 0)),
                )
                for key, bucket in (data.get("per_vat_rate") or {}).items()
            },
        )


class TotalsAccumulator:
    """
    Running per VAT rate {base, vat} pairs.

    Contract:
        ``add()`` ignores non-positive amounts.  Bucket values are
        re-rounded after every addition.
    """

    def __init__(self) -> None:
        self._buckets: dict[Decimal, list[Decimal]] = {}

    def add(self, vat_rate: Decimal, amount_ex_vat: Decimal) -> None:
        if amount_ex_vat <= ZERO:
            return
        vat_amount = round_money(amount_ex_vat * vat_rate / _HUNDRED)
        bucket = self._buckets.setdefault(vat_rate, [ZERO, ZERO])
        bucket[0] = round_money(bucket[0] + amount_ex_vat)
        bucket[1] = round_money(bucket[1] + vat_amount)

    def __len__(self) -> int:
        return len(self._buckets)

    def build(self, currency: str) -> InvoiceTotals:
        total_ex_vat = ZERO
        total_vat = ZERO
        per_vat_rate: dict[str, VatRateTotals] = {}

        for rate, (base, vat) in self._buckets.items():
            base = round_money(base)
            vat = round_money(vat)
            per_vat_rate[decimal_to_str(rate)] = VatRateTotals(
                base=base,
                vat=vat,
                total=round_money(base + vat),
            )
            total_ex_vat = round_money(total_ex_vat + base)
            total_vat = round_money(total_vat + vat)

        return InvoiceTotals(
            currency=currency,
            total_ex_vat=round_money(total_ex_vat),
            total_vat=round_money(total_vat),
            total_inc_vat=round_money(total_ex_vat + total_vat),
            per_vat_rate=per_vat_rate,
        )


def line_amount_ex_vat(line: InvoiceBasisLine) -> Decimal | None:
    """
    Rounded ex-VAT amount of a billable line.

    Returns None for diary lines, non-positive quantities and negative
    unit prices, which never contribute to totals.
    """
    if line.is_diary:
        return None
    if line.quantity <= ZERO or line.unit_price < ZERO:
        return None
    factor = _ONE - line.discount / _HUNDRED if line.discount > ZERO else _ONE
    return round_money(line.quantity * line.unit_price * factor)


def calculate_totals_from_lines(
    lines: Iterable[InvoiceBasisLine],
    currency: str = "SEK",
) -> InvoiceTotals:
    """Sum billable lines into per VAT rate buckets and grand totals."""
    accumulator = TotalsAccumulator()
    for line in lines:
        amount = line_amount_ex_vat(line)
        if amount is None:
            continue
        accumulator.add(line.vat_rate, amount)
    return accumulator.build(currency)
