"""
Invoice basis lines -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable line and diary structures that flow from the
    normalizer through the totals accumulator into the persisted snapshot
    (``lines_json = {"lines": [...], "diary": [...]}``).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Diary lines carry zero quantity, unit price, discount and VAT rate.
    - Monetary fields are Decimal; they are serialized as plain decimal
      strings so a round trip through JSON never goes through float.

Data flow:
    source records -> InvoiceBasisLine / DiarySummary -> to_dict() -> lines_json
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from invoicing_kernel.db.types import ZERO, decimal_to_str, to_decimal


class LineType(str, Enum):
    """Kind of billable (or narrative) line in an invoice basis."""

    TIME = "time"
    MATERIAL = "material"
    EXPENSE = "expense"
    MILEAGE = "mileage"
    ATA = "ata"
    DIARY = "diary"


@dataclass(frozen=True)
class SourceRef:
    """Table and row id a line was derived from."""

    table: str
    id: str

    def to_dict(self) -> dict[str, str]:
        return {"table": self.table, "id": self.id}


@dataclass(frozen=True)
class AtaInfo:
    """Change-order context carried on lines derived from an ÄTA."""

    title: str
    ata_number: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {"title": self.title, "ata_number": self.ata_number}


@dataclass(frozen=True)
class InvoiceBasisLine:
    """
    One normalized invoice basis line.

    Contract:
        ``quantity``, ``unit_price``, ``discount`` (percent) and ``vat_rate``
        (percent) are Decimal.  ``dimensions`` always carries ``project`` and
        ``cost_center`` keys.

    Guarantees:
        - Immutable; edits go through ``dataclasses.replace``.
        - ``to_dict()`` / ``from_dict()`` are inverse on well-formed input.
    """

    id: str
    type: LineType
    source: SourceRef
    article_code: str | None
    description: str
    unit: str | None
    quantity: Decimal
    unit_price: Decimal
    discount: Decimal = ZERO
    vat_rate: Decimal = ZERO
    vat_code: str | None = None
    account: str | None = None
    dimensions: dict[str, str | None] = field(default_factory=dict)
    attachments: tuple[str, ...] = ()
    ata_info: AtaInfo | None = None

    @property
    def is_diary(self) -> bool:
        return self.type == LineType.DIARY

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "source": self.source.to_dict(),
            "article_code": self.article_code,
            "description": self.description,
            "unit": self.unit,
            "quantity": decimal_to_str(self.quantity),
            "unit_price": decimal_to_str(self.unit_price),
            "discount": decimal_to_str(self.discount),
            "vat_rate": decimal_to_str(self.vat_rate),
            "vat_code": self.vat_code,
            "account": self.account,
            "dimensions": dict(self.dimensions),
            "attachments": list(self.attachments),
        }
        if self.ata_info is not None:
            data["ata_info"] = self.ata_info.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> InvoiceBasisLine:
        source = data.get("source") or {}
        ata = data.get("ata_info")
        return cls(
            id=str(data["id"]),
            type=LineType(data["type"]),
            source=SourceRef(
                table=str(source.get("table", "")),
                id=str(source.get("id", "")),
            ),
            article_code=data.get("article_code"),
            description=data.get("description") or "",
            unit=data.get("unit"),
            quantity=_decimal_or_zero(data.get("quantity")),
            unit_price=_decimal_or_zero(data.get("unit_price")),
            discount=_decimal_or_zero(data.get("discount")),
            vat_rate=_decimal_or_zero(data.get("vat_rate")),
            vat_code=data.get("vat_code"),
            account=data.get("account"),
            dimensions=dict(data.get("dimensions") or {}),
            attachments=tuple(data.get("attachments") or ()),
            ata_info=(
                AtaInfo(title=ata.get("title") or "ÄTA", ata_number=ata.get("ata_number"))
                if ata
                else None
            ),
        )


@dataclass(frozen=True)
class DiarySummary:
    """Narrative entry shown alongside the lines; never billed."""

    date: str
    raw: str
    summary: str
    line_ref: str

    def to_dict(self) -> dict[str, str]:
        return {
            "date": self.date,
            "raw": self.raw,
            "summary": self.summary,
            "line_ref": self.line_ref,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DiarySummary:
        return cls(
            date=str(data.get("date", "")),
            raw=data.get("raw") or "",
            summary=data.get("summary") or "",
            line_ref=str(data.get("line_ref", "")),
        )


def _decimal_or_zero(value: Any) -> Decimal:
    if value is None or value == "":
        return ZERO
    return to_decimal(value)


def lines_payload(
    lines: list[InvoiceBasisLine] | tuple[InvoiceBasisLine, ...],
    diary: list[DiarySummary] | tuple[DiarySummary, ...],
) -> dict[str, list[dict[str, Any]]]:
    """Build the persisted ``lines_json`` document."""
    return {
        "lines": [line.to_dict() for line in lines],
        "diary": [entry.to_dict() for entry in diary],
    }
