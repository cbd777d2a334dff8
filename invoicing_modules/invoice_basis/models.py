"""
Invoice Basis Domain Models (``invoicing_modules.invoice_basis.models``).

Responsibility
--------------
Frozen dataclasses for the billing period key and the persisted invoice
basis snapshot.  The ORM layer converts rows into ``InvoiceBasisSnapshot``
via ``InvoiceBasisModel.to_dto()``; callers never see ORM instances.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any

from invoicing_engines.totals import InvoiceTotals
from invoicing_kernel.db.types import decimal_to_str
from invoicing_kernel.domain.lines import DiarySummary, InvoiceBasisLine, lines_payload
from invoicing_kernel.exceptions import InvalidPeriodError

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_END_OF_DAY = time(23, 59, 59, 999000)


def parse_iso_date(value: str) -> date | None:
    """Strict ``YYYY-MM-DD`` parse; None when the text is not a real date."""
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class BillingPeriod:
    """
    Inclusive date range an invoice basis covers.

    Guarantees:
        - ``start <= end``.
        - ``range_start`` / ``range_end`` cover the whole period in UTC,
          ``end`` included up to 23:59:59.999.
    """

    start: date
    end: date

    @classmethod
    def parse(cls, start: str | date, end: str | date) -> BillingPeriod:
        """
        Build a period from ``YYYY-MM-DD`` strings or date objects.

        Raises:
            InvalidPeriodError: bad format, impossible date, or end before start.
        """
        start_date = cls._coerce(start)
        end_date = cls._coerce(end)
        if start_date is None or end_date is None:
            raise InvalidPeriodError(str(start), str(end), "dates must be formatted as YYYY-MM-DD")
        if end_date < start_date:
            raise InvalidPeriodError(
                str(start), str(end), "period_end must be on or after period_start"
            )
        return cls(start=start_date, end=end_date)

    @staticmethod
    def _coerce(value: str | date) -> date | None:
        if isinstance(value, datetime):
            return None
        if isinstance(value, date):
            return value
        return parse_iso_date(value)

    @property
    def range_start(self) -> datetime:
        return datetime.combine(self.start, time.min, tzinfo=timezone.utc)

    @property
    def range_end(self) -> datetime:
        return datetime.combine(self.end, _END_OF_DAY, tzinfo=timezone.utc)

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


@dataclass(frozen=True)
class InvoiceBasisSnapshot:
    """
    Persisted invoice basis for one (org, project, period).

    Once ``locked`` is true the snapshot is immutable to refresh.
    """

    id: str
    org_id: str
    project_id: str
    period_start: date
    period_end: date
    lines: tuple[InvoiceBasisLine, ...]
    diary: tuple[DiarySummary, ...]
    totals: InvoiceTotals
    locked: bool = False
    customer_id: str | None = None
    invoice_series: str | None = None
    invoice_number: str | None = None
    invoice_date: date | None = None
    due_date: date | None = None
    payment_terms_days: int | None = 30
    ocr_ref: str | None = None
    currency: str | None = "SEK"
    fx_rate: Decimal | None = Decimal("1")
    our_ref: str | None = None
    your_ref: str | None = None
    reverse_charge_building: bool = False
    rot_rut_flag: bool = False
    worksite_address_json: dict[str, Any] | None = None
    worksite_id: str | None = None
    invoice_address_json: dict[str, Any] | None = None
    delivery_address_json: dict[str, Any] | None = None
    cost_center: str | None = None
    result_unit: str | None = None
    customer_snapshot: dict[str, Any] | None = None
    locked_by: str | None = None
    locked_at: datetime | None = None
    hash_signature: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def line(self, line_id: str) -> InvoiceBasisLine | None:
        for line in self.lines:
            if line.id == line_id:
                return line
        return None

    @property
    def lines_json(self) -> dict[str, list[dict[str, Any]]]:
        return lines_payload(self.lines, self.diary)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation (dates ISO, decimals as strings)."""

        def iso(value: date | datetime | None) -> str | None:
            return value.isoformat() if value is not None else None

        return {
            "id": self.id,
            "org_id": self.org_id,
            "project_id": self.project_id,
            "period_start": iso(self.period_start),
            "period_end": iso(self.period_end),
            "customer_id": self.customer_id,
            "invoice_series": self.invoice_series,
            "invoice_number": self.invoice_number,
            "invoice_date": iso(self.invoice_date),
            "due_date": iso(self.due_date),
            "payment_terms_days": self.payment_terms_days,
            "ocr_ref": self.ocr_ref,
            "currency": self.currency,
            "fx_rate": decimal_to_str(self.fx_rate) if self.fx_rate is not None else None,
            "our_ref": self.our_ref,
            "your_ref": self.your_ref,
            "reverse_charge_building": self.reverse_charge_building,
            "rot_rut_flag": self.rot_rut_flag,
            "worksite_address_json": self.worksite_address_json,
            "worksite_id": self.worksite_id,
            "invoice_address_json": self.invoice_address_json,
            "delivery_address_json": self.delivery_address_json,
            "cost_center": self.cost_center,
            "result_unit": self.result_unit,
            "lines_json": self.lines_json,
            "totals": self.totals.to_dict(),
            "customer_snapshot": self.customer_snapshot,
            "locked": self.locked,
            "locked_by": self.locked_by,
            "locked_at": iso(self.locked_at),
            "hash_signature": self.hash_signature,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
