"""
Invoice Basis ORM Model (``invoicing_modules.invoice_basis.orm``).

Responsibility
--------------
SQLAlchemy persistence model for the ``invoice_basis`` table: one row per
(org_id, project_id, period_start, period_end) holding the aggregated
lines, diary summaries, totals and invoice-workflow metadata.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``invoicing_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``invoicing_kernel``.
"""

import datetime as dt
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from invoicing_kernel.db.base import TrackedBase


class InvoiceBasisModel(TrackedBase):
    """
    ORM model for invoice basis snapshots.

    Maps to the ``InvoiceBasisSnapshot`` frozen dataclass.

    Guarantees:
        - At most one row per (org_id, project_id, period_start, period_end)
          (uq_invoice_basis_period).
        - payment_terms_days defaults to 30, currency to SEK, fx_rate to 1.
        - lines_json is ``{"lines": [...], "diary": [...]}``.
    """

    __tablename__ = "invoice_basis"

    __table_args__ = (
        UniqueConstraint(
            "org_id",
            "project_id",
            "period_start",
            "period_end",
            name="uq_invoice_basis_period",
        ),
        Index("idx_invoice_basis_project", "org_id", "project_id"),
    )

    org_id: Mapped[UUID] = mapped_column(nullable=False)
    project_id: Mapped[UUID] = mapped_column(nullable=False)
    period_start: Mapped[dt.date] = mapped_column(Date, nullable=False)
    period_end: Mapped[dt.date] = mapped_column(Date, nullable=False)
    customer_id: Mapped[UUID | None] = mapped_column(nullable=True)

    invoice_series: Mapped[str | None] = mapped_column(String(20), nullable=True)
    invoice_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    invoice_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    due_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    payment_terms_days: Mapped[int | None] = mapped_column(Integer, nullable=True, default=30)
    ocr_ref: Mapped[str | None] = mapped_column(String(50), nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True, default="SEK")
    fx_rate: Mapped[Decimal | None] = mapped_column(nullable=True, default=Decimal("1"))
    our_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    your_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reverse_charge_building: Mapped[bool] = mapped_column(Boolean, default=False)
    rot_rut_flag: Mapped[bool] = mapped_column(Boolean, default=False)
    worksite_address_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    worksite_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    invoice_address_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    delivery_address_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    cost_center: Mapped[str | None] = mapped_column(String(50), nullable=True)
    result_unit: Mapped[str | None] = mapped_column(String(50), nullable=True)

    lines_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    totals: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    customer_snapshot: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    locked_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    locked_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    hash_signature: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from invoicing_engines.totals import InvoiceTotals, calculate_totals_from_lines
        from invoicing_kernel.domain.lines import DiarySummary, InvoiceBasisLine
        from invoicing_modules.invoice_basis.models import InvoiceBasisSnapshot

        payload = self.lines_json or {}
        lines = tuple(InvoiceBasisLine.from_dict(item) for item in payload.get("lines") or ())
        diary = tuple(DiarySummary.from_dict(item) for item in payload.get("diary") or ())
        if self.totals:
            totals = InvoiceTotals.from_dict(self.totals)
        else:
            totals = calculate_totals_from_lines(lines, self.currency or "SEK")

        return InvoiceBasisSnapshot(
            id=str(self.id),
            org_id=str(self.org_id),
            project_id=str(self.project_id),
            period_start=self.period_start,
            period_end=self.period_end,
            lines=lines,
            diary=diary,
            totals=totals,
            locked=bool(self.locked),
            customer_id=str(self.customer_id) if self.customer_id is not None else None,
            invoice_series=self.invoice_series,
            invoice_number=self.invoice_number,
            invoice_date=self.invoice_date,
            due_date=self.due_date,
            payment_terms_days=self.payment_terms_days,
            ocr_ref=self.ocr_ref,
            currency=self.currency,
            fx_rate=self.fx_rate,
            our_ref=self.our_ref,
            your_ref=self.your_ref,
            reverse_charge_building=bool(self.reverse_charge_building),
            rot_rut_flag=bool(self.rot_rut_flag),
            worksite_address_json=self.worksite_address_json,
            worksite_id=self.worksite_id,
            invoice_address_json=self.invoice_address_json,
            delivery_address_json=self.delivery_address_json,
            cost_center=self.cost_center,
            result_unit=self.result_unit,
            customer_snapshot=self.customer_snapshot,
            locked_by=self.locked_by,
            locked_at=self.locked_at,
            hash_signature=self.hash_signature,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        state = "locked" if self.locked else "open"
        return (
            f"<InvoiceBasisModel {self.project_id} "
            f"{self.period_start}..{self.period_end} ({state})>"
        )
