"""
Snapshot Writer (``invoicing_modules.invoice_basis.writer``).

Responsibility
--------------
Upsert one aggregated invoice basis keyed by (org, project, period) and
hand back the authoritative stored row.  A locked row is never touched.

    lookup -> locked?  -> return stored row unchanged
           -> found    -> update lines/diary/totals in place
           -> missing  -> insert with defaults
    reread -> InvoiceBasisSnapshot

Every database call is wrapped by ``persistence_step`` so a SQLAlchemy
failure surfaces as ``InvoiceBasisPersistenceError`` naming the step.
Nothing is retried here.

Architecture position
---------------------
**Modules layer** -- write side.  The caller owns the session and the
transaction boundary; the writer only flushes.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Generator

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from invoicing_engines.normalizer import NormalizedBasis
from invoicing_engines.totals import InvoiceTotals
from invoicing_kernel.domain.clock import Clock, SystemClock
from invoicing_kernel.domain.lines import lines_payload
from invoicing_kernel.exceptions import InvoiceBasisPersistenceError
from invoicing_kernel.logging_config import get_logger
from invoicing_modules.invoice_basis.models import BillingPeriod, InvoiceBasisSnapshot
from invoicing_modules.invoice_basis.orm import InvoiceBasisModel

logger = get_logger("modules.invoice_basis.writer")


@contextmanager
def persistence_step(operation: str) -> Generator[None, None, None]:
    """Translate SQLAlchemy failures inside the block into a typed error."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error(
            "invoice_basis_persistence_failed",
            extra={"operation": operation, "error": str(exc)},
        )
        raise InvoiceBasisPersistenceError(operation, str(exc)) from exc


@dataclass(frozen=True)
class SnapshotMetadata:
    """
    Customer- and project-derived header fields computed during a refresh.

    Applied in full on insert.  On update only fields still null on the
    stored row are filled, so edits made through the header workflow
    survive later refreshes.
    """

    customer_id: str | None = None
    payment_terms_days: int = 30
    currency: str = "SEK"
    fx_rate: Decimal = Decimal("1")
    your_ref: str | None = None
    rot_rut_flag: bool = False
    worksite_address_json: dict[str, Any] | None = None
    invoice_address_json: dict[str, Any] | None = None
    delivery_address_json: dict[str, Any] | None = None
    customer_snapshot: dict[str, Any] | None = None


_FILL_IF_NULL = (
    "customer_id",
    "your_ref",
    "worksite_address_json",
    "invoice_address_json",
    "delivery_address_json",
    "customer_snapshot",
)


class SnapshotWriter:
    """
    Lookup / update-or-insert / reread against ``invoice_basis``.

    Contract:
        Accepts a Session from the caller and MUST NOT commit.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()

    def find(self, org_id: str, project_id: str, period: BillingPeriod) -> InvoiceBasisModel | None:
        return self.session.execute(
            select(InvoiceBasisModel)
            .where(
                InvoiceBasisModel.org_id == org_id,
                InvoiceBasisModel.project_id == project_id,
                InvoiceBasisModel.period_start == period.start,
                InvoiceBasisModel.period_end == period.end,
            )
            .execution_options(populate_existing=True)
        ).scalars().first()

    def upsert(
        self,
        org_id: str,
        project_id: str,
        period: BillingPeriod,
        basis: NormalizedBasis,
        totals: InvoiceTotals,
        metadata: SnapshotMetadata,
    ) -> InvoiceBasisSnapshot:
        """
        Store the aggregated basis unless the period is locked.

        Returns:
            The row as stored after the write (or untouched, when locked).

        Raises:
            InvoiceBasisPersistenceError: lookup, update, insert or reread failed.
        """
        with persistence_step("lookup"):
            existing = self.find(org_id, project_id, period)

        if existing is not None and existing.locked:
            logger.warning(
                "invoice_basis_locked_skip",
                extra={
                    "invoice_basis_id": str(existing.id),
                    "period_start": period.start.isoformat(),
                    "period_end": period.end.isoformat(),
                },
            )
            return existing.to_dto()

        payload = lines_payload(basis.lines, basis.diary)

        if existing is not None:
            with persistence_step("update"):
                self._apply_update(existing, payload, totals, metadata)
                self.session.flush()
            logger.info(
                "invoice_basis_updated",
                extra={"invoice_basis_id": str(existing.id), "line_count": len(basis.lines)},
            )
        else:
            with persistence_step("insert"):
                row = self._new_row(org_id, project_id, period, payload, totals, metadata)
                self.session.add(row)
                self.session.flush()
            logger.info(
                "invoice_basis_created",
                extra={"invoice_basis_id": str(row.id), "line_count": len(basis.lines)},
            )

        return self.reread(org_id, project_id, period)

    def reread(self, org_id: str, project_id: str, period: BillingPeriod) -> InvoiceBasisSnapshot:
        with persistence_step("reread"):
            row = self.find(org_id, project_id, period)
        if row is None:
            raise InvoiceBasisPersistenceError("reread", f"no row for {project_id} {period}")
        return row.to_dto()

    def _apply_update(
        self,
        row: InvoiceBasisModel,
        payload: dict[str, Any],
        totals: InvoiceTotals,
        metadata: SnapshotMetadata,
    ) -> None:
        row.lines_json = payload
        row.totals = totals.to_dict()
        row.updated_at = self._clock.now_utc()
        for name in _FILL_IF_NULL:
            if getattr(row, name) is None:
                setattr(row, name, getattr(metadata, name))
        if row.payment_terms_days is None:
            row.payment_terms_days = metadata.payment_terms_days
        if row.currency is None:
            row.currency = metadata.currency
        if row.fx_rate is None:
            row.fx_rate = metadata.fx_rate

    def _new_row(
        self,
        org_id: str,
        project_id: str,
        period: BillingPeriod,
        payload: dict[str, Any],
        totals: InvoiceTotals,
        metadata: SnapshotMetadata,
    ) -> InvoiceBasisModel:
        now = self._clock.now_utc()
        return InvoiceBasisModel(
            org_id=org_id,
            project_id=project_id,
            period_start=period.start,
            period_end=period.end,
            customer_id=metadata.customer_id,
            payment_terms_days=metadata.payment_terms_days,
            currency=metadata.currency,
            fx_rate=metadata.fx_rate,
            your_ref=metadata.your_ref,
            reverse_charge_building=False,
            rot_rut_flag=metadata.rot_rut_flag,
            worksite_address_json=metadata.worksite_address_json,
            invoice_address_json=metadata.invoice_address_json,
            delivery_address_json=metadata.delivery_address_json,
            customer_snapshot=metadata.customer_snapshot,
            lines_json=payload,
            totals=totals.to_dict(),
            locked=False,
            created_at=now,
            updated_at=now,
        )
