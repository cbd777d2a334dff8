"""
Invoice Basis Service - Aggregates approved work into a per-period invoice basis.

Thin glue layer that:
1. Reads the project, then the six source stores concurrently (SourceSelector)
2. Calls LineNormalizer to turn records into invoice basis lines
3. Calls calculate_totals_from_lines for per-VAT-rate and grand totals
4. Calls SnapshotWriter to upsert the row, never touching a locked one

It also owns the snapshot workflow on an existing row: lock, unlock,
header edit and line edit.

All computation lives in engines.  All SQL lives in selectors and writer.
This service owns the transaction boundary: it commits on success and
rolls back on failure.

Usage:
    service = InvoiceBasisService(get_session_factory())
    snapshot = service.refresh(org_id, project_id, "2025-03-03", "2025-03-09")
    locked = service.lock(org_id, project_id, "2025-03-03", "2025-03-09", actor_id="u-1")
"""

from __future__ import annotations

import contextvars
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from contextlib import contextmanager
from datetime import date
from typing import Any, Callable, Generator, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from invoicing_config import get_active_config
from invoicing_config.schema import InvoiceBasisConfig
from invoicing_engines.normalizer import LineNormalizer
from invoicing_engines.ocr import invoice_ocr_reference
from invoicing_engines.totals import InvoiceTotals, calculate_totals_from_lines
from invoicing_kernel.domain.clock import Clock, SystemClock
from invoicing_kernel.domain.lines import lines_payload
from invoicing_kernel.domain.records import ProjectRecord, SourceBundle
from invoicing_kernel.exceptions import (
    InvalidFieldError,
    LineNotEditableError,
    LineNotFoundError,
    ProjectNotFoundError,
    SnapshotLockedError,
    SnapshotNotFoundError,
    SnapshotNotLockedError,
    SourceReadError,
    UnlockReasonRequiredError,
)
from invoicing_kernel.logging_config import LogContext, get_logger
from invoicing_modules.invoice_basis.edits import (
    apply_line_changes,
    parse_date_value,
    parse_flag,
    parse_header_changes,
    parse_optional_str,
    parse_payment_terms,
)
from invoicing_modules.invoice_basis.helpers import (
    add_days,
    build_metadata,
    compute_hash_signature,
    signature_payload,
)
from invoicing_modules.invoice_basis.models import BillingPeriod, InvoiceBasisSnapshot
from invoicing_modules.invoice_basis.orm import InvoiceBasisModel
from invoicing_modules.invoice_basis.writer import SnapshotWriter, persistence_step
from invoicing_modules.sources.selectors import SourceSelector

logger = get_logger("modules.invoice_basis.service")

HEADER_AUDIT_FIELDS = (
    "invoice_series",
    "invoice_number",
    "invoice_date",
    "due_date",
    "payment_terms_days",
    "ocr_ref",
    "our_ref",
    "your_ref",
    "currency",
    "fx_rate",
    "reverse_charge_building",
    "rot_rut_flag",
    "cost_center",
    "result_unit",
    "invoice_address_json",
    "delivery_address_json",
    "worksite_address_json",
    "worksite_id",
)


def _header_state(row: InvoiceBasisModel) -> dict[str, Any]:
    return {name: getattr(row, name) for name in HEADER_AUDIT_FIELDS}


class InvoiceBasisService:
    """
    Builds and maintains invoice basis snapshots.

    Each refresh reads with short-lived sessions from ``session_factory``
    (one per concurrent source read) and writes in a single transaction.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: InvoiceBasisConfig | None = None,
        clock: Clock | None = None,
        max_workers: int | None = None,
    ):
        self._session_factory = session_factory
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()
        self._max_workers = max_workers or self._config.refresh_max_workers
        self._normalizer = LineNormalizer(self._config, self._clock)

    @contextmanager
    def _transaction(self) -> Generator[Session, None, None]:
        session = self._session_factory()
        try:
            yield session
            with persistence_step("commit"):
                session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # =========================================================================
    # Refresh
    # =========================================================================

    def refresh(
        self,
        org_id: str,
        project_id: str,
        period_start: str | date,
        period_end: str | date,
    ) -> InvoiceBasisSnapshot:
        """
        Rebuild the invoice basis for one project and period.

        Returns the stored row after the write, or the stored row untouched
        when it is locked.

        Raises:
            InvalidPeriodError: bad date format or end before start.
            ProjectNotFoundError: project missing or owned by another org.
            SourceReadError: a source query failed; nothing is written.
            InvoiceBasisPersistenceError: the upsert failed.
        """
        period = BillingPeriod.parse(period_start, period_end)
        org_id = str(org_id)
        project_id = str(project_id)

        with LogContext.bind(org_id=org_id, project_id=project_id):
            logger.info(
                "invoice_basis_refresh_started",
                extra={
                    "period_start": period.start.isoformat(),
                    "period_end": period.end.isoformat(),
                },
            )

            project = self._load_project(org_id, project_id)
            bundle = self._read_bundle(org_id, project, period)
            basis = self._normalizer.normalize(bundle)
            totals = calculate_totals_from_lines(basis.lines, self._config.currency)
            metadata = build_metadata(project, bundle.customer, self._config, self._clock.today())

            with self._transaction() as session:
                snapshot = SnapshotWriter(session, self._clock).upsert(
                    org_id, project_id, period, basis, totals, metadata
                )

            logger.info(
                "invoice_basis_refresh_completed",
                extra={
                    "invoice_basis_id": snapshot.id,
                    "line_count": len(snapshot.lines),
                    "skipped": len(basis.skipped),
                    "locked": snapshot.locked,
                    "total_inc_vat": snapshot.totals.to_dict()["total_inc_vat"],
                },
            )
            return snapshot

    def _load_project(self, org_id: str, project_id: str) -> ProjectRecord:
        session = self._session_factory()
        try:
            project = SourceSelector(session).get_project(org_id, project_id)
        except SQLAlchemyError as exc:
            raise SourceReadError("projects", str(exc)) from exc
        finally:
            session.close()
        if project is None:
            logger.warning("invoice_basis_project_not_found")
            raise ProjectNotFoundError(project_id, org_id)
        return project

    def _read_source(self, source: str, read: Callable[[SourceSelector], Any]) -> Any:
        session = self._session_factory()
        try:
            return read(SourceSelector(session))
        except SQLAlchemyError as exc:
            logger.error(
                "invoice_basis_source_read_failed",
                extra={"source": source, "error": str(exc)},
            )
            raise SourceReadError(source, str(exc)) from exc
        finally:
            session.close()

    def _read_bundle(
        self,
        org_id: str,
        project: ProjectRecord,
        period: BillingPeriod,
    ) -> SourceBundle:
        """
        Run the six source reads concurrently and join them.

        The first failing read cancels the reads that have not started and
        its error is raised; nothing is normalized from a partial read.
        """
        pid = project.id
        readers: dict[str, Callable[[SourceSelector], Any]] = {
            "time_entries": lambda s: s.time_entries(org_id, pid, period.range_start, period.range_end),
            "materials": lambda s: s.materials(org_id, pid, period.range_start, period.range_end),
            "expenses": lambda s: s.expenses(org_id, pid, period.start, period.end),
            "mileage": lambda s: s.mileage(org_id, pid, period.start, period.end),
            "ata": lambda s: s.atas(org_id, pid, period.range_start, period.range_end),
            "diary_entries": lambda s: s.diary_entries(org_id, pid, period.start, period.end),
        }

        pool = ThreadPoolExecutor(
            max_workers=min(self._max_workers, len(readers)),
            thread_name_prefix="invoice-basis-read",
        )
        futures: dict[str, Future] = {}
        try:
            for source, read in readers.items():
                ctx = contextvars.copy_context()
                futures[source] = pool.submit(ctx.run, self._read_source, source, read)
            wait(futures.values(), return_when=FIRST_EXCEPTION)
            for future in futures.values():
                future.cancel()
            for source, future in futures.items():
                if future.done() and not future.cancelled() and future.exception() is not None:
                    raise future.exception()
        finally:
            pool.shutdown(wait=True, cancel_futures=True)

        results = {source: future.result() for source, future in futures.items()}

        customer = None
        session = self._session_factory()
        try:
            selector = SourceSelector(session)
            if project.customer_id:
                try:
                    customer = selector.get_customer(org_id, project.customer_id)
                except SQLAlchemyError as exc:
                    raise SourceReadError("customers", str(exc)) from exc
                if customer is None:
                    logger.warning(
                        "invoice_basis_customer_missing",
                        extra={"customer_id": project.customer_id},
                    )
            try:
                rates = selector.rate_table(org_id, results["time_entries"])
            except SQLAlchemyError as exc:
                raise SourceReadError("rates", str(exc)) from exc
        finally:
            session.close()

        logger.debug(
            "invoice_basis_sources_read",
            extra={source: len(rows) for source, rows in results.items()},
        )

        return SourceBundle(
            project=project,
            customer=customer,
            time_entries=results["time_entries"],
            materials=results["materials"],
            expenses=results["expenses"],
            mileage=results["mileage"],
            atas=results["ata"],
            diary_entries=results["diary_entries"],
            rates=rates,
        )

    # =========================================================================
    # Workflow on an existing snapshot
    # =========================================================================

    def _require_row(
        self,
        session: Session,
        org_id: str,
        project_id: str,
        period: BillingPeriod,
    ) -> InvoiceBasisModel:
        with persistence_step("lookup"):
            row = SnapshotWriter(session, self._clock).find(org_id, project_id, period)
        if row is None:
            raise SnapshotNotFoundError(
                project_id, period.start.isoformat(), period.end.isoformat()
            )
        return row

    def _save(self, session: Session, row: InvoiceBasisModel) -> InvoiceBasisSnapshot:
        row.updated_at = self._clock.now_utc()
        with persistence_step("update"):
            session.flush()
        with persistence_step("reread"):
            session.refresh(row)
        return row.to_dto()

    def get(
        self,
        org_id: str,
        project_id: str,
        period_start: str | date,
        period_end: str | date,
    ) -> InvoiceBasisSnapshot:
        """Stored invoice basis for the period, or ``SnapshotNotFoundError``."""
        period = BillingPeriod.parse(period_start, period_end)
        session = self._session_factory()
        try:
            return self._require_row(session, str(org_id), str(project_id), period).to_dto()
        finally:
            session.close()

    def lock(
        self,
        org_id: str,
        project_id: str,
        period_start: str | date,
        period_end: str | date,
        actor_id: str,
        overrides: Mapping[str, Any] | None = None,
    ) -> InvoiceBasisSnapshot:
        """
        Freeze the invoice basis and stamp its invoice header.

        Missing header values fall back to the stored row, then to
        defaults: number ``<series>-YYYYMMDD-HHMM``, invoice date today,
        due date = invoice date + payment terms, OCR reference derived from
        the invoice number and project id.

        Raises:
            SnapshotNotFoundError, SnapshotLockedError, InvalidFieldError
        """
        period = BillingPeriod.parse(period_start, period_end)
        overrides = overrides or {}
        org_id, project_id = str(org_id), str(project_id)

        with LogContext.bind(org_id=org_id, project_id=project_id, actor_id=actor_id):
            with self._transaction() as session:
                row = self._require_row(session, org_id, project_id, period)
                if row.locked:
                    raise SnapshotLockedError(str(row.id))
                before = {
                    "locked": False,
                    "invoice_number": row.invoice_number,
                    "invoice_series": row.invoice_series,
                    "ocr_ref": row.ocr_ref,
                }

                series = _pick(
                    parse_optional_str(overrides.get("invoice_series"), "invoice_series"),
                    row.invoice_series,
                )
                number = _pick(
                    parse_optional_str(overrides.get("invoice_number"), "invoice_number"),
                    row.invoice_number,
                )
                if number is None:
                    stamp = self._clock.now_utc().strftime("%Y%m%d-%H%M")
                    number = f"{series or self._config.default_invoice_series}-{stamp}"
                invoice_date = _pick(
                    parse_date_value(overrides.get("invoice_date"), "invoice_date"),
                    row.invoice_date,
                ) or self._clock.today()
                terms = _pick(
                    parse_payment_terms(overrides.get("payment_terms_days"), "payment_terms_days"),
                    row.payment_terms_days,
                )
                if terms is None:
                    terms = self._config.payment_terms_days
                due_date = parse_date_value(overrides.get("due_date"), "due_date") or add_days(
                    invoice_date, terms
                )
                currency = _pick(
                    parse_optional_str(overrides.get("currency"), "currency"), row.currency
                ) or self._config.currency
                reverse_charge = _pick(
                    parse_flag(overrides.get("reverse_charge_building"), "reverse_charge_building"),
                    row.reverse_charge_building,
                )
                rot_rut = _pick(
                    parse_flag(overrides.get("rot_rut_flag"), "rot_rut_flag"), row.rot_rut_flag
                )

                snapshot = row.to_dto()
                totals = (
                    row.totals
                    if row.totals
                    else calculate_totals_from_lines(snapshot.lines, currency).to_dict()
                )
                ocr_ref = parse_optional_str(
                    overrides.get("ocr_ref"), "ocr_ref"
                ) or invoice_ocr_reference(number, project_id)

                signature = compute_hash_signature(
                    signature_payload(
                        project_id=project_id,
                        period_start=period.start,
                        period_end=period.end,
                        invoice_series=series,
                        invoice_number=number,
                        invoice_date=invoice_date,
                        due_date=due_date,
                        currency=currency,
                        lines=snapshot.lines_json["lines"],
                        totals=totals,
                        reverse_charge_building=bool(reverse_charge),
                        rot_rut_flag=bool(rot_rut),
                    )
                )

                row.invoice_series = series
                row.invoice_number = number
                row.invoice_date = invoice_date
                row.due_date = due_date
                row.payment_terms_days = terms
                row.ocr_ref = ocr_ref
                row.currency = currency
                row.reverse_charge_building = bool(reverse_charge)
                row.rot_rut_flag = bool(rot_rut)
                row.totals = totals
                row.locked = True
                row.locked_by = str(actor_id)
                row.locked_at = self._clock.now_utc()
                row.hash_signature = signature
                result = self._save(session, row)

            logger.info(
                "invoice_basis_locked",
                extra={
                    "invoice_basis_id": result.id,
                    "before": before,
                    "after": {
                        "locked": True,
                        "invoice_number": result.invoice_number,
                        "invoice_series": result.invoice_series,
                        "ocr_ref": result.ocr_ref,
                        "hash_signature": result.hash_signature,
                    },
                },
            )
            return result

    def unlock(
        self,
        org_id: str,
        project_id: str,
        period_start: str | date,
        period_end: str | date,
        actor_id: str,
        reason: str,
    ) -> InvoiceBasisSnapshot:
        """
        Release a lock so the basis can be refreshed and edited again.

        Raises:
            UnlockReasonRequiredError: trimmed reason shorter than the minimum.
            SnapshotNotFoundError, SnapshotNotLockedError
        """
        period = BillingPeriod.parse(period_start, period_end)
        min_length = self._config.unlock_reason_min_length
        reason = reason.strip() if isinstance(reason, str) else ""
        if len(reason) < min_length:
            raise UnlockReasonRequiredError(min_length)
        org_id, project_id = str(org_id), str(project_id)

        with LogContext.bind(org_id=org_id, project_id=project_id, actor_id=actor_id):
            with self._transaction() as session:
                row = self._require_row(session, org_id, project_id, period)
                if not row.locked:
                    raise SnapshotNotLockedError(str(row.id))
                row.locked = False
                row.locked_by = None
                row.locked_at = None
                row.hash_signature = None
                result = self._save(session, row)

            logger.info(
                "invoice_basis_unlocked",
                extra={
                    "invoice_basis_id": result.id,
                    "before": {"locked": True},
                    "after": {"locked": False, "reason": reason},
                },
            )
            return result

    def update_header(
        self,
        org_id: str,
        project_id: str,
        period_start: str | date,
        period_end: str | date,
        changes: Mapping[str, Any],
        actor_id: str | None = None,
    ) -> InvoiceBasisSnapshot:
        """
        Edit invoice header fields on an unlocked basis.

        Raises:
            SnapshotNotFoundError, SnapshotLockedError, InvalidFieldError
        """
        period = BillingPeriod.parse(period_start, period_end)
        org_id, project_id = str(org_id), str(project_id)

        with LogContext.bind(org_id=org_id, project_id=project_id, actor_id=actor_id):
            with self._transaction() as session:
                row = self._require_row(session, org_id, project_id, period)
                if row.locked:
                    raise SnapshotLockedError(str(row.id))
                updates = parse_header_changes(
                    changes, row.payment_terms_days, self._config.max_payment_terms_days
                )
                before = _header_state(row)
                for name, value in updates.items():
                    setattr(row, name, value)
                result = self._save(session, row)
                after = _header_state(row)

            logger.info(
                "invoice_basis_header_updated",
                extra={
                    "invoice_basis_id": result.id,
                    "fields": sorted(updates),
                    "before": before,
                    "after": after,
                },
            )
            return result

    def update_line(
        self,
        org_id: str,
        project_id: str,
        period_start: str | date,
        period_end: str | date,
        line_id: str,
        changes: Mapping[str, Any],
        actor_id: str | None = None,
    ) -> InvoiceBasisSnapshot:
        """
        Edit one non-diary line and recompute totals in the row currency.

        Raises:
            SnapshotNotFoundError, SnapshotLockedError, LineNotFoundError,
            LineNotEditableError, InvalidFieldError
        """
        period = BillingPeriod.parse(period_start, period_end)
        org_id, project_id = str(org_id), str(project_id)
        if not isinstance(changes, Mapping):
            raise InvalidFieldError("changes", "must be an object")

        with LogContext.bind(org_id=org_id, project_id=project_id, actor_id=actor_id):
            with self._transaction() as session:
                row = self._require_row(session, org_id, project_id, period)
                if row.locked:
                    raise SnapshotLockedError(str(row.id))
                snapshot = row.to_dto()
                target = snapshot.line(line_id)
                if target is None:
                    raise LineNotFoundError(snapshot.id, line_id)
                if target.is_diary:
                    raise LineNotEditableError(line_id, target.type.value)

                edited = apply_line_changes(target, changes)
                lines = [edited if line.id == line_id else line for line in snapshot.lines]
                totals: InvoiceTotals = calculate_totals_from_lines(
                    lines, row.currency or self._config.currency
                )
                row.lines_json = lines_payload(lines, snapshot.diary)
                row.totals = totals.to_dict()
                result = self._save(session, row)

            logger.info(
                "invoice_basis_line_updated",
                extra={
                    "invoice_basis_id": result.id,
                    "line_id": line_id,
                    "before": target.to_dict(),
                    "after": edited.to_dict(),
                },
            )
            return result


def _pick(value: Any, fallback: Any) -> Any:
    return value if value is not None else fallback
