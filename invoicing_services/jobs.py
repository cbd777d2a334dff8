"""
Library entry points for invoice basis refreshes.

Wires ``InvoiceBasisService`` to the process-wide session factory and the
active configuration.  API routes call ``refresh_invoice_basis``; approval
hooks call ``refresh_invoice_basis_for_approvals`` after their own
transaction has committed.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Iterable, Mapping

from invoicing_config import get_active_config
from invoicing_kernel.db.engine import get_session_factory
from invoicing_kernel.domain.clock import Clock
from invoicing_kernel.logging_config import LogContext, get_logger
from invoicing_modules.invoice_basis.models import InvoiceBasisSnapshot
from invoicing_modules.invoice_basis.service import InvoiceBasisService
from invoicing_services.refresh_scheduler import BatchSummary, RefreshScheduler

logger = get_logger("services.jobs")


def _service(clock: Clock | None = None) -> InvoiceBasisService:
    return InvoiceBasisService(get_session_factory(), get_active_config(), clock)


def refresh_invoice_basis(
    org_id: str,
    project_id: str,
    period_start: str | date,
    period_end: str | date,
) -> InvoiceBasisSnapshot:
    """
    Rebuild and store the invoice basis for one project and period.

    Raises:
        InvalidPeriodError: bad date format or end before start.
        ProjectNotFoundError: project missing or owned by another org.
    """
    return _service().refresh(org_id, project_id, period_start, period_end)


def run_approval_refresh(
    org_id: str,
    items: Iterable[Any],
    service: InvoiceBasisService | None = None,
) -> BatchSummary:
    """Scheduler run for one org, returning the batch summary."""
    service = service or _service()
    scheduler = RefreshScheduler(
        lambda project_id, start, end: service.refresh(org_id, project_id, start, end),
        max_workers=get_active_config().scheduler_max_workers,
    )
    with LogContext.bind(org_id=str(org_id)):
        return scheduler.run(items)


def refresh_invoice_basis_for_approvals(org_id: str, items: Iterable[Any]) -> None:
    """
    Refresh every (project, ISO week) touched by newly approved items.

    Never raises: per-week failures are logged and the rest still run.
    """
    try:
        run_approval_refresh(org_id, items)
    except Exception:
        logger.error(
            "approval_refresh_aborted",
            extra={"org_id": str(org_id)},
            exc_info=True,
        )


# ---------------------------------------------------------------------------
# Snapshot workflow entry points
# ---------------------------------------------------------------------------


def get_invoice_basis(
    org_id: str,
    project_id: str,
    period_start: str | date,
    period_end: str | date,
) -> InvoiceBasisSnapshot:
    return _service().get(org_id, project_id, period_start, period_end)


def lock_invoice_basis(
    org_id: str,
    project_id: str,
    period_start: str | date,
    period_end: str | date,
    actor_id: str,
    overrides: Mapping[str, Any] | None = None,
) -> InvoiceBasisSnapshot:
    return _service().lock(org_id, project_id, period_start, period_end, actor_id, overrides)


def unlock_invoice_basis(
    org_id: str,
    project_id: str,
    period_start: str | date,
    period_end: str | date,
    actor_id: str,
    reason: str,
) -> InvoiceBasisSnapshot:
    return _service().unlock(org_id, project_id, period_start, period_end, actor_id, reason)


def update_invoice_basis_header(
    org_id: str,
    project_id: str,
    period_start: str | date,
    period_end: str | date,
    changes: Mapping[str, Any],
    actor_id: str | None = None,
) -> InvoiceBasisSnapshot:
    return _service().update_header(
        org_id, project_id, period_start, period_end, changes, actor_id
    )


def update_invoice_basis_line(
    org_id: str,
    project_id: str,
    period_start: str | date,
    period_end: str | date,
    line_id: str,
    changes: Mapping[str, Any],
    actor_id: str | None = None,
) -> InvoiceBasisSnapshot:
    return _service().update_line(
        org_id, project_id, period_start, period_end, line_id, changes, actor_id
    )
