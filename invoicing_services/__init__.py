"""
invoicing_services -- Package init and public API.

Responsibility:
    Orchestration above the invoice basis module: the library entry points
    and the approval-triggered refresh scheduler.

Architecture position:
    Services -- stateful orchestration over modules, engines and kernel.

    Dependency direction:
        invoicing_services/ -> invoicing_modules/ (allowed)
        invoicing_services/ -> invoicing_engines/ (allowed)
        invoicing_modules/  -> invoicing_services/ (FORBIDDEN)
        invoicing_kernel/   -> invoicing_services/ (FORBIDDEN)
"""

from invoicing_services.jobs import (
    get_invoice_basis,
    lock_invoice_basis,
    refresh_invoice_basis,
    refresh_invoice_basis_for_approvals,
    run_approval_refresh,
    unlock_invoice_basis,
    update_invoice_basis_header,
    update_invoice_basis_line,
)
from invoicing_services.refresh_scheduler import (
    ApprovedItem,
    BatchSummary,
    KeyFailure,
    RefreshKey,
    RefreshScheduler,
    group_refresh_keys,
)

__all__ = [
    "ApprovedItem",
    "BatchSummary",
    "KeyFailure",
    "RefreshKey",
    "RefreshScheduler",
    "get_invoice_basis",
    "group_refresh_keys",
    "lock_invoice_basis",
    "refresh_invoice_basis",
    "refresh_invoice_basis_for_approvals",
    "run_approval_refresh",
    "unlock_invoice_basis",
    "update_invoice_basis_header",
    "update_invoice_basis_line",
]
