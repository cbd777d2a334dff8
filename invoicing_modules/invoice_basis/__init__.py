"""
Invoice Basis Module.

Builds one invoice basis per (org, project, period) from approved work and
carries it through lock / unlock / header and line edits.
"""

from invoicing_modules.invoice_basis.models import BillingPeriod, InvoiceBasisSnapshot
from invoicing_modules.invoice_basis.service import InvoiceBasisService
from invoicing_modules.invoice_basis.writer import SnapshotMetadata, SnapshotWriter

__all__ = [
    "BillingPeriod",
    "InvoiceBasisService",
    "InvoiceBasisSnapshot",
    "SnapshotMetadata",
    "SnapshotWriter",
]
