"""Pure helper functions for the invoice basis module."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from invoicing_config.schema import InvoiceBasisConfig
from invoicing_kernel.db.types import decimal_to_str
from invoicing_kernel.domain.records import CustomerRecord, ProjectRecord
from invoicing_kernel.utils.hashing import hash_payload
from invoicing_modules.invoice_basis.writer import SnapshotMetadata

DEFAULT_COUNTRY = "Sverige"


def add_days(day: date, days: int | None) -> date:
    """``day`` plus ``days`` calendar days (None counts as zero)."""
    return day + timedelta(days=int(days or 0))


def invoice_address(customer: CustomerRecord) -> dict[str, Any] | None:
    """Billing address block, or None when the customer has no street."""
    if not customer.invoice_address_street:
        return None
    return {
        "street": customer.invoice_address_street,
        "zip": customer.invoice_address_zip or None,
        "city": customer.invoice_address_city or None,
        "country": customer.invoice_address_country or DEFAULT_COUNTRY,
        "name": customer.display_name,
        "org_no": customer.identity_no,
        "email": customer.invoice_email or None,
        "phone": customer.phone_mobile or None,
    }


def delivery_address(customer: CustomerRecord) -> dict[str, Any] | None:
    if not customer.delivery_address_street:
        return None
    return {
        "street": customer.delivery_address_street,
        "zip": customer.delivery_address_zip or None,
        "city": customer.delivery_address_city or None,
        "country": customer.delivery_address_country or DEFAULT_COUNTRY,
    }


def worksite_address(project: ProjectRecord) -> dict[str, Any] | None:
    if not project.site_address:
        return None
    return {"address": project.site_address, "project_name": project.name}


def customer_snapshot(
    customer: CustomerRecord,
    snapshot_date: date,
    billing: dict[str, Any] | None,
    delivery: dict[str, Any] | None,
) -> dict[str, Any]:
    """Customer data frozen onto the invoice basis for audit."""
    return {
        "customer_id": customer.id,
        "customer_no": customer.customer_no,
        "type": customer.type,
        "name": customer.display_name,
        "org_no": customer.identity_no,
        "vat_no": customer.vat_no,
        "invoice_email": customer.invoice_email,
        "invoice_method": customer.invoice_method,
        "terms": customer.terms,
        "default_vat_rate": (
            decimal_to_str(customer.default_vat_rate)
            if customer.default_vat_rate is not None
            else None
        ),
        "bankgiro": customer.bankgiro,
        "plusgiro": customer.plusgiro,
        "reference": customer.reference,
        "invoice_address": billing,
        "delivery_address": delivery,
        "snapshot_date": snapshot_date.isoformat(),
    }


def build_metadata(
    project: ProjectRecord,
    customer: CustomerRecord | None,
    config: InvoiceBasisConfig,
    today: date,
) -> SnapshotMetadata:
    """Header fields a refresh derives from the project and its customer."""
    worksite = worksite_address(project)
    if customer is None:
        return SnapshotMetadata(
            customer_id=project.customer_id,
            payment_terms_days=config.payment_terms_days,
            currency=config.currency,
            fx_rate=config.fx_rate,
            worksite_address_json=worksite,
        )

    billing = invoice_address(customer)
    delivery = delivery_address(customer)
    terms = customer.terms if customer.terms is not None else config.payment_terms_days
    return SnapshotMetadata(
        customer_id=project.customer_id,
        payment_terms_days=terms,
        currency=config.currency,
        fx_rate=config.fx_rate,
        your_ref=customer.reference or None,
        rot_rut_flag=bool(customer.rot_enabled),
        worksite_address_json=worksite,
        invoice_address_json=billing,
        delivery_address_json=delivery,
        customer_snapshot=customer_snapshot(customer, today, billing, delivery),
    )


def signature_payload(
    *,
    project_id: str,
    period_start: date,
    period_end: date,
    invoice_series: str | None,
    invoice_number: str,
    invoice_date: date,
    due_date: date,
    currency: str,
    lines: list[dict[str, Any]],
    totals: dict[str, Any],
    reverse_charge_building: bool,
    rot_rut_flag: bool,
) -> dict[str, Any]:
    return {
        "project_id": project_id,
        "period_start": period_start.isoformat(),
        "period_end": period_end.isoformat(),
        "invoice_series": invoice_series,
        "invoice_number": invoice_number,
        "invoice_date": invoice_date.isoformat(),
        "due_date": due_date.isoformat(),
        "currency": currency,
        "lines": lines,
        "totals": totals,
        "reverse_charge_building": reverse_charge_building,
        "rot_rut_flag": rot_rut_flag,
    }


def compute_hash_signature(payload: dict[str, Any]) -> str:
    """SHA-256 hex digest of the canonical JSON form of ``payload``."""
    return hash_payload(payload)
