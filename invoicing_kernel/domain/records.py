"""
Source records -- immutable snapshots of the rows read for one refresh.

Responsibility:
    The selector layer converts ORM rows into these DTOs at the data-access
    boundary so the normalizer never touches a session or a lazy relation.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.

Numeric fields are passed through as read (Decimal, int or None).  The
normalizer validates them per record and skips records it cannot price.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class ProjectRecord:
    id: str
    org_id: str
    name: str | None = None
    project_number: str | None = None
    site_address: str | None = None
    customer_id: str | None = None

    @property
    def dimension(self) -> str:
        """Value used for the ``project`` line dimension."""
        return self.project_number if self.project_number is not None else self.id


@dataclass(frozen=True)
class CustomerRecord:
    id: str
    customer_no: str | None = None
    type: str | None = None
    company_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    org_no: str | None = None
    personal_identity_no: str | None = None
    vat_no: str | None = None
    invoice_email: str | None = None
    invoice_method: str | None = None
    phone_mobile: str | None = None
    terms: int | None = None
    default_vat_rate: Decimal | None = None
    bankgiro: str | None = None
    plusgiro: str | None = None
    reference: str | None = None
    rot_enabled: bool = False
    invoice_address_street: str | None = None
    invoice_address_zip: str | None = None
    invoice_address_city: str | None = None
    invoice_address_country: str | None = None
    delivery_address_street: str | None = None
    delivery_address_zip: str | None = None
    delivery_address_city: str | None = None
    delivery_address_country: str | None = None

    @property
    def is_company(self) -> bool:
        return self.type == "COMPANY"

    @property
    def display_name(self) -> str | None:
        if self.is_company:
            return self.company_name
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or None

    @property
    def identity_no(self) -> str | None:
        return self.org_no if self.is_company else self.personal_identity_no


@dataclass(frozen=True)
class TimeEntryRecord:
    id: str
    user_id: str | None
    start_at: datetime
    duration_min: Any
    task_label: str | None = None
    employee_id: str | None = None
    subcontractor_id: str | None = None
    phase_name: str | None = None


@dataclass(frozen=True)
class MaterialRecord:
    id: str
    description: str | None
    qty: Any
    unit_price_sek: Any
    unit: str | None = None
    total_sek: Any = None
    photo_urls: Any = None
    created_at: datetime | None = None
    ata_id: str | None = None


@dataclass(frozen=True)
class ExpenseRecord:
    id: str
    description: str | None
    amount_sek: Any
    vat: bool | None = None
    category: str | None = None
    photo_urls: Any = None
    date: date | None = None
    ata_id: str | None = None


@dataclass(frozen=True)
class MileageRecord:
    id: str
    date: date
    km: Any
    rate_per_km_sek: Any
    total_sek: Any = None


@dataclass(frozen=True)
class AtaRecord:
    id: str
    ata_number: str | None = None
    title: str | None = None
    description: str | None = None
    qty: Any = None
    unit: str | None = None
    unit_price_sek: Any = None
    total_sek: Any = None
    fixed_amount_sek: Any = None
    materials_amount_sek: Any = None
    billing_type: str | None = None
    created_at: datetime | None = None
    approved_at: datetime | None = None


@dataclass(frozen=True)
class DiaryEntryRecord:
    id: str
    date: date
    work_performed: str | None = None
    obstacles: str | None = None
    deliveries: str | None = None
    visitors: str | None = None
    crew_count: int | None = None
    weather: str | None = None
    temperature_c: Any = None
    signature_name: str | None = None
    safety_notes: str | None = None


@dataclass(frozen=True)
class RateTable:
    """Hourly rates keyed by employee id, subcontractor id and user id."""

    employee_rates: dict[str, Decimal] = field(default_factory=dict)
    subcontractor_rates: dict[str, Decimal] = field(default_factory=dict)
    membership_rates: dict[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class SourceBundle:
    """Everything read for one (org, project, period) refresh."""

    project: ProjectRecord
    customer: CustomerRecord | None = None
    time_entries: tuple[TimeEntryRecord, ...] = ()
    materials: tuple[MaterialRecord, ...] = ()
    expenses: tuple[ExpenseRecord, ...] = ()
    mileage: tuple[MileageRecord, ...] = ()
    atas: tuple[AtaRecord, ...] = ()
    diary_entries: tuple[DiaryEntryRecord, ...] = ()
    rates: RateTable = field(default_factory=RateTable)
