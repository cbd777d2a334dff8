"""
Source Store ORM Models (``invoicing_modules.sources.orm``).

Responsibility
--------------
SQLAlchemy models for the tables the invoice basis is aggregated from:
projects and customers, rate holders (memberships, employees,
subcontractors), and the six billable/narrative stores (time entries,
materials, expenses, mileage, change orders, diary entries).

These tables are owned by the field-reporting side of the product; the
invoicing pipeline only reads them.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``invoicing_kernel.db.base``.
MUST NOT be imported by ``invoicing_kernel``.
"""

import datetime as dt
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from invoicing_kernel.db.base import TrackedBase

APPROVED_STATUS = "approved"


# ---------------------------------------------------------------------------
# 1. Projects and customers
# ---------------------------------------------------------------------------


class ProjectModel(TrackedBase):
    """A construction project; the unit an invoice basis is built for."""

    __tablename__ = "projects"

    __table_args__ = (Index("idx_projects_org_id", "org_id"),)

    org_id: Mapped[UUID] = mapped_column(nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    project_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    site_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    customer_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("customers.id"), nullable=True
    )

    def __repr__(self) -> str:
        return f"<ProjectModel {self.project_number or self.id}: {self.name}>"


class CustomerModel(TrackedBase):
    """
    Customer register entry.

    ``type`` is ``COMPANY`` or ``PRIVATE``; private customers are named by
    first/last name and identified by personal identity number.
    """

    __tablename__ = "customers"

    __table_args__ = (Index("idx_customers_org_id", "org_id"),)

    org_id: Mapped[UUID] = mapped_column(nullable=False)
    customer_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    type: Mapped[str] = mapped_column(String(20), default="COMPANY")
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    org_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    personal_identity_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    vat_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    invoice_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    invoice_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    phone_mobile: Mapped[str | None] = mapped_column(String(50), nullable=True)
    terms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    default_vat_rate: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    bankgiro: Mapped[str | None] = mapped_column(String(50), nullable=True)
    plusgiro: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    rot_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    invoice_address_street: Mapped[str | None] = mapped_column(String(255), nullable=True)
    invoice_address_zip: Mapped[str | None] = mapped_column(String(20), nullable=True)
    invoice_address_city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    invoice_address_country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    delivery_address_street: Mapped[str | None] = mapped_column(String(255), nullable=True)
    delivery_address_zip: Mapped[str | None] = mapped_column(String(20), nullable=True)
    delivery_address_city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    delivery_address_country: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<CustomerModel {self.customer_no}: {self.company_name or self.last_name}>"


# ---------------------------------------------------------------------------
# 2. Rate holders
# ---------------------------------------------------------------------------


class MembershipModel(TrackedBase):
    """Organization membership; carries the fallback hourly rate of a user."""

    __tablename__ = "memberships"

    __table_args__ = (Index("idx_memberships_org_user", "org_id", "user_id"),)

    org_id: Mapped[UUID] = mapped_column(nullable=False)
    user_id: Mapped[UUID] = mapped_column(nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="worker")
    hourly_rate_sek: Mapped[Decimal | None] = mapped_column(nullable=True)


class EmployeeModel(TrackedBase):
    __tablename__ = "employees"

    org_id: Mapped[UUID] = mapped_column(nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    hourly_rate_sek: Mapped[Decimal | None] = mapped_column(nullable=True)


class SubcontractorModel(TrackedBase):
    __tablename__ = "subcontractors"

    org_id: Mapped[UUID] = mapped_column(nullable=False)
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    hourly_rate_sek: Mapped[Decimal | None] = mapped_column(nullable=True)


# ---------------------------------------------------------------------------
# 3. Billable stores
# ---------------------------------------------------------------------------


class PhaseModel(TrackedBase):
    __tablename__ = "phases"

    org_id: Mapped[UUID] = mapped_column(nullable=False)
    project_id: Mapped[UUID] = mapped_column(ForeignKey("projects.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class TimeEntryModel(TrackedBase):
    """Reported working time; billed in hours from ``duration_min``."""

    __tablename__ = "time_entries"

    __table_args__ = (
        Index("idx_time_entries_project_start", "org_id", "project_id", "start_at"),
    )

    org_id: Mapped[UUID] = mapped_column(nullable=False)
    project_id: Mapped[UUID] = mapped_column(ForeignKey("projects.id"), nullable=False)
    user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    employee_id: Mapped[UUID | None] = mapped_column(ForeignKey("employees.id"), nullable=True)
    subcontractor_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("subcontractors.id"), nullable=True
    )
    phase_id: Mapped[UUID | None] = mapped_column(ForeignKey("phases.id"), nullable=True)
    task_label: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_at: Mapped[dt.datetime] = mapped_column(nullable=False)
    duration_min: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="draft")

    phase: Mapped[PhaseModel | None] = relationship(lazy="joined")


class AtaModel(TrackedBase):
    """
    Change order (ÄTA).

    ``billing_type`` is ``FAST`` (fixed price) or ``LOPANDE`` (running,
    qty x unit price).  ``materials_amount_sek`` bundles the materials and
    expenses linked to this change order.
    """

    __tablename__ = "ata"

    __table_args__ = (
        Index("idx_ata_project_created", "org_id", "project_id", "created_at"),
    )

    org_id: Mapped[UUID] = mapped_column(nullable=False)
    project_id: Mapped[UUID] = mapped_column(ForeignKey("projects.id"), nullable=False)
    ata_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    qty: Mapped[Decimal | None] = mapped_column(nullable=True)
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    unit_price_sek: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_sek: Mapped[Decimal | None] = mapped_column(nullable=True)
    fixed_amount_sek: Mapped[Decimal | None] = mapped_column(nullable=True)
    materials_amount_sek: Mapped[Decimal | None] = mapped_column(nullable=True)
    billing_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="draft")
    approved_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)


class MaterialModel(TrackedBase):
    __tablename__ = "materials"

    __table_args__ = (
        Index("idx_materials_project_created", "org_id", "project_id", "created_at"),
    )

    org_id: Mapped[UUID] = mapped_column(nullable=False)
    project_id: Mapped[UUID] = mapped_column(ForeignKey("projects.id"), nullable=False)
    ata_id: Mapped[UUID | None] = mapped_column(ForeignKey("ata.id"), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    qty: Mapped[Decimal | None] = mapped_column(nullable=True)
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    unit_price_sek: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_sek: Mapped[Decimal | None] = mapped_column(nullable=True)
    photo_urls: Mapped[list | None] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="draft")
    approved_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)


class ExpenseModel(TrackedBase):
    """Out-of-pocket expense.  ``vat`` is tri-state: None means VAT applies."""

    __tablename__ = "expenses"

    __table_args__ = (
        Index("idx_expenses_project_date", "org_id", "project_id", "date"),
    )

    org_id: Mapped[UUID] = mapped_column(nullable=False)
    project_id: Mapped[UUID] = mapped_column(ForeignKey("projects.id"), nullable=False)
    ata_id: Mapped[UUID | None] = mapped_column(ForeignKey("ata.id"), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    amount_sek: Mapped[Decimal | None] = mapped_column(nullable=True)
    vat: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    photo_urls: Mapped[list | None] = mapped_column(JSON, nullable=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="draft")
    approved_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)


class MileageModel(TrackedBase):
    __tablename__ = "mileage"

    __table_args__ = (
        Index("idx_mileage_project_date", "org_id", "project_id", "date"),
    )

    org_id: Mapped[UUID] = mapped_column(nullable=False)
    project_id: Mapped[UUID] = mapped_column(ForeignKey("projects.id"), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    km: Mapped[Decimal | None] = mapped_column(nullable=True)
    rate_per_km_sek: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_sek: Mapped[Decimal | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="draft")


class DiaryEntryModel(TrackedBase):
    """Site diary (dagbok) entry.  Narrative only; never needs approval."""

    __tablename__ = "diary_entries"

    __table_args__ = (
        Index("idx_diary_entries_project_date", "org_id", "project_id", "date"),
    )

    org_id: Mapped[UUID] = mapped_column(nullable=False)
    project_id: Mapped[UUID] = mapped_column(ForeignKey("projects.id"), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    work_performed: Mapped[str | None] = mapped_column(Text, nullable=True)
    obstacles: Mapped[str | None] = mapped_column(Text, nullable=True)
    deliveries: Mapped[str | None] = mapped_column(Text, nullable=True)
    visitors: Mapped[str | None] = mapped_column(Text, nullable=True)
    crew_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    weather: Mapped[str | None] = mapped_column(String(100), nullable=True)
    temperature_c: Mapped[Decimal | None] = mapped_column(Numeric(5, 1), nullable=True)
    signature_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    safety_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
