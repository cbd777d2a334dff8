"""
Source Selectors (``invoicing_modules.sources.selectors``).

Responsibility
--------------
Read-only, org-, project-, period- and approval-scoped queries over the
source stores.  Every method returns frozen DTOs from
``invoicing_kernel.domain.records``; ORM instances never leave this module.

Period semantics
----------------
* Time entries, materials and change orders filter on a timestamp
  (``start_at`` / ``created_at``) over ``[start 00:00:00, end 23:59:59.999]`` UTC.
* Expenses and mileage filter on a plain ``date`` over ``[start, end]``.
* Diary entries are read for the whole period regardless of approval.
* Materials and expenses linked to a change order are excluded; they are
  billed through the change order's bundled materials amount.

Rows are ordered by their period field, then id, so repeated refreshes
produce identical line order.

Architecture position
---------------------
**Modules layer** -- read side.  The caller owns the session.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from invoicing_kernel.db.types import ZERO
from invoicing_kernel.domain.records import (
    AtaRecord,
    CustomerRecord,
    DiaryEntryRecord,
    ExpenseRecord,
    MaterialRecord,
    MileageRecord,
    ProjectRecord,
    RateTable,
    TimeEntryRecord,
)
from invoicing_modules.sources.orm import (
    APPROVED_STATUS,
    AtaModel,
    CustomerModel,
    DiaryEntryModel,
    EmployeeModel,
    ExpenseModel,
    MaterialModel,
    MembershipModel,
    MileageModel,
    ProjectModel,
    SubcontractorModel,
    TimeEntryModel,
)


def first_or_none(value: Any) -> Any:
    """
    Normalize a relation that may be a single row, a list of rows or None.

    Returns the row itself, the first element of a non-empty sequence, or None.
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _id(value: Any) -> str | None:
    return str(value) if value is not None else None


def _rate(value: Decimal | None) -> Decimal:
    return value if value is not None else ZERO


class SourceSelector:
    """
    Read-only queries over the source stores for one organization.

    Contract:
        Accepts a Session from the caller and MUST NOT add, flush or commit.
    """

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Project / customer
    # ------------------------------------------------------------------

    def get_project(self, org_id: str, project_id: str) -> ProjectRecord | None:
        rows = self.session.execute(
            select(ProjectModel).where(
                ProjectModel.id == project_id,
                ProjectModel.org_id == org_id,
            )
        ).scalars().all()
        project = first_or_none(rows)
        if project is None:
            return None
        return ProjectRecord(
            id=str(project.id),
            org_id=str(project.org_id),
            name=project.name,
            project_number=project.project_number,
            site_address=project.site_address,
            customer_id=_id(project.customer_id),
        )

    def get_customer(self, org_id: str, customer_id: str) -> CustomerRecord | None:
        rows = self.session.execute(
            select(CustomerModel).where(
                CustomerModel.id == customer_id,
                CustomerModel.org_id == org_id,
            )
        ).scalars().all()
        customer = first_or_none(rows)
        if customer is None:
            return None
        return CustomerRecord(
            id=str(customer.id),
            customer_no=customer.customer_no,
            type=customer.type,
            company_name=customer.company_name,
            first_name=customer.first_name,
            last_name=customer.last_name,
            org_no=customer.org_no,
            personal_identity_no=customer.personal_identity_no,
            vat_no=customer.vat_no,
            invoice_email=customer.invoice_email,
            invoice_method=customer.invoice_method,
            phone_mobile=customer.phone_mobile,
            terms=customer.terms,
            default_vat_rate=customer.default_vat_rate,
            bankgiro=customer.bankgiro,
            plusgiro=customer.plusgiro,
            reference=customer.reference,
            rot_enabled=bool(customer.rot_enabled),
            invoice_address_street=customer.invoice_address_street,
            invoice_address_zip=customer.invoice_address_zip,
            invoice_address_city=customer.invoice_address_city,
            invoice_address_country=customer.invoice_address_country,
            delivery_address_street=customer.delivery_address_street,
            delivery_address_zip=customer.delivery_address_zip,
            delivery_address_city=customer.delivery_address_city,
            delivery_address_country=customer.delivery_address_country,
        )

    # ------------------------------------------------------------------
    # Six source stores
    # ------------------------------------------------------------------

    def time_entries(
        self,
        org_id: str,
        project_id: str,
        range_start: datetime,
        range_end: datetime,
    ) -> tuple[TimeEntryRecord, ...]:
        rows = self.session.execute(
            select(TimeEntryModel)
            .where(
                TimeEntryModel.org_id == org_id,
                TimeEntryModel.project_id == project_id,
                TimeEntryModel.status == APPROVED_STATUS,
                TimeEntryModel.start_at >= range_start,
                TimeEntryModel.start_at <= range_end,
            )
            .order_by(TimeEntryModel.start_at, TimeEntryModel.id)
        ).unique().scalars().all()

        records = []
        for row in rows:
            phase = first_or_none(row.phase)
            records.append(
                TimeEntryRecord(
                    id=str(row.id),
                    user_id=_id(row.user_id),
                    start_at=row.start_at,
                    duration_min=row.duration_min,
                    task_label=row.task_label,
                    employee_id=_id(row.employee_id),
                    subcontractor_id=_id(row.subcontractor_id),
                    phase_name=phase.name if phase is not None else None,
                )
            )
        return tuple(records)

    def materials(
        self,
        org_id: str,
        project_id: str,
        range_start: datetime,
        range_end: datetime,
    ) -> tuple[MaterialRecord, ...]:
        rows = self.session.execute(
            select(MaterialModel)
            .where(
                MaterialModel.org_id == org_id,
                MaterialModel.project_id == project_id,
                MaterialModel.status == APPROVED_STATUS,
                MaterialModel.ata_id.is_(None),
                MaterialModel.created_at >= range_start,
                MaterialModel.created_at <= range_end,
            )
            .order_by(MaterialModel.created_at, MaterialModel.id)
        ).scalars().all()
        return tuple(
            MaterialRecord(
                id=str(row.id),
                description=row.description,
                qty=row.qty,
                unit_price_sek=row.unit_price_sek,
                unit=row.unit,
                total_sek=row.total_sek,
                photo_urls=row.photo_urls,
                created_at=row.created_at,
                ata_id=_id(row.ata_id),
            )
            for row in rows
        )

    def expenses(
        self,
        org_id: str,
        project_id: str,
        start: date,
        end: date,
    ) -> tuple[ExpenseRecord, ...]:
        rows = self.session.execute(
            select(ExpenseModel)
            .where(
                ExpenseModel.org_id == org_id,
                ExpenseModel.project_id == project_id,
                ExpenseModel.status == APPROVED_STATUS,
                ExpenseModel.ata_id.is_(None),
                ExpenseModel.date >= start,
                ExpenseModel.date <= end,
            )
            .order_by(ExpenseModel.date, ExpenseModel.id)
        ).scalars().all()
        return tuple(
            ExpenseRecord(
                id=str(row.id),
                description=row.description,
                amount_sek=row.amount_sek,
                vat=row.vat,
                category=row.category,
                photo_urls=row.photo_urls,
                date=row.date,
                ata_id=_id(row.ata_id),
            )
            for row in rows
        )

    def mileage(
        self,
        org_id: str,
        project_id: str,
        start: date,
        end: date,
    ) -> tuple[MileageRecord, ...]:
        rows = self.session.execute(
            select(MileageModel)
            .where(
                MileageModel.org_id == org_id,
                MileageModel.project_id == project_id,
                MileageModel.status == APPROVED_STATUS,
                MileageModel.date >= start,
                MileageModel.date <= end,
            )
            .order_by(MileageModel.date, MileageModel.id)
        ).scalars().all()
        return tuple(
            MileageRecord(
                id=str(row.id),
                date=row.date,
                km=row.km,
                rate_per_km_sek=row.rate_per_km_sek,
                total_sek=row.total_sek,
            )
            for row in rows
        )

    def atas(
        self,
        org_id: str,
        project_id: str,
        range_start: datetime,
        range_end: datetime,
    ) -> tuple[AtaRecord, ...]:
        rows = self.session.execute(
            select(AtaModel)
            .where(
                AtaModel.org_id == org_id,
                AtaModel.project_id == project_id,
                AtaModel.status == APPROVED_STATUS,
                AtaModel.created_at >= range_start,
                AtaModel.created_at <= range_end,
            )
            .order_by(AtaModel.created_at, AtaModel.id)
        ).scalars().all()
        return tuple(
            AtaRecord(
                id=str(row.id),
                ata_number=row.ata_number,
                title=row.title,
                description=row.description,
                qty=row.qty,
                unit=row.unit,
                unit_price_sek=row.unit_price_sek,
                total_sek=row.total_sek,
                fixed_amount_sek=row.fixed_amount_sek,
                materials_amount_sek=row.materials_amount_sek,
                billing_type=row.billing_type,
                created_at=row.created_at,
                approved_at=row.approved_at,
            )
            for row in rows
        )

    def diary_entries(
        self,
        org_id: str,
        project_id: str,
        start: date,
        end: date,
    ) -> tuple[DiaryEntryRecord, ...]:
        rows = self.session.execute(
            select(DiaryEntryModel)
            .where(
                DiaryEntryModel.org_id == org_id,
                DiaryEntryModel.project_id == project_id,
                DiaryEntryModel.date >= start,
                DiaryEntryModel.date <= end,
            )
            .order_by(DiaryEntryModel.date, DiaryEntryModel.id)
        ).scalars().all()
        return tuple(
            DiaryEntryRecord(
                id=str(row.id),
                date=row.date,
                work_performed=row.work_performed,
                obstacles=row.obstacles,
                deliveries=row.deliveries,
                visitors=row.visitors,
                crew_count=row.crew_count,
                weather=row.weather,
                temperature_c=row.temperature_c,
                signature_name=row.signature_name,
                safety_notes=row.safety_notes,
            )
            for row in rows
        )

    # ------------------------------------------------------------------
    # Rates
    # ------------------------------------------------------------------

    def rate_table(self, org_id: str, entries: Iterable[TimeEntryRecord]) -> RateTable:
        """Hourly rates for every employee, subcontractor and user in ``entries``."""
        entries = list(entries)
        employee_ids = sorted({e.employee_id for e in entries if e.employee_id})
        subcontractor_ids = sorted({e.subcontractor_id for e in entries if e.subcontractor_id})
        user_ids = sorted({e.user_id for e in entries if e.user_id})

        return RateTable(
            employee_rates=self._rates(EmployeeModel, EmployeeModel.id, org_id, employee_ids),
            subcontractor_rates=self._rates(
                SubcontractorModel, SubcontractorModel.id, org_id, subcontractor_ids
            ),
            membership_rates=self._rates(
                MembershipModel, MembershipModel.user_id, org_id, user_ids
            ),
        )

    def _rates(self, model, key_column, org_id: str, ids: Sequence[str]) -> dict[str, Decimal]:
        if not ids:
            return {}
        rows = self.session.execute(
            select(key_column, model.hourly_rate_sek).where(
                model.org_id == org_id,
                key_column.in_(ids),
            )
        ).all()
        return {str(key): _rate(rate) for key, rate in rows}
