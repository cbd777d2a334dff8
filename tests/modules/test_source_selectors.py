"""
Tests for SourceSelector against a real database.

Covers approval filtering, period bounds for timestamp and date sources,
change-order-linked exclusion, diary reads regardless of approval,
organization scoping and hourly rate lookup.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from invoicing_modules.invoice_basis.models import BillingPeriod
from invoicing_modules.sources.selectors import SourceSelector, first_or_none
from tests.conftest import utc

PERIOD = BillingPeriod.parse("2025-03-03", "2025-03-09")


@pytest.fixture
def selector(session):
    return SourceSelector(session)


@pytest.fixture
def project(seed):
    return seed.project(customer=seed.customer())


class TestFirstOrNone:
    @pytest.mark.parametrize(
        "value,expected",
        [(None, None), ([], None), ([1, 2], 1), ((3,), 3), ("row", "row")],
    )
    def test_normalizes_relation_shapes(self, value, expected):
        assert first_or_none(value) == expected


class TestProjectAndCustomer:
    def test_project_record(self, selector, seed, project):
        record = selector.get_project(seed.org_id, str(project.id))

        assert record.id == str(project.id)
        assert record.project_number == "P-42"
        assert record.customer_id is not None
        assert record.dimension == "P-42"

    def test_project_of_other_org_not_visible(self, selector, project):
        assert selector.get_project(str(uuid4()), str(project.id)) is None

    def test_customer_record(self, selector, seed, project):
        record = selector.get_customer(seed.org_id, project.customer_id)

        assert record.display_name == "Bygg AB"
        assert record.identity_no == "556677-8899"
        assert record.terms == 20
        assert record.rot_enabled is False

    def test_private_customer_name(self, selector, seed):
        customer = seed.customer(type="PRIVATE", first_name="Eva", last_name="Lind",
                                 personal_identity_no="19800101-1234")

        record = selector.get_customer(seed.org_id, str(customer.id))

        assert record.display_name == "Eva Lind"
        assert record.identity_no == "19800101-1234"


class TestApprovalAndPeriod:
    def test_only_approved_time_entries(self, selector, seed, project):
        approved = seed.time_entry(project, utc(2025, 3, 4))
        seed.time_entry(project, utc(2025, 3, 4), status="draft")

        rows = selector.time_entries(seed.org_id, str(project.id), PERIOD.range_start,
                                     PERIOD.range_end)

        assert [r.id for r in rows] == [str(approved.id)]

    def test_timestamp_bounds_are_inclusive_days(self, selector, seed, project):
        first = seed.material(project, utc(2025, 3, 3, 0, 0))
        last = seed.material(project, utc(2025, 3, 9, 23, 59))
        seed.material(project, utc(2025, 3, 2, 23, 59))
        seed.material(project, utc(2025, 3, 10, 0, 0))

        rows = selector.materials(seed.org_id, str(project.id), PERIOD.range_start,
                                  PERIOD.range_end)

        assert [r.id for r in rows] == [str(first.id), str(last.id)]

    def test_date_bounds(self, selector, seed, project):
        inside = seed.expense(project, date(2025, 3, 9))
        seed.expense(project, date(2025, 3, 10))
        seed.mileage(project, date(2025, 3, 2))
        trip = seed.mileage(project, date(2025, 3, 3))

        expenses = selector.expenses(seed.org_id, str(project.id), PERIOD.start, PERIOD.end)
        mileage = selector.mileage(seed.org_id, str(project.id), PERIOD.start, PERIOD.end)

        assert [r.id for r in expenses] == [str(inside.id)]
        assert [r.id for r in mileage] == [str(trip.id)]
        assert mileage[0].km == Decimal("42")

    def test_rows_ordered_by_period_field(self, selector, seed, project):
        late = seed.time_entry(project, utc(2025, 3, 6))
        early = seed.time_entry(project, utc(2025, 3, 4))

        rows = selector.time_entries(seed.org_id, str(project.id), PERIOD.range_start,
                                     PERIOD.range_end)

        assert [r.id for r in rows] == [str(early.id), str(late.id)]

    def test_change_order_linked_rows_excluded(self, selector, seed, project):
        ata = seed.ata(project, utc(2025, 3, 4))
        seed.material(project, utc(2025, 3, 4), ata_id=ata.id)
        seed.expense(project, date(2025, 3, 4), ata_id=ata.id)
        free = seed.material(project, utc(2025, 3, 5))

        materials = selector.materials(seed.org_id, str(project.id), PERIOD.range_start,
                                       PERIOD.range_end)
        expenses = selector.expenses(seed.org_id, str(project.id), PERIOD.start, PERIOD.end)
        atas = selector.atas(seed.org_id, str(project.id), PERIOD.range_start, PERIOD.range_end)

        assert [r.id for r in materials] == [str(free.id)]
        assert expenses == ()
        assert [r.id for r in atas] == [str(ata.id)]
        assert atas[0].billing_type == "FAST"

    def test_diary_read_without_approval(self, selector, seed, project):
        entry = seed.diary(project, date(2025, 3, 5))
        seed.diary(project, date(2025, 3, 11))

        rows = selector.diary_entries(seed.org_id, str(project.id), PERIOD.start, PERIOD.end)

        assert [r.id for r in rows] == [str(entry.id)]
        assert rows[0].crew_count == 3

    def test_other_org_rows_not_visible(self, selector, seed, project):
        seed.time_entry(project, utc(2025, 3, 4))

        rows = selector.time_entries(str(uuid4()), str(project.id), PERIOD.range_start,
                                     PERIOD.range_end)

        assert rows == ()

    def test_time_entry_carries_phase_name(self, selector, seed, project):
        phase = seed.phase(project)
        seed.time_entry(project, utc(2025, 3, 4), phase_id=phase.id)

        rows = selector.time_entries(seed.org_id, str(project.id), PERIOD.range_start,
                                     PERIOD.range_end)

        assert rows[0].phase_name == "Stomme"


class TestRateTable:
    def test_rates_for_entries(self, selector, seed, project):
        employee = seed.employee("650")
        subcontractor = seed.subcontractor("800")
        user_id = uuid4()
        seed.membership(user_id, "500")
        seed.time_entry(project, utc(2025, 3, 4), employee_id=employee.id)
        seed.time_entry(project, utc(2025, 3, 5), subcontractor_id=subcontractor.id)
        seed.time_entry(project, utc(2025, 3, 6), user_id=user_id)
        entries = selector.time_entries(seed.org_id, str(project.id), PERIOD.range_start,
                                        PERIOD.range_end)

        rates = selector.rate_table(seed.org_id, entries)

        assert rates.employee_rates == {str(employee.id): Decimal("650")}
        assert rates.subcontractor_rates == {str(subcontractor.id): Decimal("800")}
        assert rates.membership_rates[str(user_id)] == Decimal("500")

    def test_no_entries_no_queries(self, selector, seed):
        rates = selector.rate_table(seed.org_id, [])

        assert rates.employee_rates == {}
        assert rates.membership_rates == {}
