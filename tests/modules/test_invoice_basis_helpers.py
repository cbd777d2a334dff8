"""
Tests for the pure pieces of the invoice basis module: billing periods,
header metadata derivation and edit parsing.
"""

from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from invoicing_kernel.domain.lines import InvoiceBasisLine, LineType, SourceRef
from invoicing_kernel.domain.records import CustomerRecord, ProjectRecord
from invoicing_kernel.exceptions import InvalidFieldError, InvalidPeriodError
from invoicing_modules.invoice_basis.edits import apply_line_changes, parse_header_changes
from invoicing_modules.invoice_basis.helpers import (
    add_days,
    build_metadata,
    delivery_address,
    invoice_address,
)
from invoicing_modules.invoice_basis.models import BillingPeriod, parse_iso_date

PROJECT = ProjectRecord(
    id="p-1",
    org_id="o-1",
    name="Villa Solsidan",
    project_number="P-42",
    site_address="Solvägen 3",
    customer_id="c-1",
)
COMPANY = CustomerRecord(
    id="c-1",
    type="COMPANY",
    company_name="Bygg AB",
    org_no="556677-8899",
    invoice_email="faktura@bygg.se",
    terms=20,
    default_vat_rate=Decimal("25.00"),
    reference="Anna",
    invoice_address_street="Storgatan 1",
    invoice_address_zip="111 22",
    invoice_address_city="Stockholm",
)


class TestBillingPeriod:
    def test_parse_strings(self):
        period = BillingPeriod.parse("2025-03-03", "2025-03-09")

        assert period.start == date(2025, 3, 3)
        assert str(period) == "2025-03-03..2025-03-09"

    def test_single_day_period(self):
        period = BillingPeriod.parse("2025-03-03", "2025-03-03")

        assert period.range_start == datetime(2025, 3, 3, tzinfo=timezone.utc)
        assert period.range_end == datetime(2025, 3, 3, 23, 59, 59, 999000, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "start,end",
        [
            ("2025-03-09", "2025-03-03"),
            ("20250303", "2025-03-09"),
            ("2025-03-03T00:00", "2025-03-09"),
            (datetime(2025, 3, 3), "2025-03-09"),
            (None, "2025-03-09"),
        ],
    )
    def test_rejected(self, start, end):
        with pytest.raises(InvalidPeriodError):
            BillingPeriod.parse(start, end)

    def test_parse_iso_date_rejects_impossible_dates(self):
        assert parse_iso_date("2024-02-29") == date(2024, 2, 29)
        assert parse_iso_date("2025-02-29") is None


class TestAddresses:
    def test_invoice_address_block(self):
        block = invoice_address(COMPANY)

        assert block == {
            "street": "Storgatan 1",
            "zip": "111 22",
            "city": "Stockholm",
            "country": "Sverige",
            "name": "Bygg AB",
            "org_no": "556677-8899",
            "email": "faktura@bygg.se",
            "phone": None,
        }

    def test_no_street_no_address(self):
        assert invoice_address(replace(COMPANY, invoice_address_street=None)) is None
        assert delivery_address(COMPANY) is None


class TestBuildMetadata:
    def test_from_customer(self, config):
        metadata = build_metadata(PROJECT, COMPANY, config, date(2025, 3, 10))

        assert metadata.customer_id == "c-1"
        assert metadata.payment_terms_days == 20
        assert metadata.your_ref == "Anna"
        assert metadata.worksite_address_json == {
            "address": "Solvägen 3",
            "project_name": "Villa Solsidan",
        }
        assert metadata.customer_snapshot["name"] == "Bygg AB"
        assert metadata.customer_snapshot["default_vat_rate"] == "25"
        assert metadata.customer_snapshot["snapshot_date"] == "2025-03-10"

    def test_customer_without_terms_uses_config(self, config):
        metadata = build_metadata(PROJECT, replace(COMPANY, terms=None), config, date(2025, 3, 10))

        assert metadata.payment_terms_days == 30

    def test_without_customer(self, config):
        metadata = build_metadata(PROJECT, None, config, date(2025, 3, 10))

        assert metadata.customer_id == "c-1"
        assert metadata.your_ref is None
        assert metadata.customer_snapshot is None
        assert metadata.currency == "SEK"

    def test_add_days(self):
        assert add_days(date(2025, 3, 10), 20) == date(2025, 3, 30)
        assert add_days(date(2025, 3, 10), None) == date(2025, 3, 10)


class TestParseHeaderChanges:
    def test_due_date_uses_current_terms(self):
        updates = parse_header_changes({"invoice_date": "2025-03-10"}, 15, 365)

        assert updates == {"invoice_date": date(2025, 3, 10), "due_date": date(2025, 3, 25)}

    def test_clearing_a_date(self):
        updates = parse_header_changes({"due_date": ""}, 30, 365)

        assert updates == {"due_date": None}

    def test_max_terms_configurable(self):
        with pytest.raises(InvalidFieldError):
            parse_header_changes({"payment_terms_days": 61}, 30, 60)


@pytest.fixture
def line():
    return InvoiceBasisLine(
        id="m-1",
        type=LineType.MATERIAL,
        source=SourceRef("materials", "m-1"),
        article_code="MAT",
        description="Skruv",
        unit="st",
        quantity=Decimal("3"),
        unit_price=Decimal("10.005"),
        vat_rate=Decimal("25"),
        vat_code="25",
        account="3051",
        dimensions={"project": "P-42", "cost_center": None},
    )


class TestApplyLineChanges:
    def test_numbers_rounded(self, line):
        edited = apply_line_changes(line, {"quantity": 2.345, "vat_rate": 12})

        assert edited.quantity == Decimal("2.35")
        assert edited.vat_rate == Decimal("12.00")

    def test_null_number_becomes_zero(self, line):
        assert apply_line_changes(line, {"discount": None}).discount == Decimal("0")

    def test_amount_uses_new_quantity(self, line):
        edited = apply_line_changes(line, {"quantity": 4, "amount": 100})

        assert edited.unit_price == Decimal("25.00")

    def test_null_description_becomes_empty(self, line):
        assert apply_line_changes(line, {"description": None}).description == ""

    def test_attachments_replaced(self, line):
        edited = apply_line_changes(line, {"attachments": ["a.jpg", "b.jpg"]})

        assert edited.attachments == ("a.jpg", "b.jpg")

    def test_untouched_fields_kept(self, line):
        edited = apply_line_changes(line, {"unit": "ask"})

        assert edited.unit == "ask"
        assert replace(edited, unit="st") == line

    def test_bool_is_not_a_number(self, line):
        with pytest.raises(InvalidFieldError):
            apply_line_changes(line, {"quantity": True})
