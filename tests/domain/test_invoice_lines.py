"""Tests for the invoice basis line and diary DTOs."""

from dataclasses import replace
from decimal import Decimal

import pytest

from invoicing_kernel.domain.lines import (
    AtaInfo,
    DiarySummary,
    InvoiceBasisLine,
    LineType,
    SourceRef,
    lines_payload,
)


@pytest.fixture
def ata_line():
    return InvoiceBasisLine(
        id="ata-1",
        type=LineType.ATA,
        source=SourceRef("ata", "ata-1"),
        article_code="ATA",
        description="ÄTA ÄTA-7: Extra fönster",
        unit=None,
        quantity=Decimal("1"),
        unit_price=Decimal("5000"),
        vat_rate=Decimal("25"),
        vat_code="25",
        account="3048",
        dimensions={"project": "P-42", "cost_center": None},
        attachments=("photo-1.jpg",),
        ata_info=AtaInfo(title="Extra fönster", ata_number="ÄTA-7"),
    )


class TestInvoiceBasisLine:
    def test_serialized_numbers_are_strings(self, ata_line):
        data = ata_line.to_dict()

        assert data["type"] == "ata"
        assert data["quantity"] == "1"
        assert data["unit_price"] == "5000"
        assert data["vat_rate"] == "25"
        assert data["discount"] == "0"
        assert data["source"] == {"table": "ata", "id": "ata-1"}
        assert data["ata_info"] == {"title": "Extra fönster", "ata_number": "ÄTA-7"}

    def test_from_dict_restores_line(self, ata_line):
        assert InvoiceBasisLine.from_dict(ata_line.to_dict()) == ata_line

    def test_ata_info_omitted_when_absent(self, ata_line):
        line = replace(ata_line, ata_info=None)

        assert "ata_info" not in line.to_dict()

    def test_from_dict_tolerates_missing_numbers(self):
        line = InvoiceBasisLine.from_dict(
            {"id": "d-1", "type": "diary", "source": {"table": "diary_entries", "id": "d-1"}}
        )

        assert line.is_diary
        assert line.quantity == Decimal("0")
        assert line.unit_price == Decimal("0")
        assert line.description == ""
        assert line.attachments == ()

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            InvoiceBasisLine.from_dict({"id": "x", "type": "bogus"})

    def test_lines_are_immutable(self, ata_line):
        with pytest.raises(AttributeError):
            ata_line.description = "changed"


class TestLinesPayload:
    def test_document_shape(self, ata_line):
        diary = DiarySummary(
            date="2025-03-04", raw="Reglat väggar", summary="Reglat väggar", line_ref="d-1"
        )

        payload = lines_payload([ata_line], [diary])

        assert set(payload) == {"lines", "diary"}
        assert payload["lines"][0]["id"] == "ata-1"
        assert DiarySummary.from_dict(payload["diary"][0]) == diary

    def test_empty_document(self):
        assert lines_payload([], []) == {"lines": [], "diary": []}
