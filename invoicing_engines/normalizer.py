"""
Line Normalizer - converts approved source records into invoice basis lines.

Pure calculation over a ``SourceBundle``: no sessions, no queries.  The
per-type article/account/VAT/unit defaults come from the injected
``InvoiceBasisConfig``; the clock is only consulted for change orders
that carry neither an approval nor a creation timestamp.

Line order is fixed: time, material, expense, mileage, change order
(ÄTA), diary.  Within a type, records keep the order the selectors
returned them in.

Fault isolation:
    A record with a missing or non-numeric value needed for pricing raises
    ``InvalidSourceValueError`` internally; the normalizer logs
    ``invoice_line_skipped`` and continues with the next record.

Usage:
    from invoicing_engines.normalizer import LineNormalizer

    normalized = LineNormalizer(config).normalize(bundle)
    normalized.lines   # tuple[InvoiceBasisLine, ...]
    normalized.diary   # tuple[DiarySummary, ...]
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Iterable, TypeVar

from invoicing_config.schema import InvoiceBasisConfig, TextLimits
from invoicing_engines.text import sanitize_text, truncate
from invoicing_kernel.db.types import ZERO, decimal_to_str, round_money, to_decimal
from invoicing_kernel.domain.clock import Clock, SystemClock
from invoicing_kernel.domain.lines import (
    AtaInfo,
    DiarySummary,
    InvoiceBasisLine,
    LineType,
    SourceRef,
)
from invoicing_kernel.domain.records import (
    AtaRecord,
    DiaryEntryRecord,
    ExpenseRecord,
    MaterialRecord,
    MileageRecord,
    RateTable,
    SourceBundle,
    TimeEntryRecord,
)
from invoicing_kernel.exceptions import InvalidSourceValueError
from invoicing_kernel.logging_config import get_logger

logger = get_logger("engines.normalizer")

R = TypeVar("R")

FIXED_BILLING = "FAST"
RUNNING_BILLING = "LOPANDE"

ATA_LABEL = "ÄTA"
DIARY_FALLBACK_TEXT = "Dagboksanteckning"
MATERIAL_COST_TEXT = "Materialkostnad"
DESCRIPTION_SEPARATOR = " – "
SUMMARY_SEPARATOR = " | "

_MINUTES_PER_HOUR = Decimal("60")
# Stored precision of derived hours; matches the Numeric(38, 9) columns.
_HOURS_PLACES = 9
_ONE = Decimal("1")


@dataclass(frozen=True)
class NormalizedBasis:
    """Normalizer output for one refresh."""

    lines: tuple[InvoiceBasisLine, ...]
    diary: tuple[DiarySummary, ...]
    skipped: tuple[str, ...] = ()


def _number(table: str, record_id: str, field: str, value: Any) -> Decimal:
    try:
        return to_decimal(value)
    except ValueError:
        raise InvalidSourceValueError(table, record_id, field, value) from None


def _optional_number(table: str, record_id: str, field: str, value: Any) -> Decimal:
    # Change-order amounts are optional; absent means zero.
    if value is None:
        return ZERO
    return _number(table, record_id, field, value)


def _attachments(photo_urls: Any) -> tuple[str, ...]:
    if not photo_urls:
        return ()
    if isinstance(photo_urls, (list, tuple)):
        return tuple(str(url) for url in photo_urls)
    return (str(photo_urls),)


def _utc_date(value: datetime) -> date:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


def _format_quantity(value: Any) -> str:
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return decimal_to_str(to_decimal(value))
    return sanitize_text(str(value))


def build_diary_summary(
    entry: DiaryEntryRecord,
    limits: TextLimits | None = None,
) -> tuple[str, str]:
    """
    Labelled summary and raw text for one diary entry.

    Returns:
        ``(summary, raw)``.  ``summary`` joins the non-empty labelled parts
        with `` | ``; without any part it falls back to the raw text and
        then to ``Dagboksanteckning``.
    """
    limits = limits or TextLimits()

    work = sanitize_text(entry.work_performed)
    obstacles = sanitize_text(entry.obstacles)
    deliveries = sanitize_text(entry.deliveries)
    visitors = sanitize_text(entry.visitors)
    weather = sanitize_text(entry.weather)
    signature = sanitize_text(entry.signature_name)

    crew = ""
    if (
        isinstance(entry.crew_count, int)
        and not isinstance(entry.crew_count, bool)
        and entry.crew_count > 0
    ):
        crew = f"Personalstyrka: {entry.crew_count}"
    temperature = ""
    if entry.temperature_c is not None:
        temperature = f"Temperatur: {_format_quantity(entry.temperature_c)}°C"

    parts: list[str] = []
    if work:
        parts.append(f"Arbete: {work}")
    if obstacles:
        parts.append(f"Hinder: {obstacles}")
    if deliveries:
        parts.append(f"Leveranser: {deliveries}")
    if visitors:
        parts.append(f"Besökare: {visitors}")
    if crew:
        parts.append(crew)
    weather_info = " ".join(p for p in (weather, temperature) if p)
    if weather_info:
        parts.append(f"Väder: {weather_info}")
    if signature:
        parts.append(f"Signatur: {signature}")

    raw_parts = [
        sanitize_text(value)
        for value in (
            entry.work_performed,
            entry.obstacles,
            entry.deliveries,
            entry.visitors,
            entry.safety_notes,
        )
    ]
    raw = truncate(" ".join(p for p in raw_parts if p).strip(), limits.diary_raw)

    if parts:
        return truncate(SUMMARY_SEPARATOR.join(parts), limits.diary_summary), raw
    return truncate(raw or DIARY_FALLBACK_TEXT, limits.diary_fallback), raw


class LineNormalizer:
    """
    Converts a ``SourceBundle`` into ordered lines and diary summaries.

    Contract:
        Stateless between calls; safe to share across threads.

    Guarantees:
        - Diary lines carry zero quantity, price and VAT rate.
        - A change order with both labor and material amounts yields two
          lines; the material line id is ``<id>-material``.
        - Materials and expenses linked to a change order never become
          lines of their own.
    """

    def __init__(self, config: InvoiceBasisConfig, clock: Clock | None = None):
        self._config = config
        self._limits = config.text_limits
        self._clock = clock or SystemClock()

    def normalize(self, bundle: SourceBundle) -> NormalizedBasis:
        dimensions = {"project": bundle.project.dimension, "cost_center": None}
        lines: list[InvoiceBasisLine] = []
        diary: list[DiarySummary] = []
        skipped: list[str] = []

        def run(table: str, records: Iterable[R], convert: Callable[[R], None]) -> None:
            for record in records:
                try:
                    convert(record)
                except InvalidSourceValueError as exc:
                    skipped.append(f"{table}/{exc.record_id}")
                    logger.warning(
                        "invoice_line_skipped",
                        extra={
                            "source_table": table,
                            "record_id": exc.record_id,
                            "field": exc.field,
                            "value": exc.value,
                        },
                    )

        run(
            "time_entries",
            bundle.time_entries,
            lambda r: lines.extend(self._time_line(r, bundle.rates, dimensions)),
        )
        run(
            "materials",
            (m for m in bundle.materials if m.ata_id is None),
            lambda r: lines.append(self._material_line(r, dimensions)),
        )
        run(
            "expenses",
            (e for e in bundle.expenses if e.ata_id is None),
            lambda r: lines.append(self._expense_line(r, dimensions)),
        )
        run(
            "mileage",
            bundle.mileage,
            lambda r: lines.append(self._mileage_line(r, dimensions)),
        )

        def ata(record: AtaRecord) -> None:
            ata_lines, summary = self._ata_lines(record, dimensions)
            lines.extend(ata_lines)
            if summary is not None:
                diary.append(summary)

        run("ata", bundle.atas, ata)

        for entry in sorted(bundle.diary_entries, key=lambda e: e.date):
            line, summary = self._diary_line(entry, dimensions)
            lines.append(line)
            diary.append(summary)

        diary.sort(key=lambda s: s.date)

        logger.debug(
            "invoice_basis_normalized",
            extra={
                "line_count": len(lines),
                "diary_count": len(diary),
                "skipped_count": len(skipped),
            },
        )
        return NormalizedBasis(lines=tuple(lines), diary=tuple(diary), skipped=tuple(skipped))

    # ------------------------------------------------------------------
    # Per-type conversion
    # ------------------------------------------------------------------

    def _time_line(
        self,
        entry: TimeEntryRecord,
        rates: RateTable,
        dimensions: dict[str, str | None],
    ) -> list[InvoiceBasisLine]:
        minutes = _number("time_entries", entry.id, "duration_min", entry.duration_min)
        hours = round_money(minutes / _MINUTES_PER_HOUR, _HOURS_PLACES)
        if hours <= ZERO:
            return []

        # Priority: employee rate > subcontractor rate > membership rate
        if entry.employee_id:
            rate = rates.employee_rates.get(entry.employee_id, ZERO)
        elif entry.subcontractor_id:
            rate = rates.subcontractor_rates.get(entry.subcontractor_id, ZERO)
        else:
            rate = rates.membership_rates.get(entry.user_id or "", ZERO)

        description = sanitize_text(entry.task_label)
        if not description:
            description = f"Arbete {_utc_date(entry.start_at).isoformat()}"
            if entry.phase_name:
                description += f" ({entry.phase_name})"

        cfg = self._config.defaults_for(LineType.TIME)
        return [
            InvoiceBasisLine(
                id=entry.id,
                type=LineType.TIME,
                source=SourceRef("time_entries", entry.id),
                article_code=cfg.article,
                description=truncate(description, self._limits.line_description),
                unit=cfg.unit,
                quantity=hours,
                unit_price=rate,
                vat_rate=cfg.default_vat_rate,
                vat_code=cfg.default_vat_code,
                account=cfg.account,
                dimensions=dict(dimensions),
            )
        ]

    def _material_line(
        self,
        material: MaterialRecord,
        dimensions: dict[str, str | None],
    ) -> InvoiceBasisLine:
        qty = _number("materials", material.id, "qty", material.qty)
        unit_price = _number("materials", material.id, "unit_price_sek", material.unit_price_sek)
        cfg = self._config.defaults_for(LineType.MATERIAL)
        return InvoiceBasisLine(
            id=material.id,
            type=LineType.MATERIAL,
            source=SourceRef("materials", material.id),
            article_code=cfg.article,
            description=truncate(sanitize_text(material.description), self._limits.line_description),
            unit=material.unit if material.unit is not None else cfg.unit,
            quantity=qty,
            unit_price=unit_price,
            vat_rate=cfg.default_vat_rate,
            vat_code=cfg.default_vat_code,
            account=cfg.account,
            dimensions=dict(dimensions),
            attachments=_attachments(material.photo_urls),
        )

    def _expense_line(
        self,
        expense: ExpenseRecord,
        dimensions: dict[str, str | None],
    ) -> InvoiceBasisLine:
        amount = _number("expenses", expense.id, "amount_sek", expense.amount_sek)
        cfg = self._config.defaults_for(LineType.EXPENSE)
        # Only an explicit False means the receipt carried no VAT.
        has_vat = expense.vat is None or bool(expense.vat)
        return InvoiceBasisLine(
            id=expense.id,
            type=LineType.EXPENSE,
            source=SourceRef("expenses", expense.id),
            article_code=cfg.article,
            description=truncate(sanitize_text(expense.description), self._limits.line_description),
            unit=cfg.unit,
            quantity=_ONE,
            unit_price=amount,
            vat_rate=cfg.default_vat_rate if has_vat else ZERO,
            vat_code=cfg.default_vat_code if has_vat else "0",
            account=cfg.account,
            dimensions=dict(dimensions),
            attachments=_attachments(expense.photo_urls),
        )

    def _mileage_line(
        self,
        entry: MileageRecord,
        dimensions: dict[str, str | None],
    ) -> InvoiceBasisLine:
        km = _number("mileage", entry.id, "km", entry.km)
        rate = _number("mileage", entry.id, "rate_per_km_sek", entry.rate_per_km_sek)
        cfg = self._config.defaults_for(LineType.MILEAGE)
        return InvoiceBasisLine(
            id=entry.id,
            type=LineType.MILEAGE,
            source=SourceRef("mileage", entry.id),
            article_code=cfg.article,
            description=f"Milersättning {entry.date.isoformat()}",
            unit=cfg.unit,
            quantity=km,
            unit_price=rate,
            vat_rate=cfg.default_vat_rate,
            vat_code=cfg.default_vat_code,
            account=cfg.account,
            dimensions=dict(dimensions),
        )

    def _ata_lines(
        self,
        entry: AtaRecord,
        dimensions: dict[str, str | None],
    ) -> tuple[list[InvoiceBasisLine], DiarySummary | None]:
        qty = _optional_number("ata", entry.id, "qty", entry.qty)
        unit_price = _optional_number("ata", entry.id, "unit_price_sek", entry.unit_price_sek)
        fixed_amount = _optional_number("ata", entry.id, "fixed_amount_sek", entry.fixed_amount_sek)
        materials_raw = _optional_number(
            "ata", entry.id, "materials_amount_sek", entry.materials_amount_sek
        )
        total = _optional_number("ata", entry.id, "total_sek", entry.total_sek)

        is_fixed = (entry.billing_type or RUNNING_BILLING) == FIXED_BILLING
        labor_amount = round_money(fixed_amount if is_fixed else qty * unit_price)
        materials_amount = round_money(materials_raw)

        cfg = self._config.defaults_for(LineType.ATA)
        material_cfg = self._config.defaults_for(LineType.MATERIAL)
        limits = self._limits

        title = sanitize_text(entry.title)
        ata_number = entry.ata_number or None
        ata_info = AtaInfo(title=title or ATA_LABEL, ata_number=ata_number)

        summary: DiarySummary | None = None
        description = sanitize_text(entry.description)
        if description:
            stamp = entry.approved_at or entry.created_at
            day = _utc_date(stamp) if stamp is not None else self._clock.today()
            label = f"{ATA_LABEL} {ata_number}" if ata_number else (title or ATA_LABEL)
            summary = DiarySummary(
                date=day.isoformat(),
                raw=truncate(description, limits.diary_raw),
                summary=truncate(f"{label}: {description}", limits.diary_summary),
                line_ref=f"ata-{entry.id}",
            )

        # Line text names the change order only; the long description is
        # carried by the diary summary.
        parts = [p for p in (title, f"{ATA_LABEL} {ata_number}" if ata_number else "") if p]
        line_description = truncate(
            DESCRIPTION_SEPARATOR.join(parts) or ATA_LABEL, limits.line_description
        )

        lines: list[InvoiceBasisLine] = []
        if labor_amount > ZERO:
            lines.append(
                InvoiceBasisLine(
                    id=entry.id,
                    type=LineType.ATA,
                    source=SourceRef("ata", entry.id),
                    article_code=cfg.article,
                    description=line_description,
                    unit="st" if is_fixed else (entry.unit if entry.unit is not None else cfg.unit),
                    quantity=_ONE if is_fixed else qty,
                    unit_price=labor_amount if is_fixed else unit_price,
                    vat_rate=cfg.default_vat_rate,
                    vat_code=cfg.default_vat_code,
                    account=cfg.account,
                    dimensions=dict(dimensions),
                    ata_info=ata_info,
                )
            )

        if materials_amount > ZERO:
            if parts:
                material_text = "Material" + DESCRIPTION_SEPARATOR + truncate(
                    DESCRIPTION_SEPARATOR.join(parts), limits.ata_nested_description
                )
            else:
                material_text = MATERIAL_COST_TEXT
            lines.append(
                InvoiceBasisLine(
                    id=f"{entry.id}-material",
                    type=LineType.MATERIAL,
                    source=SourceRef("ata", entry.id),
                    article_code=material_cfg.article,
                    description=truncate(material_text, limits.line_description),
                    unit=material_cfg.unit or "st",
                    quantity=_ONE,
                    unit_price=materials_amount,
                    vat_rate=material_cfg.default_vat_rate,
                    vat_code=material_cfg.default_vat_code,
                    account=material_cfg.account,
                    dimensions=dict(dimensions),
                    ata_info=ata_info,
                )
            )

        if total > ZERO and labor_amount == ZERO and materials_amount == ZERO:
            lines.append(
                InvoiceBasisLine(
                    id=entry.id,
                    type=LineType.ATA,
                    source=SourceRef("ata", entry.id),
                    article_code=cfg.article,
                    description=line_description,
                    unit="st",
                    quantity=_ONE,
                    unit_price=round_money(total),
                    vat_rate=cfg.default_vat_rate,
                    vat_code=cfg.default_vat_code,
                    account=cfg.account,
                    dimensions=dict(dimensions),
                    ata_info=ata_info,
                )
            )

        return lines, summary

    def _diary_line(
        self,
        entry: DiaryEntryRecord,
        dimensions: dict[str, str | None],
    ) -> tuple[InvoiceBasisLine, DiarySummary]:
        summary, raw = build_diary_summary(entry, self._limits)
        description = truncate(
            summary or f"Dagbok {entry.date.isoformat()}",
            self._limits.diary_line_description,
        )
        line = InvoiceBasisLine(
            id=entry.id,
            type=LineType.DIARY,
            source=SourceRef("diary_entries", entry.id),
            article_code=None,
            description=description,
            unit=None,
            quantity=ZERO,
            unit_price=ZERO,
            discount=ZERO,
            vat_rate=ZERO,
            vat_code="0",
            account=None,
            dimensions=dict(dimensions),
        )
        return line, DiarySummary(
            date=entry.date.isoformat(),
            raw=raw,
            summary=description,
            line_ref=entry.id,
        )
