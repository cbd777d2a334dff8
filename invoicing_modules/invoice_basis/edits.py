"""
Invoice Basis Edits (``invoicing_modules.invoice_basis.edits``).

Responsibility
--------------
Validate caller-supplied changes for the lock, header and line workflows
and turn them into typed values.  Pure functions: no session, no clock.

Value rules
-----------
* Dates are ``YYYY-MM-DD`` strings or ``date`` objects; None / ``""`` clear.
* Numbers are int, float or Decimal (never bool, never str).
* Payment terms are integers in ``0..max_payment_terms_days``.
* Every rejection raises ``InvalidFieldError`` naming the field.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from invoicing_kernel.db.types import ZERO, round_money, to_decimal
from invoicing_kernel.domain.lines import InvoiceBasisLine
from invoicing_kernel.exceptions import InvalidFieldError
from invoicing_modules.invoice_basis.helpers import add_days
from invoicing_modules.invoice_basis.models import parse_iso_date

_HUNDRED = Decimal("100")

HEADER_STRING_FIELDS = (
    "invoice_series",
    "invoice_number",
    "ocr_ref",
    "currency",
    "our_ref",
    "your_ref",
    "cost_center",
    "result_unit",
    "worksite_id",
)
HEADER_DATE_FIELDS = ("invoice_date", "due_date")
HEADER_FLAG_FIELDS = ("reverse_charge_building", "rot_rut_flag")
HEADER_ADDRESS_FIELDS = (
    "invoice_address_json",
    "delivery_address_json",
    "worksite_address_json",
)

LINE_TEXT_FIELDS = ("article_code", "account", "unit", "vat_code")
LINE_NUMBER_FIELDS = ("quantity", "unit_price", "discount", "vat_rate")


# ---------------------------------------------------------------------------
# Scalar parsers
# ---------------------------------------------------------------------------


def parse_date_value(value: Any, field: str) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    parsed = parse_iso_date(value) if isinstance(value, str) else None
    if parsed is None:
        raise InvalidFieldError(field, "must be a date formatted as YYYY-MM-DD")
    return parsed


def parse_optional_str(value: Any, field: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidFieldError(field, "must be a string or null")
    return value


def parse_number(value: Any, field: str, minimum: Decimal | None = None) -> Decimal | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise InvalidFieldError(field, "must be a finite number")
    try:
        number = to_decimal(value)
    except ValueError:
        raise InvalidFieldError(field, "must be a finite number") from None
    if minimum is not None and number < minimum:
        raise InvalidFieldError(field, f"must be >= {minimum}")
    return number


def parse_payment_terms(value: Any, field: str, maximum: int | None = None) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidFieldError(field, "must be an integer")
    if value < 0:
        raise InvalidFieldError(field, "must be >= 0")
    if maximum is not None and value > maximum:
        raise InvalidFieldError(field, f"must be <= {maximum}")
    return value


def parse_flag(value: Any, field: str) -> bool | None:
    if value is None or value == "":
        return None
    if not isinstance(value, bool):
        raise InvalidFieldError(field, "must be boolean")
    return value


def parse_mapping(value: Any, field: str) -> dict[str, Any] | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise InvalidFieldError(field, "must be an object or null")
    return dict(value)


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------


def parse_header_changes(
    changes: Mapping[str, Any],
    current_payment_terms: int | None,
    max_payment_terms: int,
) -> dict[str, Any]:
    """
    Validate a header edit and return the column values to write.

    A flag given as None is ignored.  When ``invoice_date`` is set and
    either no ``due_date`` was given or the terms changed, ``due_date`` is
    derived from the invoice date and the effective payment terms.

    Raises:
        InvalidFieldError: a value has the wrong type or range, or no
            recognized field remains.
    """
    updates: dict[str, Any] = {}

    for name in HEADER_STRING_FIELDS:
        if name in changes:
            updates[name] = parse_optional_str(changes[name], name)
    for name in HEADER_DATE_FIELDS:
        if name in changes:
            updates[name] = parse_date_value(changes[name], name)
    if "payment_terms_days" in changes:
        updates["payment_terms_days"] = parse_payment_terms(
            changes["payment_terms_days"], "payment_terms_days", max_payment_terms
        )
    if "fx_rate" in changes:
        updates["fx_rate"] = parse_number(changes["fx_rate"], "fx_rate", ZERO)
    for name in HEADER_FLAG_FIELDS:
        if name in changes:
            flag = parse_flag(changes[name], name)
            if flag is not None:
                updates[name] = flag
    for name in HEADER_ADDRESS_FIELDS:
        if name in changes:
            updates[name] = parse_mapping(changes[name], name)

    invoice_date = updates.get("invoice_date")
    if invoice_date is not None and (
        "payment_terms_days" in updates or "due_date" not in updates
    ):
        if "payment_terms_days" in updates:
            terms = updates["payment_terms_days"]
        else:
            terms = current_payment_terms
        updates["due_date"] = add_days(invoice_date, terms)

    if not updates:
        raise InvalidFieldError("changes", "no recognized fields to update")
    return updates


# ---------------------------------------------------------------------------
# Lines
# ---------------------------------------------------------------------------


def _line_text(value: Any, field: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidFieldError(field, "must be a string")
    return value.strip()


def _line_number(value: Any, field: str) -> Decimal:
    if value is None:
        return ZERO
    number = parse_number(value, field, ZERO)
    return round_money(number if number is not None else ZERO)


def apply_line_changes(line: InvoiceBasisLine, changes: Mapping[str, Any]) -> InvoiceBasisLine:
    """
    Apply a line edit and return the replacement line.

    Text fields are trimmed; blank clears them, except ``description``
    which stays an empty string.  Numbers must be >= 0 and are rounded to
    two decimals; ``discount`` is capped at 100.  ``amount`` sets the unit
    price to amount / quantity.

    Raises:
        InvalidFieldError: a value has the wrong type or range, or an
            amount is given while the quantity is zero.
    """
    updated: dict[str, Any] = {}

    if "description" in changes:
        updated["description"] = _line_text(changes["description"], "description")
    for name in LINE_TEXT_FIELDS:
        if name in changes:
            updated[name] = _line_text(changes[name], name) or None

    if "dimensions" in changes:
        extra = parse_mapping(changes["dimensions"], "dimensions") or {}
        updated["dimensions"] = {**line.dimensions, **extra}

    for name in LINE_NUMBER_FIELDS:
        if name in changes:
            updated[name] = _line_number(changes[name], name)
    if "discount" in updated:
        updated["discount"] = min(updated["discount"], _HUNDRED)

    if "attachments" in changes:
        attachments = changes["attachments"]
        if not isinstance(attachments, (list, tuple)) or not all(
            isinstance(item, str) for item in attachments
        ):
            raise InvalidFieldError("attachments", "must be an array of strings")
        updated["attachments"] = tuple(attachments)

    if "amount" in changes:
        amount = _line_number(changes["amount"], "amount")
        quantity = updated["quantity"] if "quantity" in updated else line.quantity
        if quantity <= ZERO:
            raise InvalidFieldError("amount", "cannot set amount when quantity is zero")
        updated["unit_price"] = round_money(amount / quantity)

    return replace(line, **updated)
