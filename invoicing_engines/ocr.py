"""
OCR payment reference generation.

Swedish bankgiro/plusgiro OCR references end in a mod-10 (Luhn) check
digit computed over the digits of the reference.

Usage:
    from invoicing_engines.ocr import generate_ocr_mod10, invoice_ocr_reference

    generate_ocr_mod10("12345")                         # "123455"
    invoice_ocr_reference("A-20250310-0930", project_id)
"""

from __future__ import annotations

import re

_NON_DIGITS = re.compile(r"[^0-9]")


def luhn_check_digit(digits: str) -> int:
    """Mod-10 check digit for a string of decimal digits."""
    total = 0
    # Double every second digit starting from the rightmost.
    for index, char in enumerate(reversed(digits)):
        value = int(char)
        if index % 2 == 0:
            value *= 2
            if value > 9:
                value -= 9
        total += value
    return (10 - total % 10) % 10


def generate_ocr_mod10(value: str) -> str:
    """
    Digits of ``value`` followed by their mod-10 check digit.

    A value with no digits yields the reference for ``"0"``.
    """
    digits = _NON_DIGITS.sub("", value) or "0"
    return f"{digits}{luhn_check_digit(digits)}"


def is_valid_ocr(reference: str) -> bool:
    """True if ``reference`` is all digits and its last digit checks out."""
    if len(reference) < 2 or not reference.isdigit():
        return False
    return luhn_check_digit(reference[:-1]) == int(reference[-1])


def invoice_ocr_reference(invoice_number: str, project_id: str) -> str:
    """
    Default OCR reference for a locked invoice basis.

    Built from the invoice number plus the last four digits of the project
    id (``0000`` when the id has no digits).
    """
    project_digits = _NON_DIGITS.sub("", str(project_id))[-4:] or "0000"
    return generate_ocr_mod10(f"{invoice_number}{project_digits}")
