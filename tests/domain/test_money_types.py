"""
Tests for the monetary helpers in invoicing_kernel.db.types.

round_money() is the single rounding point for invoice amounts, and
to_decimal() is the single conversion point for source values.
"""

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from invoicing_kernel.db.types import decimal_to_str, format_money, round_money, to_decimal


class TestRoundMoney:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("30.015", "30.02"),
            ("7.505", "7.51"),
            ("7.504", "7.50"),
            ("-7.505", "-7.51"),
            ("100", "100.00"),
        ],
    )
    def test_half_up_two_places(self, value, expected):
        assert round_money(Decimal(value)) == Decimal(expected)

    def test_result_has_two_decimal_exponent(self):
        assert round_money(Decimal("12")).as_tuple().exponent == -2

    @given(st.decimals(min_value=-10**9, max_value=10**9, allow_nan=False, places=6))
    def test_within_half_cent(self, value):
        assert abs(round_money(value) - value) <= Decimal("0.005")


class TestToDecimal:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (Decimal("1.50"), Decimal("1.50")),
            (3, Decimal("3")),
            (0.1, Decimal("0.1")),
            (" 42.5 ", Decimal("42.5")),
        ],
    )
    def test_accepted_inputs(self, value, expected):
        assert to_decimal(value) == expected

    def test_float_does_not_leak_binary_noise(self):
        assert str(to_decimal(2.675)) == "2.675"

    @pytest.mark.parametrize("value", [None, True, False, "", "abc", "NaN", "Infinity"])
    def test_rejected_inputs(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)


class TestStringForms:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("25", "25"),
            ("25.00", "25"),
            ("12.50", "12.5"),
            ("0.000", "0"),
            ("1E+1", "10"),
        ],
    )
    def test_decimal_to_str_is_plain(self, value, expected):
        assert decimal_to_str(Decimal(value)) == expected

    def test_format_money_fixed_two_places(self):
        assert format_money(Decimal("7750")) == "7750.00"
        assert format_money(Decimal("30.015")) == "30.02"
