"""Tests for Decimal parsing and rounding helpers."""

from decimal import Decimal

import pytest

from clinic_billing.services.billing_errors import InvalidAmount
from clinic_billing.services.billing_math import (
    MAX_AMOUNT,
    D,
    as_decimal,
    money2,
    parse_amount,
)


class TestLenient:
    @pytest.mark.parametrize("junk", [None, True, "", "  ", "abc", "NaN", "inf", float("nan")])
    def test_junk_is_zero(self, junk):
        assert D(junk) == Decimal("0")
        assert money2(junk) == Decimal("0.00")

    @pytest.mark.parametrize("huge", ["1e30", Decimal("1E+40"), 1e300])
    def test_unroundable_is_zero(self, huge):
        assert D(huge) == Decimal("0")
        assert money2(huge) == Decimal("0.00")

    def test_rounds_half_up(self):
        assert money2("0.005") == Decimal("0.01")
        assert money2("2.675") == Decimal("2.68")

    def test_as_decimal_keeps_sign(self):
        assert as_decimal("-5") == Decimal("-5")
        assert as_decimal("x") is None


class TestParseAmount:
    def test_quantizes(self):
        assert parse_amount("10.5") == Decimal("10.50")
        assert parse_amount(MAX_AMOUNT) == MAX_AMOUNT

    @pytest.mark.parametrize("bad", [None, "", "abc", "NaN", float("inf"), -1, "-0.01"])
    def test_rejects_bad_input(self, bad):
        with pytest.raises(InvalidAmount):
            parse_amount(bad)

    @pytest.mark.parametrize("huge", ["1e30", "10000000000", Decimal("1E+40")])
    def test_rejects_amounts_above_column_limit(self, huge):
        with pytest.raises(InvalidAmount) as info:
            parse_amount(huge, field="paid_amount")
        assert "paid_amount" in info.value.msg
