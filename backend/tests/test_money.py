"""
Tests for exact currency arithmetic.

Amounts are integer cents; conversions and rate math go through Decimal with
half-up rounding.
"""

from decimal import Decimal

import pytest

from hpledger import money
from hpledger.errors import ValidationError


class TestToCents:
    """Parsing user input into cents."""

    def test_integers_are_major_units(self):
        assert money.to_cents(1100) == 110000

    def test_strings_with_separators_and_currency(self):
        assert money.to_cents("1,100.50") == 110050
        assert money.to_cents("KES 20") == 2000

    def test_floats_do_not_pick_up_binary_error(self):
        assert money.to_cents(0.1 + 0.2) == 30
        assert money.to_cents(19.99) == 1999

    def test_half_cent_rounds_up(self):
        assert money.to_cents("2.345") == 235

    def test_garbage_is_rejected(self):
        with pytest.raises(ValidationError):
            money.to_cents("abc")
        with pytest.raises(ValidationError):
            money.to_cents(True)

    @pytest.mark.parametrize("value", ["-inf", "-nan", "-Infinity", "NaN", float("inf"), "1e400"])
    def test_non_finite_is_rejected(self, value):
        with pytest.raises(ValidationError):
            money.to_cents(value)


class TestArithmetic:

    def test_round_currency_half_up(self):
        assert money.round_currency("2.345") == Decimal("2.35")
        assert money.round_currency("-2.345") == Decimal("-2.35")

    def test_apply_rate_bps_flat(self):
        # 10% of 1000.00
        assert money.apply_rate_bps(100000, 1000) == 10000

    def test_apply_rate_bps_over_periods(self):
        # 2.5% per month for 3 months on 999.99
        assert money.apply_rate_bps(99999, 250, periods=3) == 7500

    def test_sum_of_many_small_payments_is_exact(self):
        assert money.sum_cents([10] * 1000) == 10000

    def test_format_amount(self):
        assert money.format_amount(110000) == "1,100.00"
        assert money.format_amount(None) == "0.00"
