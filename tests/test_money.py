"""Tests for Money arithmetic and vi-VN formatting."""

from decimal import Decimal

import pytest

from cafepos.money import Money, format_vnd, round_half_up, total


class TestMoney:
    def test_rejects_non_integer_amounts(self):
        with pytest.raises(TypeError):
            Money(1.5)
        with pytest.raises(TypeError):
            Money(True)

    def test_arithmetic(self):
        assert Money(50000) + Money(30000) * 2 == Money(110000)
        assert 2 * Money(30000) == Money(60000)
        assert Money(100) - Money(250) == Money(-150)
        assert -Money(5) == Money(-5)

    def test_total_of_empty_iterable_is_zero(self):
        assert total([]) == Money.zero()
        assert total([Money(1), Money(2), Money(3)]) == Money(6)

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (50000, 50000),
            ("50000.00", 50000),
            ("49999.5", 50000),
            (Decimal("12.49"), 12),
            (None, 0),
        ],
    )
    def test_parse(self, raw, expected):
        assert Money.parse(raw) == Money(expected)

    def test_parse_rejects_garbage(self):
        with pytest.raises(ValueError):
            Money.parse("abc")
        with pytest.raises(ValueError):
            Money.parse("NaN")

    def test_scale_rounds_half_up(self):
        assert Money(110000).scale(Decimal("10")) == Money(11000)
        assert Money(15).scale(Decimal("10")) == Money(2)  # 1.5 -> 2
        assert Money(14).scale(Decimal("10")) == Money(1)  # 1.4 -> 1

    def test_round_half_up_away_from_zero(self):
        assert round_half_up(Decimal("2.5")) == 3
        assert round_half_up(Decimal("-2.5")) == -3


class TestFormatting:
    def test_groups_thousands_with_dots(self):
        assert Money(110000).format() == "110.000 ₫"
        assert str(Money(1234567)) == "1.234.567 ₫"
        assert str(Money(0)) == "0 ₫"

    def test_negative_amounts_carry_a_sign(self):
        assert format_vnd(-16500) == "-16.500 ₫"

    def test_bad_input_formats_as_zero(self):
        assert format_vnd(None) == "0 ₫"
        assert format_vnd("not money") == "0 ₫"
