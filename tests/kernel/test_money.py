"""Tests for the Money value object and the rounding helpers."""

from decimal import ROUND_DOWN, Decimal

import pytest

from erp_kernel.db.types import round_money, round_ratio, to_decimal
from erp_kernel.domain.values import Money


class TestMoneyConstruction:

    def test_accepts_decimal_int_and_string(self):
        assert Money.of(Decimal("10.50")).amount == Decimal("10.50")
        assert Money.of(10).amount == Decimal("10")
        assert Money.of("10.50").amount == Decimal("10.50")

    def test_rejects_float(self):
        with pytest.raises(TypeError):
            Money.of(10.5)

    def test_rejects_bool(self):
        with pytest.raises(TypeError):
            Money(True)

    def test_rejects_non_numeric_string(self):
        with pytest.raises(ValueError):
            Money.of("ten")

    def test_is_hashable_and_immutable(self):
        m = Money.of("1.00")
        assert {m: 1}[Money.of("1.00")] == 1
        with pytest.raises(AttributeError):
            m.amount = Decimal("2")


class TestMoneyArithmetic:

    def test_add_subtract_negate(self):
        a, b = Money.of("1000.00"), Money.of("300.00")
        assert a - b == Money.of("700.00")
        assert a + b == Money.of("1300.00")
        assert -b == Money.of("-300.00")
        assert abs(-b) == b

    def test_scalar_multiply_and_divide(self):
        assert Money.of("100.00") * Decimal("0.18") == Money.of("18.0000")
        assert 3 * Money.of("2.50") == Money.of("7.50")
        assert Money.of("10") / 4 == Money.of("2.5")

    def test_arithmetic_with_non_money_is_rejected(self):
        with pytest.raises(TypeError):
            Money.of("1") + Decimal("1")
        with pytest.raises(TypeError):
            Money.of("1") * 1.5

    def test_sum(self):
        assert Money.sum([Money.of("1.10"), Money.of("2.20")]) == Money.of("3.30")
        assert Money.sum([]) == Money.zero()

    def test_predicates(self):
        assert Money.zero().is_zero
        assert Money.of("0.01").is_positive
        assert Money.of("-0.01").is_negative

    def test_comparisons(self):
        assert Money.of("1.00") < Money.of("1.01")
        assert Money.of("2") >= Money.of("2.00")


class TestRounding:

    def test_round_half_up_two_places(self):
        assert Money.of("2.345").round().amount == Decimal("2.35")
        assert Money.of("2.344").round().amount == Decimal("2.34")
        assert Money.of("-2.345").round().amount == Decimal("-2.35")

    def test_round_money_respects_mode(self):
        assert round_money(Decimal("2.349"), rounding=ROUND_DOWN) == Decimal("2.34")

    def test_round_ratio_one_place(self):
        assert round_ratio(Decimal("32.85")) == Decimal("32.9")

    def test_to_decimal_rejects_float(self):
        with pytest.raises(TypeError):
            to_decimal(0.1)
        assert to_decimal("0.1") == Decimal("0.1")
