"""
test_cost_calculator.py — Unit tests for the resource cost primitives.

Tests cover:
  - Number parsing (None, strings, Decimal, NaN/inf, garbage → 0)
  - Material / equipment / labor cost formulas
  - Stored labor total_cost rounding
  - Variance percentage and bounded ratio percentages
  - Money rounding (half-up, 2 dp)
"""

import math
from decimal import Decimal

import pytest

from sitecost.services import cost_calculator as calc


class TestToNumber:

    @pytest.mark.parametrize("raw, expected", [
        (None, 0.0),
        ("", 0.0),
        ("  ", 0.0),
        ("12.50", 12.5),
        (" 7 ", 7.0),
        (Decimal("3.10"), 3.1),
        (4, 4.0),
        ("abc", 0.0),
        (float("nan"), 0.0),
        (float("inf"), 0.0),
        ("-inf", 0.0),
        (True, 0.0),
    ])
    def test_parses_or_zeroes(self, raw, expected):
        assert calc.to_number(raw) == expected

    def test_returns_float(self):
        assert isinstance(calc.to_number(Decimal("1.5")), float)


class TestResourceCosts:

    def test_material_cost(self):
        """unit_cost × quantity"""
        assert calc.material_cost("12.50", 4) == 50.0

    def test_material_cost_with_missing_quantity_is_zero(self):
        assert calc.material_cost(12.5, None) == 0.0

    def test_equipment_cost(self):
        """rental_cost_per_day × days"""
        assert calc.equipment_cost(Decimal("150.00"), 3) == 450.0

    def test_labor_cost_default_quantity(self):
        """hourly_rate × hours × 1"""
        assert calc.labor_cost(20, 10) == 200.0

    def test_labor_cost_with_headcount(self):
        """hourly_rate × hours × workers"""
        assert calc.labor_cost("25", "8", 3) == 600.0

    def test_labor_total_cost_rounds_to_cents(self):
        # 2.25 × 0.5 = 1.125 → 1.13 (half-up, not banker's 1.12)
        assert calc.labor_total_cost(2.25, 0.5) == 1.13

    def test_labor_total_cost_with_garbage_hours(self):
        assert calc.labor_total_cost(50, "n/a") == 0.0

    @pytest.mark.parametrize("raw, expected", [(None, 1.0), (0, 1.0), (3, 3.0), ("2", 2.0)])
    def test_requirement_quantity_defaults_to_one(self, raw, expected):
        assert calc.requirement_quantity(raw) == expected


class TestPercentages:

    def test_variance_percentage_over_budget(self):
        """(1200 − 1000) / 1000 × 100 = 20"""
        assert calc.variance_percentage(1200, 1000) == 20

    def test_variance_percentage_under_budget(self):
        assert calc.variance_percentage(750, 1000) == -25

    def test_variance_percentage_zero_budget(self):
        assert calc.variance_percentage(500, 0) == 0

    def test_variance_percentage_rounds_half_up(self):
        # (9 − 8) / 8 × 100 = 12.5 → 13
        assert calc.variance_percentage(9, 8) == 13

    def test_round_half_up(self):
        assert calc.round_half_up(2.5) == 3
        assert calc.round_half_up(66.666) == 67
        assert calc.round_half_up(0.49) == 0

    def test_ratio_percent_in_range(self):
        assert calc.ratio_percent(1, 3) == "33.33"

    def test_ratio_percent_clamped_to_hundred(self):
        assert calc.ratio_percent(150, 100) == "100.00"

    def test_ratio_percent_zero_denominator(self):
        assert calc.ratio_percent(5, 0) == "0.00"

    def test_ratio_percent_negative_clamped_to_zero(self):
        assert calc.ratio_percent(-5, 10) == "0.00"


class TestMoney:

    def test_round_money_half_up(self):
        assert calc.round_money(2.675) == 2.68

    def test_round_money_string_input(self):
        assert calc.round_money("1000") == 1000.0

    def test_money_formats_two_decimals(self):
        assert calc.money(1500) == "1500.00"
        assert calc.money(None) == "0.00"

    def test_money_never_nan(self):
        assert not math.isnan(calc.round_money(float("nan")))
