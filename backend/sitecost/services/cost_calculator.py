"""
cost_calculator.py — Resource cost primitives

Pure, stateless helpers turning a resource's stored attributes into money:
  - Material:  unit_cost × quantity
  - Equipment: rental_cost_per_day × days
  - Labor:     hourly_rate × hours × quantity

Every input may arrive as int, float, Decimal, numeric string or None.
Anything that does not parse to a finite number contributes 0, so one bad
row never aborts an aggregate report.
"""

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Union

Number = Union[int, float, Decimal, str, None]


def to_number(value: Any) -> float:
    """Parse ``value`` to a finite float; None, garbage, NaN and ±inf become 0.0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return 0.0
            number = float(Decimal(value))
        else:
            number = float(value)
    except (TypeError, ValueError, InvalidOperation):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def material_cost(unit_cost: Number, quantity: Number) -> float:
    return to_number(unit_cost) * to_number(quantity)


def equipment_cost(daily_rate: Number, days: Number) -> float:
    return to_number(daily_rate) * to_number(days)


def labor_cost(hourly_rate: Number, hours: Number, quantity: Number = 1) -> float:
    return to_number(hourly_rate) * to_number(hours) * to_number(quantity)


def labor_total_cost(hourly_rate: Number, hours: Number) -> float:
    """Stored Labor.total_cost: rate × hours, rounded to cents."""
    return round_money(to_number(hourly_rate) * to_number(hours))


def requirement_quantity(value: Number) -> float:
    """Headcount of a labor requirement row. Missing or zero counts as one worker."""
    return to_number(value) or 1.0


def round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; percentages round .5 upward
    return int(math.floor(value + 0.5))


def variance_percentage(actual: Number, budgeted: Number) -> int:
    """round((actual - budgeted) / budgeted × 100); 0 when nothing was budgeted."""
    budgeted = to_number(budgeted)
    if budgeted == 0:
        return 0
    return round_half_up((to_number(actual) - budgeted) / budgeted * 100)


def ratio_percent(numerator: Number, denominator: Number) -> str:
    """numerator / denominator as a 2-dp percentage string in [0, 100]."""
    denominator = to_number(denominator)
    if denominator <= 0:
        return "0.00"
    pct = to_number(numerator) / denominator * 100
    return f"{min(max(pct, 0.0), 100.0):.2f}"


def round_money(value: Number) -> float:
    return float(Decimal(str(to_number(value))).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def money(value: Number) -> str:
    return f"{round_money(value):.2f}"
