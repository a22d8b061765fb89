"""
Expense sets and numeric coercion.

Every sum of money in the profit domain goes through numeric_or_zero so that
missing, partial or garbage input degrades to zero instead of raising or
producing NaN.
"""

import math
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping, Optional


TRIP_EXPENSE_CATEGORIES = ("diesel", "driver", "tolls", "tyre", "misc")

TRUCK_EXPENSE_CATEGORIES = (
    "transportation",
    "tollCharges",
    "tyreCharges",
    "fattaExpenses",
    "driverCharges",
    "bodyWork",
    "paintExpenses",
    "builtlyExpenses",
    "diesel",
    "kamaniWork",
    "floorExpenses",
    "insuranceExpenses",
    "tyres",
    "painting",
    "misc",
)


def numeric_or_none(value: Any) -> Optional[float]:
    """
    Coerce a value to a finite float, or None when that is not possible.

    Accepts ints, floats, Decimals and numeric strings. Booleans are not
    amounts and are rejected, as are NaN and infinities.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None

    if math.isnan(number) or math.isinf(number):
        return None
    return number


def numeric_or_zero(value: Any) -> float:
    """Coerce a value to a finite float; anything unusable becomes 0.0."""
    number = numeric_or_none(value)
    return 0.0 if number is None else number


def is_real_number(value: Any) -> bool:
    """True for actual numeric types (not bools, not numeric strings)."""
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def sum_expenses(expenses: Optional[Mapping[str, Any]]) -> float:
    """Total an expense set, counting absent or non-numeric values as zero."""
    if not expenses or not isinstance(expenses, Mapping):
        return 0.0
    return sum(numeric_or_zero(value) for value in expenses.values())


def normalize_expenses(
    raw: Optional[Mapping[str, Any]],
    categories: Iterable[str],
    base: Optional[Mapping[str, Any]] = None
) -> Dict[str, float]:
    """
    Build the persisted form of an expense set.

    Every known category is present as a float; unknown categories are
    dropped. When a base set is given, raw values are merged over it so a
    partial update only touches the categories it names.

    Args:
        raw: Incoming (possibly partial) expense mapping
        categories: Allowed category names for this entity
        base: Currently stored expense set, if any

    Returns:
        Complete expense set keyed by category
    """
    base = base or {}
    raw = raw or {}
    normalized = {}
    for category in categories:
        if category in raw:
            normalized[category] = numeric_or_zero(raw[category])
        else:
            normalized[category] = numeric_or_zero(base.get(category))
    return normalized
