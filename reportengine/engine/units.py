"""
Unit helpers: block unit inference, formula unit rules and value formatting.

Currency values are held in minor units (cents); rates are fractions
(0.1234 renders as 12.34%).
"""

from datetime import datetime, timezone
from typing import Optional

from reportengine.catalog.default_schema import CURRENCY_FIELDS
from reportengine.models.enums import CalculationOperator, FieldType, MetricOp, UnitType, ValueKind
from reportengine.models.schema import FieldRef, SchemaCatalog

_COUNT_OPS = {MetricOp.COUNT, MetricOp.DISTINCT_COUNT}
_ADDITIVE = {CalculationOperator.ADD, CalculationOperator.SUBTRACT}
_RATE_OPERANDS = {UnitType.COUNT, UnitType.CURRENCY}

UNIT_LABELS = {
    UnitType.CURRENCY: "Volume ($)",
    UnitType.COUNT: "Count",
    UnitType.DATE: "Date/Timestamp",
    UnitType.RATE: "Rate (%)",
}


def infer_unit_type(schema: SchemaCatalog, source: Optional[FieldRef], op: MetricOp) -> UnitType:
    """
    Infer the unit of a block's values from its operation and source field.

    Args:
        schema: Schema catalog
        source: Source field, None for sourceless count blocks
        op: Block operation

    Returns:
        count for counting operations; otherwise the field's declared unit,
        currency for known currency field names, date for date fields, and
        count as the neutral default
    """
    if op in _COUNT_OPS or source is None:
        return UnitType.COUNT
    declared = schema.get_field(source)
    if declared is not None and declared.unit is not None:
        return declared.unit
    if source.field in CURRENCY_FIELDS:
        return UnitType.CURRENCY
    if declared is not None and declared.type is FieldType.DATE:
        return UnitType.DATE
    return UnitType.COUNT


def validate_formula_units(
    operator: CalculationOperator, left: UnitType, right: UnitType
) -> tuple[bool, Optional[str]]:
    """
    Check whether two operand units may be combined.

    Addition and subtraction require matching units; multiplication and
    division accept any pair.

    Returns:
        (valid, message) where message explains an invalid pair
    """
    if operator in _ADDITIVE and left is not right:
        verb = "Addition" if operator is CalculationOperator.ADD else "Subtraction"
        return (
            False,
            f"{verb} requires matching unit types. "
            f"Left is {UNIT_LABELS[left]}, right is {UNIT_LABELS[right]}.",
        )
    return True, None


def available_result_unit_types(
    operator: CalculationOperator, left: UnitType, right: UnitType
) -> list[UnitType]:
    """Unit types a user may pick for the result of a calculation."""
    if operator in _ADDITIVE:
        return [left]
    available = [left] if left is right else [left, right]
    if UnitType.RATE not in available:
        available.append(UnitType.RATE)
    return available


def infer_result_unit(
    operator: CalculationOperator,
    left: Optional[UnitType],
    right: Optional[UnitType],
    explicit: Optional[UnitType] = None,
) -> tuple[UnitType, Optional[str]]:
    """
    Decide the unit of a combined result.

    An explicit unit always wins. Dividing two count operands or two currency
    operands gives a rate; a mixed count/currency division (revenue per
    customer) keeps the left operand's unit. Addition and subtraction keep a shared unit; mismatched units fall
    back to count and produce a warning note. Other combinations keep the left
    operand's unit.

    Returns:
        (unit, warning) where warning is set for mismatched add/subtract
    """
    left = left or UnitType.COUNT
    right = right or UnitType.COUNT
    warning = None
    if operator in _ADDITIVE and left is not right:
        _, message = validate_formula_units(operator, left, right)
        warning = f"Unit mismatch: {message} Result shown as Count."
    if explicit is not None:
        return explicit, warning
    if operator is CalculationOperator.DIVIDE and left is right and left in _RATE_OPERANDS:
        return UnitType.RATE, None
    if operator in _ADDITIVE:
        return (left if warning is None else UnitType.COUNT), warning
    return left, None


def value_kind(unit: Optional[UnitType]) -> ValueKind:
    return ValueKind.CURRENCY if unit is UnitType.CURRENCY else ValueKind.NUMBER


def format_value(value: Optional[float], unit: Optional[UnitType]) -> str:
    """
    Format a value for display according to its unit.

    Examples:
        >>> format_value(123456, UnitType.CURRENCY)
        '$1,234.56'
        >>> format_value(0.1234, UnitType.RATE)
        '12.34%'
        >>> format_value(None, UnitType.COUNT)
        'N/A'
    """
    if value is None:
        return "N/A"
    if unit is UnitType.CURRENCY:
        sign = "-" if value < 0 else ""
        return f"{sign}${abs(value) / 100:,.2f}"
    if unit is UnitType.RATE:
        return f"{value * 100:.2f}%"
    if unit is UnitType.DATE:
        return datetime.fromtimestamp(value, tz=timezone.utc).date().isoformat()
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"
