"""
Filter DSL models.

A filter condition tests one field of one record with one operator. A filter
group combines conditions with a single AND/OR level; nesting is not part of
the model.
"""

from datetime import date, datetime
from typing import Optional, Union

from pydantic import Field, model_validator

from .base import EngineModel
from .enums import FilterLogic, FilterOperator
from .schema import FieldRef

Scalar = Union[bool, int, float, str, datetime, date]
FilterValue = Union[Scalar, list[Scalar]]

_SEQUENCE_OPERATORS = {FilterOperator.IN}
_PAIR_OPERATORS = {FilterOperator.BETWEEN}
_VALUELESS_OPERATORS = {FilterOperator.IS_TRUE, FilterOperator.IS_FALSE}


class FilterCondition(EngineModel):
    """
    One filter condition.

    Attributes:
        field: Field being tested
        operator: Comparison operator
        value: Operand; a pair for ``between``, a sequence for ``in``, absent
            for ``is_true``/``is_false``. ``contains`` accepts a string or a
            list of strings (any match).
    """

    field: FieldRef
    operator: FilterOperator
    value: Optional[FilterValue] = None

    @model_validator(mode="after")
    def validate_value_shape(self) -> "FilterCondition":
        """Ensure the operand shape matches the operator."""
        op = self.operator
        value = self.value
        if op in _VALUELESS_OPERATORS:
            if value is not None:
                raise ValueError(f"Operator {op.value!r} takes no value")
        elif op in _PAIR_OPERATORS:
            if not isinstance(value, list) or len(value) != 2:
                raise ValueError(f"Operator {op.value!r} requires a [low, high] pair")
        elif op in _SEQUENCE_OPERATORS:
            if not isinstance(value, list):
                raise ValueError(f"Operator {op.value!r} requires a list of values")
        elif op is FilterOperator.CONTAINS:
            if value is None:
                raise ValueError("Operator 'contains' requires a value")
        elif value is None or isinstance(value, list):
            raise ValueError(f"Operator {op.value!r} requires a single value")
        return self


class FilterGroup(EngineModel):
    """
    Ordered filter conditions combined with one logic mode.

    An empty group always matches.
    """

    conditions: tuple[FilterCondition, ...] = ()
    logic: FilterLogic = Field(default=FilterLogic.AND)
