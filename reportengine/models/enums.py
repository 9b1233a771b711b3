"""
Enumeration types for the report builder metric engine.

This module defines all enum types used across the system for type safety
and consistent validation. All enums inherit from str to ensure JSON
serialization compatibility.
"""

from enum import Enum


class FieldType(str, Enum):
    """
    Declared type of a schema field.

    The declared type is resolved once when the catalog is loaded and decides
    whether filters compare numerically, chronologically or textually.
    """

    ID = "id"
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"


class RelationshipType(str, Enum):
    """Cardinality of a declared relationship between two objects."""

    ONE_TO_MANY = "one-to-many"
    MANY_TO_ONE = "many-to-one"
    MANY_TO_MANY = "many-to-many"


class FilterOperator(str, Enum):
    """Operators supported by a filter condition."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    BETWEEN = "between"
    CONTAINS = "contains"
    IN = "in"
    IS_TRUE = "is_true"
    IS_FALSE = "is_false"


class FilterLogic(str, Enum):
    """Combination mode of a filter group."""

    AND = "AND"
    OR = "OR"


class MetricOp(str, Enum):
    """
    Aggregation applied by a metric block.

    COUNT and DISTINCT_COUNT count records and tolerate a missing source field;
    the remaining operations aggregate numeric source values.
    """

    SUM = "sum"
    AVG = "avg"
    MEDIAN = "median"
    MODE = "mode"
    COUNT = "count"
    DISTINCT_COUNT = "distinct_count"


class MetricType(str, Enum):
    """
    Time semantics of a metric block.

    SUM_OVER_PERIOD and AVERAGE_OVER_PERIOD are flow metrics aggregated over
    an interval. LATEST and FIRST are point-in-time snapshots.
    """

    SUM_OVER_PERIOD = "sum_over_period"
    AVERAGE_OVER_PERIOD = "average_over_period"
    LATEST = "latest"
    FIRST = "first"


class CalculationOperator(str, Enum):
    """Arithmetic operator combining two block results."""

    ADD = "add"
    SUBTRACT = "subtract"
    MULTIPLY = "multiply"
    DIVIDE = "divide"


class UnitType(str, Enum):
    """Semantic unit attached to a result for display and validation."""

    CURRENCY = "currency"
    COUNT = "count"
    RATE = "rate"
    DATE = "date"


class ValueKind(str, Enum):
    """Rendering hint derived from the unit type."""

    CURRENCY = "currency"
    NUMBER = "number"


class Granularity(str, Enum):
    """Bucket size used to split a date range into a time series."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


class ComputeMode(str, Enum):
    """Whether a computation returns one scalar or a bucketed series."""

    SCALAR = "scalar"
    SERIES = "series"
