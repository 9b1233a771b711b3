"""
Metric computation engine.

Components, leaves first:
    - filters: compiled filter evaluation against the schema
    - time_buckets: calendar-anchored bucketing of date ranges
    - block_evaluator: scalar and per-bucket evaluation of one block
    - units: unit inference, unit rules and value formatting
    - formula: arithmetic combination of block results
    - grouping: group-by fields, values and record scopes
    - metric_engine: orchestration of a full report computation
    - sql_preview: illustrative SQL rendering of a report
"""

from .block_evaluator import BlockEvaluator, aggregate, evaluate_block, round_minor_units
from .filters import CompiledFilter, compile_filters, matches
from .formula import FormulaCombiner, apply_operator, combine
from .grouping import available_group_fields, group_values, stringify
from .metric_engine import MetricEngine
from .sql_preview import generate_sql
from .time_buckets import Bucket, TimeBucketer, bucketize, suggest_granularity
from .units import (
    available_result_unit_types,
    format_value,
    infer_result_unit,
    infer_unit_type,
    validate_formula_units,
)

__all__ = [
    "Bucket",
    "BlockEvaluator",
    "CompiledFilter",
    "FormulaCombiner",
    "MetricEngine",
    "TimeBucketer",
    "aggregate",
    "apply_operator",
    "available_group_fields",
    "available_result_unit_types",
    "bucketize",
    "combine",
    "compile_filters",
    "evaluate_block",
    "format_value",
    "generate_sql",
    "group_values",
    "infer_result_unit",
    "infer_unit_type",
    "matches",
    "round_minor_units",
    "stringify",
    "suggest_granularity",
    "validate_formula_units",
]
