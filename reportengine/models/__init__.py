"""
Pydantic v2 data models for the report metric engine.

Model Organization:
    - enums: Enumeration types of the report DSL
    - schema: Schema catalog (objects, typed fields, relationships)
    - filters: Filter conditions and groups
    - metrics: Blocks, calculation steps, formulas, group-by and date ranges
    - report: Report specification
    - results: Metric, block and series results
    - quality: Catalog integrity reports

All models accept camelCase JSON (``leftOperand``, ``exposeBlocks``) as well
as snake_case field names, and are immutable.

Usage:
    >>> from reportengine.models import MetricFormula
    >>> formula = MetricFormula(
    ...     name="Paid invoices",
    ...     blocks=[{"id": "a", "op": "count", "source": {"object": "invoice", "field": "id"}}],
    ... )
"""

from .base import EngineModel
from .enums import (
    CalculationOperator,
    ComputeMode,
    FieldType,
    FilterLogic,
    FilterOperator,
    Granularity,
    MetricOp,
    MetricType,
    RelationshipType,
    UnitType,
    ValueKind,
)
from .filters import FilterCondition, FilterGroup
from .metrics import (
    MAX_GROUP_VALUES,
    CalculationStep,
    DateRange,
    FieldAggregateBlock,
    GroupBy,
    MetricBlock,
    MetricDef,
    MetricFormula,
    RecordCountBlock,
)
from .quality import DataQualityReport, QualityIssue
from .report import ReportSpec
from .results import (
    BlockResult,
    FormulaComputation,
    GroupedComputation,
    MetricResult,
    SeriesPoint,
)
from .schema import FieldRef, Relationship, SchemaCatalog, SchemaField, SchemaObject

__all__ = [
    "EngineModel",
    # Enums
    "CalculationOperator",
    "ComputeMode",
    "FieldType",
    "FilterLogic",
    "FilterOperator",
    "Granularity",
    "MetricOp",
    "MetricType",
    "RelationshipType",
    "UnitType",
    "ValueKind",
    # Schema
    "FieldRef",
    "Relationship",
    "SchemaCatalog",
    "SchemaField",
    "SchemaObject",
    # Filters
    "FilterCondition",
    "FilterGroup",
    # Metrics
    "MAX_GROUP_VALUES",
    "CalculationStep",
    "DateRange",
    "FieldAggregateBlock",
    "GroupBy",
    "MetricBlock",
    "MetricDef",
    "MetricFormula",
    "RecordCountBlock",
    # Report
    "ReportSpec",
    # Results
    "BlockResult",
    "FormulaComputation",
    "GroupedComputation",
    "MetricResult",
    "SeriesPoint",
    # Quality
    "DataQualityReport",
    "QualityIssue",
]
