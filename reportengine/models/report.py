"""
Report specification: the declarative input of one computation.

A report is produced by the dashboard (or by the natural-language translator,
which emits the identical shape) and carries the selected objects and fields,
data-list filters, an optional group-by, the metric (formula or legacy
single-metric definition), the date range and the computation mode.
"""

from typing import Optional

from pydantic import Field, model_validator

from .base import EngineModel
from .enums import ComputeMode
from .filters import FilterGroup
from .metrics import DateRange, GroupBy, MetricDef, MetricFormula
from .schema import FieldRef


class ReportSpec(EngineModel):
    """
    Declarative report specification.

    Exactly one of ``formula`` and ``metric`` must be given; a ``metric`` is
    lifted into a one-block formula.

    Attributes:
        name: Optional report title
        objects: Selected objects; the first is the primary object counted by
            sourceless count blocks
        fields: Selected display fields
        filters: Data-list filters applied to every block's table
        group_by: Optional split into one result per selected value
        formula: Multi-block metric formula
        metric: Legacy single-metric definition
        range: Date range and granularity
        mode: Scalar value or bucketed series
    """

    name: Optional[str] = None
    objects: tuple[str, ...] = ()
    fields: tuple[FieldRef, ...] = ()
    filters: FilterGroup = Field(default_factory=FilterGroup)
    group_by: Optional[GroupBy] = None
    formula: Optional[MetricFormula] = None
    metric: Optional[MetricDef] = None
    range: DateRange
    mode: ComputeMode = ComputeMode.SERIES

    @model_validator(mode="after")
    def validate_metric_choice(self) -> "ReportSpec":
        """Require exactly one of formula and metric."""
        if (self.formula is None) == (self.metric is None):
            raise ValueError("Report must define exactly one of 'formula' and 'metric'")
        return self

    def resolved_formula(self) -> MetricFormula:
        """Return the formula, lifting a legacy metric definition if needed."""
        if self.formula is not None:
            return self.formula
        return self.metric.to_formula()

    @property
    def primary_object(self) -> Optional[str]:
        """Primary object of the report, falling back to the first block source."""
        if self.objects:
            return self.objects[0]
        for block in self.resolved_formula().blocks:
            if block.source is not None:
                return block.source.object
        return None
