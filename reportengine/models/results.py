"""
Computation result models.

Results are newly allocated per computation. A scalar request yields a value
and no series; a series request yields a series and no value. Data absence is
represented by ``None`` values plus an explanatory note, never by an error.
"""

from typing import Optional

from pydantic import Field

from .base import EngineModel
from .enums import UnitType, ValueKind


class SeriesPoint(EngineModel):
    """
    One bucket of a time series.

    Attributes:
        date: Bucket label (e.g. "2024-02", "2024-Q1")
        value: Aggregated value, None when the bucket has nothing to aggregate
    """

    date: str
    value: Optional[float] = None


class MetricResult(EngineModel):
    """Final result of a formula (or of a single block passed through)."""

    value: Optional[float] = Field(default=None, description="Scalar value (scalar mode)")
    series: Optional[tuple[SeriesPoint, ...]] = Field(
        default=None, description="Ordered bucket values (series mode)"
    )
    unit_type: Optional[UnitType] = None
    kind: Optional[ValueKind] = None
    note: Optional[str] = None

    @property
    def is_series(self) -> bool:
        return self.series is not None


class BlockResult(EngineModel):
    """
    Result of one block, keyed by block id.

    Attributes:
        block_id: Id of the evaluated block
        block_name: Display name of the block
        value: Scalar value (scalar mode)
        series: Ordered bucket values (series mode)
        unit_type: Unit of the block's values
        note: Explanation of absent data, if any
    """

    block_id: str
    block_name: str = ""
    value: Optional[float] = None
    series: Optional[tuple[SeriesPoint, ...]] = None
    unit_type: Optional[UnitType] = None
    note: Optional[str] = None

    def to_metric_result(self) -> MetricResult:
        """Pass this block's result through unchanged as a metric result."""
        return MetricResult(
            value=self.value,
            series=self.series,
            unit_type=self.unit_type,
            kind=ValueKind.CURRENCY if self.unit_type is UnitType.CURRENCY else ValueKind.NUMBER,
            note=self.note,
        )


class FormulaComputation(EngineModel):
    """Metric result plus the results of exposed blocks."""

    result: MetricResult
    block_results: tuple[BlockResult, ...] = ()


class GroupedComputation(EngineModel):
    """Computation restricted to records of one group-by value."""

    group_value: str
    computation: FormulaComputation
