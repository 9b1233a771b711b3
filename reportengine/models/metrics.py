"""
Metric DSL models: blocks, calculation steps, formulas and ranges.

Blocks are a closed tagged union on ``op``: record-count blocks may omit a
source field, aggregate blocks must carry one. A block that needs a source but
has none cannot be constructed, so invalid combinations never reach the
evaluator.
"""

from datetime import date
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import Field, field_validator, model_validator

from reportengine.errors import (
    DuplicateBlockError,
    GroupLimitExceededError,
    InvalidRangeError,
    MissingSourceError,
    UnknownOperandError,
)

from .base import EngineModel
from .enums import CalculationOperator, Granularity, MetricOp, MetricType, UnitType
from .filters import FilterCondition
from .schema import FieldRef

MAX_GROUP_VALUES = 10


class _BlockBase(EngineModel):
    """Fields shared by every block variant."""

    id: str = Field(min_length=1, description="Block id, unique within one formula")
    name: str = Field(default="", description="Display name")
    type: MetricType = Field(default=MetricType.SUM_OVER_PERIOD)
    filters: tuple[FilterCondition, ...] = ()
    unit_type: Optional[UnitType] = None


class RecordCountBlock(_BlockBase):
    """
    Block counting records (``count``) or distinct values (``distinct_count``).

    Without a source, ``count`` counts records of the report's primary object
    and ``distinct_count`` counts distinct record ids.
    """

    op: Literal[MetricOp.COUNT, MetricOp.DISTINCT_COUNT]
    source: Optional[FieldRef] = None


class FieldAggregateBlock(_BlockBase):
    """Block aggregating numeric source values (sum, avg, median, mode)."""

    op: Literal[MetricOp.SUM, MetricOp.AVG, MetricOp.MEDIAN, MetricOp.MODE]
    source: FieldRef

    @model_validator(mode="before")
    @classmethod
    def require_source(cls, data: Any) -> Any:
        """Fail with a descriptive message when the source is missing."""
        if isinstance(data, dict) and data.get("source") is None:
            op = data.get("op")
            raise MissingSourceError(
                str(data.get("id", "?")), getattr(op, "value", op) or "?"
            )
        return data


MetricBlock = Annotated[
    Union[RecordCountBlock, FieldAggregateBlock],
    Field(discriminator="op"),
]


class CalculationStep(EngineModel):
    """
    Arithmetic combination of two blocks.

    Attributes:
        operator: Arithmetic operator
        left_operand: Id of the left block
        right_operand: Id of the right block
        result_unit_type: Optional explicit unit of the combined result
    """

    operator: CalculationOperator
    left_operand: str = Field(min_length=1)
    right_operand: str = Field(min_length=1)
    result_unit_type: Optional[UnitType] = None


class MetricFormula(EngineModel):
    """
    One or more blocks plus an optional calculation step.

    Without a calculation the formula's result is the first block's result.
    """

    name: str = ""
    blocks: tuple[MetricBlock, ...] = Field(min_length=1)
    calculation: Optional[CalculationStep] = None
    expose_blocks: tuple[str, ...] = ()

    @model_validator(mode="after")
    def validate_references(self) -> "MetricFormula":
        """Block ids must be unique and every reference must resolve."""
        seen: set[str] = set()
        for block in self.blocks:
            if block.id in seen:
                raise DuplicateBlockError(block.id)
            seen.add(block.id)
        if self.calculation is not None:
            for operand in (self.calculation.left_operand, self.calculation.right_operand):
                if operand not in seen:
                    raise UnknownOperandError(operand, "calculation")
        for block_id in self.expose_blocks:
            if block_id not in seen:
                raise UnknownOperandError(block_id, "exposeBlocks")
        return self

    def get_block(self, block_id: str) -> Optional[Union[RecordCountBlock, FieldAggregateBlock]]:
        """Return the block with the given id, if any."""
        for block in self.blocks:
            if block.id == block_id:
                return block
        return None


class MetricDef(EngineModel):
    """
    Legacy single-metric definition.

    Accepted wherever a formula is, and lifted into a one-block formula.
    """

    name: str = ""
    source: Optional[FieldRef] = None
    op: MetricOp
    type: MetricType = MetricType.SUM_OVER_PERIOD
    unit_type: Optional[UnitType] = None

    @model_validator(mode="after")
    def require_source(self) -> "MetricDef":
        """Only count operations may omit the source field."""
        if self.source is None and self.op not in (MetricOp.COUNT, MetricOp.DISTINCT_COUNT):
            raise MissingSourceError(self.name or "metric", self.op.value)
        return self

    def to_formula(self, block_id: str = "metric") -> MetricFormula:
        """Lift this definition into a single-block formula."""
        return MetricFormula(
            name=self.name,
            blocks=(
                {
                    "id": block_id,
                    "name": self.name,
                    "source": self.source,
                    "op": self.op,
                    "type": self.type,
                    "unit_type": self.unit_type,
                },
            ),
        )


class GroupBy(EngineModel):
    """
    Split of a computation into one series per selected value.

    Attributes:
        field: Categorical field used to split records
        values: Selected values (stringified), at most ten
    """

    field: FieldRef
    values: tuple[str, ...] = ()

    @field_validator("values")
    @classmethod
    def validate_value_count(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Bound the number of selected values for rendering."""
        if len(v) > MAX_GROUP_VALUES:
            raise GroupLimitExceededError(len(v), MAX_GROUP_VALUES)
        return v


class DateRange(EngineModel):
    """
    Inclusive date range plus the bucket granularity.

    Attributes:
        start: First day of the range (inclusive)
        end: Last day of the range (inclusive)
        granularity: Bucket size for series computations
    """

    start: date
    end: date
    granularity: Granularity = Granularity.DAY

    @model_validator(mode="after")
    def validate_order(self) -> "DateRange":
        """Start must not come after end."""
        if self.start > self.end:
            raise InvalidRangeError(
                f"Range start {self.start.isoformat()} is after end {self.end.isoformat()}"
            )
        return self
