"""
Block evaluator.

Computes one metric block over a date range, either as a scalar or as one
value per time bucket.

Evaluation steps:
1. Select the block's table (the source object, or the report's primary
   object for sourceless count blocks) and keep the records passing the
   block's local filters and the report's data-list filters.
2. Restrict to the time window on the object's canonical time column; records
   without a time value never enter a window.
3. Apply the block type: flow types (sum_over_period, average_over_period)
   aggregate over the interval, snapshot types (latest, first) aggregate the
   records sharing the maximum / minimum timestamp.
4. Apply the operation. Numeric operations ignore missing, non-numeric and
   boolean values; an empty selection yields 0 for counts and None otherwise.
"""

from collections import Counter
from collections.abc import Callable, Sequence
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

import numpy as np
import structlog

from reportengine.catalog.base import Record, RecordCatalog
from reportengine.errors import ReportConfigurationError, UnresolvedFieldError
from reportengine.models.enums import MetricOp, MetricType, UnitType
from reportengine.models.filters import FilterGroup
from reportengine.models.metrics import DateRange, FieldAggregateBlock, RecordCountBlock
from reportengine.models.results import BlockResult, SeriesPoint

from .filters import CompiledFilter, applicable_conditions, compile_filters
from .time_buckets import DEFAULT_MAX_BUCKETS, TimeBucketer
from .units import infer_unit_type

logger = structlog.get_logger()

Block = Union[RecordCountBlock, FieldAggregateBlock]
RecordScope = Callable[[Record], bool]

NO_DATA_NOTE = "No data in selection"
NO_VALUES_NOTE = "No numeric values to aggregate"

_COUNT_OPS = {MetricOp.COUNT, MetricOp.DISTINCT_COUNT}


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value == value


def round_minor_units(value: float) -> int:
    """Round a currency amount to whole minor units, half away from zero."""
    return int(Decimal(repr(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def aggregate(
    op: MetricOp,
    records: Sequence[Record],
    field: Optional[str] = None,
    unit: Optional[UnitType] = None,
) -> Optional[float]:
    """
    Apply one operation to a set of records.

    Args:
        op: Operation to apply
        records: Records in scope
        field: Source field name (None for sourceless count blocks)
        unit: Unit of the values; currency avg/median results are rounded to
            whole minor units

    Returns:
        Aggregated value; counts return 0 for an empty set, other operations
        return None when there is no numeric value to aggregate
    """
    if op is MetricOp.COUNT:
        return len(records)
    if op is MetricOp.DISTINCT_COUNT:
        if field is None:
            return len({record.id for record in records})
        return len({value for value in (r.get(field) for r in records) if value is not None})

    values = [value for value in (r.get(field) for r in records) if _is_number(value)]
    if not values:
        return None

    if op is MetricOp.SUM:
        return sum(values)
    if op is MetricOp.MODE:
        counts = Counter(values)
        top = max(counts.values())
        return min(value for value, count in counts.items() if count == top)

    if op is MetricOp.AVG:
        result = sum(values) / len(values)
    else:
        result = float(np.median(np.asarray(values, dtype=float)))
    if unit is UnitType.CURRENCY:
        return round_minor_units(result)
    return result


def _snapshot(entries: Sequence[tuple[datetime, Record]], latest: bool) -> list[Record]:
    """Records sharing the maximum (latest) or minimum (first) timestamp."""
    if not entries:
        return []
    pick = max if latest else min
    instant = pick(timestamp for timestamp, _ in entries)
    return [record for timestamp, record in entries if timestamp == instant]


class BlockEvaluator:
    """
    Evaluates metric blocks against one record catalog.

    Args:
        catalog: Read-only record catalog
        max_buckets: Upper bound on time buckets per range

    Example:
        >>> evaluator = BlockEvaluator(catalog)
        >>> result = evaluator.evaluate(block, DateRange(start=..., end=...), bucketed=True)
        >>> [point.value for point in result.series]
        [1, 1]
    """

    def __init__(self, catalog: RecordCatalog, max_buckets: int = DEFAULT_MAX_BUCKETS):
        self.catalog = catalog
        self.max_buckets = max_buckets
        self.logger = logger.bind(component="block_evaluator")

    def block_table(self, block: Block, primary_object: Optional[str] = None) -> str:
        """Return the object whose records a block aggregates."""
        if block.source is not None:
            return block.source.object
        if primary_object is None:
            raise ReportConfigurationError(
                f"Block {block.id!r} has no source and the report selects no object to count"
            )
        return primary_object

    def prepare(
        self,
        block: Block,
        primary_object: Optional[str] = None,
        report_filters: Optional[FilterGroup] = None,
    ) -> tuple[str, CompiledFilter, CompiledFilter]:
        """
        Resolve a block's table, source field and filters.

        Raises every configuration error of the block without touching records.

        Returns:
            (table, compiled block filters, compiled report filters)
        """
        table = self.block_table(block, primary_object)
        self.catalog.schema_object(table)
        if block.source is not None and self.catalog.schema.get_field(block.source) is None:
            raise UnresolvedFieldError(block.source.qualified)

        block_filter = compile_filters(self.catalog, table, block.filters)
        report_filters = report_filters or FilterGroup()
        report_filter = compile_filters(
            self.catalog,
            table,
            applicable_conditions(self.catalog, table, report_filters.conditions),
            report_filters.logic,
        )
        return table, block_filter, report_filter

    def evaluate(
        self,
        block: Block,
        date_range: DateRange,
        bucketed: bool,
        primary_object: Optional[str] = None,
        report_filters: Optional[FilterGroup] = None,
        scope: Optional[RecordScope] = None,
    ) -> BlockResult:
        """
        Evaluate one block.

        Args:
            block: Block to evaluate
            date_range: Range and granularity
            bucketed: True for a series, False for a scalar
            primary_object: Object counted by sourceless count blocks
            report_filters: Data-list filters of the report
            scope: Extra record predicate (used for group-by splits)

        Returns:
            BlockResult with ``value`` (scalar) or ``series`` (bucketed)

        Raises:
            ReportConfigurationError: If the block cannot be resolved against
                the catalog
        """
        table, block_filter, report_filter = self.prepare(block, primary_object, report_filters)
        bucketer = TimeBucketer(
            date_range.start, date_range.end, date_range.granularity, self.max_buckets
        )
        time_field = self.catalog.schema_object(table).time_field

        per_bucket: list[list[tuple[datetime, Record]]] = [[] for _ in range(len(bucketer))]
        matched = 0
        for record in self.catalog.table(table):
            index = bucketer.assign(record.get(time_field))
            if index is None:
                continue
            if scope is not None and not scope(record):
                continue
            if not (report_filter.matches(record) and block_filter.matches(record)):
                continue
            per_bucket[index].append((record.get(time_field), record))
            matched += 1

        unit = block.unit_type or infer_unit_type(self.catalog.schema, block.source, block.op)
        field = block.source.field if block.source is not None else None

        if bucketed:
            values = [self._bucket_value(block, entries, field, unit) for entries in per_bucket]
            series = tuple(
                SeriesPoint(date=bucket.label, value=value)
                for bucket, value in zip(bucketer.buckets, values)
            )
            note = self._note(matched, all(v is None for v in values))
            result = BlockResult(
                block_id=block.id,
                block_name=block.name,
                series=series,
                unit_type=unit,
                note=note,
            )
        else:
            value = self._scalar_value(block, per_bucket, field, unit)
            result = BlockResult(
                block_id=block.id,
                block_name=block.name,
                value=value,
                unit_type=unit,
                note=self._note(matched, value is None),
            )

        self.logger.debug(
            "block_evaluated",
            block_id=block.id,
            table=table,
            op=block.op.value,
            type=block.type.value,
            bucketed=bucketed,
            matched_records=matched,
            buckets=len(bucketer),
        )
        return result

    def _bucket_value(
        self,
        block: Block,
        entries: Sequence[tuple[datetime, Record]],
        field: Optional[str],
        unit: UnitType,
    ) -> Optional[float]:
        if block.type is MetricType.LATEST:
            records = _snapshot(entries, latest=True)
        elif block.type is MetricType.FIRST:
            records = _snapshot(entries, latest=False)
        else:
            records = [record for _, record in entries]
        return aggregate(block.op, records, field, unit)

    def _scalar_value(
        self,
        block: Block,
        per_bucket: Sequence[Sequence[tuple[datetime, Record]]],
        field: Optional[str],
        unit: UnitType,
    ) -> Optional[float]:
        if block.type is MetricType.AVERAGE_OVER_PERIOD:
            bucket_values = [
                value
                for value in (self._bucket_value(block, entries, field, unit) for entries in per_bucket)
                if value is not None
            ]
            if not bucket_values:
                return None
            average = sum(bucket_values) / len(bucket_values)
            if unit is UnitType.CURRENCY and block.op not in _COUNT_OPS:
                return round_minor_units(average)
            return average

        entries = [entry for bucket in per_bucket for entry in bucket]
        if block.type is MetricType.LATEST:
            records = _snapshot(entries, latest=True)
        elif block.type is MetricType.FIRST:
            records = _snapshot(entries, latest=False)
        else:
            records = [record for _, record in entries]
        return aggregate(block.op, records, field, unit)

    def _note(self, matched: int, empty: bool) -> Optional[str]:
        if matched == 0:
            return NO_DATA_NOTE
        if empty:
            return NO_VALUES_NOTE
        return None


def evaluate_block(
    block: Block,
    catalog: RecordCatalog,
    date_range: DateRange,
    bucketed: bool,
    primary_object: Optional[str] = None,
    max_buckets: int = DEFAULT_MAX_BUCKETS,
) -> BlockResult:
    """Evaluate one block directly against a catalog."""
    return BlockEvaluator(catalog, max_buckets).evaluate(
        block, date_range, bucketed, primary_object=primary_object
    )
