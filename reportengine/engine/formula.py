"""
Formula combiner.

Combines two block results with one arithmetic operator. Scalars combine
directly; series combine point by point and must share bucket alignment.
Degenerate arithmetic never produces NaN or Infinity: dividing by zero or by
an absent value, or combining with an absent operand, yields None plus a note.
"""

import math
from collections.abc import Mapping, Sequence
from typing import Optional, Union

import structlog

from reportengine.errors import SeriesAlignmentError, UnknownOperandError
from reportengine.models.enums import CalculationOperator
from reportengine.models.metrics import CalculationStep
from reportengine.models.results import BlockResult, MetricResult, SeriesPoint

from .units import infer_result_unit, value_kind

logger = structlog.get_logger()

DIVIDE_BY_ZERO_NOTE = "Division by zero"
DIVIDE_BY_EMPTY_NOTE = "Denominator has no data"
MISSING_OPERAND_NOTE = "Operand has no data"
NON_FINITE_NOTE = "Result is not a finite number"


def apply_operator(
    operator: CalculationOperator, left: Optional[float], right: Optional[float]
) -> tuple[Optional[float], Optional[str]]:
    """
    Apply one operator to two values.

    Returns:
        (value, note) where value is None and note explains why when the
        arithmetic is degenerate. A zero numerator over a non-zero denominator
        is a valid 0.
    """
    if operator is CalculationOperator.DIVIDE:
        if right is None:
            return None, DIVIDE_BY_EMPTY_NOTE
        if right == 0:
            return None, DIVIDE_BY_ZERO_NOTE
    if left is None or right is None:
        return None, MISSING_OPERAND_NOTE

    if operator is CalculationOperator.ADD:
        value = left + right
    elif operator is CalculationOperator.SUBTRACT:
        value = left - right
    elif operator is CalculationOperator.MULTIPLY:
        value = left * right
    else:
        value = left / right

    if isinstance(value, float) and not math.isfinite(value):
        return None, NON_FINITE_NOTE
    return value, None


def _join_notes(notes: Sequence[Optional[str]]) -> Optional[str]:
    unique: list[str] = []
    for note in notes:
        if note and note not in unique:
            unique.append(note)
    return "; ".join(unique) if unique else None


class FormulaCombiner:
    """
    Combines block results according to a calculation step.

    Example:
        >>> combiner = FormulaCombiner()
        >>> result = combiner.combine(block_results, CalculationStep(
        ...     operator="divide", left_operand="failed", right_operand="all"))
        >>> result.unit_type
        <UnitType.RATE: 'rate'>
    """

    def __init__(self):
        self.logger = logger.bind(component="formula_combiner")

    def combine(
        self,
        block_results: Union[Sequence[BlockResult], Mapping[str, BlockResult]],
        calculation: Optional[CalculationStep] = None,
    ) -> MetricResult:
        """
        Combine block results into the formula's metric result.

        Args:
            block_results: Results of the formula's blocks, in block order, or
                keyed by block id
            calculation: Calculation step; without one the first block's
                result passes through unchanged

        Returns:
            MetricResult

        Raises:
            UnknownOperandError: If an operand id has no block result
            SeriesAlignmentError: If series operands differ in bucket count
                or labels, or one operand is scalar and the other a series
        """
        if isinstance(block_results, Mapping):
            by_id = dict(block_results)
            ordered = list(block_results.values())
        else:
            by_id = {result.block_id: result for result in block_results}
            ordered = list(block_results)

        if calculation is None:
            if not ordered:
                raise UnknownOperandError("<first block>", "formula without blocks")
            return ordered[0].to_metric_result()

        left = by_id.get(calculation.left_operand)
        if left is None:
            raise UnknownOperandError(calculation.left_operand)
        right = by_id.get(calculation.right_operand)
        if right is None:
            raise UnknownOperandError(calculation.right_operand)

        unit, warning = infer_result_unit(
            calculation.operator,
            left.unit_type,
            right.unit_type,
            calculation.result_unit_type,
        )

        if left.series is None and right.series is None:
            value, note = apply_operator(calculation.operator, left.value, right.value)
            result = MetricResult(
                value=value,
                unit_type=unit,
                kind=value_kind(unit),
                note=_join_notes([warning, note]),
            )
        else:
            series, notes = self._combine_series(calculation.operator, left, right)
            result = MetricResult(
                series=series,
                unit_type=unit,
                kind=value_kind(unit),
                note=_join_notes([warning, *notes]),
            )

        self.logger.debug(
            "formula_combined",
            operator=calculation.operator.value,
            left=calculation.left_operand,
            right=calculation.right_operand,
            unit_type=unit.value,
            note=result.note,
        )
        return result

    def _combine_series(
        self, operator: CalculationOperator, left: BlockResult, right: BlockResult
    ) -> tuple[tuple[SeriesPoint, ...], list[Optional[str]]]:
        if left.series is None or right.series is None:
            raise SeriesAlignmentError(
                f"Cannot combine a scalar with a series "
                f"({left.block_id!r} and {right.block_id!r})"
            )
        if len(left.series) != len(right.series):
            raise SeriesAlignmentError(
                f"Series {left.block_id!r} has {len(left.series)} buckets, "
                f"{right.block_id!r} has {len(right.series)}"
            )

        points: list[SeriesPoint] = []
        notes: list[Optional[str]] = []
        for lpoint, rpoint in zip(left.series, right.series):
            if lpoint.date != rpoint.date:
                raise SeriesAlignmentError(
                    f"Bucket {lpoint.date!r} of {left.block_id!r} does not align "
                    f"with bucket {rpoint.date!r} of {right.block_id!r}"
                )
            value, note = apply_operator(operator, lpoint.value, rpoint.value)
            points.append(SeriesPoint(date=lpoint.date, value=value))
            notes.append(note)
        return tuple(points), notes


def combine(
    block_results: Union[Sequence[BlockResult], Mapping[str, BlockResult]],
    calculation: Optional[CalculationStep] = None,
) -> MetricResult:
    """Combine block results with a fresh FormulaCombiner."""
    return FormulaCombiner().combine(block_results, calculation)
