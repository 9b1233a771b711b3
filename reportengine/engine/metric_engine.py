"""
Metric computation engine.

Public entry point of the engine: resolves a report specification into a
metric result. The whole report is validated before any record is touched
(field resolution, operand and expose ids, group limit, bucket count), so a
configuration error is never reported after partial aggregation.

The engine is purely functional over a read-only catalog snapshot and may be
shared across threads. Independent blocks of one formula may be evaluated on
a thread pool; combination waits for every block to finish.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import structlog

from reportengine.catalog.base import RecordCatalog
from reportengine.config import Settings, get_settings
from reportengine.errors import ReportConfigurationError
from reportengine.models.enums import ComputeMode
from reportengine.models.filters import FilterGroup
from reportengine.models.metrics import DateRange, GroupBy, MetricFormula
from reportengine.models.report import ReportSpec
from reportengine.models.results import BlockResult, FormulaComputation, GroupedComputation

from .block_evaluator import Block, BlockEvaluator
from .formula import FormulaCombiner
from .grouping import group_scope, group_values, validate_group_by
from .time_buckets import bucketize

logger = structlog.get_logger()


class MetricEngine:
    """
    Computes report metrics against one record catalog.

    Args:
        catalog: Read-only record catalog
        settings: Engine settings (bucket limit, group limit, parallelism);
            defaults to the application settings

    Example:
        >>> engine = MetricEngine(catalog)
        >>> computation = engine.compute(report)
        >>> computation.result.series[0].date
        '2024-01'
    """

    def __init__(self, catalog: RecordCatalog, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.catalog = catalog
        self.evaluator = BlockEvaluator(catalog, max_buckets=self.settings.max_buckets)
        self.combiner = FormulaCombiner()
        self.logger = logger.bind(component="metric_engine")

    def validate(self, report: ReportSpec) -> MetricFormula:
        """
        Validate a report against the catalog without evaluating it.

        Returns:
            The report's formula (a legacy metric lifted to one block)

        Raises:
            ReportConfigurationError: For the first configuration problem found
        """
        formula = report.resolved_formula()
        self._validate_formula(formula, report.range, report.primary_object, report.filters)
        for name in report.objects:
            self.catalog.schema_object(name)
        if report.group_by is not None:
            validate_group_by(report.group_by, self.catalog, self.settings.max_group_values)
        return formula

    def _validate_formula(
        self,
        formula: MetricFormula,
        date_range: DateRange,
        primary_object: Optional[str],
        filters: Optional[FilterGroup],
    ) -> None:
        bucketize(date_range.start, date_range.end, date_range.granularity, self.settings.max_buckets)
        for block in formula.blocks:
            self.evaluator.prepare(block, primary_object, filters)

    def compute(self, report: ReportSpec) -> FormulaComputation:
        """
        Compute a report's metric.

        Args:
            report: Report specification

        Returns:
            FormulaComputation with the metric result and the results of the
            exposed blocks

        Raises:
            ReportConfigurationError: If the report cannot be evaluated
        """
        formula = self.validate(report)
        return self._compute(
            formula,
            report.range,
            report.mode,
            primary_object=report.primary_object,
            filters=report.filters,
            report_name=report.name,
        )

    def compute_formula(
        self,
        formula: MetricFormula,
        date_range: DateRange,
        mode: ComputeMode = ComputeMode.SERIES,
        primary_object: Optional[str] = None,
        filters: Optional[FilterGroup] = None,
    ) -> FormulaComputation:
        """
        Compute a formula directly, without a full report specification.

        Raises:
            ReportConfigurationError: If the formula cannot be evaluated
        """
        self._validate_formula(formula, date_range, primary_object, filters)
        return self._compute(formula, date_range, mode, primary_object, filters)

    def compute_grouped(self, report: ReportSpec) -> list[GroupedComputation]:
        """
        Compute a report once per selected group-by value.

        Without selected values, the most frequent values of the group field
        are used, up to the group limit.

        Returns:
            One GroupedComputation per group value, in selection order

        Raises:
            ReportConfigurationError: If the report has no group-by or cannot
                be evaluated
        """
        formula = self.validate(report)
        group_by = report.group_by
        if group_by is None:
            raise ReportConfigurationError("Grouped computation requires a groupBy")

        values = list(group_by.values) or group_values(
            self.catalog, group_by.field, limit=self.settings.max_group_values
        )
        primary = report.primary_object
        # resolve the group field from every block table before evaluating
        for block in formula.blocks:
            group_scope(self.catalog, self.evaluator.block_table(block, primary), group_by.field, "")

        grouped = [
            GroupedComputation(
                group_value=value,
                computation=self._compute(
                    formula,
                    report.range,
                    report.mode,
                    primary_object=primary,
                    filters=report.filters,
                    report_name=report.name,
                    group=(group_by, value),
                ),
            )
            for value in values
        ]
        self.logger.info(
            "metric_grouped_computed",
            report=report.name,
            group_field=group_by.field.qualified,
            groups=len(grouped),
        )
        return grouped

    def _compute(
        self,
        formula: MetricFormula,
        date_range: DateRange,
        mode: ComputeMode,
        primary_object: Optional[str] = None,
        filters: Optional[FilterGroup] = None,
        report_name: Optional[str] = None,
        group: Optional[tuple[GroupBy, str]] = None,
    ) -> FormulaComputation:
        started = time.perf_counter()
        bucketed = mode is ComputeMode.SERIES

        def evaluate(block: Block) -> BlockResult:
            scope = None
            if group is not None:
                group_by, value = group
                scope = group_scope(
                    self.catalog,
                    self.evaluator.block_table(block, primary_object),
                    group_by.field,
                    value,
                )
            return self.evaluator.evaluate(
                block,
                date_range,
                bucketed,
                primary_object=primary_object,
                report_filters=filters,
                scope=scope,
            )

        if self.settings.parallel_blocks and len(formula.blocks) > 1:
            workers = min(self.settings.max_block_workers, len(formula.blocks))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                block_results = list(executor.map(evaluate, formula.blocks))
        else:
            block_results = [evaluate(block) for block in formula.blocks]

        result = self.combiner.combine(block_results, formula.calculation)
        exposed = set(formula.expose_blocks)
        computation = FormulaComputation(
            result=result,
            block_results=tuple(r for r in block_results if r.block_id in exposed),
        )

        self.logger.info(
            "metric_formula_computed",
            report=report_name,
            formula=formula.name,
            blocks=len(formula.blocks),
            mode=mode.value,
            granularity=date_range.granularity.value,
            group=group[1] if group is not None else None,
            has_value=result.value is not None or result.series is not None,
            note=result.note,
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
        return computation
