"""
Metric computation router.

Wired to:
- MetricEngine for report computations
- RecordCatalog (shared, read-only) as the data source
- SQL preview for the dashboard's SQL tab
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException

from reportengine.catalog import RecordCatalog, get_catalog
from reportengine.engine import MetricEngine, format_value, generate_sql
from reportengine.models import FormulaComputation, MetricResult, ReportSpec
from reportengine.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


def display_values(result: MetricResult) -> dict[str, Any]:
    """Formatted renderings of a metric result for the presentation layer."""
    display: dict[str, Any] = {"value": None, "series": None}
    if result.series is not None:
        display["series"] = [
            {"date": point.date, "value": format_value(point.value, result.unit_type)}
            for point in result.series
        ]
    else:
        display["value"] = format_value(result.value, result.unit_type)
    return display


def computation_payload(computation: FormulaComputation) -> dict[str, Any]:
    payload = computation.model_dump(mode="json", by_alias=True)
    payload["display"] = display_values(computation.result)
    return payload


@router.post("/compute")
async def compute_metric(
    report: ReportSpec,
    catalog: RecordCatalog = Depends(get_catalog),
):
    """
    Compute a report's metric as a scalar or a bucketed series.
    Configuration errors (unresolved fields, unknown operands, invalid
    ranges) are returned as 422.
    """
    engine = MetricEngine(catalog)
    try:
        formula = report.resolved_formula()
        logger.info(
            "metric_compute_request",
            report=report.name,
            blocks=len(formula.blocks),
            mode=report.mode.value,
            granularity=report.range.granularity.value,
        )
        computation = engine.compute(report)
    except ValueError as e:
        logger.warning("metric_compute_rejected", report=report.name, error=str(e))
        raise HTTPException(status_code=422, detail=str(e))

    return {"success": True, "data": computation_payload(computation)}


@router.post("/compute/grouped")
async def compute_grouped_metric(
    report: ReportSpec,
    catalog: RecordCatalog = Depends(get_catalog),
):
    """
    Compute a report once per selected group-by value.
    Without selected values the most frequent values are used.
    """
    group_field: Optional[str] = report.group_by.field.qualified if report.group_by else None
    logger.info("metric_grouped_request", report=report.name, group_field=group_field)

    engine = MetricEngine(catalog)
    try:
        grouped = engine.compute_grouped(report)
    except ValueError as e:
        logger.warning("metric_grouped_rejected", report=report.name, error=str(e))
        raise HTTPException(status_code=422, detail=str(e))

    return {
        "success": True,
        "data": {
            "groupField": group_field,
            "groups": [
                {
                    "groupValue": group.group_value,
                    **computation_payload(group.computation),
                }
                for group in grouped
            ],
        },
    }


@router.post("/sql")
async def preview_sql(
    report: ReportSpec,
    catalog: RecordCatalog = Depends(get_catalog),
):
    """Render the report as illustrative SQL (never executed)."""
    try:
        sql = generate_sql(report, catalog.schema)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"success": True, "data": {"sql": sql}}
