"""
Record catalog router.

Wired to:
- RecordCatalog for schema, integrity and group-by value lookups
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from reportengine.catalog import RecordCatalog, get_catalog, validate_catalog_integrity
from reportengine.engine import available_group_fields, group_values, suggest_granularity
from reportengine.models import FieldRef
from reportengine.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/schema")
async def get_schema(catalog: RecordCatalog = Depends(get_catalog)):
    """
    Get the schema catalog: objects, typed fields, time columns and
    relationships, plus the number of loaded records per object.
    """
    return {
        "success": True,
        "data": {
            "schema": catalog.schema.model_dump(mode="json", by_alias=True),
            "recordCounts": {
                schema_object.name: len(catalog.table(schema_object.name))
                for schema_object in catalog.schema.objects
            },
        },
    }


@router.get("/integrity")
async def get_integrity(catalog: RecordCatalog = Depends(get_catalog)):
    """Check foreign-key integrity and time-field completeness of the catalog."""
    report = validate_catalog_integrity(catalog)
    logger.info("catalog_integrity_request", issues=len(report.issues))
    return {"success": True, "data": report.model_dump(mode="json", by_alias=True)}


@router.get("/group-fields")
async def get_group_fields(
    objects: str = Query(..., description="Comma-separated object names"),
    catalog: RecordCatalog = Depends(get_catalog),
):
    """List categorical fields of the selected objects usable for group-by."""
    names = [name.strip() for name in objects.split(",") if name.strip()]
    fields = available_group_fields(catalog.schema, names)
    return {
        "success": True,
        "data": [field.model_dump(mode="json") for field in fields],
    }


@router.get("/group-values")
async def get_group_values(
    object: str = Query(..., description="Object name"),
    field: str = Query(..., description="Field name"),
    limit: int = Query(100, ge=1, le=1000),
    catalog: RecordCatalog = Depends(get_catalog),
):
    """Distinct values of a field, most frequent first."""
    try:
        values = group_values(catalog, FieldRef(object=object, field=field), limit=limit)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "data": values}


@router.get("/granularity")
async def get_suggested_granularity(
    start: date = Query(..., description="Range start (YYYY-MM-DD)"),
    end: date = Query(..., description="Range end (YYYY-MM-DD)"),
    current: Optional[str] = Query(None, description="Granularity currently selected"),
):
    """Suggest a readable granularity for a date range."""
    if start > end:
        raise HTTPException(status_code=422, detail="start must not be after end")
    suggestion = suggest_granularity(start, end)
    return {
        "success": True,
        "data": {
            "suggested": suggestion.value,
            "changed": current is not None and current != suggestion.value,
        },
    }
