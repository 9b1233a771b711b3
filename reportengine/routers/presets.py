"""
Report presets router.

Wired to:
- PresetIndex built once by the application factory (app.state.presets)
- MetricEngine for preset computations
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from reportengine.catalog import RecordCatalog, get_catalog
from reportengine.engine import MetricEngine
from reportengine.presets import PresetIndex, ReportPreset
from reportengine.utils.logging import get_logger

from .metrics import computation_payload

logger = get_logger(__name__)
router = APIRouter()


def get_preset_index(request: Request) -> PresetIndex:
    """Return the preset index owned by the application."""
    return request.app.state.presets


def _require(index: PresetIndex, slug: str) -> ReportPreset:
    preset = index.by_slug(slug)
    if preset is None:
        raise HTTPException(status_code=404, detail=f"Preset {slug} not found")
    return preset


@router.get("")
async def list_presets(index: PresetIndex = Depends(get_preset_index)):
    """List available report presets."""
    return {
        "success": True,
        "data": [
            {
                "key": preset.key,
                "label": preset.label,
                "slug": preset.slug,
                "description": preset.description,
            }
            for preset in index
        ],
    }


@router.get("/{slug}")
async def get_preset(
    slug: str,
    today: Optional[date] = Query(None, description="Range end; defaults to today"),
    index: PresetIndex = Depends(get_preset_index),
):
    """Get a preset with its report ranged to end today."""
    preset = _require(index, slug)
    return {
        "success": True,
        "data": {
            "key": preset.key,
            "label": preset.label,
            "slug": preset.slug,
            "description": preset.description,
            "report": preset.report_for(today).model_dump(mode="json", by_alias=True),
        },
    }


@router.post("/{slug}/compute")
async def compute_preset(
    slug: str,
    today: Optional[date] = Query(None, description="Range end; defaults to today"),
    index: PresetIndex = Depends(get_preset_index),
    catalog: RecordCatalog = Depends(get_catalog),
):
    """Compute a preset's report against the loaded catalog."""
    preset = _require(index, slug)
    logger.info("preset_compute_request", preset=preset.key)

    try:
        computation = MetricEngine(catalog).compute(preset.report_for(today))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return {"success": True, "data": computation_payload(computation)}
