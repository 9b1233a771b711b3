"""
System health router.

Wired to:
- RecordCatalog for loaded record counts
- Settings for engine limits
"""

import time

from fastapi import APIRouter, Depends

from reportengine.catalog import RecordCatalog, get_catalog
from reportengine.config import get_settings
from reportengine.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()

_startup_time = time.time()


@router.get("/health")
async def system_health(catalog: RecordCatalog = Depends(get_catalog)):
    """
    Get system health status.
    Reports uptime, loaded catalog size and engine limits.
    """
    settings = get_settings()
    uptime = time.time() - _startup_time

    return {
        "success": True,
        "data": {
            "status": "healthy" if catalog.total_records else "empty",
            "version": "0.1.0",
            "uptime_seconds": round(uptime, 1),
            "catalog": {
                "source": settings.catalog_path,
                "total_records": catalog.total_records,
                "tables": {name: len(rows) for name, rows in catalog.tables.items()},
            },
            "limits": {
                "max_buckets": settings.max_buckets,
                "max_group_values": settings.max_group_values,
                "parallel_blocks": settings.parallel_blocks,
            },
        },
    }
