"""
Record catalog: typed in-memory record tables and their schema.

The catalog is loaded once (from the warehouse JSON document named by
``CATALOG_PATH``) and shared read-only by every computation.
"""

from functools import lru_cache

from reportengine.config import get_settings

from .base import Record, RecordCatalog, RecordValue
from .default_schema import CURRENCY_FIELDS, DEFAULT_SCHEMA
from .integrity import validate_catalog_integrity
from .loader import CatalogBuilder, build_catalog, load_catalog_from_json


@lru_cache
def get_catalog() -> RecordCatalog:
    """
    Get cached record catalog instance (singleton).

    Loads the warehouse document configured by ``catalog_path``; without one,
    returns an empty catalog over the default schema.

    Returns:
        RecordCatalog shared by all requests
    """
    settings = get_settings()
    if settings.catalog_path:
        return load_catalog_from_json(settings.catalog_path, DEFAULT_SCHEMA)
    return RecordCatalog(DEFAULT_SCHEMA)


__all__ = [
    "CURRENCY_FIELDS",
    "DEFAULT_SCHEMA",
    "CatalogBuilder",
    "Record",
    "RecordCatalog",
    "RecordValue",
    "build_catalog",
    "get_catalog",
    "load_catalog_from_json",
    "validate_catalog_integrity",
]
