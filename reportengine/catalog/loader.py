"""
Record catalog loader.

Builds the typed in-memory record catalog from raw tables (lists of plain
mappings, e.g. a warehouse JSON export). Every value is coerced once, at load
time, according to the declared type of its field, so that filters and
aggregations never need to sniff value types:

- date fields become naive UTC datetimes (ISO strings, epoch seconds,
  date and datetime objects are accepted)
- number fields become int or float (booleans and unparseable values become None)
- boolean fields accept bools, 0/1 and "true"/"false"
- id and string fields become strings
- None, NaN and empty strings become None
"""

import json
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

import pandas as pd
import structlog

from reportengine.errors import UnknownObjectError
from reportengine.models.enums import FieldType
from reportengine.models.schema import SchemaCatalog, SchemaObject

from .base import Record, RecordCatalog
from .default_schema import DEFAULT_SCHEMA

logger = structlog.get_logger()

_TRUE_STRINGS = {"true", "t", "yes", "y", "1"}
_FALSE_STRINGS = {"false", "f", "no", "n", "0"}


class CatalogBuilder:
    """
    Coerces raw tables into a RecordCatalog for one schema.

    Args:
        schema: Schema whose field declarations drive coercion

    Example:
        >>> builder = CatalogBuilder(DEFAULT_SCHEMA)
        >>> catalog = builder.build({"invoice": [{"id": "in_1", "created": "2024-01-05"}]})
    """

    def __init__(self, schema: SchemaCatalog):
        self.schema = schema
        self.logger = logger.bind(component="catalog_builder")

    def build(self, raw_tables: Mapping[str, Iterable[Mapping[str, Any]]]) -> RecordCatalog:
        """
        Coerce every table and assemble the catalog.

        Args:
            raw_tables: Raw records per object name

        Returns:
            Immutable RecordCatalog

        Raises:
            UnknownObjectError: If a table name is not a declared object
            ValueError: If a record has no id or ids repeat within a table
        """
        tables: dict[str, list[Record]] = {}
        for name, rows in raw_tables.items():
            schema_object = self.schema.get_object(name)
            if schema_object is None:
                raise UnknownObjectError(name)
            tables[name] = [
                self._build_record(schema_object, position, row)
                for position, row in enumerate(rows)
            ]

        catalog = RecordCatalog(self.schema, tables)
        self.logger.info(
            "catalog_built",
            tables=len(tables),
            total_records=catalog.total_records,
        )
        return catalog

    def _build_record(
        self, schema_object: SchemaObject, position: int, row: Mapping[str, Any]
    ) -> Record:
        record_id = self._safe_str(row.get("id"))
        if record_id is None:
            raise ValueError(f"Record #{position} of table {schema_object.name!r} has no id")

        values: dict[str, Any] = {}
        for key, raw in row.items():
            if key == "id":
                continue
            declared = schema_object.get_field(key)
            if declared is None:
                values[key] = None if self._is_missing(raw) else raw
            else:
                values[key] = self.coerce(raw, declared.type)
        return Record(object=schema_object.name, id=record_id, values=values)

    def coerce(self, value: Any, field_type: FieldType) -> Union[str, int, float, bool, datetime, None]:
        """
        Coerce one raw value to the representation of a declared field type.

        Args:
            value: Raw value
            field_type: Declared field type

        Returns:
            Typed value, or None when the value is missing or unparseable
        """
        if field_type is FieldType.DATE:
            return self._safe_datetime(value)
        if field_type is FieldType.NUMBER:
            return self._safe_number(value)
        if field_type is FieldType.BOOLEAN:
            return self._safe_bool(value)
        return self._safe_str(value)

    def _is_missing(self, value: Any) -> bool:
        """Check if a value is missing (None, NaN, empty string)."""
        if value is None:
            return True
        if isinstance(value, (list, tuple, dict, set)):
            return False
        if isinstance(value, str):
            return not value.strip()
        return bool(pd.isna(value))

    def _safe_str(self, value: Any) -> Optional[str]:
        if self._is_missing(value):
            return None
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)

    def _safe_number(self, value: Any) -> Union[int, float, None]:
        """
        Convert a value to int or float, handling None, NaN and bad strings.

        Booleans are not numbers here: a boolean in a number column is treated
        as unparseable.
        """
        if self._is_missing(value) or isinstance(value, bool):
            return None
        number = pd.to_numeric(value, errors="coerce")
        if pd.isna(number):
            return None
        number = float(number)
        if number in (float("inf"), float("-inf")):
            return None
        return int(number) if number.is_integer() else number

    def _safe_bool(self, value: Any) -> Optional[bool]:
        if self._is_missing(value):
            return None
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)) and value in (0, 1):
            return bool(value)
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
        return None

    def _safe_datetime(self, value: Any) -> Optional[datetime]:
        """
        Convert a value to a naive UTC datetime.

        Numbers are read as Unix epoch seconds; strings are parsed by pandas.
        """
        if self._is_missing(value) or isinstance(value, bool):
            return None
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                return value.astimezone(timezone.utc).replace(tzinfo=None)
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if isinstance(value, (int, float)):
            timestamp = pd.to_datetime(value, unit="s", utc=True, errors="coerce")
        else:
            timestamp = pd.to_datetime(str(value), utc=True, errors="coerce")
        if pd.isna(timestamp):
            return None
        if timestamp.tzinfo is not None:
            timestamp = timestamp.tz_convert("UTC").tz_localize(None)
        return timestamp.to_pydatetime()


def build_catalog(
    schema: SchemaCatalog, raw_tables: Mapping[str, Iterable[Mapping[str, Any]]]
) -> RecordCatalog:
    """
    Build a typed record catalog from raw tables.

    Args:
        schema: Schema declaring objects and field types
        raw_tables: Raw records per object name

    Returns:
        Immutable RecordCatalog with coerced values
    """
    return CatalogBuilder(schema).build(raw_tables)


def _resolve_table_name(schema: SchemaCatalog, key: str) -> Optional[str]:
    """Map a document key such as ``customers`` to a declared object name."""
    if schema.get_object(key) is not None:
        return key
    if key.endswith("s") and schema.get_object(key[:-1]) is not None:
        return key[:-1]
    return None


def load_catalog_from_json(
    path: Union[str, Path], schema: SchemaCatalog = DEFAULT_SCHEMA
) -> RecordCatalog:
    """
    Load a warehouse JSON document ``{object_name: [records...]}``.

    Plural keys (``customers``) are accepted. Tables that do not correspond
    to a declared object are skipped with a warning.

    Args:
        path: Path of the JSON document
        schema: Schema of the dataset

    Returns:
        Immutable RecordCatalog
    """
    with open(path, encoding="utf-8") as handle:
        document = json.load(handle)

    if not isinstance(document, dict):
        raise ValueError(f"Catalog document {path} must be a JSON object of tables")

    raw_tables: dict[str, list[Mapping[str, Any]]] = {}
    for key, rows in document.items():
        name = _resolve_table_name(schema, key)
        if name is None:
            logger.warning("catalog_table_skipped", table=key, reason="undeclared object")
            continue
        raw_tables.setdefault(name, []).extend(rows)

    catalog = build_catalog(schema, raw_tables)
    logger.info("catalog_loaded", path=str(path), total_records=catalog.total_records)
    return catalog
