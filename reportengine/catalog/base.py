"""
In-memory record catalog.

The catalog holds one ordered, immutable table of records per schema object,
with values already coerced to their declared types. It is read-only for the
duration of any computation, so concurrent computations may share one
instance.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime
from types import MappingProxyType
from typing import Any, Optional, Union

from pydantic import Field, field_validator

from reportengine.errors import UnknownObjectError
from reportengine.models.base import EngineModel
from reportengine.models.schema import SchemaCatalog, SchemaObject

RecordValue = Union[str, int, float, bool, datetime, None]


class Record(EngineModel):
    """
    One row of one object table.

    Attributes:
        object: Owning object name
        id: Unique record id within the object
        values: Field name to typed value (string, number, boolean, datetime or None)
    """

    object: str
    id: str
    values: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)

    @field_validator("values")
    @classmethod
    def freeze_values(cls, v: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(v))

    def get(self, field: str) -> RecordValue:
        """Return a field value; absent fields read as None."""
        if field == "id":
            return self.id
        return self.values.get(field)


class RecordCatalog:
    """
    Immutable set of record tables keyed by object name.

    Args:
        schema: Schema declaring the objects, fields and relationships
        tables: Records per object name; every key must be a declared object

    Example:
        >>> catalog = RecordCatalog(schema, {"invoice": [record_a, record_b]})
        >>> len(catalog.table("invoice"))
        2
    """

    def __init__(
        self,
        schema: SchemaCatalog,
        tables: Optional[Mapping[str, Iterable[Record]]] = None,
    ) -> None:
        self.schema = schema
        frozen: dict[str, tuple[Record, ...]] = {}
        index: dict[tuple[str, str], Record] = {}
        for name, records in (tables or {}).items():
            if schema.get_object(name) is None:
                raise UnknownObjectError(name)
            rows = tuple(records)
            for record in rows:
                if record.object != name:
                    raise ValueError(
                        f"Record {record.id!r} of object {record.object!r} placed in table {name!r}"
                    )
                key = (name, record.id)
                if key in index:
                    raise ValueError(f"Duplicate record id {record.id!r} in table {name!r}")
                index[key] = record
            frozen[name] = rows
        self._tables = MappingProxyType(frozen)
        self._index = MappingProxyType(index)

    @property
    def tables(self) -> Mapping[str, tuple[Record, ...]]:
        return self._tables

    @property
    def total_records(self) -> int:
        return sum(len(rows) for rows in self._tables.values())

    def schema_object(self, name: str) -> SchemaObject:
        """Return the declaration of an object, raising if it is unknown."""
        schema_object = self.schema.get_object(name)
        if schema_object is None:
            raise UnknownObjectError(name)
        return schema_object

    def table(self, name: str) -> tuple[Record, ...]:
        """
        Return the records of one object.

        A declared object without loaded records yields an empty table; an
        undeclared object is a configuration error.
        """
        self.schema_object(name)
        return self._tables.get(name, ())

    def get_record(self, object_name: str, record_id: Any) -> Optional[Record]:
        """Look up a record by object and id."""
        if record_id is None:
            return None
        return self._index.get((object_name, str(record_id)))

    def __repr__(self) -> str:
        sizes = ", ".join(f"{name}={len(rows)}" for name, rows in self._tables.items())
        return f"RecordCatalog({sizes})"
