"""
Group-by helpers.

A group-by splits a computation into one result per selected value of a
categorical field. Values are compared in their stringified form (booleans
as "true"/"false"), matching how the dashboard lists them.
"""

from collections import Counter
from typing import Any, Optional

from reportengine.catalog.base import Record, RecordCatalog
from reportengine.errors import GroupLimitExceededError, UnresolvedFieldError
from reportengine.models.enums import FieldType, FilterOperator
from reportengine.models.filters import FilterCondition
from reportengine.models.metrics import MAX_GROUP_VALUES, GroupBy
from reportengine.models.schema import FieldRef, SchemaCatalog

from .block_evaluator import RecordScope
from .filters import resolve_foreign_key

_GROUPABLE_TYPES = {FieldType.STRING, FieldType.BOOLEAN}


def stringify(value: Any) -> Optional[str]:
    """Stringify a record value for group comparison; None stays None."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def available_group_fields(schema: SchemaCatalog, objects: list[str]) -> list[FieldRef]:
    """
    List the categorical fields of the selected objects usable for grouping.

    Args:
        schema: Schema catalog
        objects: Selected object names (unknown names are ignored)

    Returns:
        String and boolean fields, in object then declaration order
    """
    fields: list[FieldRef] = []
    for name in objects:
        schema_object = schema.get_object(name)
        if schema_object is None:
            continue
        for schema_field in schema_object.fields:
            if schema_field.type in _GROUPABLE_TYPES:
                fields.append(FieldRef(object=name, field=schema_field.name))
    return fields


def group_values(catalog: RecordCatalog, field: FieldRef, limit: int = 100) -> list[str]:
    """
    Distinct values of a field, most frequent first.

    Args:
        catalog: Record catalog
        field: Field to inspect
        limit: Maximum number of values returned

    Returns:
        Stringified values ordered by descending frequency, ties by value

    Raises:
        UnresolvedFieldError: If the field is not declared
    """
    if catalog.schema.get_field(field) is None:
        raise UnresolvedFieldError(field.qualified)
    counts = Counter(
        text
        for text in (stringify(record.get(field.field)) for record in catalog.table(field.object))
        if text is not None
    )
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [value for value, _ in ranked[:limit]]


def validate_group_by(group_by: GroupBy, catalog: RecordCatalog, max_values: int = MAX_GROUP_VALUES) -> None:
    """
    Check a group-by against the catalog and the value limit.

    Raises:
        UnresolvedFieldError: If the group field is not declared
        GroupLimitExceededError: If more than ``max_values`` values are selected
    """
    if catalog.schema.get_field(group_by.field) is None:
        raise UnresolvedFieldError(group_by.field.qualified)
    if len(group_by.values) > max_values:
        raise GroupLimitExceededError(len(group_by.values), max_values)


def group_scope(catalog: RecordCatalog, table: str, field: FieldRef, value: str) -> RecordScope:
    """
    Build a record predicate selecting records of ``table`` in one group.

    The group field may live on ``table`` or on an object referenced by one
    of its foreign keys.

    Raises:
        UnresolvedFieldError: If the field cannot be reached from ``table``
    """
    probe = FilterCondition(field=field, operator=FilterOperator.IS_TRUE)
    via = resolve_foreign_key(catalog, table, probe)

    def in_group(record: Record) -> bool:
        if via is None:
            raw = record.get(field.field)
        else:
            related = catalog.get_record(field.object, record.get(via))
            raw = related.get(field.field) if related is not None else None
        return stringify(raw) == value

    return in_group
