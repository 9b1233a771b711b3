"""
Filter evaluator.

Filter conditions are compiled once against the catalog schema for the table
they will be applied to. Compilation resolves the field (directly, or through
the foreign key of a declared relationship for fields of a related object),
captures the declared field type, and coerces the condition operand to that
type. Evaluation then compares typed values without any type sniffing.

Semantics:
- A null or absent record value never matches, for any operator.
- equals compares calendar days on date fields; between is inclusive and
  compares calendar days on date fields.
- greater_than/less_than compare numerically, chronologically or textually
  according to the declared field type.
- contains is a case-insensitive substring test on the stringified value;
  a list operand matches when any element is contained.
- AND requires every condition, OR any condition; no conditions always match.
"""

from collections.abc import Iterable, Sequence
from typing import Any, Callable, Optional, Union

import structlog

from reportengine.catalog.base import Record, RecordCatalog
from reportengine.catalog.loader import CatalogBuilder
from reportengine.errors import ReportConfigurationError, UnresolvedFieldError
from reportengine.models.enums import FieldType, FilterLogic, FilterOperator
from reportengine.models.filters import FilterCondition, FilterGroup

logger = structlog.get_logger()

_ORDERED_TYPES = {FieldType.NUMBER, FieldType.DATE}


class CompiledCondition:
    """
    A filter condition bound to one table of one catalog.

    Args:
        condition: Source condition
        field_type: Declared type of the tested field
        operand: Operand coerced to the field type (list for between/in/contains lists)
        via: Foreign-key column of the table when the field lives on a related object
        catalog: Catalog used to follow the foreign key
    """

    def __init__(
        self,
        condition: FilterCondition,
        field_type: FieldType,
        operand: Any,
        via: Optional[str] = None,
        catalog: Optional[RecordCatalog] = None,
    ):
        self.condition = condition
        self.field_type = field_type
        self.operand = operand
        self.via = via
        self.catalog = catalog
        self._test = self._select_test()

    def value_of(self, record: Record) -> Any:
        """Read the tested value from a record, following the foreign key if needed."""
        if self.via is None:
            return record.get(self.condition.field.field)
        related = self.catalog.get_record(self.condition.field.object, record.get(self.via))
        if related is None:
            return None
        return related.get(self.condition.field.field)

    def matches(self, record: Record) -> bool:
        value = self.value_of(record)
        if value is None:
            return False
        return self._test(value)

    def _select_test(self) -> Callable[[Any], bool]:
        op = self.condition.operator
        operand = self.operand
        is_date = self.field_type is FieldType.DATE

        if op is FilterOperator.EQUALS:
            if is_date:
                return lambda v: v.date() == operand.date()
            return lambda v: v == operand
        if op is FilterOperator.NOT_EQUALS:
            if is_date:
                return lambda v: v.date() != operand.date()
            return lambda v: v != operand
        if op is FilterOperator.GREATER_THAN:
            return lambda v: _comparable(v) and v > operand
        if op is FilterOperator.LESS_THAN:
            return lambda v: _comparable(v) and v < operand
        if op is FilterOperator.BETWEEN:
            low, high = operand
            if is_date:
                return lambda v: low.date() <= v.date() <= high.date()
            return lambda v: _comparable(v) and low <= v <= high
        if op is FilterOperator.IN:
            if is_date:
                days = {member.date() for member in operand}
                return lambda v: v.date() in days
            members = set(operand)
            return lambda v: v in members
        if op is FilterOperator.CONTAINS:
            needles = [str(n).lower() for n in operand]
            return lambda v: any(needle in str(v).lower() for needle in needles)
        if op is FilterOperator.IS_TRUE:
            return lambda v: _truthy(v) is True
        if op is FilterOperator.IS_FALSE:
            return lambda v: _truthy(v) is False
        raise ReportConfigurationError(f"Unsupported filter operator {op!r}")

    def __repr__(self) -> str:
        c = self.condition
        return f"CompiledCondition({c.field.qualified} {c.operator.value} {self.operand!r})"


def _comparable(value: Any) -> bool:
    return not isinstance(value, bool)


def _truthy(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
    return None


class CompiledFilter:
    """
    Conditions of one filter group compiled for one table.

    Example:
        >>> compiled = compile_filters(catalog, "invoice", group.conditions, group.logic)
        >>> paid = [r for r in catalog.table("invoice") if compiled.matches(r)]
    """

    def __init__(self, conditions: Sequence[CompiledCondition], logic: FilterLogic = FilterLogic.AND):
        self.conditions = tuple(conditions)
        self.logic = logic

    def matches(self, record: Record) -> bool:
        if not self.conditions:
            return True
        if self.logic is FilterLogic.OR:
            return any(c.matches(record) for c in self.conditions)
        return all(c.matches(record) for c in self.conditions)

    def apply(self, records: Iterable[Record]) -> list[Record]:
        """Return the records passing the filter, preserving order."""
        if not self.conditions:
            return list(records)
        return [record for record in records if self.matches(record)]

    def __len__(self) -> int:
        return len(self.conditions)


def resolve_foreign_key(catalog: RecordCatalog, table: str, condition: FilterCondition) -> Optional[str]:
    """
    Resolve how a condition reaches its field from records of ``table``.

    Returns:
        None when the field belongs to ``table`` itself, otherwise the
        foreign-key column of ``table`` that references the field's object

    Raises:
        UnresolvedFieldError: If the field is undeclared or its object is not
            reachable from ``table``
    """
    ref = condition.field
    if catalog.schema.get_field(ref) is None:
        raise UnresolvedFieldError(ref.qualified)
    if ref.object == table:
        return None
    via = catalog.schema.foreign_key(holder=table, target=ref.object)
    if via is None:
        raise UnresolvedFieldError(
            ref.qualified, f"object {ref.object!r} is not related to {table!r}"
        )
    return via


def _coerce_operand(builder: CatalogBuilder, condition: FilterCondition, field_type: FieldType) -> Any:
    op = condition.operator
    raw = condition.value

    def coerce_one(value: Any) -> Any:
        coerced = builder.coerce(value, field_type)
        if coerced is None:
            raise ReportConfigurationError(
                f"Filter value {value!r} is not a valid {field_type.value} "
                f"for {condition.field.qualified}"
            )
        return coerced

    if op in (FilterOperator.IS_TRUE, FilterOperator.IS_FALSE):
        return None
    if op is FilterOperator.CONTAINS:
        return [str(v) for v in raw] if isinstance(raw, list) else [str(raw)]
    if op in (FilterOperator.GREATER_THAN, FilterOperator.LESS_THAN, FilterOperator.BETWEEN):
        if field_type not in _ORDERED_TYPES:
            field_type = FieldType.STRING
    if op in (FilterOperator.BETWEEN, FilterOperator.IN):
        return [coerce_one(v) for v in raw]
    return coerce_one(raw)


def compile_condition(catalog: RecordCatalog, table: str, condition: FilterCondition) -> CompiledCondition:
    """Compile one condition for records of ``table``."""
    via = resolve_foreign_key(catalog, table, condition)
    declared = catalog.schema.get_field(condition.field)
    field_type = declared.type
    operand = _coerce_operand(CatalogBuilder(catalog.schema), condition, field_type)
    return CompiledCondition(condition, field_type, operand, via=via, catalog=catalog)


def compile_filters(
    catalog: RecordCatalog,
    table: str,
    conditions: Iterable[FilterCondition],
    logic: FilterLogic = FilterLogic.AND,
) -> CompiledFilter:
    """
    Compile filter conditions for records of one table.

    Args:
        catalog: Catalog providing the schema and related records
        table: Object whose records will be tested
        conditions: Conditions to compile
        logic: AND or OR combination

    Returns:
        CompiledFilter ready for evaluation

    Raises:
        UnresolvedFieldError: If a condition references an undeclared or
            unreachable field
        ReportConfigurationError: If an operand cannot be coerced to the
            field's declared type
    """
    catalog.schema_object(table)
    return CompiledFilter([compile_condition(catalog, table, c) for c in conditions], logic)


def matches(
    record: Record,
    filters: Union[FilterGroup, Sequence[FilterCondition]],
    catalog: RecordCatalog,
) -> bool:
    """
    Decide whether one record passes a filter group or condition list.

    A plain sequence of conditions is combined with AND.

    Args:
        record: Record under test
        filters: FilterGroup or sequence of conditions
        catalog: Catalog the record belongs to

    Returns:
        True if the record is included
    """
    if isinstance(filters, FilterGroup):
        conditions, logic = filters.conditions, filters.logic
    else:
        conditions, logic = tuple(filters), FilterLogic.AND
    return compile_filters(catalog, record.object, conditions, logic).matches(record)


def applicable_conditions(
    catalog: RecordCatalog, table: str, conditions: Iterable[FilterCondition]
) -> list[FilterCondition]:
    """
    Select the report-level conditions that can be evaluated on ``table``.

    Report-level conditions on objects unrelated to ``table`` do not narrow
    its records and are left out; undeclared fields still raise.
    """
    selected = []
    for condition in conditions:
        ref = condition.field
        if catalog.schema.get_field(ref) is None:
            raise UnresolvedFieldError(ref.qualified)
        if ref.object == table or catalog.schema.foreign_key(holder=table, target=ref.object):
            selected.append(condition)
        else:
            logger.debug(
                "report_filter_not_applicable",
                table=table,
                field=ref.qualified,
            )
    return selected
