"""
SQL preview.

Renders a report specification as an illustrative SQL statement for the
dashboard's SQL tab. The text is for display only and is never executed.
"""

from datetime import date, datetime
from typing import Any, Optional

from reportengine.models.enums import CalculationOperator, ComputeMode, FilterLogic, FilterOperator, MetricOp
from reportengine.models.filters import FilterCondition
from reportengine.models.report import ReportSpec
from reportengine.models.schema import SchemaCatalog

from .time_buckets import TimeBucketer

_OPERATOR_SYMBOLS = {
    CalculationOperator.ADD: "+",
    CalculationOperator.SUBTRACT: "-",
    CalculationOperator.MULTIPLY: "*",
    CalculationOperator.DIVIDE: "/",
}


def sql_literal(value: Any) -> str:
    """Format a value as a SQL literal, escaping single quotes."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return f"'{value.isoformat()}'"
    text = str(value).replace("'", "''")
    return f"'{text}'"


def condition_sql(condition: FilterCondition) -> str:
    """Render one filter condition as a SQL predicate."""
    ref = condition.field.qualified
    op = condition.operator
    value = condition.value

    if op is FilterOperator.EQUALS:
        return f"{ref} = {sql_literal(value)}"
    if op is FilterOperator.NOT_EQUALS:
        return f"{ref} != {sql_literal(value)}"
    if op is FilterOperator.GREATER_THAN:
        return f"{ref} > {sql_literal(value)}"
    if op is FilterOperator.LESS_THAN:
        return f"{ref} < {sql_literal(value)}"
    if op is FilterOperator.BETWEEN:
        low, high = value
        return f"{ref} BETWEEN {sql_literal(low)} AND {sql_literal(high)}"
    if op is FilterOperator.IN:
        if not value:
            return "FALSE"
        return f"{ref} IN ({', '.join(sql_literal(v) for v in value)})"
    if op is FilterOperator.CONTAINS:
        needles = value if isinstance(value, list) else [value]
        likes = [f"{ref} ILIKE {sql_literal(f'%{needle}%')}" for needle in needles]
        return likes[0] if len(likes) == 1 else "(" + " OR ".join(likes) + ")"
    if op is FilterOperator.IS_TRUE:
        return f"{ref} = TRUE"
    return f"{ref} = FALSE"


def conditions_sql(conditions, logic: FilterLogic = FilterLogic.AND) -> Optional[str]:
    parts = [condition_sql(c) for c in conditions]
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    return "(" + f" {logic.value} ".join(parts) + ")"


def _aggregate_sql(op: MetricOp, column: Optional[str]) -> str:
    if op is MetricOp.COUNT:
        return f"COUNT({column})" if column else "COUNT(*)"
    if op is MetricOp.DISTINCT_COUNT:
        return f"COUNT(DISTINCT {column})" if column else "COUNT(DISTINCT id)"
    if op is MetricOp.MEDIAN:
        return f"PERCENTILE_CONT(0.5) WITHIN GROUP (ORDER BY {column})"
    if op is MetricOp.MODE:
        return f"MODE() WITHIN GROUP (ORDER BY {column})"
    return f"{op.value.upper()}({column})"


def _join_clause(schema: SchemaCatalog, primary: str, other: str) -> str:
    for rel in schema.relationships:
        if rel.via and rel.from_object == primary and rel.to_object == other:
            return f"LEFT JOIN {other} ON {other}.{rel.via} = {primary}.id"
        if rel.via and rel.from_object == other and rel.to_object == primary:
            return f"LEFT JOIN {other} ON {primary}.{rel.via} = {other}.id"
    return f"LEFT JOIN {other} ON {primary}.{other}_id = {other}.id"


def generate_sql(report: ReportSpec, schema: SchemaCatalog) -> str:
    """
    Render a report as an illustrative SQL statement.

    Args:
        report: Report specification
        schema: Schema catalog (time columns and join keys)

    Returns:
        SQL text; a comment when the report selects nothing to query

    Example:
        >>> print(generate_sql(report, DEFAULT_SCHEMA))
        SELECT
          DATE_TRUNC('month', invoice.created) AS period,
          COUNT(invoice.id) FILTER (WHERE invoice.status IN ('paid')) AS paid
        FROM invoice
        ...
    """
    primary = report.primary_object
    if primary is None:
        return "-- Select objects in the Data tab to generate SQL"

    formula = report.resolved_formula()
    schema_object = schema.get_object(primary)
    time_column = f"{primary}.{schema_object.time_field if schema_object else 'created'}"
    series = report.mode is ComputeMode.SERIES

    select: list[str] = []
    if series:
        select.append(f"DATE_TRUNC('{report.range.granularity.value}', {time_column}) AS period")
    for field in report.fields:
        select.append(field.qualified)
    if report.group_by is not None:
        select.append(report.group_by.field.qualified)
    for block in formula.blocks:
        column = block.source.qualified if block.source is not None else None
        expression = _aggregate_sql(block.op, column)
        block_filter = conditions_sql(block.filters)
        if block_filter:
            expression += f" FILTER (WHERE {block_filter})"
        select.append(f"{expression} AS {block.id}")
    if formula.calculation is not None:
        calc = formula.calculation
        symbol = _OPERATOR_SYMBOLS[calc.operator]
        right = calc.right_operand
        if calc.operator is CalculationOperator.DIVIDE:
            right = f"NULLIF({right}, 0)"
        name = (formula.name or "result").lower().replace(" ", "_")
        select.append(f"{calc.left_operand} {symbol} {right} AS {name}")

    objects = list(report.objects) or [primary]
    lines = ["SELECT", ",\n".join(f"  {item}" for item in select), f"FROM {primary}"]
    for other in objects[1:]:
        lines.append(_join_clause(schema, primary, other))

    bucketer = TimeBucketer(report.range.start, report.range.end, report.range.granularity)
    where = [
        f"{time_column} >= {sql_literal(bucketer.window_start.date())}",
        f"{time_column} < {sql_literal(bucketer.window_end.date())}",
    ]
    report_filter = conditions_sql(report.filters.conditions, report.filters.logic)
    if report_filter:
        where.append(report_filter)
    lines.append("WHERE " + "\n  AND ".join(where))

    group_by = []
    if series:
        group_by.append("period")
    group_by.extend(field.qualified for field in report.fields)
    if report.group_by is not None:
        group_by.append(report.group_by.field.qualified)
    if group_by:
        lines.append("GROUP BY " + ", ".join(group_by))
    if series:
        lines.append("ORDER BY period")
    return "\n".join(lines)
