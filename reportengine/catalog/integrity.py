"""
Record catalog integrity checks.

Verifies that every non-null foreign key declared by a schema relationship
resolves to a record of the referenced object, and flags records without a
value on their object's time field (such records never enter a time window).
"""

import structlog

from reportengine.models.quality import DataQualityReport, QualityIssue

from .base import RecordCatalog

logger = structlog.get_logger()

SAMPLE_SIZE = 5


def validate_catalog_integrity(catalog: RecordCatalog) -> DataQualityReport:
    """
    Check foreign-key integrity and time-field completeness of a catalog.

    Args:
        catalog: Record catalog to check

    Returns:
        DataQualityReport listing dangling foreign keys per relationship and
        records with a null time value

    Example:
        >>> report = validate_catalog_integrity(catalog)
        >>> report.is_valid
        True
    """
    issues: list[QualityIssue] = []
    checked = 0
    references = 0
    dangling_total = 0

    for relationship in catalog.schema.relationships:
        if not relationship.via:
            continue
        holder = relationship.to_object
        target = relationship.from_object
        if catalog.schema.get_object(holder) is None or catalog.schema.get_object(target) is None:
            continue
        checked += 1

        dangling: list[str] = []
        for record in catalog.table(holder):
            value = record.get(relationship.via)
            if value is None:
                continue
            references += 1
            if catalog.get_record(target, value) is None:
                dangling.append(record.id)

        if dangling:
            dangling_total += len(dangling)
            issues.append(
                QualityIssue(
                    object=holder,
                    field=relationship.via,
                    issue_type="dangling_foreign_key",
                    count=len(dangling),
                    description=(
                        f"{len(dangling)} {holder} records reference missing {target} ids"
                    ),
                    sample_ids=tuple(dangling[:SAMPLE_SIZE]),
                )
            )

    for name, records in catalog.tables.items():
        time_field = catalog.schema_object(name).time_field
        undated = [record.id for record in records if record.get(time_field) is None]
        if undated:
            issues.append(
                QualityIssue(
                    object=name,
                    field=time_field,
                    issue_type="null_timestamp",
                    count=len(undated),
                    description=(
                        f"{len(undated)} {name} records have no {time_field} value "
                        "and are excluded from every time window"
                    ),
                    sample_ids=tuple(undated[:SAMPLE_SIZE]),
                )
            )

    integrity_score = 1.0 - (dangling_total / references) if references else 1.0
    report = DataQualityReport(
        total_records=catalog.total_records,
        checked_relationships=checked,
        issues=tuple(issues),
        integrity_score=round(integrity_score, 4),
    )

    if issues:
        logger.warning(
            "catalog_integrity_issues",
            issue_count=len(issues),
            dangling_references=dangling_total,
        )
    else:
        logger.info("catalog_integrity_valid", checked_relationships=checked)
    return report
