"""
Data quality models for catalog integrity checks.
"""

from pydantic import Field

from .base import EngineModel


class QualityIssue(EngineModel):
    """
    Individual integrity problem found in the record catalog.

    Attributes:
        object: Object (table) holding the offending records
        field: Field where the issue was detected (e.g. a foreign-key column)
        issue_type: Type of issue (e.g. "dangling_foreign_key", "null_timestamp")
        count: Number of records affected
        description: Human-readable description of the issue
        sample_ids: A few affected record ids for inspection
    """

    object: str
    field: str
    issue_type: str
    count: int = Field(ge=0)
    description: str
    sample_ids: tuple[str, ...] = ()


class DataQualityReport(EngineModel):
    """
    Integrity assessment of a record catalog.

    Attributes:
        total_records: Records across all tables
        checked_relationships: Number of relationships whose foreign keys were checked
        issues: Specific problems detected
        integrity_score: Share of foreign-key references that resolve (0.0-1.0)
    """

    total_records: int = Field(ge=0)
    checked_relationships: int = Field(ge=0)
    issues: tuple[QualityIssue, ...] = ()
    integrity_score: float = Field(default=1.0, ge=0.0, le=1.0)

    @property
    def is_valid(self) -> bool:
        return not self.issues

    model_config = EngineModel.model_config | {
        "json_schema_extra": {
            "example": {
                "totalRecords": 1200,
                "checkedRelationships": 9,
                "issues": [
                    {
                        "object": "invoice",
                        "field": "customer_id",
                        "issueType": "dangling_foreign_key",
                        "count": 2,
                        "description": "2 invoice records reference missing customer ids",
                        "sampleIds": ["in_001", "in_002"],
                    }
                ],
                "integrityScore": 0.998,
            }
        }
    }
