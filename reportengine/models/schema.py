"""
Schema catalog models.

The schema catalog declares the business objects of the dataset, their typed
fields, the canonical time column of each object and the foreign-key
relationships between them. It is static metadata supplied by the surrounding
system; the engine only reads it.
"""

from typing import Optional

from pydantic import Field, field_validator, model_validator

from .base import EngineModel
from .enums import FieldType, RelationshipType, UnitType


class FieldRef(EngineModel):
    """
    Reference to one field of one object.

    Attributes:
        object: Object (table) name, e.g. "invoice"
        field: Field name within the object, e.g. "amount_due"
    """

    object: str = Field(min_length=1, description="Object (table) name")
    field: str = Field(min_length=1, description="Field name within the object")

    @property
    def qualified(self) -> str:
        """Qualified name such as ``payment.amount``."""
        return f"{self.object}.{self.field}"

    @classmethod
    def parse(cls, qualified: str) -> "FieldRef":
        """Build a reference from a qualified ``object.field`` name."""
        object_name, sep, field_name = qualified.partition(".")
        if not sep:
            raise ValueError(f"Field reference {qualified!r} must be qualified as object.field")
        return cls(object=object_name, field=field_name)


class SchemaField(EngineModel):
    """
    A declared field of a schema object.

    Attributes:
        name: Field name as it appears in records
        label: Human-readable label
        type: Declared value type
        unit: Optional explicit unit for metric inference (e.g. currency)
    """

    name: str = Field(min_length=1)
    label: str = ""
    type: FieldType
    unit: Optional[UnitType] = None


class SchemaObject(EngineModel):
    """
    A business object (table) of the dataset.

    Attributes:
        name: Object name, used as the table key of the record catalog
        label: Human-readable label
        fields: Declared fields
        time_field: Canonical time column used for range restriction and bucketing
    """

    name: str = Field(min_length=1)
    label: str = ""
    fields: tuple[SchemaField, ...] = ()
    time_field: str = "created"

    @model_validator(mode="after")
    def validate_fields(self) -> "SchemaObject":
        """Field names must be unique and the time field must be a date field."""
        names = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            raise ValueError(f"Object {self.name!r} declares duplicate field names")
        time_field = self.get_field(self.time_field)
        if time_field is not None and time_field.type is not FieldType.DATE:
            raise ValueError(
                f"Time field {self.name}.{self.time_field} must be declared as a date field"
            )
        return self

    def get_field(self, name: str) -> Optional[SchemaField]:
        """Return the declared field with the given name, if any."""
        for schema_field in self.fields:
            if schema_field.name == name:
                return schema_field
        return None


class Relationship(EngineModel):
    """
    A declared foreign-key relationship.

    ``via`` names the foreign-key column held by the ``to`` object and
    pointing at the ``id`` of the ``from`` object (e.g. customer -> invoice
    via ``customer_id``).
    """

    from_object: str = Field(alias="from", min_length=1)
    to_object: str = Field(alias="to", min_length=1)
    type: RelationshipType = RelationshipType.ONE_TO_MANY
    via: Optional[str] = None
    description: Optional[str] = None


class SchemaCatalog(EngineModel):
    """Object and relationship declarations for the whole dataset."""

    objects: tuple[SchemaObject, ...] = ()
    relationships: tuple[Relationship, ...] = ()

    @field_validator("objects")
    @classmethod
    def validate_unique_objects(cls, v: tuple[SchemaObject, ...]) -> tuple[SchemaObject, ...]:
        """Object names must be unique."""
        names = [o.name for o in v]
        if len(names) != len(set(names)):
            raise ValueError("Schema declares duplicate object names")
        return v

    def get_object(self, name: str) -> Optional[SchemaObject]:
        """Return the declared object with the given name, if any."""
        for schema_object in self.objects:
            if schema_object.name == name:
                return schema_object
        return None

    def get_field(self, ref: FieldRef) -> Optional[SchemaField]:
        """Resolve a field reference to its declaration, if any."""
        schema_object = self.get_object(ref.object)
        if schema_object is None:
            return None
        return schema_object.get_field(ref.field)

    def related(self, name: str) -> tuple[Relationship, ...]:
        """Return relationships touching the given object."""
        return tuple(
            rel for rel in self.relationships if rel.from_object == name or rel.to_object == name
        )

    def foreign_key(self, holder: str, target: str) -> Optional[str]:
        """
        Return the column of ``holder`` that references ``target`` records.

        Args:
            holder: Object whose records carry the foreign key
            target: Object referenced by the foreign key

        Returns:
            Foreign-key column name, or None when no relationship is declared
        """
        for rel in self.relationships:
            if rel.from_object == target and rel.to_object == holder and rel.via:
                return rel.via
        return None
