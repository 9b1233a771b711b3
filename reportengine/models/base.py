"""
Shared pydantic configuration for engine models.

Report specifications arrive as camelCase JSON from the dashboard (and from
the natural-language translator, which emits the identical shape). Models
accept both camelCase aliases and snake_case field names, and are frozen so a
computation can never mutate its inputs.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class EngineModel(BaseModel):
    """Immutable base model with camelCase JSON aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        use_enum_values=False,
    )
