"""
Configuration error taxonomy for report computations.

Configuration errors describe a report specification that cannot be evaluated
against the catalog (unresolved fields, missing block sources, unknown operand
ids, group limits, invalid ranges). They are raised before any aggregation
runs and are never downgraded to an empty result.

Data absence (empty buckets, empty selections, zero denominators) is not an
error: it is represented as ``None`` values with an explanatory note.

All errors subclass ValueError so that pydantic validators and FastAPI routers
can treat them uniformly.
"""


class ReportConfigurationError(ValueError):
    """Base class for report specifications that cannot be evaluated."""


class UnknownObjectError(ReportConfigurationError):
    """Raised when a report references an object absent from the catalog."""

    def __init__(self, object_name: str) -> None:
        super().__init__(f"Unknown object {object_name!r}: not present in the catalog")
        self.object_name = object_name


class UnresolvedFieldError(ReportConfigurationError):
    """Raised when a field reference does not resolve to a declared field."""

    def __init__(self, qualified: str, reason: str = "not a declared field") -> None:
        super().__init__(f"Unresolved field {qualified!r}: {reason}")
        self.qualified = qualified


class MissingSourceError(ReportConfigurationError):
    """Raised when an aggregate block has no source field."""

    def __init__(self, block_id: str, op: str) -> None:
        super().__init__(f"Block {block_id!r}: operation {op!r} requires a source field")
        self.block_id = block_id


class DuplicateBlockError(ReportConfigurationError):
    """Raised when two blocks of one formula share an id."""

    def __init__(self, block_id: str) -> None:
        super().__init__(f"Duplicate block id {block_id!r} in formula")
        self.block_id = block_id


class UnknownOperandError(ReportConfigurationError):
    """Raised when a calculation or expose list references an unknown block id."""

    def __init__(self, block_id: str, context: str = "calculation") -> None:
        super().__init__(f"Unknown block id {block_id!r} referenced by {context}")
        self.block_id = block_id


class GroupLimitExceededError(ReportConfigurationError):
    """Raised when more group-by values are selected than can be rendered."""

    def __init__(self, selected: int, limit: int) -> None:
        super().__init__(f"Too many group values selected ({selected}); maximum is {limit}")
        self.selected = selected
        self.limit = limit


class InvalidRangeError(ReportConfigurationError):
    """Raised for inverted ranges or ranges producing too many buckets."""


class SeriesAlignmentError(ReportConfigurationError):
    """Raised when two series operands do not share bucket alignment."""
