"""Base models for domain entities."""

from pydantic import BaseModel, ConfigDict


class DomainModel(BaseModel):
    """Base class for immutable domain models."""

    model_config = ConfigDict(
        frozen=True,  # Records are replaced, never edited in place
        arbitrary_types_allowed=True,
    )


class Entity(BaseModel):
    """Base class for mutable entities with identity.

    Assignments are validated so invariants checked by field validators
    hold after every mutation, not only at construction.
    """

    model_config = ConfigDict(
        validate_assignment=True,
        arbitrary_types_allowed=True,
        use_enum_values=False,
    )
