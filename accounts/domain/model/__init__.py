"""Domain models for the accounts domain."""

from accounts.domain.model.admin import Admin
from accounts.domain.model.common import DomainModel, Entity
from accounts.domain.model.keys import (
    KeyGenerationResult,
    KeyOptions,
    KeyRecord,
    KeyRing,
    KeySummary,
)
from accounts.domain.model.user import Anonymous, Creator, User
from accounts.domain.value import UserVariant

# Entity class for each variant tag
VARIANT_CLASSES: dict[UserVariant, type[User]] = {
    UserVariant.USER: User,
    UserVariant.ADMIN: Admin,
    UserVariant.CREATOR: Creator,
    UserVariant.ANONYMOUS: Anonymous,
}


def user_class_for(variant: UserVariant | str | None) -> type[User]:
    """Entity class for a variant tag; unknown tags resolve to ``User``."""
    if not isinstance(variant, UserVariant):
        variant = UserVariant.parse(variant)
    return VARIANT_CLASSES.get(variant, User)


__all__ = [
    "Admin",
    "Anonymous",
    "Creator",
    "DomainModel",
    "Entity",
    "KeyGenerationResult",
    "KeyOptions",
    "KeyRecord",
    "KeyRing",
    "KeySummary",
    "User",
    "VARIANT_CLASSES",
    "user_class_for",
]
