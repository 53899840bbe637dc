"""Domain value objects for user accounts.

Value objects are immutable and defined by their values, not identity.
They encapsulate validation rules and business logic.
"""

from enum import Enum

from pydantic import field_validator

from accounts.domain.value.common import ValueObject


class UserVariant(str, Enum):
    """Closed set of account kinds.

    The variant decides which capabilities an entity exposes; it is fixed
    when the entity is constructed.
    """

    USER = "User"
    ADMIN = "Admin"
    CREATOR = "Creator"
    ANONYMOUS = "Anonymous"

    @classmethod
    def parse(cls, value: str | None) -> "UserVariant | None":
        """Case-insensitive lookup, None for unrecognized values."""
        if not value:
            return None
        for member in cls:
            if member.value.lower() == str(value).strip().lower():
                return member
        return None


# Lowest to highest privilege, used when upgrading accounts
PRIVILEGE_ORDER: tuple[UserVariant, ...] = (
    UserVariant.ANONYMOUS,
    UserVariant.USER,
    UserVariant.CREATOR,
    UserVariant.ADMIN,
)


class UserStatus(str, Enum):
    """Account activation status, independent of archival."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class KeyKind(str, Enum):
    """Purpose of an asymmetric keypair."""

    SIGNING = "signing"
    ENCRYPTING = "encrypting"

    @property
    def jwk_use(self) -> str:
        """JWK ``use`` parameter for keys of this kind."""
        return "sig" if self is KeyKind.SIGNING else "enc"


class EmailAddress(ValueObject):
    """An email address slot and its verification flag."""

    address: str
    verified: bool = False

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        """Validate the address is non-empty and looks like an email."""
        v = v.strip()
        if not v or "@" not in v or len(v) > 254:
            raise ValueError("Email address must be 1-254 characters and contain '@'")
        return v

    def same_as(self, address: str) -> bool:
        """Compare addresses case-insensitively."""
        return self.address.casefold() == address.strip().casefold()


class TokenPair(ValueObject):
    """Last issued access/refresh token pair."""

    token: str
    refresh: str | None = None
