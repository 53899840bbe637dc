"""Tagged result values.

Routine outcomes (wrong password, expired token, failed directory move)
are reported through these values rather than raised, so callers branch
on them instead of catching exceptions.
"""

from enum import Enum
from typing import Any

from pydantic import Field

from accounts.domain.value.common import ValueObject


class AuthFailureReason(str, Enum):
    """Why an authentication attempt failed."""

    NOT_FOUND = "not_found"
    PASSWORD_MISMATCH = "password_mismatch"
    INACTIVE = "inactive"
    TOKEN_REJECTED = "token_rejected"


class PasswordUpdateResult(ValueObject):
    """Outcome of a user-initiated password change."""

    success: bool
    message: str | None = None
    errors: list[str] = Field(default_factory=list)


class VerificationFailureReason(str, Enum):
    """Why a token or signature did not verify."""

    EXPIRED = "expired"
    BAD_SIGNATURE = "bad_signature"
    KEY_NOT_FOUND = "key_not_found"
    INVALID_CLAIMS = "invalid_claims"


class VerificationFailure(ValueObject):
    """A routine verification failure; never raised."""

    reason: VerificationFailureReason
    detail: str = ""

    def __bool__(self) -> bool:
        return False


class TokenClaims(ValueObject):
    """Registered and account claims carried by issued tokens.

    Timestamps are whole seconds since the epoch, as encoded in the JWT.
    """

    iss: str
    aud: str
    sub: str
    email: str | None = None
    jti: str
    token_use: str = "access"
    iat: int
    exp: int


class SignedToken(ValueObject):
    """A freshly issued, signed JWT."""

    token: str
    kid: str
    header: dict[str, Any]
    claims: TokenClaims


class DirectoryMove(ValueObject):
    """Outcome of relocating one asset directory."""

    moved: bool
    source: str | None = None
    destination: str | None = None
    error: str | None = None


class ArchiveResult(ValueObject):
    """Outcome of archiving an account.

    ``archived`` is authoritative; directory moves are best effort and
    reported independently.
    """

    user_id: str
    archived: bool
    public_dir: DirectoryMove
    private_dir: DirectoryMove
    message: str | None = None


class DeleteResult(ValueObject):
    """Outcome of an administrative delete."""

    deleted_count: int

    @property
    def deleted(self) -> bool:
        return self.deleted_count > 0


class UserSummary(ValueObject):
    """Minimal listing entry for administrative views."""

    id: str
    primary_email: str | None = None
    name: str | None = None
    status: str | None = None


class UserGroup(ValueObject):
    """One aggregation bucket (by status or by variant)."""

    key: str | None
    count: int
    users: list[UserSummary] = Field(default_factory=list)


class AggregatedCounts(ValueObject):
    """Grouped user counts for administrative views."""

    groups: list[UserGroup] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(group.count for group in self.groups)

    def group(self, key: str) -> UserGroup | None:
        """Find a bucket by key."""
        return next((g for g in self.groups if g.key == key), None)


class AuthResult(ValueObject):
    """Outcome of an authentication attempt.

    ``user`` is the resolved entity on success. Failures carry a reason
    and never an entity.
    """

    success: bool
    user: Any = None
    reason: AuthFailureReason | None = None
    message: str | None = None

    @property
    def user_id(self) -> str | None:
        return self.user.id if self.user is not None else None
