"""Value objects and identifiers for the accounts domain."""

from .identifiers import Kid, UserId, new_kid
from .results import (
    AggregatedCounts,
    AuthResult,
    ArchiveResult,
    AuthFailureReason,
    DeleteResult,
    DirectoryMove,
    PasswordUpdateResult,
    SignedToken,
    TokenClaims,
    UserGroup,
    UserSummary,
    VerificationFailure,
    VerificationFailureReason,
)
from .types import (
    PRIVILEGE_ORDER,
    EmailAddress,
    KeyKind,
    TokenPair,
    UserStatus,
    UserVariant,
)

__all__ = [
    "AggregatedCounts",
    "AuthResult",
    "ArchiveResult",
    "AuthFailureReason",
    "DeleteResult",
    "DirectoryMove",
    "EmailAddress",
    "KeyKind",
    "Kid",
    "PRIVILEGE_ORDER",
    "PasswordUpdateResult",
    "SignedToken",
    "TokenClaims",
    "TokenPair",
    "UserGroup",
    "UserId",
    "UserStatus",
    "UserSummary",
    "UserVariant",
    "VerificationFailure",
    "VerificationFailureReason",
    "new_kid",
]
