"""User directory: entity factory, lookups and authentication."""

from pathlib import Path
from typing import Any, Mapping

import logfire

from accounts.domain.error import ValidationError
from accounts.domain.model import User, user_class_for
from accounts.domain.value import (
    ArchiveResult,
    AuthFailureReason,
    AuthResult,
    DirectoryMove,
    UserStatus,
    UserVariant,
    VerificationFailure,
)

from .base import Service
from .context import UserContext

# Fields a new account cannot be created without
REQUIRED_NEW_USER_FIELDS = ("first", "last", "email", "password")


def _archived_filter(archived: bool | None) -> dict[str, Any]:
    if archived is None:
        return {}
    if archived:
        return {"archived": True}
    # Records written before the flag existed have no "archived" field
    return {"archived": {"$ne": True}}


class UserDirectory(Service):
    """Entry point for finding, creating and authenticating users.

    Every entity returned is bound to the directory's ``UserContext``.
    """

    def __init__(self, ctx: UserContext) -> None:
        """Initialize user directory.

        Args:
            ctx: Collaborators bound to every resolved entity
        """
        self.ctx = ctx

    def resolve(self, record: Mapping[str, Any]) -> User:
        """Build the entity matching a stored record's variant.

        Unknown variants resolve to a plain ``User``; records are not
        validated for completeness here.
        """
        variant = record.get("type") or record.get("variant")
        cls = user_class_for(variant)
        if UserVariant.parse(variant) is None:
            logfire.warn("Unknown user variant, using User", variant=variant, user_id=record.get("_id"))
        return cls.from_document(record).bind(self.ctx)

    async def _lookup(self, filter: dict[str, Any], archived: bool | None) -> User | None:
        record = await self.ctx.store.find_one({**filter, **_archived_filter(archived)})
        if record is None:
            return None
        return self.resolve(record)

    async def lookup_by_id(self, user_id: str, archived: bool | None = False) -> User | None:
        """Find a user by id.

        Args:
            user_id: The user's identifier
            archived: False excludes archived users, True finds only
                archived users, None finds either
        """
        with logfire.span("user_directory.lookup_by_id", user_id=user_id):
            return await self._lookup({"_id": user_id}, archived)

    async def lookup_by_email(self, email: str, archived: bool | None = False) -> User | None:
        """Find a user by primary email address."""
        with logfire.span("user_directory.lookup_by_email"):
            return await self._lookup({"emails.primary": email.strip()}, archived)

    async def lookup_by_username(
        self, username: str, archived: bool | None = False
    ) -> User | None:
        """Find a user by username; a leading "@" is ignored."""
        with logfire.span("user_directory.lookup_by_username", username=username):
            return await self._lookup({"username": username.lstrip("@")}, archived)

    async def lookup_by_session_id(
        self, session_id: str, archived: bool | None = False
    ) -> User | None:
        with logfire.span("user_directory.lookup_by_session_id"):
            return await self._lookup({"sessionId": session_id}, archived)

    async def is_username_available(self, username: str) -> bool:
        """Check no account, archived or not, uses ``username``."""
        username = username.lstrip("@")
        if not username:
            return False
        return await self.ctx.store.find_one({"username": username}) is None

    def create_user(self, variant: UserVariant | str = UserVariant.USER, **fields: Any) -> User:
        """Build a new, unsaved entity of ``variant``.

        Args:
            variant: Variant of the new account
            **fields: Entity fields plus ``email`` (primary), optional
                ``secondary_email`` and the plaintext ``password``

        Raises:
            ValidationError: If first, last, email or password is missing,
                or the variant is unknown
        """
        missing = [name for name in REQUIRED_NEW_USER_FIELDS if not fields.get(name)]
        if missing:
            raise ValidationError(
                f"Missing the following required fields: {', '.join(missing)}",
                fields=missing,
            )
        parsed = variant if isinstance(variant, UserVariant) else UserVariant.parse(variant)
        if parsed is None:
            raise ValidationError(f"Unknown user type: {variant}", fields=["variant"])

        email = fields.pop("email")
        secondary = fields.pop("secondary_email", None)
        password = fields.pop("password")

        user = user_class_for(parsed)(**fields).bind(self.ctx)
        user.set_primary_email(email)
        if secondary:
            user.set_secondary_email(secondary)
        user.set_password(password)
        logfire.info("User created", variant=parsed.value, username=user.username)
        return user

    async def authenticate_by_password(self, email: str, candidate: str) -> AuthResult:
        """Authenticate with primary email and password.

        Unknown and archived accounts both report ``not_found``; inactive
        accounts report ``inactive`` without checking the password.
        """
        with logfire.span("user_directory.authenticate_by_password"):
            record = await self.ctx.store.find_one(
                {"emails.primary": (email or "").strip(), **_archived_filter(False)}
            )
            if record is None:
                return self._failure(AuthFailureReason.NOT_FOUND, "No user with that email address.")
            if _status(record) == UserStatus.INACTIVE.value:
                return self._failure(AuthFailureReason.INACTIVE, "User is not active.", record)

            hashed = record.get("hashedPassword") or record.get("password")
            if not hashed or not await self.ctx.vault.verify_password(candidate, hashed):
                return self._failure(
                    AuthFailureReason.PASSWORD_MISMATCH, "Password does not match.", record
                )

            user = self.resolve(record)
            logfire.info("User authenticated", user_id=user.id, method="password")
            return AuthResult(success=True, user=user)

    async def authenticate_by_access_token(self, token: str) -> AuthResult:
        """Authenticate with the last access token issued to a user.

        The token must match the stored one and still verify against the
        user's signing keys.
        """
        with logfire.span("user_directory.authenticate_by_access_token"):
            if not token:
                return self._failure(AuthFailureReason.NOT_FOUND, "Missing access token.")
            record = await self.ctx.store.find_one(
                {"jwts.token": token, **_archived_filter(False)}
            )
            if record is None:
                return self._failure(AuthFailureReason.NOT_FOUND, "No user with that access token.")
            if _status(record) == UserStatus.INACTIVE.value:
                return self._failure(AuthFailureReason.INACTIVE, "User is not active.", record)

            user = self.resolve(record)
            verified = await user.verify_access_token(token)
            if isinstance(verified, VerificationFailure):
                return self._failure(
                    AuthFailureReason.TOKEN_REJECTED,
                    f"Access token rejected: {verified.reason.value}",
                    record,
                )
            logfire.info("User authenticated", user_id=user.id, method="access_token")
            return AuthResult(success=True, user=user)

    async def archive_user(self, user_id: str) -> ArchiveResult:
        """Archive a user and move their directories under the archive root.

        Directory moves are best effort and reported one by one; the
        archived flag is set as long as the record itself updates.

        Raises:
            ValidationError: If the stored record lacks required fields; no
                directory has been moved in that case
        """
        with logfire.span("user_directory.archive_user", user_id=user_id):
            user = await self.lookup_by_id(user_id, archived=None)
            if user is None:
                logfire.warn("User not found for archival", user_id=user_id)
                return ArchiveResult(
                    user_id=user_id,
                    archived=False,
                    public_dir=DirectoryMove(moved=False),
                    private_dir=DirectoryMove(moved=False),
                    message="User not found.",
                )
            if user.archived:
                return ArchiveResult(
                    user_id=user_id,
                    archived=True,
                    public_dir=DirectoryMove(moved=False),
                    private_dir=DirectoryMove(moved=False),
                    message="User was already archived.",
                )

            # Nothing is moved unless the record can be written afterwards
            user.check_required()

            storage = self.ctx.settings.storage
            destination = Path(storage.archive_root) / str(user.id)

            public_move = await self._move(
                user.public_dir, Path(storage.public_root), destination / "public", user_id
            )
            if public_move.moved:
                user.public_dir = None
            private_move = await self._move(
                user.private_dir, Path(storage.private_root), destination / "private", user_id
            )
            if private_move.moved:
                user.private_dir = None

            user.archived = True
            await user.update()
            logfire.info(
                "User archived",
                user_id=user_id,
                public_moved=public_move.moved,
                private_moved=private_move.moved,
            )
            return ArchiveResult(
                user_id=user_id,
                archived=True,
                public_dir=public_move,
                private_dir=private_move,
            )

    async def _move(
        self, current: str | None, root: Path, destination: Path, user_id: str
    ) -> DirectoryMove:
        if not current:
            return DirectoryMove(moved=False)
        source = str(root / current)
        try:
            await self.ctx.files.rename(source, str(destination))
        except OSError as e:
            logfire.warn(
                "Directory archival failed",
                user_id=user_id,
                source=source,
                destination=str(destination),
                error=str(e),
            )
            return DirectoryMove(
                moved=False, source=source, destination=str(destination), error=str(e)
            )
        return DirectoryMove(moved=True, source=source, destination=str(destination))

    @staticmethod
    def _failure(
        reason: AuthFailureReason, message: str, record: Mapping[str, Any] | None = None
    ) -> AuthResult:
        logfire.warn(
            "Authentication failed",
            reason=reason.value,
            user_id=record.get("_id") if record else None,
        )
        return AuthResult(success=False, reason=reason, message=message)


def _status(record: Mapping[str, Any]) -> str | None:
    return record.get("userStatus") or record.get("status")
