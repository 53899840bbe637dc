"""User entity.

An account is one of a closed set of variants (User, Admin, Creator,
Anonymous). The variant is carried as a tag on the entity and decides
which operations it exposes; ``Creator`` and ``Anonymous`` only differ
from ``User`` by that tag, ``Admin`` adds administrative operations (see
``accounts.domain.model.admin``).

Entities are plain data until bound to a ``UserContext`` with ``bind()``;
persistence, filesystem and crypto operations go through that context.
"""

import hashlib
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Mapping

import logfire
from pydantic import Field, PrivateAttr, field_validator, model_validator

from accounts.domain.error import (
    KeyGenerationError,
    NotFoundError,
    UnboundEntityError,
    ValidationError,
)
from accounts.domain.model.common import Entity
from accounts.domain.model.keys import (
    KeyGenerationResult,
    KeyOptions,
    KeyRecord,
    KeyRing,
    KeySummary,
)
from accounts.domain.value import (
    EmailAddress,
    KeyKind,
    PasswordUpdateResult,
    TokenClaims,
    TokenPair,
    UserId,
    UserStatus,
    UserVariant,
    VerificationFailure,
)

if TYPE_CHECKING:
    from accounts.domain.service import KeyStore, UserContext

SCHEMA_VERSION = 4
DEFAULT_AVATAR_URL = "/i/accounts/avatars/missing.png"
DEFAULT_HEADER_URL = "/i/accounts/headers/generic.png"

# Values older clients wrote for "no value"
_UNSET = (None, "", "undefined")


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def _is_unset(value: Any) -> bool:
    return value in _UNSET


class User(Entity):
    """Basic application user."""

    id: UserId | None = None
    variant: UserVariant = Field(default=UserVariant.USER, frozen=True)

    first: str | None = None
    last: str | None = None
    name: str | None = None
    emails: list[EmailAddress] = Field(default_factory=list, max_length=2)
    username: str | None = None
    display_name: str | None = None
    profile_url: str | None = None
    avatar_url: str = DEFAULT_AVATAR_URL
    header_url: str = DEFAULT_HEADER_URL
    description: str = "This is a user."

    hashed_password: str | None = None
    keys: KeyRing = Field(default_factory=KeyRing)
    jwts: TokenPair | None = None

    status: UserStatus = UserStatus.INACTIVE
    archived: bool = False
    created_on: int = Field(default_factory=now_ms)
    updated_on: int | None = None
    schema_version: int | None = SCHEMA_VERSION

    public_dir: str | None = None
    private_dir: str | None = None
    session_id: str | None = None

    # Mastodon account fields, carried through unchanged
    locked: bool = True
    bot: bool = False
    discoverable: bool = True
    group: bool = False
    profile_fields: list[dict[str, Any]] = Field(default_factory=list)
    emojis: list[dict[str, Any]] = Field(default_factory=list)
    followers_count: int = 0
    following_count: int = 0

    _ctx: "UserContext | None" = PrivateAttr(default=None)

    @field_validator("name", "display_name")
    @classmethod
    def normalize_unset(cls, v: str | None) -> str | None:
        """Treat the literal "undefined" and empty strings as unset."""
        return None if _is_unset(v) else v

    @model_validator(mode="after")
    def check_variant(self) -> "User":
        """The variant tag must match the entity class."""
        expected = type(self).model_fields["variant"].default
        if self.variant != expected:
            raise ValueError(
                f"{type(self).__name__} must have variant {expected.value}, got {self.variant.value}"
            )
        return self

    def model_post_init(self, __context: Any) -> None:
        if not self.username and (self.name or (self.first and self.last)):
            self.username = self.full_name.lower().replace(" ", "", 1)
        if not self.profile_url and self.username:
            self.profile_url = f"/@{self.username}"

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    def bind(self, ctx: "UserContext") -> "User":
        """Attach the collaborators used by persistence and crypto operations."""
        self._ctx = ctx
        return self

    @property
    def is_bound(self) -> bool:
        return self._ctx is not None

    def _context(self, operation: str) -> "UserContext":
        if self._ctx is None:
            raise UnboundEntityError(operation)
        return self._ctx

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    @property
    def full_name(self) -> str:
        """Profile name, falling back to "first last"."""
        if _is_unset(self.name):
            return f"{self.first} {self.last}"
        return self.name

    @property
    def preferred_name(self) -> str:
        """Display name, falling back to "first last"."""
        if _is_unset(self.display_name):
            return f"{self.first} {self.last}"
        return self.display_name

    @property
    def acct(self) -> str | None:
        """Mastodon/WebFinger alias for the username."""
        return self.username

    @property
    def note(self) -> str:
        """Mastodon alias for the description."""
        return self.description

    @property
    def header_static(self) -> str:
        return self.header_url

    def set_username(self, username: str) -> str:
        """Change the username and the profile URL derived from it.

        Callers should check ``UserDirectory.is_username_available`` first.

        Returns:
            The new profile URL
        """
        username = username.lstrip("@")
        if not username:
            raise ValidationError("Username must not be empty", fields=["username"])
        self.username = username
        self.profile_url = f"/@{username}"
        return self.profile_url

    def add_field(self, name: str, value: str) -> None:
        """Append a name/value metadata field to the profile."""
        self.profile_fields = [*self.profile_fields, {"name": name, "value": value}]

    def add_emojis(self, emojis: Iterable[dict[str, Any]]) -> None:
        self.emojis = [*self.emojis, *emojis]

    # ------------------------------------------------------------------
    # Emails
    # ------------------------------------------------------------------

    @property
    def primary_email(self) -> str | None:
        return self.emails[0].address if self.emails else None

    @property
    def secondary_email(self) -> str | None:
        return self.emails[1].address if len(self.emails) > 1 else None

    @property
    def email(self) -> str | None:
        """Alias for the primary email address."""
        return self.primary_email

    def set_primary_email(self, address: str, verified: bool = False) -> None:
        """Set the primary email address.

        Raises:
            ValidationError: If the address equals the secondary address
        """
        if len(self.emails) > 1 and self.emails[1].same_as(address):
            raise ValidationError(
                "Primary email must be different from the secondary email address.",
                fields=["emails"],
            )
        primary = EmailAddress(address=address, verified=verified)
        self.emails = [primary, *self.emails[1:]]

    def set_secondary_email(self, address: str, verified: bool = False) -> None:
        """Set the secondary email address.

        Raises:
            ValidationError: If there is no primary address yet, or the
                address equals the primary address
        """
        if not self.emails:
            raise ValidationError(
                "Missing required primary email address.", fields=["emails"]
            )
        if self.emails[0].same_as(address):
            raise ValidationError(
                "Secondary email must be different from the primary email address.",
                fields=["emails"],
            )
        secondary = EmailAddress(address=address, verified=verified)
        self.emails = [self.emails[0], secondary]

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    def set_password(self, password: str) -> None:
        """Store a password, hashing it unless it is already a hash."""
        vault = self._context("set password").vault
        self.hashed_password = vault.hash_password(password)

    async def verify_password(self, candidate: str) -> bool:
        """Compare a candidate password with the stored hash."""
        vault = self._context("verify password").vault
        if not self.hashed_password:
            return False
        return await vault.verify_password(candidate, self.hashed_password)

    async def update_password(
        self, current: str | None, new: str | None
    ) -> PasswordUpdateResult:
        """Replace the password after checking the current one.

        A wrong current password is an ordinary outcome and is reported in
        the result, not raised.
        """
        errors = []
        if not current:
            errors.append("Missing required current password parameter.")
        if not new:
            errors.append("Missing required new password parameter.")
        if errors:
            return PasswordUpdateResult(success=False, errors=errors)

        if not await self.verify_password(current):
            logfire.warn("Password update rejected", user_id=self.id)
            return PasswordUpdateResult(
                success=False, errors=["Current password was not a valid match."]
            )

        self.set_password(new)
        logfire.info("Password updated", user_id=self.id)
        return PasswordUpdateResult(success=True, message="Password has been updated")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def missing_fields(self) -> list[str]:
        """Names of required fields that have no usable value."""
        missing = []
        if _is_unset(self.first):
            missing.append("first")
        if _is_unset(self.last):
            missing.append("last")
        if not self.emails:
            missing.append("emails")
        if _is_unset(self.hashed_password):
            missing.append("hashed_password")
        if self.variant is None:
            missing.append("variant")
        if self.status is None:
            missing.append("status")
        return missing

    def check_required(self) -> None:
        """Validate the entity before it is written.

        Raises:
            ValidationError: Naming every missing field, or when primary and
                secondary email are the same
        """
        missing = self.missing_fields()
        if missing:
            raise ValidationError(
                f"Missing the following required fields: {', '.join(missing)}",
                fields=missing,
            )
        if self.secondary_email and self.emails[0].same_as(self.secondary_email):
            raise ValidationError(
                "Primary email must be different from the secondary email address.",
                fields=["emails"],
            )

    async def save(self) -> "User":
        """Insert a new record and take the identifier it was assigned.

        Raises:
            ValidationError: If required fields are missing or the user was
                already saved
        """
        ctx = self._context("save")
        if self.id:
            raise ValidationError(
                f"User {self.id} already exists, use update()", fields=["id"]
            )
        self.check_required()

        with logfire.span("user.save", variant=self.variant.value):
            timestamp = now_ms()
            document = self.to_document()
            document["updatedOn"] = timestamp
            inserted_id = await ctx.store.insert_one(document)
            self.id = UserId(str(inserted_id))
            self.updated_on = timestamp
            logfire.info("User saved", user_id=self.id, variant=self.variant.value)
            return self

    async def update(self) -> "User":
        """Write the full current snapshot of an existing record.

        ``created_on`` is never rewritten.

        Raises:
            ValidationError: If the user has no id or required fields are missing
            NotFoundError: If no record has this id
        """
        ctx = self._context("update")
        if not self.id:
            raise ValidationError("Cannot update a user without an id", fields=["id"])
        self.check_required()

        with logfire.span("user.update", user_id=self.id):
            timestamp = now_ms()
            document = self.to_document()
            document.pop("_id", None)
            document.pop("createdOn", None)
            document["updatedOn"] = timestamp
            result = await ctx.store.find_one_and_update(
                {"_id": self.id}, {"$set": document}, return_document="after"
            )
            if result is None:
                logfire.warn("User not found for update", user_id=self.id)
                raise NotFoundError("User", self.id)
            self.updated_on = timestamp
            logfire.info("User updated", user_id=self.id)
            return self

    # ------------------------------------------------------------------
    # Asset directories
    # ------------------------------------------------------------------

    def _directory_key(self) -> str:
        if not self.id:
            raise ValidationError(
                "User must be saved before directories can be assigned", fields=["id"]
            )
        return hashlib.md5(str(self.id).encode("utf-8")).hexdigest()

    def stable_location(self, location: str) -> str:
        """Relative directory for ``location`` that always ends in this user's key."""
        location = location.strip().strip("/")
        if not location:
            raise ValidationError("Missing required location parameter.", fields=["location"])
        key = self._directory_key()
        if key in location.split("/"):
            return location
        return f"{location}/{key}"

    async def set_public_directory(self, location: str) -> str:
        """Create the public asset directory, or move it to ``location``."""
        ctx = self._context("set public directory")
        self.public_dir = await self._place_directory(
            ctx, Path(ctx.settings.storage.public_root), self.public_dir, location, "public"
        )
        return self.public_dir

    async def set_private_directory(self, location: str) -> str:
        """Create the private asset directory, or move it to ``location``."""
        ctx = self._context("set private directory")
        self.private_dir = await self._place_directory(
            ctx, Path(ctx.settings.storage.private_root), self.private_dir, location, "private"
        )
        return self.private_dir

    async def _place_directory(
        self, ctx: "UserContext", root: Path, current: str | None, location: str, label: str
    ) -> str:
        relative = self.stable_location(location)
        with logfire.span(f"user.set_{label}_directory", user_id=self.id):
            if _is_unset(current):
                await ctx.files.mkdir(str(root / relative))
                logfire.info("Directory created", user_id=self.id, kind=label, path=relative)
                return relative
            if current.strip("/") == relative:
                return current
            try:
                await ctx.files.rename(str(root / current), str(root / relative))
            except OSError as e:
                logfire.error(
                    "Directory rename failed",
                    user_id=self.id,
                    kind=label,
                    source=current,
                    destination=relative,
                    error=str(e),
                )
                raise
            logfire.info(
                "Directory moved", user_id=self.id, kind=label, source=current, destination=relative
            )
            return relative

    # ------------------------------------------------------------------
    # Keys and crypto
    # ------------------------------------------------------------------

    @property
    def key_store(self) -> "KeyStore":
        """Key store over this user's keys and directories."""
        return self._context("access keys").key_store_for(self)

    async def generate_keys(
        self,
        kinds: Iterable[KeyKind] = (KeyKind.SIGNING, KeyKind.ENCRYPTING),
        options: Mapping[KeyKind, KeyOptions] | None = None,
    ) -> KeySummary:
        """Generate keypairs of the requested kinds.

        Archived users never get new keys. A failure for one kind does not
        undo another kind that succeeded; each is reported in the summary.
        The new records are kept in memory; call ``update()`` to persist.
        """
        if self.archived:
            logfire.info("Skipping key generation for archived user", user_id=self.id)
            return KeySummary()

        store = self.key_store
        results: dict[KeyKind, KeyGenerationResult] = {}
        for kind in kinds:
            kind = KeyKind(kind)
            try:
                results[kind] = await store.generate_key_pair(kind, (options or {}).get(kind))
            except KeyGenerationError as e:
                results[kind] = KeyGenerationResult(kind=kind, status="failed", error=str(e))
        self.keys = store.ring
        return KeySummary.from_results(results)

    def current_key(self, kind: KeyKind) -> KeyRecord | None:
        records = self.keys.records(kind)
        return records[0] if records else None

    async def public_signing_key(self) -> str | None:
        """PEM of the current public signing key, if there is one."""
        if not self.keys.signing:
            return None
        return await self.key_store.read_public_pem(KeyKind.SIGNING, 0)

    async def jwks(self) -> dict[str, list[dict[str, Any]]]:
        """JWK set of all signing keys, newest first."""
        store = self.key_store
        return {
            "keys": [
                await store.read_jwk(KeyKind.SIGNING, index)
                for index in range(len(self.keys.signing))
            ]
        }

    async def sign(self, data: bytes | str, key_index: int = 0) -> bytes:
        return await self.key_store.sign(data, key_index)

    async def verify(self, signature: bytes, data: bytes | str, key_index: int = 0) -> bool:
        return await self.key_store.verify(signature, data, key_index)

    async def encrypt(self, data: bytes | str, key_index: int = 0) -> bytes:
        return await self.key_store.encrypt(data, key_index)

    async def decrypt(self, ciphertext: bytes, key_index: int = 0) -> bytes:
        return await self.key_store.decrypt(ciphertext, key_index)

    async def issue_access_token(self, key_index: int = 0) -> TokenPair:
        """Issue and remember an access/refresh token pair."""
        tokens = self._context("issue tokens").tokens
        access = await tokens.issue(self, key_index)
        refresh = await tokens.issue(self, key_index, token_use="refresh")
        self.jwts = TokenPair(token=access.token, refresh=refresh.token)
        return self.jwts

    async def verify_access_token(
        self, token: str, key_index: int = 0
    ) -> TokenClaims | VerificationFailure:
        tokens = self._context("verify tokens").tokens
        return await tokens.verify(self, token, key_index)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_document(self) -> dict[str, Any]:
        """Full persisted representation, using the store's field names."""
        document: dict[str, Any] = {
            "type": self.variant.value,
            "first": self.first,
            "last": self.last,
            "name": self.name,
            "emails": _emails_to_document(self.emails),
            "username": self.username,
            "displayName": self.display_name,
            "url": self.profile_url,
            "avatar": self.avatar_url,
            "header": self.header_url,
            "description": self.description,
            "hashedPassword": self.hashed_password,
            "jwts": self.jwts.model_dump() if self.jwts else None,
            "keys": self.keys.to_document(),
            "createdOn": self.created_on,
            "updatedOn": self.updated_on,
            "userStatus": self.status.value,
            "archived": self.archived,
            "publicDir": self.public_dir,
            "privateDir": self.private_dir,
            "sessionId": self.session_id,
            "schemaVer": self.schema_version,
            "locked": self.locked,
            "bot": self.bot,
            "discoverable": self.discoverable,
            "group": self.group,
            "fields": list(self.profile_fields),
            "emojis": list(self.emojis),
            "followers_count": self.followers_count,
            "following_count": self.following_count,
        }
        if self.id:
            document["_id"] = self.id
        return document

    def to_public_dict(self) -> dict[str, Any]:
        """Presentation view without credentials or key references."""
        return {
            "id": self.id,
            "type": self.variant.value,
            "status": self.status.value,
            "first_name": self.first,
            "last_name": self.last,
            "full_name": self.full_name,
            "display_name": self.preferred_name,
            "emails": [email.model_dump() for email in self.emails],
            "username": self.username,
            "acct": self.acct,
            "url": self.profile_url,
            "avatar": self.avatar_url,
            "header": self.header_url,
            "note": self.note,
            "locked": self.locked,
            "bot": self.bot,
            "discoverable": self.discoverable,
            "group": self.group,
            "fields": list(self.profile_fields),
            "emojis": list(self.emojis),
            "followers_count": self.followers_count,
            "following_count": self.following_count,
            "created_on": self.created_on,
            "updated_on": self.updated_on,
            "archived": self.archived,
        }

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "User":
        """Rehydrate from a stored record, keeping every field as stored."""
        return cls(**fields_from_document(document))


class Creator(User):
    """Content creator; a capability tag with no extra operations."""

    variant: UserVariant = Field(default=UserVariant.CREATOR, frozen=True)
    description: str = "This is a Creator user."


class Anonymous(User):
    """Anonymous actor; a capability tag with no extra operations."""

    variant: UserVariant = Field(default=UserVariant.ANONYMOUS, frozen=True)
    description: str = "This is an Anonymous user."


def _emails_to_document(emails: list[EmailAddress]) -> list[dict[str, Any]]:
    slots = ("primary", "secondary")
    return [
        {slot: email.address, "verified": email.verified}
        for slot, email in zip(slots, emails)
    ]


def _emails_from_document(document: Mapping[str, Any]) -> list[EmailAddress]:
    emails = []
    for entry in document.get("emails") or []:
        if isinstance(entry, str):
            emails.append(EmailAddress(address=entry))
            continue
        address = entry.get("primary") or entry.get("secondary") or entry.get("address")
        if address:
            emails.append(EmailAddress(address=address, verified=bool(entry.get("verified"))))
    if not emails and document.get("email"):
        emails.append(EmailAddress(address=document["email"]))
    return emails[:2]


def _keys_from_document(keys: Any) -> KeyRing:
    if not isinstance(keys, Mapping):
        return KeyRing()
    return KeyRing(
        signing=[KeyRecord.model_validate(r) for r in keys.get("signing") or [] if isinstance(r, Mapping)],
        encrypting=[
            KeyRecord.model_validate(r) for r in keys.get("encrypting") or [] if isinstance(r, Mapping)
        ],
    )


def _pick(document: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if document.get(name) is not None:
            return document[name]
    return None


def fields_from_document(document: Mapping[str, Any]) -> dict[str, Any]:
    """Map a stored record, including legacy spellings, to entity fields.

    Fields absent from the record are left out so entity defaults apply.
    The variant is not included; the caller picks the entity class.
    """
    jwts = document.get("jwts")
    identifier = _pick(document, "_id", "id")
    fields: dict[str, Any] = {
        "id": UserId(str(identifier)) if identifier is not None else None,
        "first": _pick(document, "first", "first_name"),
        "last": _pick(document, "last", "last_name"),
        "name": document.get("name"),
        "emails": _emails_from_document(document),
        "username": document.get("username"),
        "display_name": _pick(document, "displayName", "display_name", "displayname", "diplayName"),
        "profile_url": document.get("url"),
        "avatar_url": _pick(document, "avatar", "_avatar"),
        "header_url": _pick(document, "header", "_header"),
        "description": document.get("description"),
        "hashed_password": _pick(document, "hashedPassword", "password"),
        "keys": _keys_from_document(document.get("keys")),
        "jwts": TokenPair.model_validate(jwts) if isinstance(jwts, Mapping) and jwts.get("token") else None,
        "status": _pick(document, "userStatus", "status"),
        "archived": document.get("archived"),
        "created_on": _pick(document, "createdOn", "created_on"),
        "updated_on": _pick(document, "updatedOn", "updated_on"),
        "schema_version": _pick(document, "schemaVer", "schemaVersion"),
        "public_dir": document.get("publicDir"),
        "private_dir": document.get("privateDir"),
        "session_id": document.get("sessionId"),
        "locked": _pick(document, "locked", "isLocked"),
        "bot": document.get("bot"),
        "discoverable": document.get("discoverable"),
        "group": document.get("group"),
        "profile_fields": document.get("fields"),
        "emojis": document.get("emojis"),
        "followers_count": _pick(document, "followers_count", "followersCount"),
        "following_count": _pick(document, "following_count", "followingCount"),
    }
    return {name: value for name, value in fields.items() if value is not None}
