"""Password hashing domain service."""

import asyncio
import re

import bcrypt
import logfire

from accounts.config import PasswordSettings
from accounts.domain.error import CredentialError

from .base import Service

# Modular crypt format written by bcrypt: $2a$, $2b$ or $2y$, cost, 53 chars
_BCRYPT_HASH = re.compile(r"^\$2[aby]\$\d{2}\$[./A-Za-z0-9]{53}$")

# bcrypt only looks at the first 72 bytes of a password
_MAX_PASSWORD_BYTES = 72


class PasswordVault(Service):
    """Salted one-way password hashing with bcrypt."""

    def __init__(self, settings: PasswordSettings) -> None:
        """Initialize password vault.

        Args:
            settings: Password settings (work factor)
        """
        self.settings = settings

    @staticmethod
    def is_hashed(value: str) -> bool:
        """Check whether a value already is a bcrypt hash."""
        return bool(_BCRYPT_HASH.match(value))

    def hash_password(self, plaintext_or_hash: str) -> str:
        """Hash a password, passing existing hashes through unchanged.

        Rehydrated records carry the stored hash, which must not be hashed
        a second time.
        """
        if self.is_hashed(plaintext_or_hash):
            return plaintext_or_hash
        password = plaintext_or_hash.encode("utf-8")[:_MAX_PASSWORD_BYTES]
        salt = bcrypt.gensalt(rounds=self.settings.rounds)
        return bcrypt.hashpw(password, salt).decode("ascii")

    async def verify_password(self, candidate: str, hashed: str) -> bool:
        """Compare a candidate password with a stored hash.

        Returns:
            True if the password matches, False otherwise

        Raises:
            CredentialError: If ``hashed`` is not a bcrypt hash
        """
        if not hashed or not self.is_hashed(hashed):
            logfire.error("Malformed password hash")
            raise CredentialError("Stored password hash is not a valid bcrypt hash")

        password = (candidate or "").encode("utf-8")[:_MAX_PASSWORD_BYTES]
        try:
            return await asyncio.to_thread(bcrypt.checkpw, password, hashed.encode("ascii"))
        except ValueError as e:
            logfire.error("Password hash rejected by bcrypt", error=str(e))
            raise CredentialError(f"Invalid password hash: {e}") from e
