"""Collaborators shared by bound user entities."""

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from accounts.config import Settings
from accounts.domain.repository import FileStore, UserStore

from .credential_codec import CredentialCodec
from .key_store import KeyStore
from .password_vault import PasswordVault
from .token_service import TokenService

if TYPE_CHECKING:
    from accounts.domain.model import User


@dataclass
class UserContext:
    """Store, filesystem and crypto collaborators for user entities.

    Entities receive this through ``User.bind()``; nothing is looked up
    from module globals.
    """

    store: UserStore
    files: FileStore
    vault: PasswordVault
    codec: CredentialCodec
    tokens: TokenService
    settings: Settings

    @classmethod
    def create(cls, settings: Settings, store: UserStore, files: FileStore) -> "UserContext":
        """Build a context with services configured from ``settings``."""
        codec = CredentialCodec()
        return cls(
            store=store,
            files=files,
            vault=PasswordVault(settings.passwords),
            codec=codec,
            tokens=TokenService(settings.auth, codec),
            settings=settings,
        )

    def public_location(self, user: "User") -> str | None:
        """Absolute public directory of ``user``, if assigned."""
        if not user.public_dir:
            return None
        return str(Path(self.settings.storage.public_root) / user.public_dir)

    def private_location(self, user: "User") -> str | None:
        """Absolute private directory of ``user``, if assigned."""
        if not user.private_dir:
            return None
        return str(Path(self.settings.storage.private_root) / user.private_dir)

    def key_store_for(self, user: "User") -> KeyStore:
        """Key store over the user's current keys and directories."""
        return KeyStore(
            ring=user.keys,
            files=self.files,
            codec=self.codec,
            settings=self.settings.keys,
            public_location=self.public_location(user),
            private_location=self.private_location(user),
            owner=user.id,
        )
