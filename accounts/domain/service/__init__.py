"""Domain services for the accounts domain."""

from .base import Service
from .context import UserContext
from .credential_codec import CredentialCodec
from .key_store import KeyStore, artifact_names
from .password_vault import PasswordVault
from .token_service import TokenService
from .user_directory import UserDirectory

__all__ = [
    "CredentialCodec",
    "KeyStore",
    "PasswordVault",
    "Service",
    "TokenService",
    "UserContext",
    "UserDirectory",
    "artifact_names",
]
