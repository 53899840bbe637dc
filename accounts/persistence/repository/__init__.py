"""Store implementations."""

from accounts.persistence.repository.filesystem import LocalFileStore
from accounts.persistence.repository.user import PostgresUserStore

__all__ = [
    "LocalFileStore",
    "PostgresUserStore",
]
