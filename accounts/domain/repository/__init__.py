"""Storage interfaces for the accounts domain.

Interfaces are defined in the domain layer (dependency inversion).
Implementations live in the persistence layer.
"""

from accounts.domain.repository.filesystem import FileStore
from accounts.domain.repository.user import Document, UserStore

__all__ = [
    "Document",
    "FileStore",
    "UserStore",
]
