"""In-memory store implementations for testing."""

from .filesystem import InMemoryFileStore
from .user import InMemoryUserStore

__all__ = [
    "InMemoryFileStore",
    "InMemoryUserStore",
]
