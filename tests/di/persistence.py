"""Mock persistence providers for testing."""

from dishka import Scope, provide

from accounts.domain.repository import FileStore, UserStore
from accounts.persistence.repository.inmemory import InMemoryFileStore, InMemoryUserStore
from accounts.util.di.infrastructure.persistence import PersistenceProvider


class MockPersistenceProvider(PersistenceProvider):
    """Mock persistence provider using in-memory stores.

    Uses REQUEST scope to ensure test isolation - each test gets fresh stores.
    """

    __is_mock__ = True

    @provide(scope=Scope.REQUEST)
    def get_user_store(self) -> UserStore:
        """Provide in-memory user store."""
        return InMemoryUserStore()

    @provide(scope=Scope.REQUEST)
    def get_file_store(self) -> FileStore:
        """Provide in-memory file store."""
        return InMemoryFileStore()
