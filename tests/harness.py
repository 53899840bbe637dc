"""Test harness: DI fixtures and account builders.

Unit tests run against in-memory stores; integration tests unmock
persistence and assume PostgreSQL is reachable with the configured URL.
"""

import pytest_asyncio

from accounts.domain.model import User
from accounts.domain.service import UserDirectory
from accounts.util.di import Component
from tests.di import build_test_container


def create_env_fixture(unmock: set[Component] | None = None):
    """Factory for creating test environment fixtures.

    The fixture yields a request-scoped container, so every store and
    service fetched within one test shares the same in-memory state.

    Usage:
        unit_env = create_env_fixture()

        @pytest.mark.asyncio
        async def test_lookup(unit_env):
            directory = await unit_env.get(UserDirectory)
            ...
    """

    @pytest_asyncio.fixture
    async def _test_environment():
        container = build_test_container(unmock=unmock or set())
        async with container() as request_container:
            yield request_container
        await container.close()

    return _test_environment


def new_user(
    directory: UserDirectory,
    variant: str = "User",
    first: str = "Ada",
    last: str = "Lovelace",
    email: str = "ada@example.com",
    password: str = "s3cret",
    **fields,
) -> User:
    """Build an unsaved, bound user with the required fields."""
    return directory.create_user(
        variant, first=first, last=last, email=email, password=password, **fields
    )


async def saved_user(
    directory: UserDirectory,
    variant: str = "User",
    with_directories: bool = True,
    **fields,
) -> User:
    """Build, save and optionally give a user its asset directories."""
    fields.setdefault("status", "active")
    user = new_user(directory, variant, **fields)
    await user.save()
    if with_directories:
        await user.set_public_directory("users")
        await user.set_private_directory("users")
        await user.update()
    return user
