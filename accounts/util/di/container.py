"""Dependency injection container."""

from dishka import AsyncContainer, make_async_container

from accounts.util.di import PROVIDERS, get_provider


def create_container() -> AsyncContainer:
    """Build production container (all prod implementations).

    Settings are loaded from environment variables automatically.

    Usage::

        container = create_container()
        async with container() as request:
            directory = await request.get(UserDirectory)
            result = await directory.authenticate_by_password(email, password)
        await container.close()
    """
    provider_instances = [get_provider(base, use_mock=False)() for base in PROVIDERS]
    return make_async_container(*provider_instances)
