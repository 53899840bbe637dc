"""Engine, sessions and schema helpers for the user store database."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from accounts.config import Settings
from accounts.persistence.tables import metadata


def create_engine(settings: Settings) -> AsyncEngine:
    """Build the asyncpg engine from ``settings.database``.

    SQL statements are echoed when ``settings.debug`` is on.
    """
    database = settings.database
    return create_async_engine(
        database.url,
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=database.pool_size,
        max_overflow=database.max_overflow,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory for request-scoped user store sessions.

    Objects stay usable after commit and nothing is flushed implicitly;
    the store flushes after each write.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_schema(engine: AsyncEngine) -> None:
    """Create missing tables directly from the table definitions.

    Deployed databases are migrated with Alembic; this is for throwaway
    databases such as the integration test one.
    """
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
