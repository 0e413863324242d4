"""Async database engine and request-scoped sessions.

One engine per process, sized from DATABASE_POOL_* settings. Every
connection carries a server-side statement timeout and an application name
so donation queries are identifiable in pg_stat_activity.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from temple.core.config import Settings, settings

_APPLICATION_NAME = "temple-api"


def build_engine(config: Settings) -> AsyncEngine:
    """Create the asyncpg engine with this service's pool and timeouts."""
    return create_async_engine(
        config.database_url,
        echo=config.environment == "development",
        pool_pre_ping=True,
        pool_size=config.database_pool_size,
        max_overflow=config.database_max_overflow,
        pool_timeout=config.database_pool_timeout_seconds,
        connect_args={
            "server_settings": {
                "application_name": _APPLICATION_NAME,
                "statement_timeout": str(config.database_statement_timeout_ms),
            }
        },
    )


engine = build_engine(settings)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Session for one request: commit on success, roll back on error.

    A service may commit early (the lazy EXPIRED write does) before raising;
    the rollback here then discards nothing it needs.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
