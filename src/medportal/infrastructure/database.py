"""
Asynchronous database access for the user store.

The engine is created lazily on first use so importing the application (for
example in tests with every dependency overridden) never opens a connection.

**Security Note**: DATABASE_URL carries credentials; it is never logged. Use SSL
in the URL when the database is reached over an untrusted network.
"""

from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from medportal.core.config.settings import settings
from medportal.core.logging import logger

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def get_engine() -> AsyncEngine:
    """Return the process-wide async engine, creating it on first call."""
    global _engine, _session_factory
    if _engine is None:
        _engine = create_async_engine(
            settings.DATABASE_URL,
            echo=settings.DATABASE_ECHO,
            pool_size=settings.DATABASE_POOL_SIZE,
            pool_pre_ping=True,
        )
        _session_factory = async_sessionmaker(bind=_engine, class_=AsyncSession, expire_on_commit=False)
    return _engine


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding an async session.

    The session is rolled back on error and always closed.
    """
    get_engine()
    async with _session_factory() as session:
        try:
            yield session
        except Exception as e:
            logger.error("database_session_error", error=str(e))
            await session.rollback()
            raise


async def create_db_and_tables() -> None:
    """Create the tables declared on SQLModel metadata."""
    from medportal.domain.entities.user import User  # noqa: F401  registers the table

    async with get_engine().begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("database_tables_created")


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("database_engine_disposed")
