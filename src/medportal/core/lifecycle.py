"""Application lifecycle management.

This module handles application startup and shutdown events, ensuring proper
initialization and cleanup of application resources.
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI

from medportal.core.config.settings import settings
from medportal.core.logging import logger
from medportal.infrastructure.database import create_db_and_tables, dispose_engine
from medportal.infrastructure.redis import close_redis

PURGE_INTERVAL_SECONDS = 300


async def _purge_loop(*targets) -> None:
    """Periodically drop expired entries from the in-memory store and tracker."""
    while True:
        await asyncio.sleep(PURGE_INTERVAL_SECONDS)
        for target in targets:
            purged = await target.purge_expired()
            logger.debug("expired_entries_purged", target=type(target).__name__, purged=purged)


def create_lifespan_manager():
    """Create the application lifespan manager.

    Returns:
        AsyncContextManager: The lifespan manager for the FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Creates tables when configured to, runs the purge loop for the
        in-memory store and closes pooled connections on shutdown.
        """
        from medportal.infrastructure.dependency_injection.auth_dependencies import (
            get_session_tracker,
            get_token_store,
        )

        if settings.DATABASE_AUTO_CREATE:
            await create_db_and_tables()

        purge_task = None
        targets = [
            target
            for target in (get_token_store(), get_session_tracker())
            if hasattr(target, "purge_expired")
        ]
        if targets:
            purge_task = asyncio.create_task(_purge_loop(*targets))

        logger.info(
            "application_startup",
            env=settings.APP_ENV,
            version=settings.VERSION,
            token_store=settings.TOKEN_STORE_BACKEND,
            legacy_refresh=settings.LEGACY_REFRESH_ENABLED,
        )

        yield

        if purge_task is not None:
            purge_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await purge_task
        await close_redis()
        await dispose_engine()
        logger.info("application_shutdown", env=settings.APP_ENV)

    return lifespan
