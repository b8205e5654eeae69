"""
Redis Connection Module

Provides the asynchronous Redis client that backs the token state store and the
session activity tracker. One client (with its connection pool) is shared by the
process; it is created on first use and closed on shutdown.

**Security Note**: Ensure that REDIS_URL uses ``rediss://`` and a password when
Redis is reached over an untrusted network. Connection details are never logged.
"""

from typing import Optional

from redis.asyncio import Redis

from medportal.core.config.settings import settings
from medportal.core.logging import logger

_client: Optional[Redis] = None


def get_redis_client() -> Redis:
    """Return the shared Redis client, creating it on first call."""
    global _client
    if _client is None:
        _client = Redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
        logger.debug("redis_client_created")
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
        logger.debug("redis_client_closed")
