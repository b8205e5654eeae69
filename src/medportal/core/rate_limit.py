"""Fixed-window rate-limit dependency for individual routes.

``rate_limit(times, seconds)`` returns a FastAPI dependency that counts requests
per client IP and route. At runtime counters live in Redis so every worker sees
the same numbers; in ``TEST_MODE`` an in-process dictionary keeps the test suite
hermetic. A rejected request raises ``RateLimitExceededError`` carrying the
seconds left in the current window.
"""

from time import time
from typing import Awaitable, Callable, Dict, Tuple

from fastapi import Request
from redis.exceptions import RedisError
from structlog import get_logger

from medportal.core.config.settings import settings
from medportal.core.exceptions import RateLimitExceededError
from medportal.infrastructure.redis import get_redis_client
from medportal.utils.i18n import get_request_language, get_translated_message

logger = get_logger(__name__)

# (counter, window_start) per key; process-local.
_memory_store: Dict[str, Tuple[int, float]] = {}


def _use_memory_backend() -> bool:
    return bool(settings.TEST_MODE)


def reset_memory_store() -> None:
    _memory_store.clear()


def _hit_memory(key: str, seconds: int) -> Tuple[int, int]:
    now = time()
    counter, start = _memory_store.get(key, (0, now))
    if now - start >= seconds:
        counter, start = 0, now
    counter += 1
    _memory_store[key] = (counter, start)
    return counter, max(1, int(start + seconds - now + 0.999))


async def _hit_redis(key: str, seconds: int) -> Tuple[int, int]:
    redis = get_redis_client()
    current = await redis.incr(key)
    if current == 1:
        await redis.expire(key, seconds)
    ttl = await redis.ttl(key)
    return int(current), int(ttl) if ttl and ttl > 0 else seconds


def rate_limit(
    times: int = 5, seconds: int = 60, message_key: str = "too_many_requests"
) -> Callable[[Request], Awaitable[None]]:
    """Return a FastAPI dependency that applies fixed-window limiting.

    Args:
        times: Maximum number of requests per window.
        seconds: Window size in seconds.
        message_key: Translation key of the message returned on rejection.
    """

    async def _dependency(request: Request) -> None:
        if not settings.RATE_LIMIT_ENABLED:
            return

        identifier = request.client.host if request.client else "unknown"
        key = f"rate:{identifier}:{request.url.path}"

        if _use_memory_backend():
            count, retry_after = _hit_memory(key, seconds)
        else:
            try:
                count, retry_after = await _hit_redis(key, seconds)
            except RedisError as exc:
                # Fail open; the global limiter still applies.
                logger.error("redis_rate_limit_failed", error=str(exc))
                return

        if count > times:
            logger.warning(
                "rate_limit_exceeded", ip=identifier, path=request.url.path, count=count
            )
            raise RateLimitExceededError(
                get_translated_message(message_key, get_request_language(request)),
                retry_after=retry_after,
            )

    return _dependency
