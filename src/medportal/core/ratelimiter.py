"""Global request limiter.

A slowapi ``Limiter`` applies ``RATE_LIMIT_DEFAULT`` to every route through
``SlowAPIMiddleware``. The health check is exempt. Counters live in Redis so all
workers share them; test mode keeps them in process memory.
"""

import logging

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from medportal.core.config.settings import settings

PUBLIC_ROUTES = {"/api/v1/health", "/api/v1/health/"}

logger = logging.getLogger("rate_limiter.security")


def key_func(request: Request) -> str:
    """Rate-limit key: the client IP, with the health check in its own bucket."""
    if request.url.path in PUBLIC_ROUTES:
        return "public:health"
    return get_remote_address(request) or "unknown"


def get_limiter() -> Limiter:
    """Build the application limiter from settings."""
    storage_uri = "memory://" if settings.TEST_MODE else settings.RATE_LIMIT_STORAGE_URL
    limiter = Limiter(
        key_func=key_func,
        default_limits=[settings.RATE_LIMIT_DEFAULT],
        storage_uri=storage_uri,
        enabled=settings.RATE_LIMIT_ENABLED and not settings.TEST_MODE,
        headers_enabled=False,
    )
    logger.debug("Global rate limiter configured (storage=%s)", storage_uri.split("://")[0])
    return limiter
