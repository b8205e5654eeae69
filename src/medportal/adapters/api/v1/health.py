"""Health check reporting Redis reachability."""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request
from pydantic import BaseModel
from redis.exceptions import RedisError

from medportal.core.config.settings import settings
from medportal.core.logging import logger
from medportal.infrastructure.redis import get_redis_client
from medportal.utils.i18n import get_request_language, get_translated_message

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    env: str
    message: str
    services: Dict[str, Any]
    timestamp: datetime


async def check_redis_health() -> Dict[str, Any]:
    """Check Redis connection health."""
    if settings.TOKEN_STORE_BACKEND == "memory":
        return {"status": "skipped"}
    try:
        await get_redis_client().ping()
        return {"status": "healthy"}
    except (RedisError, OSError) as e:
        logger.error("redis_health_check_failed", error=str(e))
        return {"status": "unhealthy"}


@router.get("", response_model=HealthResponse)
async def health_check(request: Request):
    """Report overall status; ``degraded`` when Redis does not answer."""
    redis_health = await check_redis_health()
    overall_status = "degraded" if redis_health["status"] == "unhealthy" else "ok"
    return HealthResponse(
        status=overall_status,
        env=settings.APP_ENV,
        message=get_translated_message("health_status_ok", get_request_language(request)),
        services={"redis": redis_health},
        timestamp=datetime.now(timezone.utc),
    )
