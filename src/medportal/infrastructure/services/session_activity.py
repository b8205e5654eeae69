"""Session activity tracking.

The tracker remembers, per session, which access token was issued last and when
the session was last active. Ending a session is what makes outstanding access
tokens of that session stop verifying before their ``exp``.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict

from redis.asyncio import Redis
from redis.exceptions import RedisError
from structlog import get_logger

from medportal.core.config.settings import settings
from medportal.core.exceptions import TokenStoreError
from medportal.domain.interfaces.session_activity import ISessionActivityTracker
from medportal.domain.value_objects.jwt_token import hash_token

logger = get_logger(__name__)

ACTIVITY_PREFIX = "session_activity:"


class RedisSessionActivityTracker(ISessionActivityTracker):
    """Keeps ``session_activity:{sid}`` hashes in Redis.

    Fields: ``user_id``, ``last_activity`` (ISO timestamp), ``access_token_hash``
    and ``ended`` (``0``/``1``). Touching never clears ``ended``: once a
    session is ended it stays ended. The hash expires after ``SESSION_ACTIVITY_TTL_DAYS``
    of inactivity; an expired hash is not treated as an ended session, since
    revocation always writes ``ended=1`` explicitly.
    """

    def __init__(self, redis_client: Redis, ttl_seconds: int | None = None):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds or settings.SESSION_ACTIVITY_TTL_DAYS * 24 * 3600

    async def touch(self, session_id: str, user_id: int, access_token: str) -> None:
        key = f"{ACTIVITY_PREFIX}{session_id}"
        try:
            await self.redis.hset(
                key,
                mapping={
                    "user_id": str(user_id),
                    "last_activity": datetime.now(timezone.utc).isoformat(),
                    "access_token_hash": hash_token(access_token),
                },
            )
            await self.redis.expire(key, self.ttl_seconds)
        except RedisError as exc:
            logger.error("Session activity update failed", session_id=session_id, error=str(exc))
            raise TokenStoreError() from exc

    async def end(self, session_id: str) -> None:
        key = f"{ACTIVITY_PREFIX}{session_id}"
        try:
            await self.redis.hset(
                key,
                mapping={"ended": "1", "last_activity": datetime.now(timezone.utc).isoformat()},
            )
            await self.redis.expire(key, self.ttl_seconds)
        except RedisError as exc:
            logger.error("Session end failed", session_id=session_id, error=str(exc))
            raise TokenStoreError() from exc

    async def is_active(self, session_id: str) -> bool:
        try:
            ended = await self.redis.hget(f"{ACTIVITY_PREFIX}{session_id}", "ended")
        except RedisError as exc:
            logger.error("Session activity read failed", session_id=session_id, error=str(exc))
            raise TokenStoreError() from exc
        if isinstance(ended, bytes):
            ended = ended.decode()
        return ended != "1"


class InMemorySessionActivityTracker(ISessionActivityTracker):
    """Process-local tracker paired with the in-memory token store.

    Entries idle for longer than ``SESSION_ACTIVITY_TTL_DAYS`` are dropped by
    `purge_expired`, matching the expiry of the Redis hashes.
    """

    def __init__(self, ttl_seconds: int | None = None):
        self._sessions: Dict[str, Dict[str, str]] = {}
        self._lock = asyncio.Lock()
        self.ttl_seconds = ttl_seconds or settings.SESSION_ACTIVITY_TTL_DAYS * 24 * 3600

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    async def touch(self, session_id: str, user_id: int, access_token: str) -> None:
        async with self._lock:
            entry = self._sessions.setdefault(session_id, {"ended": "0"})
            entry.update(
                user_id=str(user_id),
                last_activity=self._now().isoformat(),
                access_token_hash=hash_token(access_token),
            )

    async def end(self, session_id: str) -> None:
        async with self._lock:
            entry = self._sessions.setdefault(session_id, {})
            entry["ended"] = "1"
            entry["last_activity"] = self._now().isoformat()

    async def is_active(self, session_id: str) -> bool:
        async with self._lock:
            return self._sessions.get(session_id, {}).get("ended") != "1"

    def snapshot(self, session_id: str) -> Dict[str, str]:
        return dict(self._sessions.get(session_id, {}))

    async def purge_expired(self) -> int:
        """Drop sessions idle for longer than the activity TTL.

        Returns:
            The number of sessions removed.
        """
        async with self._lock:
            cutoff = self._now() - timedelta(seconds=self.ttl_seconds)
            idle = [
                session_id
                for session_id, entry in self._sessions.items()
                if datetime.fromisoformat(entry["last_activity"]) <= cutoff
            ]
            for session_id in idle:
                del self._sessions[session_id]
            return len(idle)
