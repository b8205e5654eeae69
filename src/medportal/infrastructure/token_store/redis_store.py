"""Redis-backed token state store.

Key layout:

* ``refresh_token:{jti}`` hash holding the record fields, expiring with the token
* ``session_tokens:{sid}`` set of every ``jti`` issued in a session lineage
* ``user_sessions:{uid}`` set of every session a user has opened
* ``revoked_session:{sid}`` tombstone left behind by a session revocation

Every multi-key mutation runs as a Lua script so concurrent workers never see a
half-applied state. ``consume`` in particular is a single compare-and-set.
"""

from typing import Dict, List, Optional

from redis.asyncio import Redis
from redis.exceptions import NoScriptError, RedisError
from structlog import get_logger

from medportal.core.config.settings import settings
from medportal.core.exceptions import TokenStoreError
from medportal.domain.interfaces.token_store import ITokenStateStore
from medportal.domain.value_objects.refresh_record import (
    ConsumeOutcome,
    RefreshTokenRecord,
    TokenStatus,
)

logger = get_logger(__name__)

RECORD_PREFIX = "refresh_token:"
SESSION_TOKENS_PREFIX = "session_tokens:"
USER_SESSIONS_PREFIX = "user_sessions:"
REVOKED_SESSION_PREFIX = "revoked_session:"

# KEYS: record, session set, user set. ARGV: ttl, session id, jti, then field/value pairs.
_SAVE_SCRIPT = """
local unpack = unpack or table.unpack
local ttl = tonumber(ARGV[1])
redis.call('DEL', KEYS[1])
redis.call('HSET', KEYS[1], unpack(ARGV, 4))
redis.call('EXPIRE', KEYS[1], ttl)
redis.call('SADD', KEYS[2], ARGV[3])
if redis.call('TTL', KEYS[2]) < ttl then redis.call('EXPIRE', KEYS[2], ttl) end
redis.call('SADD', KEYS[3], ARGV[2])
if redis.call('TTL', KEYS[3]) < ttl then redis.call('EXPIRE', KEYS[3], ttl) end
return 1
"""

# KEYS: record. ARGV: tombstone prefix.
_CONSUME_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then return 'not_found' end
local status = redis.call('HGET', KEYS[1], 'status')
local sid = redis.call('HGET', KEYS[1], 'session_id')
if status == 'active' and sid and redis.call('EXISTS', ARGV[1] .. sid) == 1 then
    redis.call('HSET', KEYS[1], 'status', 'revoked')
    status = 'revoked'
end
if status == 'consumed' then return 'already_consumed' end
if status ~= 'active' then return 'revoked' end
redis.call('HSET', KEYS[1], 'status', 'consumed')
return 'consumed'
"""

# KEYS: session set, tombstone. ARGV: record prefix, tombstone ttl.
_REVOKE_SESSION_SCRIPT = """
local revoked = 0
for _, jti in ipairs(redis.call('SMEMBERS', KEYS[1])) do
    local key = ARGV[1] .. jti
    if redis.call('HGET', key, 'status') == 'active' then
        redis.call('HSET', key, 'status', 'revoked')
        revoked = revoked + 1
    end
end
redis.call('SET', KEYS[2], '1', 'EX', tonumber(ARGV[2]))
return revoked
"""


class RedisTokenStore(ITokenStateStore):
    """Token state store shared by every worker through Redis.

    Args:
        redis_client: Async client created with ``decode_responses=True``.
        tombstone_ttl_seconds: How long a revoked session stays revoked; it must
            cover the longest refresh token lifetime.
    """

    _SCRIPTS: Dict[str, str] = {
        "save": _SAVE_SCRIPT,
        "consume": _CONSUME_SCRIPT,
        "revoke_session": _REVOKE_SESSION_SCRIPT,
    }

    def __init__(self, redis_client: Redis, tombstone_ttl_seconds: Optional[int] = None):
        self.redis = redis_client
        self.tombstone_ttl_seconds = tombstone_ttl_seconds or settings.refresh_token_ttl_seconds
        self._script_shas: Dict[str, str] = {}

    async def _run_script(self, name: str, keys: List[str], args: List) -> object:
        """Run a registered Lua script, loading it on first use or after a flush."""
        try:
            sha = self._script_shas.get(name)
            if sha is None:
                sha = await self.redis.script_load(self._SCRIPTS[name])
                self._script_shas[name] = sha
            try:
                return await self.redis.evalsha(sha, len(keys), *keys, *args)
            except NoScriptError:
                logger.debug("Lua script missing on server, reloading", script=name)
                sha = await self.redis.script_load(self._SCRIPTS[name])
                self._script_shas[name] = sha
                return await self.redis.evalsha(sha, len(keys), *keys, *args)
        except RedisError as exc:
            logger.error("Token store script failed", script=name, error=str(exc))
            raise TokenStoreError() from exc

    async def save(self, record: RefreshTokenRecord, ttl_seconds: int) -> None:
        fields: List[str] = []
        for key, value in record.to_mapping().items():
            fields.extend((key, value))
        await self._run_script(
            "save",
            [
                f"{RECORD_PREFIX}{record.jti}",
                f"{SESSION_TOKENS_PREFIX}{record.session_id}",
                f"{USER_SESSIONS_PREFIX}{record.user_id}",
            ],
            [max(int(ttl_seconds), 1), record.session_id, record.jti, *fields],
        )

    async def get(self, jti: str) -> Optional[RefreshTokenRecord]:
        try:
            data = await self.redis.hgetall(f"{RECORD_PREFIX}{jti}")
            if not data:
                return None
            record = RefreshTokenRecord.from_mapping(data)
            if record.status is TokenStatus.ACTIVE and await self.redis.exists(
                f"{REVOKED_SESSION_PREFIX}{record.session_id}"
            ):
                record = record.with_status(TokenStatus.REVOKED)
        except RedisError as exc:
            logger.error("Token store read failed", error=str(exc))
            raise TokenStoreError() from exc
        except (KeyError, ValueError) as exc:
            logger.error("Corrupt refresh token record", error=str(exc))
            raise TokenStoreError() from exc
        return record

    async def consume(self, jti: str) -> ConsumeOutcome:
        result = await self._run_script(
            "consume", [f"{RECORD_PREFIX}{jti}"], [REVOKED_SESSION_PREFIX]
        )
        if isinstance(result, bytes):
            result = result.decode()
        return ConsumeOutcome(result)

    async def revoke_session(self, session_id: str) -> int:
        revoked = await self._run_script(
            "revoke_session",
            [f"{SESSION_TOKENS_PREFIX}{session_id}", f"{REVOKED_SESSION_PREFIX}{session_id}"],
            [RECORD_PREFIX, self.tombstone_ttl_seconds],
        )
        return int(revoked)

    async def revoke_user(self, user_id: int) -> int:
        total = 0
        for session_id in await self.sessions_for_user(user_id):
            total += await self.revoke_session(session_id)
        return total

    async def sessions_for_user(self, user_id: int) -> list[str]:
        try:
            members = await self.redis.smembers(f"{USER_SESSIONS_PREFIX}{user_id}")
        except RedisError as exc:
            logger.error("Token store read failed", error=str(exc))
            raise TokenStoreError() from exc
        return sorted(m.decode() if isinstance(m, bytes) else m for m in members)
