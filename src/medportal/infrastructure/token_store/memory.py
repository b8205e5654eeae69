"""In-process token state store.

Used by the test suite and by single-worker deployments (``TOKEN_STORE_BACKEND=memory``).
A single ``asyncio.Lock`` serializes every mutation, which makes ``consume`` an
atomic compare-and-set for all coroutines sharing the store.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Set

from structlog import get_logger

from medportal.domain.interfaces.token_store import ITokenStateStore
from medportal.domain.value_objects.refresh_record import (
    ConsumeOutcome,
    RefreshTokenRecord,
    TokenStatus,
)

logger = get_logger(__name__)


class InMemoryTokenStore(ITokenStateStore):
    """Dictionary-backed store with per-record expiry.

    A revoked session leaves a tombstone until its last record would have
    expired; records saved for that session afterwards are reported as revoked.
    """

    def __init__(self):
        self._records: Dict[str, RefreshTokenRecord] = {}
        self._evict_at: Dict[str, datetime] = {}
        self._session_tokens: Dict[str, Set[str]] = {}
        self._user_sessions: Dict[int, Set[str]] = {}
        self._revoked_sessions: Dict[str, datetime] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def _live(self, jti: str) -> Optional[RefreshTokenRecord]:
        record = self._records.get(jti)
        if record is None:
            return None
        if self._evict_at.get(jti, record.expires_at) <= self._now():
            self._drop(jti)
            return None
        if record.status is TokenStatus.ACTIVE and self._session_revoked(record.session_id):
            record = record.with_status(TokenStatus.REVOKED)
            self._records[jti] = record
        return record

    def _session_revoked(self, session_id: str) -> bool:
        until = self._revoked_sessions.get(session_id)
        return until is not None and until > self._now()

    def _drop(self, jti: str) -> None:
        record = self._records.pop(jti, None)
        self._evict_at.pop(jti, None)
        if record is not None:
            self._session_tokens.get(record.session_id, set()).discard(jti)

    async def save(self, record: RefreshTokenRecord, ttl_seconds: int) -> None:
        async with self._lock:
            self._records[record.jti] = record
            self._evict_at[record.jti] = self._now() + timedelta(seconds=ttl_seconds)
            self._session_tokens.setdefault(record.session_id, set()).add(record.jti)
            self._user_sessions.setdefault(record.user_id, set()).add(record.session_id)

    async def get(self, jti: str) -> Optional[RefreshTokenRecord]:
        async with self._lock:
            return self._live(jti)

    async def consume(self, jti: str) -> ConsumeOutcome:
        async with self._lock:
            record = self._live(jti)
            if record is None:
                return ConsumeOutcome.NOT_FOUND
            if record.status is TokenStatus.CONSUMED:
                return ConsumeOutcome.ALREADY_CONSUMED
            if record.status is TokenStatus.REVOKED:
                return ConsumeOutcome.REVOKED
            self._records[jti] = record.with_status(TokenStatus.CONSUMED)
            return ConsumeOutcome.CONSUMED

    async def revoke_session(self, session_id: str) -> int:
        async with self._lock:
            return self._revoke_session_locked(session_id)

    def _revoke_session_locked(self, session_id: str) -> int:
        revoked = 0
        tombstone_until = self._now()
        for jti in list(self._session_tokens.get(session_id, ())):
            record = self._records.get(jti)
            if record is None:
                continue
            tombstone_until = max(tombstone_until, self._evict_at.get(jti, record.expires_at))
            if record.status is TokenStatus.ACTIVE:
                self._records[jti] = record.with_status(TokenStatus.REVOKED)
                revoked += 1
        self._revoked_sessions[session_id] = max(
            tombstone_until, self._revoked_sessions.get(session_id, tombstone_until)
        )
        return revoked

    async def revoke_user(self, user_id: int) -> int:
        async with self._lock:
            return sum(
                self._revoke_session_locked(session_id)
                for session_id in list(self._user_sessions.get(user_id, ()))
            )

    async def sessions_for_user(self, user_id: int) -> list[str]:
        async with self._lock:
            return sorted(self._user_sessions.get(user_id, ()))

    async def purge_expired(self) -> int:
        """Drop records and tombstones past their expiry, and the user to session
        links of sessions left with neither.

        Returns:
            The number of records removed.
        """
        async with self._lock:
            now = self._now()
            expired = [jti for jti, evict_at in self._evict_at.items() if evict_at <= now]
            for jti in expired:
                self._drop(jti)
            for session_id, until in list(self._revoked_sessions.items()):
                if until <= now:
                    del self._revoked_sessions[session_id]
            for session_id, jtis in list(self._session_tokens.items()):
                if not jtis:
                    del self._session_tokens[session_id]
            for user_id, session_ids in list(self._user_sessions.items()):
                session_ids -= {
                    sid
                    for sid in session_ids
                    if sid not in self._session_tokens and sid not in self._revoked_sessions
                }
                if not session_ids:
                    del self._user_sessions[user_id]
            if expired:
                logger.debug("Expired refresh records purged", count=len(expired))
            return len(expired)
