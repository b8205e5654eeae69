"""Token state store interface.

The store maps a refresh token identifier (``jti``) to its server-side record
and is the single authority on whether a refresh token is still usable. It is
injected into the rotation service instead of living in module state, so tests
can swap in the in-memory implementation.
"""

from abc import ABC, abstractmethod
from typing import Optional

from medportal.domain.value_objects.refresh_record import ConsumeOutcome, RefreshTokenRecord


class ITokenStateStore(ABC):
    """Contract for persisting refresh token state."""

    @abstractmethod
    async def save(self, record: RefreshTokenRecord, ttl_seconds: int) -> None:
        """Register a newly issued refresh token.

        Args:
            record: The record to store, normally in ``active`` state.
            ttl_seconds: How long the store must keep the record.
        """
        raise NotImplementedError

    @abstractmethod
    async def get(self, jti: str) -> Optional[RefreshTokenRecord]:
        """Return the record for ``jti`` or ``None`` if unknown or evicted."""
        raise NotImplementedError

    @abstractmethod
    async def consume(self, jti: str) -> ConsumeOutcome:
        """Atomically move a record from ``active`` to ``consumed``.

        The check and the write happen in one indivisible step: of any number of
        concurrent callers with the same ``jti``, exactly one observes
        ``ConsumeOutcome.CONSUMED``.
        """
        raise NotImplementedError

    @abstractmethod
    async def revoke_session(self, session_id: str) -> int:
        """Mark every record of a session lineage as ``revoked``.

        Returns:
            The number of records that were still active.
        """
        raise NotImplementedError

    @abstractmethod
    async def revoke_user(self, user_id: int) -> int:
        """Mark every record of every session of a user as ``revoked``.

        Returns:
            The number of records that were still active.
        """
        raise NotImplementedError

    @abstractmethod
    async def sessions_for_user(self, user_id: int) -> list[str]:
        """Session identifiers the store has seen for a user."""
        raise NotImplementedError
