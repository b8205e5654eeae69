"""Session activity tracker interface."""

from abc import ABC, abstractmethod


class ISessionActivityTracker(ABC):
    """Tracks which access token is active for a session and when it was last used.

    The tracker owns the session record; the rotation service only notifies it.
    """

    @abstractmethod
    async def touch(self, session_id: str, user_id: int, access_token: str) -> None:
        """Record ``access_token`` as the active token of the session and bump last-seen."""
        raise NotImplementedError

    @abstractmethod
    async def end(self, session_id: str) -> None:
        """Mark the session as ended (logout or revocation)."""
        raise NotImplementedError

    @abstractmethod
    async def is_active(self, session_id: str) -> bool:
        """Whether the session has not been ended."""
        raise NotImplementedError
