"""Server-side state of an issued refresh token."""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class TokenStatus(str, Enum):
    """Lifecycle of a refresh token: ``active -> consumed`` or ``active -> revoked``."""

    ACTIVE = "active"
    CONSUMED = "consumed"
    REVOKED = "revoked"


class ConsumeOutcome(str, Enum):
    """Result of the atomic ``active -> consumed`` compare-and-set."""

    CONSUMED = "consumed"
    ALREADY_CONSUMED = "already_consumed"
    REVOKED = "revoked"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class RefreshTokenRecord:
    """A refresh token as the token state store knows it.

    Attributes:
        jti: Identifier of the refresh token.
        user_id: Owner of the token.
        session_id: Session lineage the token belongs to.
        fingerprint: Client fingerprint the token is bound to, if any.
        version: Rotation sequence marker.
        token_hash: SHA-256 of the encoded token.
        expires_at: Natural expiry of the token.
        status: Current lifecycle state.
    """

    jti: str
    user_id: int
    session_id: str
    fingerprint: Optional[str]
    version: int
    token_hash: str
    expires_at: datetime
    status: TokenStatus = TokenStatus.ACTIVE

    def with_status(self, status: TokenStatus) -> "RefreshTokenRecord":
        return replace(self, status=status)

    def to_mapping(self) -> Dict[str, str]:
        """Flat string mapping suitable for a Redis hash."""
        return {
            "jti": self.jti,
            "user_id": str(self.user_id),
            "session_id": self.session_id,
            "fingerprint": self.fingerprint or "",
            "version": str(self.version),
            "token_hash": self.token_hash,
            "expires_at": self.expires_at.isoformat(),
            "status": self.status.value,
        }

    @classmethod
    def from_mapping(cls, data: Dict[Any, Any]) -> "RefreshTokenRecord":
        def _s(key: str) -> str:
            value = data.get(key, data.get(key.encode(), ""))
            return value.decode() if isinstance(value, bytes) else str(value)

        return cls(
            jti=_s("jti"),
            user_id=int(_s("user_id")),
            session_id=_s("session_id"),
            fingerprint=_s("fingerprint") or None,
            version=int(_s("version")),
            token_hash=_s("token_hash"),
            expires_at=datetime.fromisoformat(_s("expires_at")),
            status=TokenStatus(_s("status")),
        )
