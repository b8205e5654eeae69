"""JWT value objects for the token rotation domain.

These value objects encapsulate the claim layout shared by access and refresh
tokens, the secure token identifier used as the ``jti`` claim, and the pair
handed back to clients.
"""

import base64
import hashlib
import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, Optional


class TokenType(str, Enum):
    """The purpose of a signed token, carried in the ``typ`` claim."""

    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class TokenId:
    """Value object for the JWT identifier (jti claim).

    256 bits of entropy encoded as a 43-character URL-safe base64 string.
    """

    value: str

    TOKEN_ID_LENGTH: ClassVar[int] = 43
    VALID_CHARS: ClassVar[str] = string.ascii_letters + string.digits + '-_'

    def __post_init__(self):
        if not self.value:
            raise ValueError("Token ID cannot be empty")
        if len(self.value) != self.TOKEN_ID_LENGTH:
            raise ValueError(f"Token ID must be exactly {self.TOKEN_ID_LENGTH} characters")
        if not all(c in self.VALID_CHARS for c in self.value):
            raise ValueError("Token ID contains invalid characters")

    @classmethod
    def generate(cls) -> 'TokenId':
        """Generate a new cryptographically secure token ID."""
        raw_bytes = secrets.token_bytes(32)
        return cls(base64.urlsafe_b64encode(raw_bytes).rstrip(b'=').decode('ascii'))

    def mask_for_logging(self) -> str:
        """Return masked token ID for safe logging."""
        return self.value[:4] + '*' * (len(self.value) - 4)

    def __str__(self) -> str:
        return self.value


def hash_token(token: str) -> str:
    """SHA-256 hex digest of an encoded token; raw tokens are never persisted."""
    return hashlib.sha256(token.encode()).hexdigest()


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


@dataclass(frozen=True)
class TokenClaims:
    """Claims carried by both access and refresh tokens.

    Attributes:
        user_id: Subject of the token (``sub``).
        role: Role of the user at issue time.
        session_id: Session the token belongs to (``sid``).
        token_type: ``access`` or ``refresh`` (``typ``).
        version: Rotation sequence marker (``ver``), 1 for a fresh login.
        token_id: Unique identifier (``jti``).
        fingerprint: Client fingerprint the token is bound to (``fp``), if any.
        issued_at: ``iat``.
        expires_at: ``exp``.
    """

    user_id: int
    role: str
    session_id: str
    token_type: TokenType
    version: int = 1
    token_id: TokenId = field(default_factory=TokenId.generate)
    fingerprint: Optional[str] = None
    issued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: Optional[datetime] = None

    REQUIRED_CLAIMS: ClassVar[frozenset] = frozenset({"sub", "sid", "typ", "jti", "exp"})

    @classmethod
    def new(
        cls,
        token_type: TokenType,
        user_id: int,
        role: str,
        session_id: str,
        lifetime: timedelta,
        fingerprint: Optional[str] = None,
        version: int = 1,
    ) -> "TokenClaims":
        """Build claims for a brand-new token with a fresh ``jti``."""
        now = datetime.now(timezone.utc)
        return cls(
            user_id=user_id,
            role=role,
            session_id=session_id,
            token_type=token_type,
            version=version,
            fingerprint=fingerprint,
            issued_at=now,
            expires_at=now + lifetime,
        )

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "TokenClaims":
        """Rebuild claims from a verified JWT payload.

        Raises:
            ValueError: If a required claim is missing or malformed.
        """
        missing = cls.REQUIRED_CLAIMS - set(payload)
        if missing:
            raise ValueError(f"Missing required claims: {sorted(missing)}")
        try:
            return cls(
                user_id=int(payload["sub"]),
                role=str(payload.get("role", "")),
                session_id=str(payload["sid"]),
                token_type=TokenType(payload["typ"]),
                version=int(payload.get("ver", 1)),
                token_id=TokenId(payload["jti"]),
                fingerprint=payload.get("fp"),
                issued_at=_to_datetime(payload.get("iat", payload["exp"])),
                expires_at=_to_datetime(payload["exp"]),
            )
        except (TypeError, KeyError) as exc:
            raise ValueError(f"Malformed claims: {exc}") from exc

    def to_payload(self) -> Dict[str, Any]:
        """Registered and private claims, without ``iss``/``aud`` (added by the signer)."""
        payload: Dict[str, Any] = {
            "sub": str(self.user_id),
            "role": self.role,
            "sid": self.session_id,
            "typ": self.token_type.value,
            "ver": self.version,
            "jti": str(self.token_id),
            "iat": self.issued_at,
            "exp": self.expires_at,
        }
        if self.fingerprint is not None:
            payload["fp"] = self.fingerprint
        return payload


@dataclass(frozen=True)
class TokenPair:
    """The unit issued to a client on login and on every rotation."""

    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"
