"""Value objects of the token rotation domain."""

from .jwt_token import TokenClaims, TokenId, TokenPair, TokenType, hash_token
from .refresh_record import ConsumeOutcome, RefreshTokenRecord, TokenStatus

__all__ = [
    "ConsumeOutcome",
    "RefreshTokenRecord",
    "TokenClaims",
    "TokenId",
    "TokenPair",
    "TokenStatus",
    "TokenType",
    "hash_token",
]
