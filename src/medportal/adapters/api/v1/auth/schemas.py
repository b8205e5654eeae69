"""Request and response models of the auth endpoints.

Field names are snake_case in Python and camelCase on the wire.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from medportal.domain.value_objects.jwt_token import TokenPair


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(CamelModel):
    """Payload expected by ``POST /auth/login``."""

    email: EmailStr = Field(..., examples=["jane.doe@example.com"])
    password: str = Field(..., min_length=1, examples=["Str0ngP@ssw0rd"])
    fingerprint: Optional[str] = Field(default=None, min_length=1, max_length=512, examples=["c2f1e0..."])


class RefreshRequest(CamelModel):
    """Payload of ``POST /auth/refresh``; the token may come from the cookie instead."""

    refresh_token: Optional[str] = Field(default=None, examples=["eyJhbGciOiJIUzI1NiIs..."])
    fingerprint: Optional[str] = Field(default=None, min_length=1, max_length=512)


class LogoutRequest(CamelModel):
    """Payload of ``POST /auth/logout``; the token may come from the cookie instead."""

    refresh_token: Optional[str] = None


class TokenPairResponse(CamelModel):
    """JWT access & refresh tokens with additional metadata."""

    access_token: str
    refresh_token: str
    expires_in: int  # seconds until the access token expires
    token_type: str = "Bearer"

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenPairResponse":
        return cls(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=pair.expires_in,
            token_type=pair.token_type,
        )


class MessageResponse(CamelModel):
    message: str


class MeResponse(CamelModel):
    user_id: int
    role: str
    session_id: str
