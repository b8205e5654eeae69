"""Auth cookie handling shared by the login, refresh and logout routes."""

from typing import Optional

from fastapi import Response

from medportal.core.config.settings import settings
from medportal.domain.value_objects.jwt_token import TokenPair

ACCESS_COOKIE = "auth-token"
REFRESH_COOKIE = "refresh-token"
SESSION_COOKIE = "session-id"


def _cookie_kwargs() -> dict:
    return {
        "httponly": True,
        "secure": settings.is_production,
        "samesite": "strict",
        "path": "/",
    }


def set_auth_cookies(response: Response, pair: TokenPair, session_id: Optional[str] = None) -> None:
    """Attach the token pair (and optionally the session id) as HttpOnly cookies."""
    response.set_cookie(
        ACCESS_COOKIE, pair.access_token, max_age=settings.access_token_ttl_seconds, **_cookie_kwargs()
    )
    response.set_cookie(
        REFRESH_COOKIE, pair.refresh_token, max_age=settings.refresh_token_ttl_seconds, **_cookie_kwargs()
    )
    if session_id is not None:
        response.set_cookie(
            SESSION_COOKIE, session_id, max_age=settings.refresh_token_ttl_seconds, **_cookie_kwargs()
        )


def clear_auth_cookies(response: Response) -> None:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE, SESSION_COOKIE):
        response.delete_cookie(name, **_cookie_kwargs())
