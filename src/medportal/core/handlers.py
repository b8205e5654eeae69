"""
Exception handlers mapping the medportal error hierarchy onto HTTP responses.

Every error body has the shape ``{"detail": "<message>", "code": "<machine code>"}``.
429 responses add a ``retryAfter`` field and a ``Retry-After`` header. 500
responses never carry backend detail; it stays in the logs.
"""

from __future__ import annotations

from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette import status
from structlog import get_logger

from medportal.core.exceptions import (
    AuthenticationError,
    MedportalError,
    RateLimitError,
    TokenStoreError,
    UserNotFoundError,
)
from medportal.utils.i18n import get_request_language, get_translated_message

__all__ = [
    "authentication_error_handler",
    "user_not_found_error_handler",
    "rate_limit_error_handler",
    "rate_limit_exception_handler",
    "token_store_error_handler",
    "medportal_error_handler",
    "register_exception_handlers",
]

logger = get_logger(__name__)

DEFAULT_RETRY_AFTER = 60


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _error_response(
    status_code: int,
    detail: str,
    code: str,
    retry_after: Optional[int] = None,
) -> JSONResponse:
    content: Dict[str, object] = {"detail": detail, "code": code}
    headers = None
    if retry_after is not None:
        content["retryAfter"] = retry_after
        headers = {"Retry-After": str(retry_after)}
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _generic_detail(request: Request) -> str:
    return get_translated_message("unexpected_error", get_request_language(request))


async def authentication_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    """401 for every token and credential failure.

    The ``code`` tells clients apart an expired access token (refresh and retry)
    from a reused or mismatched refresh token (log in again).
    """
    logger.warning("auth_rejected", code=exc.code, client_ip=_client_ip(request))
    return _error_response(status.HTTP_401_UNAUTHORIZED, exc.message, exc.code)


async def user_not_found_error_handler(request: Request, exc: UserNotFoundError) -> JSONResponse:
    """404 when a token's subject has been deleted."""
    logger.info("token_subject_missing", client_ip=_client_ip(request))
    return _error_response(status.HTTP_404_NOT_FOUND, exc.message, exc.code)


async def rate_limit_error_handler(request: Request, exc: RateLimitError) -> JSONResponse:
    retry_after = exc.retry_after or DEFAULT_RETRY_AFTER
    logger.warning("route_rate_limited", client_ip=_client_ip(request), retry_after=retry_after)
    return _error_response(status.HTTP_429_TOO_MANY_REQUESTS, exc.message, exc.code, retry_after)


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 raised by the slowapi global limiter, rendered like the route gates."""
    limit = getattr(exc, "limit", None)
    retry_after = limit.limit.get_expiry() if limit else DEFAULT_RETRY_AFTER
    logger.warning(
        "global_rate_limited",
        client_ip=_client_ip(request),
        limit=str(limit.limit) if limit else None,
    )
    return _error_response(
        status.HTTP_429_TOO_MANY_REQUESTS,
        get_translated_message("too_many_requests", get_request_language(request)),
        "rate_limit_exceeded",
        retry_after,
    )


async def token_store_error_handler(request: Request, exc: TokenStoreError) -> JSONResponse:
    logger.critical("token_store_unavailable", error_message=exc.message)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, _generic_detail(request), exc.code)


async def medportal_error_handler(request: Request, exc: MedportalError) -> JSONResponse:
    """Fallback 500 for application errors without a dedicated handler."""
    logger.error("unhandled_application_error", code=exc.code, error_message=exc.message)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, _generic_detail(request), exc.code)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers on ``app``.

    Starlette resolves handlers along the exception's MRO, so subclasses reach
    their most specific handler and anything else rooted in `MedportalError`
    falls back to `medportal_error_handler`.
    """
    app.add_exception_handler(AuthenticationError, authentication_error_handler)
    app.add_exception_handler(UserNotFoundError, user_not_found_error_handler)
    app.add_exception_handler(RateLimitError, rate_limit_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(TokenStoreError, token_store_error_handler)
    app.add_exception_handler(MedportalError, medportal_error_handler)
