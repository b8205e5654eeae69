"""Refresh endpoint.

Exchanges a refresh token for new credentials. With a ``fingerprint`` the token
is rotated (single use, new pair). Without one the deprecated legacy path
returns a new access token and the same refresh token, if it is enabled.
"""

import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Body, Depends, Request, Response, status

from medportal.adapters.api.v1.auth.cookies import REFRESH_COOKIE, set_auth_cookies
from medportal.adapters.api.v1.auth.dependencies import RotationService
from medportal.adapters.api.v1.auth.schemas import RefreshRequest, TokenPairResponse
from medportal.core.config.settings import settings
from medportal.core.exceptions import AuthenticationError, MedportalError
from medportal.core.rate_limit import rate_limit
from medportal.utils.i18n import get_request_language, get_translated_message

logger = structlog.get_logger(__name__)
router = APIRouter()

refresh_rate_limit = rate_limit(
    times=settings.RATE_LIMIT_REFRESH_TIMES,
    seconds=settings.RATE_LIMIT_REFRESH_SECONDS,
    message_key="too_many_refresh_attempts",
)


@router.post(
    "",
    response_model=TokenPairResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_200_OK,
    summary="Rotate a refresh token",
    dependencies=[Depends(refresh_rate_limit)],
)
async def refresh_tokens(
    request: Request,
    response: Response,
    rotation_service: RotationService,
    payload: Optional[RefreshRequest] = Body(default=None),
):
    """Rotate the presented refresh token and set the new pair as cookies.

    Raises:
        AuthenticationError: Missing, invalid, expired, reused or mismatched token (401).
        UserNotFoundError: The token's user no longer exists (404).
        RateLimitExceededError: Too many refresh attempts (429).
        MedportalError: Unexpected failure, surfaced without detail (500).
    """
    language = get_request_language(request)
    request_logger = logger.bind(
        correlation_id=str(uuid.uuid4()),
        endpoint="refresh",
        client_ip=request.client.host if request.client else "unknown",
    )

    refresh_token = (payload.refresh_token if payload else None) or request.cookies.get(REFRESH_COOKIE)
    fingerprint = payload.fingerprint if payload else None
    if not refresh_token:
        request_logger.info("Refresh attempted without a token")
        raise AuthenticationError(
            get_translated_message("refresh_token_missing", language), "refresh_token_missing"
        )

    try:
        pair = await rotation_service.rotate(refresh_token, fingerprint)
    except MedportalError:
        raise
    except Exception as exc:
        request_logger.error("Refresh failed unexpectedly", error_type=type(exc).__name__)
        raise MedportalError(get_translated_message("refresh_failed", language), "refresh_failed")

    set_auth_cookies(response, pair)
    request_logger.info("Refresh succeeded", fingerprint_supplied=bool(fingerprint))
    return TokenPairResponse.from_pair(pair)
