"""Logout endpoint: revokes the session lineage of a refresh token."""

from typing import Optional

import structlog
from fastapi import APIRouter, Body, Request, Response, status

from medportal.adapters.api.v1.auth.cookies import REFRESH_COOKIE, clear_auth_cookies
from medportal.adapters.api.v1.auth.dependencies import RotationService
from medportal.adapters.api.v1.auth.schemas import LogoutRequest, MessageResponse
from medportal.core.exceptions import AuthenticationError, TokenStoreError
from medportal.utils.i18n import get_request_language, get_translated_message

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post(
    "",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    summary="Log out the current session",
)
async def logout_user(
    request: Request,
    response: Response,
    rotation_service: RotationService,
    payload: Optional[LogoutRequest] = Body(default=None),
):
    """Revoke the session the refresh token belongs to and clear the auth cookies.

    Always answers 200 so clients can log out with a stale or missing token.
    """
    refresh_token = (payload.refresh_token if payload else None) or request.cookies.get(REFRESH_COOKIE)
    if refresh_token:
        try:
            revoked = await rotation_service.revoke(refresh_token)
            logger.info("Logout completed", revoked_tokens=revoked)
        except AuthenticationError as exc:
            logger.info("Logout with unusable refresh token", error=exc.code)
        except TokenStoreError:
            logger.error("Logout could not reach the token store")
    else:
        logger.info("Logout without refresh token")

    clear_auth_cookies(response)
    return MessageResponse(
        message=get_translated_message("logout_successful", get_request_language(request))
    )
