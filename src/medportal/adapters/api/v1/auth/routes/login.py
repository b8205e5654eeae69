"""Login endpoint: email/password authentication opening a new session."""

import uuid

import structlog
from fastapi import APIRouter, Depends, Request, Response, status

from medportal.adapters.api.v1.auth.cookies import set_auth_cookies
from medportal.adapters.api.v1.auth.dependencies import AuthService
from medportal.adapters.api.v1.auth.schemas import LoginRequest, TokenPairResponse
from medportal.core.config.settings import settings
from medportal.core.rate_limit import rate_limit

logger = structlog.get_logger(__name__)
router = APIRouter()

login_rate_limit = rate_limit(
    times=settings.RATE_LIMIT_LOGIN_TIMES,
    seconds=settings.RATE_LIMIT_LOGIN_SECONDS,
    message_key="too_many_login_attempts",
)


@router.post(
    "",
    response_model=TokenPairResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_200_OK,
    summary="Authenticate a user",
    dependencies=[Depends(login_rate_limit)],
)
async def login_user(
    request: Request,
    response: Response,
    payload: LoginRequest,
    auth_service: AuthService,
):
    """Authenticate with email and password and receive the first token pair.

    The pair is also set as HttpOnly cookies together with the ``session-id``.
    Unknown emails and wrong passwords get the same 401 response.
    """
    client_ip = request.client.host if request.client else "unknown"
    request_logger = logger.bind(
        correlation_id=str(uuid.uuid4()),
        client_ip=client_ip[:15] + "***" if len(client_ip) > 15 else client_ip,
        endpoint="login",
    )
    request_logger.info("Login attempt initiated", has_fingerprint=bool(payload.fingerprint))

    user, session_id, pair = await auth_service.login(
        payload.email, payload.password, payload.fingerprint
    )

    set_auth_cookies(response, pair, session_id=session_id)
    request_logger.info("Login succeeded", user_id=user.id)
    return TokenPairResponse.from_pair(pair)
