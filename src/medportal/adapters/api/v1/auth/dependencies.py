"""FastAPI dependency aliases for the auth routes."""

from typing import Annotated, Optional

from fastapi import Depends, Request

from medportal.core.exceptions import AuthenticationError
from medportal.domain.services.auth.rotation import CredentialRotationService
from medportal.domain.services.auth.user_authentication import UserAuthenticationService
from medportal.domain.value_objects.jwt_token import TokenClaims
from medportal.infrastructure.dependency_injection.auth_dependencies import (
    get_rotation_service,
    get_user_auth_service,
)
from medportal.utils.i18n import get_request_language, get_translated_message

from .cookies import ACCESS_COOKIE

# ---------------------------------------------------------------------------
# Type aliases for dependency overrides – keeps signature noise low.
# ---------------------------------------------------------------------------

RotationService = Annotated[CredentialRotationService, Depends(get_rotation_service)]
AuthService = Annotated[UserAuthenticationService, Depends(get_user_auth_service)]


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return request.cookies.get(ACCESS_COOKIE)


async def get_current_claims(request: Request, rotation_service: RotationService) -> TokenClaims:
    """Resolve the verified access-token claims of the caller.

    Raises:
        AuthenticationError: No access token was supplied.
        InvalidTokenError, TokenExpiredError: The token does not verify.
    """
    token = _bearer_token(request)
    if not token:
        raise AuthenticationError(
            get_translated_message("access_token_missing", get_request_language(request)),
            "access_token_missing",
        )
    return await rotation_service.verify_access_token(token)


CurrentClaims = Annotated[TokenClaims, Depends(get_current_claims)]
