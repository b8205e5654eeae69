"""Current-identity endpoint backed by access-token verification."""

from fastapi import APIRouter, status

from medportal.adapters.api.v1.auth.dependencies import CurrentClaims
from medportal.adapters.api.v1.auth.schemas import MeResponse

router = APIRouter()


@router.get(
    "",
    response_model=MeResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_200_OK,
    summary="Identity of the access token holder",
)
async def read_me(claims: CurrentClaims):
    return MeResponse(user_id=claims.user_id, role=claims.role, session_id=claims.session_id)
