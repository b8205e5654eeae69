"""Dependency injection for the token rotation services.

Factories here wire the domain services to their infrastructure: the token
state store and session tracker chosen by ``TOKEN_STORE_BACKEND``, the PyJWT
signer and the SQL user repository. Tests replace any of them through
``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from medportal.core.config.settings import settings
from medportal.domain.interfaces.repositories import IUserRepository
from medportal.domain.interfaces.session_activity import ISessionActivityTracker
from medportal.domain.interfaces.token_signer import ITokenSigner
from medportal.domain.interfaces.token_store import ITokenStateStore
from medportal.domain.services.auth.rotation import CredentialRotationService
from medportal.domain.services.auth.user_authentication import UserAuthenticationService
from medportal.infrastructure.database import get_async_db
from medportal.infrastructure.redis import get_redis_client
from medportal.infrastructure.repositories.user_repository import UserRepository
from medportal.infrastructure.security.jwt_signer import JWTTokenSigner
from medportal.infrastructure.services.session_activity import (
    InMemorySessionActivityTracker,
    RedisSessionActivityTracker,
)
from medportal.infrastructure.token_store.memory import InMemoryTokenStore
from medportal.infrastructure.token_store.redis_store import RedisTokenStore

AsyncDB = Annotated[AsyncSession, Depends(get_async_db)]


@lru_cache
def get_token_store() -> ITokenStateStore:
    """Process-wide token state store."""
    if settings.TOKEN_STORE_BACKEND == "memory":
        return InMemoryTokenStore()
    return RedisTokenStore(get_redis_client())


@lru_cache
def get_session_tracker() -> ISessionActivityTracker:
    if settings.TOKEN_STORE_BACKEND == "memory":
        return InMemorySessionActivityTracker()
    return RedisSessionActivityTracker(get_redis_client())


@lru_cache
def get_token_signer() -> ITokenSigner:
    return JWTTokenSigner()


def get_user_repository(db: AsyncDB) -> IUserRepository:
    return UserRepository(db)


TokenStoreDep = Annotated[ITokenStateStore, Depends(get_token_store)]
SessionTrackerDep = Annotated[ISessionActivityTracker, Depends(get_session_tracker)]
TokenSignerDep = Annotated[ITokenSigner, Depends(get_token_signer)]
UserRepositoryDep = Annotated[IUserRepository, Depends(get_user_repository)]


def get_rotation_service(
    signer: TokenSignerDep,
    token_store: TokenStoreDep,
    user_repository: UserRepositoryDep,
    session_tracker: SessionTrackerDep,
) -> CredentialRotationService:
    """Factory that returns :class:`CredentialRotationService`."""
    return CredentialRotationService(
        signer=signer,
        token_store=token_store,
        user_repository=user_repository,
        session_tracker=session_tracker,
    )


RotationServiceDep = Annotated[CredentialRotationService, Depends(get_rotation_service)]


def get_user_auth_service(
    user_repository: UserRepositoryDep, rotation_service: RotationServiceDep
) -> UserAuthenticationService:
    """Factory that returns :class:`UserAuthenticationService`."""
    return UserAuthenticationService(user_repository, rotation_service)
