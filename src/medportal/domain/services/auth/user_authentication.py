import uuid
from typing import Optional, Tuple

from passlib.context import CryptContext
from structlog import get_logger

from medportal.core.config.settings import settings
from medportal.core.exceptions import AuthenticationError, InvalidCredentialsError
from medportal.domain.entities.user import User
from medportal.domain.interfaces.repositories import IUserRepository
from medportal.domain.services.auth.rotation import CredentialRotationService
from medportal.domain.value_objects.jwt_token import TokenPair
from medportal.utils.i18n import get_translated_message

logger = get_logger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_WORK_FACTOR
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


class UserAuthenticationService:
    """
    Service for email/password authentication.

    Verifies credentials with bcrypt and opens a new session by asking the
    rotation service for the first token pair of a fresh lineage.

    Attributes:
        user_repository (IUserRepository): Looks accounts up by email.
        rotation_service (CredentialRotationService): Issues the session's first pair.
        pwd_context (CryptContext): Passlib context for bcrypt password hashing.
    """

    def __init__(self, user_repository: IUserRepository, rotation_service: CredentialRotationService):
        self.user_repository = user_repository
        self.rotation_service = rotation_service
        self.pwd_context = pwd_context

    async def authenticate_by_credentials(self, email: str, password: str) -> User:
        """
        Authenticate a user using email and password.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password. The message
                does not say which, to prevent account enumeration.
            AuthenticationError: The account is inactive.

        Note:
            Rate limiting is applied at the API layer to slow down brute force attempts.
        """
        user = await self.user_repository.get_by_email(email)

        if not user or not self.pwd_context.verify(password, user.hashed_password):
            logger.warning("Invalid credentials for login attempt")
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.warning("Authentication attempt for inactive user", user_id=user.id)
            raise AuthenticationError(get_translated_message("user_account_inactive"), "user_inactive")

        return user

    async def login(
        self, email: str, password: str, fingerprint: Optional[str] = None
    ) -> Tuple[User, str, TokenPair]:
        """
        Authenticate and open a new session.

        Returns:
            The user, the new session id and its first token pair.
        """
        user = await self.authenticate_by_credentials(email, password)
        session_id = uuid.uuid4().hex
        pair = await self.rotation_service.issue(
            user_id=user.id, role=str(user.role), session_id=session_id, fingerprint=fingerprint
        )
        logger.info("User logged in", user_id=user.id, session_id=session_id)
        return user, session_id, pair
