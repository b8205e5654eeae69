import os

# Settings are read once at import time; configure the test environment first.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("TOKEN_STORE_BACKEND", "memory")
os.environ.setdefault("BCRYPT_WORK_FACTOR", "4")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("LEGACY_REFRESH_ENABLED", "true")

from typing import Dict, Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from medportal.core.application import create_application  # noqa: E402
from medportal.core.rate_limit import reset_memory_store  # noqa: E402
from medportal.domain.entities.user import Role, User  # noqa: E402
from medportal.domain.interfaces.repositories import IUserRepository  # noqa: E402
from medportal.domain.services.auth.rotation import CredentialRotationService  # noqa: E402
from medportal.domain.services.auth.user_authentication import (  # noqa: E402
    UserAuthenticationService,
    hash_password,
)
from medportal.infrastructure.dependency_injection.auth_dependencies import (  # noqa: E402
    get_rotation_service,
    get_user_auth_service,
)
from medportal.infrastructure.security.jwt_signer import JWTTokenSigner  # noqa: E402
from medportal.infrastructure.services.session_activity import (  # noqa: E402
    InMemorySessionActivityTracker,
)
from medportal.infrastructure.token_store.memory import InMemoryTokenStore  # noqa: E402

PASSWORD = "Str0ngP@ssw0rd"


class InMemoryUserRepository(IUserRepository):
    """User store double keyed by id."""

    def __init__(self):
        self.users: Dict[int, User] = {}

    def add(self, user: User) -> User:
        self.users[user.id] = user
        return user

    async def get_by_id(self, user_id: int) -> Optional[User]:
        return self.users.get(user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        normalized = email.strip().lower()
        return next((u for u in self.users.values() if u.email.lower() == normalized), None)


@pytest.fixture
def signer():
    return JWTTokenSigner()


@pytest.fixture
def token_store():
    return InMemoryTokenStore()


@pytest.fixture
def session_tracker():
    return InMemorySessionActivityTracker()


@pytest.fixture
def patient():
    return User(
        id=42,
        email="patient@example.com",
        hashed_password=hash_password(PASSWORD),
        role=Role.PATIENT.value,
        is_active=True,
    )


@pytest.fixture
def user_repository(patient):
    repository = InMemoryUserRepository()
    repository.add(patient)
    return repository


@pytest.fixture
def rotation_service(signer, token_store, user_repository, session_tracker):
    return CredentialRotationService(
        signer=signer,
        token_store=token_store,
        user_repository=user_repository,
        session_tracker=session_tracker,
    )


@pytest.fixture
def auth_service(user_repository, rotation_service):
    return UserAuthenticationService(user_repository, rotation_service)


@pytest.fixture(autouse=True)
def clear_rate_limits():
    reset_memory_store()
    yield
    reset_memory_store()


@pytest.fixture
def app(rotation_service, auth_service):
    application = create_application()
    application.dependency_overrides[get_rotation_service] = lambda: rotation_service
    application.dependency_overrides[get_user_auth_service] = lambda: auth_service
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
