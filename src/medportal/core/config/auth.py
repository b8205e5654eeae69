"""Authentication and token rotation settings.
"""

import logging
from pathlib import Path

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class AuthSettings(BaseSettings):
    """Defines settings for JWT signing, token lifetimes and the refresh strategies.

    HS256 with ``JWT_SECRET_KEY`` is the default. Setting ``JWT_ALGORITHM`` to an
    asymmetric algorithm (RS256, ES256) switches signing to ``JWT_PRIVATE_KEY`` and
    verification to ``JWT_PUBLIC_KEY``; both may also be provided as
    ``private.pem``/``public.pem`` in the working directory.

    Security Note:
        - Signing keys must never be logged or committed
          (OWASP A02:2021 - Cryptographic Failures).
        - The access-token lifetime must stay strictly shorter than the refresh
          lifetime; this is enforced at load time.
        - ``LEGACY_REFRESH_ENABLED`` keeps the fingerprint-less refresh path alive.
          That path has no replay protection and is scheduled for removal.
    """

    JWT_ALGORITHM: str = "HS256"
    JWT_SECRET_KEY: SecretStr = SecretStr("")
    JWT_PRIVATE_KEY: SecretStr = SecretStr("")
    JWT_PUBLIC_KEY: str = ""
    JWT_ISSUER: str = "https://portal.example.com"
    JWT_AUDIENCE: str = "medportal:api:v1"

    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=5, ge=1)
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default=7, ge=1)

    LEGACY_REFRESH_ENABLED: bool = True
    TOKEN_STORE_BACKEND: str = Field(default="redis", pattern="^(redis|memory)$")
    SESSION_ACTIVITY_TTL_DAYS: int = Field(default=7, ge=1)
    BCRYPT_WORK_FACTOR: int = Field(default=12, ge=4, le=31)

    @property
    def uses_asymmetric_keys(self) -> bool:
        return not self.JWT_ALGORITHM.upper().startswith("HS")

    @property
    def access_token_ttl_seconds(self) -> int:
        return self.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    @property
    def refresh_token_ttl_seconds(self) -> int:
        return self.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600

    @model_validator(mode="after")
    def _validate_token_configuration(self) -> "AuthSettings":
        """Loads PEM keys when needed and checks the lifetime ordering.

        Raises:
            ValueError: If the signing material for the configured algorithm is
                missing, or if the access lifetime is not shorter than the
                refresh lifetime.
        """
        if self.access_token_ttl_seconds >= self.refresh_token_ttl_seconds:
            raise ValueError(
                "ACCESS_TOKEN_EXPIRE_MINUTES must be shorter than REFRESH_TOKEN_EXPIRE_DAYS"
            )

        if self.uses_asymmetric_keys:
            self._load_keys_from_pem_files()
            if not self.JWT_PRIVATE_KEY.get_secret_value() or not self.JWT_PUBLIC_KEY:
                error_msg = (
                    f"JWT keys not found for {self.JWT_ALGORITHM}. Provide JWT_PRIVATE_KEY and "
                    "JWT_PUBLIC_KEY via environment or private.pem/public.pem files."
                )
                logger.error(error_msg)
                raise ValueError(error_msg)
        elif len(self.JWT_SECRET_KEY.get_secret_value()) < 32:
            error_msg = "JWT_SECRET_KEY must be at least 32 characters for HMAC signing."
            logger.error(error_msg)
            raise ValueError(error_msg)

        logger.info("JWT signing configuration validated (%s).", self.JWT_ALGORITHM)
        return self

    def _load_keys_from_pem_files(self) -> None:
        """Loads JWT keys from private.pem and public.pem if they exist.
        These files override any existing environment variables.
        """
        private_key_path = Path("private.pem").resolve()
        public_key_path = Path("public.pem").resolve()

        if private_key_path.is_file():
            private_key = private_key_path.read_text().strip()
            if private_key:
                self.JWT_PRIVATE_KEY = SecretStr(private_key)
                logger.info("Loaded JWT private key from private.pem.")

        if public_key_path.is_file():
            public_key = public_key_path.read_text().strip()
            if public_key:
                self.JWT_PUBLIC_KEY = public_key
                logger.info("Loaded JWT public key from public.pem.")
