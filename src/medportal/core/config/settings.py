"""Main application settings and configuration management.

This module composes the settings from the different modules (app, database,
redis, auth) into a single, accessible `Settings` class.

It loads settings from environment variables and .env files, validates them,
and provides a single `settings` object for use throughout the application.

Environment Support:
- Development: Uses .env
- Test: Uses .env.test when present, TEST_MODE enabled
- Staging/Production: Uses .env.staging / .env.production when present
"""

import logging
import os
from pathlib import Path

from pydantic_settings import SettingsConfigDict

from .app import AppSettings
from .auth import AuthSettings
from .database import DatabaseSettings
from .redis import RedisSettings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)
logging.getLogger("passlib").setLevel(logging.ERROR)


class Settings(AppSettings, DatabaseSettings, RedisSettings, AuthSettings):
    """The main settings class that aggregates all application configurations.

    Security Note:
        - Signing keys and passwords are `SecretStr` and are never logged.
    Usage:
        - Access settings via the singleton instance `settings` throughout the application.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._set_environment_defaults(self.APP_ENV)
        self._check_deployment_safety()

    def _set_environment_defaults(self, env: str) -> None:
        if env == "test":
            self.TEST_MODE = True
        if env == "development":
            self.DEBUG = True
        logger.info(f"Application running in {env} environment")

    def _check_deployment_safety(self) -> None:
        """Refuse configurations that break token guarantees on a real deployment.

        The in-memory token store lives in one process, so with several workers a
        consumed refresh token would still read as active in the others.

        Raises:
            ValueError: In staging/production with the memory backend, debug mode
                or a wildcard CORS origin.
        """
        if self.APP_ENV not in ("staging", "production"):
            return
        problems = []
        if self.TOKEN_STORE_BACKEND == "memory":
            problems.append("TOKEN_STORE_BACKEND=memory")
        if self.DEBUG:
            problems.append("DEBUG=true")
        if "*" in self.ALLOWED_ORIGINS:
            problems.append("ALLOWED_ORIGINS contains '*'")
        if problems:
            error_msg = f"Unsafe configuration for {self.APP_ENV}: {', '.join(problems)}"
            logger.error(error_msg)
            raise ValueError(error_msg)
        if self.LEGACY_REFRESH_ENABLED:
            logger.warning("Legacy refresh path is enabled in %s", self.APP_ENV)


def create_settings() -> Settings:
    """Create settings instance with environment-specific configuration.

    Returns:
        Settings: Configured settings instance
    """
    env = os.getenv("APP_ENV", "development")

    env_files = {
        "development": ".env",
        "test": ".env.test",
        "staging": ".env.staging",
        "production": ".env.production",
    }

    env_file = env_files.get(env, ".env")

    if env != "development" and Path(env_file).exists():
        logger.info(f"Loading environment configuration from {env_file}")
        return Settings(_env_file=env_file)
    if Path(".env").exists():
        logger.info(f"Loading environment configuration from .env (environment: {env})")
    else:
        logger.warning(f"No .env file found, using environment variables only (environment: {env})")
    return Settings()


# Create a singleton instance of the settings to be used across the application.
settings = create_settings()
