"""
Redis settings: token state, session activity and rate limiting storage.
"""
from pydantic import Field, ValidationInfo, SecretStr, field_validator
from pydantic_settings import BaseSettings
import logging

logger = logging.getLogger(__name__)


class RedisSettings(BaseSettings):
    """
    Defines settings for the Redis connection and the rate limit gates.

    Security Note:
        - REDIS_PASSWORD must be set in production; refresh token state lives here.
        - Use rediss:// (REDIS_SSL=true) when Redis is reached over an untrusted network.
    """
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = Field(ge=1, le=65535, default=6379)
    REDIS_PASSWORD: SecretStr = SecretStr("")
    REDIS_SSL: bool = False
    REDIS_URL: str = Field(default="", validate_default=True)

    # Rate limiting settings
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "60/minute"  # Global default applied by slowapi
    RATE_LIMIT_STORAGE_URL: str = Field(default="", validate_default=True)
    RATE_LIMIT_REFRESH_TIMES: int = Field(default=10, ge=1)
    RATE_LIMIT_REFRESH_SECONDS: int = Field(default=60, ge=1)
    RATE_LIMIT_LOGIN_TIMES: int = Field(default=5, ge=1)
    RATE_LIMIT_LOGIN_SECONDS: int = Field(default=900, ge=1)

    @field_validator("REDIS_URL", mode="before")
    @classmethod
    def assemble_redis_url(cls, v: str | None, info: ValidationInfo) -> str:
        """
        Assembles the Redis connection URL if not provided explicitly.

        Args:
            v: Explicitly provided URL or None.
            info: Validation context with other field values.

        Returns:
            Assembled or provided Redis URL.
        """
        if v:
            return v

        values = info.data
        protocol = "rediss" if values.get("REDIS_SSL") else "redis"
        redis_password = values.get("REDIS_PASSWORD")
        secret = redis_password.get_secret_value() if redis_password else ""
        password = f":{secret}@" if secret else ""

        url = f"{protocol}://{password}{values.get('REDIS_HOST')}:{values.get('REDIS_PORT')}/0"
        logger.debug("Assembled REDIS_URL (password masked).")
        return url

    @field_validator("RATE_LIMIT_STORAGE_URL", mode="before")
    @classmethod
    def assemble_rate_limit_storage_url(cls, v: str | None, info: ValidationInfo) -> str:
        """
        Uses the main Redis URL for slowapi storage unless one is given.
        """
        if v:
            return v
        return info.data.get("REDIS_URL") or cls.assemble_redis_url(None, info)

    @field_validator("RATE_LIMIT_DEFAULT")
    @classmethod
    def validate_rate_limit_format(cls, value: str) -> str:
        """
        Validates the format of rate limit strings (e.g., '60/minute').

        Raises:
            ValueError: If format is invalid.
        """
        try:
            count, period = value.split('/')
        except ValueError:
            raise ValueError(f"Invalid rate limit format: {value}. Must be 'count/period'.")
        if not count.isdigit() or int(count) <= 0:
            raise ValueError("Rate limit count must be a positive integer.")
        if period not in ('second', 'minute', 'hour', 'day'):
            raise ValueError("Rate limit period must be second, minute, hour, or day.")
        return value
