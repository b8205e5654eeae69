import pytest
from pydantic import ValidationError

from medportal.core.config.app import AppSettings
from medportal.core.config.auth import AuthSettings
from medportal.core.config.settings import Settings, settings

SECRET = "x" * 40


def test_test_environment_enables_test_mode():
    assert settings.APP_ENV == "test"
    assert settings.TEST_MODE is True


def test_default_lifetimes_keep_access_shorter():
    auth = AuthSettings(JWT_SECRET_KEY=SECRET)
    assert auth.access_token_ttl_seconds == 300
    assert auth.refresh_token_ttl_seconds == 7 * 24 * 3600


def test_access_lifetime_not_shorter_than_refresh_is_rejected():
    with pytest.raises(ValidationError):
        AuthSettings(
            JWT_SECRET_KEY=SECRET, ACCESS_TOKEN_EXPIRE_MINUTES=7 * 24 * 60, REFRESH_TOKEN_EXPIRE_DAYS=7
        )


def test_short_hmac_secret_is_rejected():
    with pytest.raises(ValidationError):
        AuthSettings(JWT_ALGORITHM="HS256", JWT_SECRET_KEY="too-short")


def test_asymmetric_algorithm_requires_keys(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ValidationError):
        AuthSettings(JWT_ALGORITHM="RS256", JWT_PRIVATE_KEY="", JWT_PUBLIC_KEY="")


def test_unknown_store_backend_is_rejected():
    with pytest.raises(ValidationError):
        AuthSettings(JWT_SECRET_KEY=SECRET, TOKEN_STORE_BACKEND="memcached")


def test_cors_origins_are_split():
    app_settings = AppSettings(ALLOWED_ORIGINS="https://portal.example.com, https://admin.example.com")
    assert app_settings.ALLOWED_ORIGINS == ["https://portal.example.com", "https://admin.example.com"]


def test_production_refuses_in_memory_store():
    with pytest.raises(ValueError, match="TOKEN_STORE_BACKEND=memory"):
        Settings(APP_ENV="production", TOKEN_STORE_BACKEND="memory")


def test_production_refuses_wildcard_origin():
    with pytest.raises(ValueError, match="ALLOWED_ORIGINS"):
        Settings(APP_ENV="production", TOKEN_STORE_BACKEND="redis", ALLOWED_ORIGINS="*")


def test_production_with_redis_store_is_accepted():
    production = Settings(APP_ENV="production", TOKEN_STORE_BACKEND="redis")
    assert production.is_production
    assert production.TEST_MODE is False
