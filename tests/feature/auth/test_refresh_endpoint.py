import pytest

from medportal.core.config.settings import settings
from medportal.core.exceptions import TokenStoreError

REFRESH_URL = "/api/v1/auth/refresh"


@pytest.mark.asyncio
async def test_refresh_rotates_pair_and_sets_cookies(async_client, logged_in):
    response = await async_client.post(
        REFRESH_URL, json={"refreshToken": logged_in["refreshToken"], "fingerprint": "fp-a"}
    )

    assert response.status_code == 200
    body = response.json()
    assert set(body) == {"accessToken", "refreshToken", "expiresIn", "tokenType"}
    assert body["tokenType"] == "Bearer"
    assert body["expiresIn"] == 300
    assert body["refreshToken"] != logged_in["refreshToken"]
    assert body["accessToken"] != logged_in["accessToken"]

    set_cookies = response.headers.get_list("set-cookie")
    refresh_cookie = next(c for c in set_cookies if c.startswith("refresh-token="))
    assert "HttpOnly" in refresh_cookie
    assert "samesite=strict" in refresh_cookie.lower()
    assert "Path=/" in refresh_cookie
    assert any(c.startswith("auth-token=") for c in set_cookies)


@pytest.mark.asyncio
async def test_refresh_reads_token_from_cookie(async_client, logged_in):
    # The client keeps the cookies set by login.
    response = await async_client.post(REFRESH_URL, json={"fingerprint": "fp-a"})
    assert response.status_code == 200
    assert response.json()["refreshToken"] != logged_in["refreshToken"]


@pytest.mark.asyncio
async def test_refresh_without_token_is_rejected(async_client):
    response = await async_client.post(REFRESH_URL, json={"fingerprint": "fp-a"})
    assert response.status_code == 401
    assert response.json()["code"] == "refresh_token_missing"


@pytest.mark.asyncio
async def test_refresh_with_garbage_token_is_rejected(async_client):
    response = await async_client.post(
        REFRESH_URL, json={"refreshToken": "not-a-jwt", "fingerprint": "fp-a"}
    )
    assert response.status_code == 401
    assert response.json()["code"] == "invalid_token"


@pytest.mark.asyncio
async def test_access_token_cannot_be_used_to_refresh(async_client, logged_in):
    response = await async_client.post(
        REFRESH_URL, json={"refreshToken": logged_in["accessToken"], "fingerprint": "fp-a"}
    )
    assert response.status_code == 401
    assert response.json()["code"] == "invalid_token"


@pytest.mark.asyncio
async def test_reused_token_revokes_session(async_client, logged_in):
    first = await async_client.post(
        REFRESH_URL, json={"refreshToken": logged_in["refreshToken"], "fingerprint": "fp-a"}
    )
    assert first.status_code == 200

    replay = await async_client.post(
        REFRESH_URL, json={"refreshToken": logged_in["refreshToken"], "fingerprint": "fp-a"}
    )
    assert replay.status_code == 401
    assert replay.json()["code"] == "token_reused"

    successor = await async_client.post(
        REFRESH_URL, json={"refreshToken": first.json()["refreshToken"], "fingerprint": "fp-a"}
    )
    assert successor.status_code == 401
    assert successor.json()["code"] == "token_revoked"


@pytest.mark.asyncio
async def test_fingerprint_mismatch_is_rejected(async_client, logged_in):
    response = await async_client.post(
        REFRESH_URL, json={"refreshToken": logged_in["refreshToken"], "fingerprint": "fp-b"}
    )
    assert response.status_code == 401
    assert response.json()["code"] == "fingerprint_mismatch"

    # Theft response: the legitimate client is logged out too.
    retry = await async_client.post(
        REFRESH_URL, json={"refreshToken": logged_in["refreshToken"], "fingerprint": "fp-a"}
    )
    assert retry.status_code == 401


@pytest.mark.asyncio
async def test_deleted_user_gets_not_found(async_client, logged_in, user_repository):
    user_repository.users.clear()
    response = await async_client.post(
        REFRESH_URL, json={"refreshToken": logged_in["refreshToken"], "fingerprint": "fp-a"}
    )
    assert response.status_code == 404
    assert response.json()["code"] == "user_not_found"


@pytest.mark.asyncio
async def test_legacy_refresh_returns_same_refresh_token(async_client, logged_in_unbound):
    response = await async_client.post(
        REFRESH_URL, json={"refreshToken": logged_in_unbound["refreshToken"]}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["refreshToken"] == logged_in_unbound["refreshToken"]
    assert body["accessToken"] != logged_in_unbound["accessToken"]


@pytest.mark.asyncio
async def test_legacy_refresh_can_be_disabled(async_client, logged_in_unbound, rotation_service):
    rotation_service.legacy_enabled = False
    response = await async_client.post(
        REFRESH_URL, json={"refreshToken": logged_in_unbound["refreshToken"]}
    )
    assert response.status_code == 401
    assert response.json()["code"] == "fingerprint_required"


@pytest.mark.asyncio
async def test_bound_token_cannot_skip_fingerprint(async_client, logged_in):
    for _ in range(2):
        response = await async_client.post(
            REFRESH_URL, json={"refreshToken": logged_in["refreshToken"]}
        )
        assert response.status_code == 401
        assert response.json()["code"] == "fingerprint_required"

    # The legitimate client can still rotate.
    response = await async_client.post(
        REFRESH_URL, json={"refreshToken": logged_in["refreshToken"], "fingerprint": "fp-a"}
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_empty_fingerprint_is_rejected(async_client, logged_in):
    response = await async_client.post(
        REFRESH_URL, json={"refreshToken": logged_in["refreshToken"], "fingerprint": ""}
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_store_outage_is_a_generic_server_error(async_client, logged_in, token_store, mocker):
    mocker.patch.object(token_store, "get", side_effect=TokenStoreError("redis down"))
    response = await async_client.post(
        REFRESH_URL, json={"refreshToken": logged_in["refreshToken"], "fingerprint": "fp-a"}
    )
    assert response.status_code == 500
    assert "redis" not in response.json()["detail"].lower()


@pytest.mark.asyncio
async def test_refresh_is_rate_limited(async_client):
    for _ in range(10):
        response = await async_client.post(REFRESH_URL, json={"refreshToken": "x", "fingerprint": "fp"})
        assert response.status_code == 401

    response = await async_client.post(REFRESH_URL, json={"refreshToken": "x", "fingerprint": "fp"})
    assert response.status_code == 429
    assert int(response.headers["Retry-After"]) > 0
    body = response.json()
    assert body["code"] == "rate_limit_exceeded"
    assert body["retryAfter"] > 0


def set_cookie_header(response, name):
    return next(c for c in response.headers.get_list("set-cookie") if c.startswith(f"{name}="))


def cookie_attributes(header):
    return [part.strip().lower() for part in header.split(";")[1:]]


def cookie_max_age(header):
    attributes = dict(
        part.strip().split("=", 1) for part in header.split(";")[1:] if "=" in part
    )
    return int({k.lower(): v for k, v in attributes.items()}["max-age"])


@pytest.mark.asyncio
async def test_refresh_cookie_outlives_access_cookie(async_client, logged_in):
    response = await async_client.post(
        REFRESH_URL, json={"refreshToken": logged_in["refreshToken"], "fingerprint": "fp-a"}
    )

    access_max_age = cookie_max_age(set_cookie_header(response, "auth-token"))
    refresh_max_age = cookie_max_age(set_cookie_header(response, "refresh-token"))
    assert access_max_age == 300
    assert refresh_max_age == 7 * 24 * 3600
    assert refresh_max_age > access_max_age


@pytest.mark.asyncio
async def test_cookies_are_secure_in_production(async_client, logged_in, mocker):
    mocker.patch.object(settings, "APP_ENV", "production")
    response = await async_client.post(
        REFRESH_URL, json={"refreshToken": logged_in["refreshToken"], "fingerprint": "fp-a"}
    )

    assert response.status_code == 200
    for name in ("auth-token", "refresh-token"):
        assert "secure" in cookie_attributes(set_cookie_header(response, name))


@pytest.mark.asyncio
async def test_cookies_are_not_secure_outside_production(async_client, logged_in):
    response = await async_client.post(
        REFRESH_URL, json={"refreshToken": logged_in["refreshToken"], "fingerprint": "fp-a"}
    )
    attributes = cookie_attributes(set_cookie_header(response, "refresh-token"))
    assert "secure" not in attributes


@pytest.mark.asyncio
async def test_unexpected_failure_is_reported_as_refresh_failed(
    async_client, logged_in, rotation_service, mocker
):
    mocker.patch.object(rotation_service, "rotate", side_effect=RuntimeError("database exploded"))
    response = await async_client.post(
        REFRESH_URL, json={"refreshToken": logged_in["refreshToken"], "fingerprint": "fp-a"}
    )

    assert response.status_code == 500
    body = response.json()
    assert body["code"] == "refresh_failed"
    assert "exploded" not in body["detail"]
