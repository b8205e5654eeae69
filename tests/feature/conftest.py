import pytest_asyncio

PASSWORD = "Str0ngP@ssw0rd"


@pytest_asyncio.fixture
async def logged_in(async_client):
    """Log the patient in with fingerprint ``fp-a`` and return the response body."""
    response = await async_client.post(
        "/api/v1/auth/login",
        json={"email": "patient@example.com", "password": PASSWORD, "fingerprint": "fp-a"},
    )
    assert response.status_code == 200
    return response.json()


@pytest_asyncio.fixture
async def logged_in_unbound(async_client):
    """Log the patient in without a fingerprint, as a legacy client does."""
    response = await async_client.post(
        "/api/v1/auth/login", json={"email": "patient@example.com", "password": PASSWORD}
    )
    assert response.status_code == 200
    return response.json()
