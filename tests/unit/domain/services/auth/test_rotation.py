import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from medportal.core.exceptions import (
    AuthenticationError,
    FingerprintMismatchError,
    InvalidTokenError,
    TokenExpiredError,
    TokenReusedError,
    UserNotFoundError,
)
from medportal.domain.services.auth.rotation import CredentialRotationService
from medportal.domain.value_objects.jwt_token import TokenClaims, TokenType
from medportal.domain.value_objects.refresh_record import TokenStatus


def claims_of(signer, token):
    return signer.verify(token, verify_exp=False)


class SlowUserRepository:
    """Yields to the event loop on every lookup so concurrent rotations interleave."""

    def __init__(self, inner):
        self.inner = inner

    async def get_by_id(self, user_id):
        await asyncio.sleep(0)
        return await self.inner.get_by_id(user_id)

    async def get_by_email(self, email):
        return await self.inner.get_by_email(email)


# ---------------------------------------------------------------------------
# issue
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_issue_registers_active_record_and_touches_session(
    rotation_service, signer, token_store, session_tracker
):
    pair = await rotation_service.issue(42, "patient", "s1", "fp-a")

    access = claims_of(signer, pair.access_token)
    refresh = claims_of(signer, pair.refresh_token)
    assert access.token_type is TokenType.ACCESS
    assert refresh.token_type is TokenType.REFRESH
    assert access.session_id == refresh.session_id == "s1"
    assert refresh.fingerprint == "fp-a"
    assert refresh.version == 1
    assert pair.expires_in == 300
    assert pair.token_type == "Bearer"

    record = await token_store.get(str(refresh.token_id))
    assert record.status is TokenStatus.ACTIVE
    assert record.fingerprint == "fp-a"
    assert record.user_id == 42
    assert await session_tracker.is_active("s1")


@pytest.mark.asyncio
async def test_issue_without_fingerprint_omits_claim(rotation_service, signer, token_store):
    pair = await rotation_service.issue(42, "patient", "s1")

    refresh = claims_of(signer, pair.refresh_token)
    assert refresh.fingerprint is None
    assert (await token_store.get(str(refresh.token_id))).fingerprint is None


# ---------------------------------------------------------------------------
# lifetimes
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_default_lifetimes(rotation_service, signer):
    pair = await rotation_service.issue(42, "patient", "s1", "fp-a")

    access = claims_of(signer, pair.access_token)
    refresh = claims_of(signer, pair.refresh_token)
    assert access.expires_at - access.issued_at == timedelta(minutes=5)
    assert refresh.expires_at - refresh.issued_at == timedelta(days=7)
    assert access.expires_at < refresh.expires_at


@pytest.mark.parametrize(
    "access, refresh",
    [(timedelta(days=7), timedelta(days=7)), (timedelta(days=8), timedelta(days=7))],
)
def test_access_lifetime_must_be_shorter(signer, token_store, user_repository, session_tracker, access, refresh):
    with pytest.raises(ValueError):
        CredentialRotationService(
            signer,
            token_store,
            user_repository,
            session_tracker,
            access_lifetime=access,
            refresh_lifetime=refresh,
        )


# ---------------------------------------------------------------------------
# rotate
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_rotate_consumes_and_issues_next_version(rotation_service, signer, token_store):
    original = await rotation_service.issue(42, "patient", "s1", "fp-a")

    rotated = await rotation_service.rotate(original.refresh_token, "fp-a")

    old = claims_of(signer, original.refresh_token)
    new = claims_of(signer, rotated.refresh_token)
    assert new.token_id != old.token_id
    assert new.version == old.version + 1
    assert new.session_id == "s1"
    assert new.fingerprint == "fp-a"
    assert (await token_store.get(str(old.token_id))).status is TokenStatus.CONSUMED
    assert (await token_store.get(str(new.token_id))).status is TokenStatus.ACTIVE


@pytest.mark.asyncio
async def test_rotate_chain_keeps_working(rotation_service, signer):
    pair = await rotation_service.issue(42, "patient", "s1", "fp-a")
    for _ in range(3):
        pair = await rotation_service.rotate(pair.refresh_token, "fp-a")

    assert claims_of(signer, pair.refresh_token).version == 4


@pytest.mark.asyncio
async def test_reuse_revokes_the_session_lineage(rotation_service, session_tracker):
    original = await rotation_service.issue(42, "patient", "s1", "fp-a")
    rotated = await rotation_service.rotate(original.refresh_token, "fp-a")

    with pytest.raises(TokenReusedError):
        await rotation_service.rotate(original.refresh_token, "fp-a")

    # the legitimate successor is gone too
    with pytest.raises(InvalidTokenError) as exc_info:
        await rotation_service.rotate(rotated.refresh_token, "fp-a")
    assert exc_info.value.code == "token_revoked"
    assert not await session_tracker.is_active("s1")


@pytest.mark.asyncio
async def test_reuse_does_not_touch_other_sessions(rotation_service):
    first = await rotation_service.issue(42, "patient", "s1", "fp-a")
    other = await rotation_service.issue(42, "patient", "s2", "fp-a")
    await rotation_service.rotate(first.refresh_token, "fp-a")

    with pytest.raises(TokenReusedError):
        await rotation_service.rotate(first.refresh_token, "fp-a")

    assert await rotation_service.rotate(other.refresh_token, "fp-a")


@pytest.mark.asyncio
async def test_fingerprint_mismatch_revokes_every_session_of_user(rotation_service):
    stolen = await rotation_service.issue(42, "patient", "s1", "fp-a")
    other = await rotation_service.issue(42, "patient", "s2", "fp-other")

    with pytest.raises(FingerprintMismatchError):
        await rotation_service.rotate(stolen.refresh_token, "fp-b")

    with pytest.raises(InvalidTokenError):
        await rotation_service.rotate(stolen.refresh_token, "fp-a")
    with pytest.raises(InvalidTokenError):
        await rotation_service.rotate(other.refresh_token, "fp-other")


@pytest.mark.asyncio
async def test_unbound_token_is_bound_on_first_rotation(rotation_service, signer):
    pair = await rotation_service.issue(42, "patient", "s1")

    rotated = await rotation_service.rotate(pair.refresh_token, "fp-a")

    assert claims_of(signer, rotated.refresh_token).fingerprint == "fp-a"
    with pytest.raises(FingerprintMismatchError):
        await rotation_service.rotate(rotated.refresh_token, "fp-b")


@pytest.mark.asyncio
async def test_expired_refresh_token_is_rejected(rotation_service, signer, token_store):
    claims = TokenClaims(
        user_id=42,
        role="patient",
        session_id="s1",
        token_type=TokenType.REFRESH,
        fingerprint="fp-a",
        issued_at=datetime.now(timezone.utc) - timedelta(days=8),
        expires_at=datetime.now(timezone.utc) - timedelta(seconds=1),
    )
    with pytest.raises(TokenExpiredError):
        await rotation_service.rotate(signer.sign(claims), "fp-a")


@pytest.mark.asyncio
async def test_access_token_cannot_be_used_to_refresh(rotation_service):
    pair = await rotation_service.issue(42, "patient", "s1", "fp-a")
    with pytest.raises(InvalidTokenError):
        await rotation_service.rotate(pair.access_token, "fp-a")


@pytest.mark.asyncio
async def test_unregistered_token_is_invalid(rotation_service, signer):
    claims = TokenClaims.new(TokenType.REFRESH, 42, "patient", "s1", timedelta(days=1), "fp-a")
    with pytest.raises(InvalidTokenError):
        await rotation_service.rotate(signer.sign(claims), "fp-a")


@pytest.mark.asyncio
async def test_malformed_token_is_invalid(rotation_service):
    with pytest.raises(InvalidTokenError):
        await rotation_service.rotate("garbage", "fp-a")


@pytest.mark.asyncio
async def test_deleted_user_cannot_refresh(rotation_service, user_repository):
    pair = await rotation_service.issue(42, "patient", "s1", "fp-a")
    user_repository.users.clear()

    with pytest.raises(UserNotFoundError):
        await rotation_service.rotate(pair.refresh_token, "fp-a")


@pytest.mark.asyncio
async def test_inactive_user_cannot_refresh(rotation_service, patient):
    pair = await rotation_service.issue(42, "patient", "s1", "fp-a")
    patient.is_active = False

    with pytest.raises(AuthenticationError) as exc_info:
        await rotation_service.rotate(pair.refresh_token, "fp-a")
    assert exc_info.value.code == "user_inactive"


@pytest.mark.asyncio
async def test_rotation_picks_up_current_role(rotation_service, signer, patient):
    pair = await rotation_service.issue(42, "patient", "s1", "fp-a")
    patient.role = "doctor"

    rotated = await rotation_service.rotate(pair.refresh_token, "fp-a")

    assert claims_of(signer, rotated.access_token).role == "doctor"


# ---------------------------------------------------------------------------
# concurrency
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize("parallel", [2, 10])
async def test_concurrent_rotation_has_exactly_one_winner(
    signer, token_store, user_repository, session_tracker, parallel
):
    service = CredentialRotationService(
        signer, token_store, SlowUserRepository(user_repository), session_tracker
    )
    pair = await service.issue(42, "patient", "s1", "fp-a")

    results = await asyncio.gather(
        *(service.rotate(pair.refresh_token, "fp-a") for _ in range(parallel)),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert len(losers) == parallel - 1
    assert all(isinstance(exc, TokenReusedError) for exc in losers)


@pytest.mark.asyncio
async def test_client_racing_itself_is_logged_out(signer, token_store, user_repository, session_tracker):
    service = CredentialRotationService(
        signer, token_store, SlowUserRepository(user_repository), session_tracker
    )
    pair = await service.issue(42, "patient", "s1", "fp-a")

    results = await asyncio.gather(
        service.rotate(pair.refresh_token, "fp-a"),
        service.rotate(pair.refresh_token, "fp-a"),
        return_exceptions=True,
    )
    winner = next(r for r in results if not isinstance(r, Exception))

    with pytest.raises(InvalidTokenError) as exc_info:
        await service.rotate(winner.refresh_token, "fp-a")
    assert exc_info.value.code == "token_revoked"
    with pytest.raises(AuthenticationError) as exc_info:
        await service.verify_access_token(winner.access_token)
    assert exc_info.value.code == "session_revoked"


# ---------------------------------------------------------------------------
# legacy path
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_legacy_refresh_returns_same_refresh_token_repeatedly(rotation_service, signer):
    pair = await rotation_service.issue(42, "patient", "s1")

    seen_access = set()
    for _ in range(3):
        refreshed = await rotation_service.rotate(pair.refresh_token, None)
        assert refreshed.refresh_token == pair.refresh_token
        assert claims_of(signer, refreshed.access_token).token_type is TokenType.ACCESS
        seen_access.add(refreshed.access_token)

    assert len(seen_access) == 3


@pytest.mark.asyncio
async def test_legacy_refresh_rejects_consumed_token(rotation_service):
    pair = await rotation_service.issue(42, "patient", "s1")
    await rotation_service.rotate(pair.refresh_token, "fp-a")

    with pytest.raises(TokenReusedError):
        await rotation_service.rotate(pair.refresh_token, None)


@pytest.mark.asyncio
async def test_bound_token_is_not_served_without_fingerprint(rotation_service, token_store, signer):
    pair = await rotation_service.issue(42, "patient", "s1", "fp-a")

    for _ in range(2):
        with pytest.raises(InvalidTokenError) as exc_info:
            await rotation_service.rotate(pair.refresh_token, None)
        assert exc_info.value.code == "fingerprint_required"

    record = await token_store.get(str(claims_of(signer, pair.refresh_token).token_id))
    assert record.status is TokenStatus.ACTIVE


@pytest.mark.asyncio
async def test_empty_fingerprint_is_a_mismatch_for_bound_token(rotation_service, token_store):
    pair = await rotation_service.issue(42, "patient", "s1", "fp-a")

    with pytest.raises(FingerprintMismatchError):
        await rotation_service.rotate(pair.refresh_token, "")

    assert await token_store.revoke_session("s1") == 0


@pytest.mark.asyncio
async def test_empty_fingerprint_does_not_bind_unbound_token(rotation_service):
    pair = await rotation_service.issue(42, "patient", "s1")

    with pytest.raises(InvalidTokenError) as exc_info:
        await rotation_service.rotate(pair.refresh_token, "")
    assert exc_info.value.code == "fingerprint_required"

    rotated = await rotation_service.rotate(pair.refresh_token, "fp-a")
    assert rotated.refresh_token != pair.refresh_token


@pytest.mark.asyncio
async def test_legacy_refresh_can_be_disabled(signer, token_store, user_repository, session_tracker):
    service = CredentialRotationService(
        signer, token_store, user_repository, session_tracker, legacy_enabled=False
    )
    pair = await service.issue(42, "patient", "s1")

    with pytest.raises(InvalidTokenError) as exc_info:
        await service.rotate(pair.refresh_token, None)
    assert exc_info.value.code == "fingerprint_required"


# ---------------------------------------------------------------------------
# end-to-end
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_issue_rotate_reuse_and_mismatch_scenario(rotation_service):
    original = await rotation_service.issue(42, "patient", "s1", "fp-a")

    rotated = await rotation_service.rotate(original.refresh_token, "fp-a")
    assert rotated.refresh_token != original.refresh_token

    with pytest.raises(TokenReusedError):
        await rotation_service.rotate(original.refresh_token, "fp-a")

    with pytest.raises(FingerprintMismatchError):
        await rotation_service.rotate(rotated.refresh_token, "fp-b")


# ---------------------------------------------------------------------------
# revocation and access verification
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_revoke_logs_out_session(rotation_service, session_tracker):
    pair = await rotation_service.issue(42, "patient", "s1", "fp-a")

    assert await rotation_service.revoke(pair.refresh_token) == 1

    assert not await session_tracker.is_active("s1")
    with pytest.raises(InvalidTokenError):
        await rotation_service.rotate(pair.refresh_token, "fp-a")


@pytest.mark.asyncio
async def test_revoke_accepts_expired_refresh_token(rotation_service, signer):
    claims = TokenClaims(
        user_id=42,
        role="patient",
        session_id="s-old",
        token_type=TokenType.REFRESH,
        issued_at=datetime.now(timezone.utc) - timedelta(days=8),
        expires_at=datetime.now(timezone.utc) - timedelta(days=1),
    )
    assert await rotation_service.revoke(signer.sign(claims)) == 0


@pytest.mark.asyncio
async def test_revoke_rejects_access_token(rotation_service):
    pair = await rotation_service.issue(42, "patient", "s1", "fp-a")
    with pytest.raises(InvalidTokenError):
        await rotation_service.revoke(pair.access_token)


@pytest.mark.asyncio
async def test_revoke_user_counts_active_tokens(rotation_service):
    await rotation_service.issue(42, "patient", "s1", "fp-a")
    await rotation_service.issue(42, "patient", "s2", "fp-a")

    assert await rotation_service.revoke_user(42) == 2
    assert await rotation_service.revoke_user(42) == 0


@pytest.mark.asyncio
async def test_verify_access_token(rotation_service):
    pair = await rotation_service.issue(42, "patient", "s1", "fp-a")

    claims = await rotation_service.verify_access_token(pair.access_token)

    assert claims.user_id == 42
    assert claims.role == "patient"
    assert claims.session_id == "s1"


@pytest.mark.asyncio
async def test_access_token_stops_working_after_session_revocation(rotation_service):
    pair = await rotation_service.issue(42, "patient", "s1", "fp-a")
    await rotation_service.revoke_session("s1")

    with pytest.raises(AuthenticationError) as exc_info:
        await rotation_service.verify_access_token(pair.access_token)
    assert exc_info.value.code == "session_revoked"


@pytest.mark.asyncio
async def test_verify_access_token_rejects_refresh_and_expired_tokens(rotation_service, signer):
    pair = await rotation_service.issue(42, "patient", "s1", "fp-a")
    with pytest.raises(InvalidTokenError):
        await rotation_service.verify_access_token(pair.refresh_token)

    expired = TokenClaims(
        user_id=42,
        role="patient",
        session_id="s1",
        token_type=TokenType.ACCESS,
        issued_at=datetime.now(timezone.utc) - timedelta(minutes=10),
        expires_at=datetime.now(timezone.utc) - timedelta(minutes=5),
    )
    with pytest.raises(TokenExpiredError):
        await rotation_service.verify_access_token(signer.sign(expired))
