"""Refresh strategies.

Two ways of answering a refresh request exist side by side:

* `RotatingRefresh` is used whenever the client supplies a fingerprint. Every
  refresh token is single-use: it is consumed atomically and replaced by a new
  pair bound to the same fingerprint.
* `LegacyStaticRefresh` serves clients that send only the refresh token. It
  issues a new access token and hands the same refresh token back, which stays
  valid until it expires. It is deprecated and can be switched off with
  ``LEGACY_REFRESH_ENABLED``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from structlog import get_logger

from medportal.core.exceptions import InvalidTokenError, TokenReusedError
from medportal.domain.value_objects.jwt_token import TokenPair
from medportal.domain.value_objects.refresh_record import ConsumeOutcome
from medportal.utils.i18n import get_translated_message

if TYPE_CHECKING:
    from medportal.domain.services.auth.rotation import CredentialRotationService

logger = get_logger(__name__)


class RefreshStrategy(ABC):
    """A policy for exchanging a refresh token for fresh credentials."""

    name: str = "abstract"

    def __init__(self, service: "CredentialRotationService"):
        self.service = service

    @abstractmethod
    async def refresh(self, refresh_token: str, fingerprint: Optional[str]) -> TokenPair:
        raise NotImplementedError


class RotatingRefresh(RefreshStrategy):
    """Single-use refresh tokens bound to a client fingerprint."""

    name = "rotating"

    async def refresh(self, refresh_token: str, fingerprint: Optional[str]) -> TokenPair:
        """Consume ``refresh_token`` and issue its successor pair.

        Raises:
            InvalidTokenError: Malformed, badly signed, unknown or revoked token, or
                an empty fingerprint for an unbound token (``fingerprint_required``).
            TokenExpiredError: Token past its ``exp``.
            FingerprintMismatchError: Token bound to another fingerprint.
            TokenReusedError: Token already consumed; the session lineage is revoked.
            UserNotFoundError: The token's user no longer exists.
        """
        service = self.service
        claims = service.verify_refresh_token(refresh_token)
        token_id = claims.token_id

        await service.check_fingerprint(claims, fingerprint)
        if not fingerprint:
            # An unbound token is never bound to an empty fingerprint.
            raise InvalidTokenError(get_translated_message("fingerprint_required"), "fingerprint_required")
        await service.load_usable_record(claims, refresh_token)
        user = await service.require_user(claims.user_id)

        outcome = await service.token_store.consume(str(token_id))
        if outcome is ConsumeOutcome.ALREADY_CONSUMED:
            # Lost the race against a concurrent rotation of the same token.
            await service.handle_reuse(claims)
            raise TokenReusedError()
        if outcome is not ConsumeOutcome.CONSUMED:
            logger.warning(
                "Refresh token became unusable during rotation",
                jti=token_id.mask_for_logging(),
                outcome=outcome.value,
            )
            raise InvalidTokenError(get_translated_message("refresh_token_revoked"), "token_revoked")

        # An unbound token is bound to the first fingerprint it is rotated with.
        bound_fingerprint = claims.fingerprint or fingerprint
        pair = await service.mint_pair(
            user_id=user.id,
            role=str(user.role),
            session_id=claims.session_id,
            fingerprint=bound_fingerprint,
            version=claims.version + 1,
        )
        logger.info(
            "Refresh token rotated",
            user_id=user.id,
            session_id=claims.session_id,
            consumed_jti=token_id.mask_for_logging(),
            version=claims.version + 1,
        )
        return pair


class LegacyStaticRefresh(RefreshStrategy):
    """Fingerprint-less refresh: new access token, same refresh token.

    Deprecated. Only refresh tokens that were never bound to a fingerprint are
    served here; a bound token must go through rotation with its fingerprint.
    There is no replay protection on this path: a captured unbound token keeps
    working until its natural expiry or until the session is revoked.
    """

    name = "legacy"

    async def refresh(self, refresh_token: str, fingerprint: Optional[str]) -> TokenPair:
        """Issue a new access token for an unbound refresh token.

        Raises:
            InvalidTokenError: With code ``fingerprint_required`` when the token
                is bound to a fingerprint, or any verification failure.
            TokenReusedError: The token was consumed by an earlier rotation.
        """
        service = self.service
        claims = service.verify_refresh_token(refresh_token)
        if claims.fingerprint is not None:
            logger.warning(
                "Bound refresh token presented without fingerprint",
                user_id=claims.user_id,
                session_id=claims.session_id,
                jti=claims.token_id.mask_for_logging(),
            )
            raise InvalidTokenError(get_translated_message("fingerprint_required"), "fingerprint_required")
        await service.load_usable_record(claims, refresh_token)
        user = await service.require_user(claims.user_id)

        access_token = await service.mint_access_token(
            user_id=user.id,
            role=str(user.role),
            session_id=claims.session_id,
            fingerprint=claims.fingerprint,
            version=claims.version,
        )
        logger.warning(
            "Legacy refresh path used",
            user_id=user.id,
            session_id=claims.session_id,
            jti=claims.token_id.mask_for_logging(),
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=service.access_token_ttl_seconds,
        )


def select_strategy(
    service: "CredentialRotationService", fingerprint: Optional[str]
) -> RefreshStrategy:
    """Pick the strategy by whether a fingerprint was supplied at all.

    An empty fingerprint counts as supplied and goes through rotation, where it
    fails the fingerprint check.

    Raises:
        InvalidTokenError: No fingerprint was supplied and the legacy path is disabled.
    """
    if fingerprint is not None:
        return RotatingRefresh(service)
    if not service.legacy_enabled:
        raise InvalidTokenError(get_translated_message("fingerprint_required"), "fingerprint_required")
    return LegacyStaticRefresh(service)
