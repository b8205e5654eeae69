import asyncio
from datetime import timedelta
from typing import Optional

from structlog import get_logger

from medportal.core.config.settings import settings
from medportal.core.exceptions import (
    AuthenticationError,
    FingerprintMismatchError,
    InvalidTokenError,
    TokenExpiredError,
    TokenReusedError,
    UserNotFoundError,
)
from medportal.domain.entities.user import User
from medportal.domain.interfaces.repositories import IUserRepository
from medportal.domain.interfaces.session_activity import ISessionActivityTracker
from medportal.domain.interfaces.token_signer import ITokenSigner
from medportal.domain.interfaces.token_store import ITokenStateStore
from medportal.domain.services.auth.strategies import select_strategy
from medportal.domain.value_objects.jwt_token import TokenClaims, TokenPair, TokenType, hash_token
from medportal.domain.value_objects.refresh_record import RefreshTokenRecord, TokenStatus
from medportal.utils.i18n import get_translated_message

logger = get_logger(__name__)


class CredentialRotationService:
    """Issues, rotates and revokes access/refresh token pairs.

    Access tokens are short-lived and carry user id, role and session id.
    Refresh tokens are long-lived, bound to a client fingerprint and tracked in
    the token state store by their ``jti``. A refresh token can be exchanged
    exactly once: consumption is an atomic compare-and-set in the store, and a
    second presentation revokes the whole session lineage.

    Attributes:
        signer (ITokenSigner): Signs and verifies tokens.
        token_store (ITokenStateStore): Holds refresh token state.
        user_repository (IUserRepository): Confirms token subjects still exist.
        session_tracker (ISessionActivityTracker): Told which access token is active.
        access_lifetime (timedelta): Access token validity.
        refresh_lifetime (timedelta): Refresh token validity, always longer.
        legacy_enabled (bool): Whether fingerprint-less refreshes are served.
    """

    def __init__(
        self,
        signer: ITokenSigner,
        token_store: ITokenStateStore,
        user_repository: IUserRepository,
        session_tracker: ISessionActivityTracker,
        access_lifetime: Optional[timedelta] = None,
        refresh_lifetime: Optional[timedelta] = None,
        legacy_enabled: Optional[bool] = None,
    ):
        self.signer = signer
        self.token_store = token_store
        self.user_repository = user_repository
        self.session_tracker = session_tracker
        self.access_lifetime = access_lifetime or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        self.refresh_lifetime = refresh_lifetime or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        self.legacy_enabled = (
            settings.LEGACY_REFRESH_ENABLED if legacy_enabled is None else legacy_enabled
        )
        if self.access_lifetime >= self.refresh_lifetime:
            raise ValueError("Access token lifetime must be shorter than refresh token lifetime")

    @property
    def access_token_ttl_seconds(self) -> int:
        return int(self.access_lifetime.total_seconds())

    @property
    def refresh_token_ttl_seconds(self) -> int:
        return int(self.refresh_lifetime.total_seconds())

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def issue(
        self, user_id: int, role: str, session_id: str, fingerprint: Optional[str] = None
    ) -> TokenPair:
        """Issue a fresh pair with no prior lineage (login).

        Args:
            user_id: Subject of the tokens.
            role: Role embedded in both tokens.
            session_id: Session the pair opens.
            fingerprint: Client fingerprint to bind the refresh token to.

        Returns:
            TokenPair: New access and refresh tokens.
        """
        pair = await self.mint_pair(
            user_id=user_id,
            role=role,
            session_id=session_id,
            fingerprint=fingerprint or None,
            version=1,
        )
        logger.info(
            "Token pair issued",
            user_id=user_id,
            session_id=session_id,
            fingerprint_bound=bool(fingerprint),
        )
        return pair

    async def rotate(self, refresh_token: str, fingerprint: Optional[str]) -> TokenPair:
        """Exchange a refresh token for new credentials.

        With a fingerprint the token is rotated (single use). Without one the
        deprecated legacy path answers, if it is enabled.

        Raises:
            InvalidTokenError, TokenExpiredError, FingerprintMismatchError,
            TokenReusedError, UserNotFoundError
        """
        strategy = select_strategy(self, fingerprint)
        logger.debug("Refresh strategy selected", strategy=strategy.name)
        return await strategy.refresh(refresh_token, fingerprint)

    async def revoke(self, refresh_token: str) -> int:
        """Log out the session a refresh token belongs to.

        Expired tokens are accepted so stale sessions can still be closed.

        Returns:
            The number of refresh tokens that were still active.
        """
        claims = self.signer.verify(refresh_token, verify_exp=False)
        if claims.token_type is not TokenType.REFRESH:
            raise InvalidTokenError()
        return await self.revoke_session(claims.session_id)

    async def revoke_session(self, session_id: str) -> int:
        """Revoke every refresh token of a session and end the session."""
        revoked, _ = await asyncio.gather(
            self.token_store.revoke_session(session_id),
            self.session_tracker.end(session_id),
        )
        logger.info("Session revoked", session_id=session_id, revoked_tokens=revoked)
        return revoked

    async def revoke_user(self, user_id: int) -> int:
        """Revoke every session of a user."""
        session_ids = await self.token_store.sessions_for_user(user_id)
        revoked = await self.token_store.revoke_user(user_id)
        await asyncio.gather(*(self.session_tracker.end(sid) for sid in session_ids))
        logger.warning(
            "All sessions revoked for user",
            user_id=user_id,
            sessions=len(session_ids),
            revoked_tokens=revoked,
        )
        return revoked

    async def verify_access_token(self, access_token: str) -> TokenClaims:
        """Validate an access token and its session.

        Raises:
            InvalidTokenError: Bad token or not an access token.
            TokenExpiredError: Access token past ``exp``.
            AuthenticationError: The session has been ended.
        """
        try:
            claims = self.signer.verify(access_token)
        except TokenExpiredError:
            raise TokenExpiredError(get_translated_message("access_token_expired"))
        except InvalidTokenError:
            raise InvalidTokenError(get_translated_message("invalid_token"))
        if claims.token_type is not TokenType.ACCESS:
            raise InvalidTokenError(get_translated_message("invalid_token"))
        if not await self.session_tracker.is_active(claims.session_id):
            raise AuthenticationError(
                get_translated_message("session_revoked_or_invalid"), "session_revoked"
            )
        return claims

    # ------------------------------------------------------------------
    # Building blocks shared by the refresh strategies
    # ------------------------------------------------------------------

    def verify_refresh_token(self, refresh_token: str) -> TokenClaims:
        claims = self.signer.verify(refresh_token)
        if claims.token_type is not TokenType.REFRESH:
            logger.warning("Non-refresh token presented for refresh", jti=claims.token_id.mask_for_logging())
            raise InvalidTokenError()
        return claims

    async def check_fingerprint(self, claims: TokenClaims, fingerprint: Optional[str]) -> None:
        """Reject a bound refresh token presented from another client.

        A mismatch is treated as theft: every session of the user is revoked.
        """
        if claims.fingerprint is None or fingerprint is None:
            return
        if claims.fingerprint != fingerprint:
            logger.warning(
                "Fingerprint mismatch on refresh, possible token theft",
                user_id=claims.user_id,
                session_id=claims.session_id,
                jti=claims.token_id.mask_for_logging(),
            )
            await self.revoke_user(claims.user_id)
            raise FingerprintMismatchError()

    async def load_usable_record(self, claims: TokenClaims, refresh_token: str) -> RefreshTokenRecord:
        """Fetch the store record of a refresh token and make sure it is still active."""
        record = await self.token_store.get(str(claims.token_id))
        if record is None or record.token_hash != hash_token(refresh_token):
            logger.warning("Unknown refresh token", jti=claims.token_id.mask_for_logging())
            raise InvalidTokenError()
        if record.status is TokenStatus.CONSUMED:
            await self.handle_reuse(claims)
            raise TokenReusedError()
        if record.status is TokenStatus.REVOKED:
            raise InvalidTokenError(get_translated_message("refresh_token_revoked"), "token_revoked")
        return record

    async def handle_reuse(self, claims: TokenClaims) -> None:
        """A consumed token came back: revoke the session lineage it belongs to."""
        logger.warning(
            "Refresh token reuse detected, revoking session",
            user_id=claims.user_id,
            session_id=claims.session_id,
            jti=claims.token_id.mask_for_logging(),
        )
        await self.revoke_session(claims.session_id)

    async def require_user(self, user_id: int) -> User:
        user = await self.user_repository.get_by_id(user_id)
        if user is None:
            logger.warning("Refresh for deleted user", user_id=user_id)
            raise UserNotFoundError()
        if not user.is_active:
            logger.warning("Inactive user refresh attempt", user_id=user_id)
            raise AuthenticationError(get_translated_message("user_account_inactive"), "user_inactive")
        return user

    async def mint_access_token(
        self,
        user_id: int,
        role: str,
        session_id: str,
        fingerprint: Optional[str],
        version: int,
    ) -> str:
        claims = TokenClaims.new(
            TokenType.ACCESS, user_id, role, session_id, self.access_lifetime, fingerprint, version
        )
        access_token = self.signer.sign(claims)
        await self.session_tracker.touch(session_id, user_id, access_token)
        return access_token

    async def mint_pair(
        self,
        user_id: int,
        role: str,
        session_id: str,
        fingerprint: Optional[str],
        version: int,
    ) -> TokenPair:
        access_claims = TokenClaims.new(
            TokenType.ACCESS, user_id, role, session_id, self.access_lifetime, fingerprint, version
        )
        refresh_claims = TokenClaims.new(
            TokenType.REFRESH, user_id, role, session_id, self.refresh_lifetime, fingerprint, version
        )
        access_token = self.signer.sign(access_claims)
        refresh_token = self.signer.sign(refresh_claims)

        record = RefreshTokenRecord(
            jti=str(refresh_claims.token_id),
            user_id=user_id,
            session_id=session_id,
            fingerprint=fingerprint,
            version=version,
            token_hash=hash_token(refresh_token),
            expires_at=refresh_claims.expires_at,
        )
        await asyncio.gather(
            self.token_store.save(record, self.refresh_token_ttl_seconds),
            self.session_tracker.touch(session_id, user_id, access_token),
        )
        logger.debug(
            "Token pair minted",
            user_id=user_id,
            access_jti=access_claims.token_id.mask_for_logging(),
            refresh_jti=refresh_claims.token_id.mask_for_logging(),
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.access_token_ttl_seconds,
        )
