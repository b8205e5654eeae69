"""PyJWT-backed implementation of the token signer.

HMAC (HS256) with a shared secret is the default. When an asymmetric algorithm
is configured, tokens are signed with the private key and verified with the
public key, so verification-only services never hold signing material.
"""

from typing import Optional

import jwt
from jwt import ExpiredSignatureError, PyJWTError
from structlog import get_logger

from medportal.core.config.settings import settings
from medportal.core.exceptions import InvalidTokenError, TokenExpiredError
from medportal.domain.interfaces.token_signer import ITokenSigner
from medportal.domain.value_objects.jwt_token import TokenClaims

logger = get_logger(__name__)


class JWTTokenSigner(ITokenSigner):
    """Signs and verifies access and refresh tokens with PyJWT.

    ``iss`` and ``aud`` are added on signing and enforced on verification.
    """

    def __init__(
        self,
        algorithm: Optional[str] = None,
        signing_key: Optional[str] = None,
        verifying_key: Optional[str] = None,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
        leeway_seconds: int = 0,
    ):
        self.algorithm = algorithm or settings.JWT_ALGORITHM
        if signing_key is None:
            if self.algorithm.upper().startswith("HS"):
                signing_key = settings.JWT_SECRET_KEY.get_secret_value()
            else:
                signing_key = settings.JWT_PRIVATE_KEY.get_secret_value()
        if verifying_key is None:
            verifying_key = (
                signing_key if self.algorithm.upper().startswith("HS") else settings.JWT_PUBLIC_KEY
            )
        if not signing_key or not verifying_key:
            raise ValueError(f"No key material configured for {self.algorithm}")

        self._signing_key = signing_key
        self._verifying_key = verifying_key
        self.issuer = issuer if issuer is not None else settings.JWT_ISSUER
        self.audience = audience if audience is not None else settings.JWT_AUDIENCE
        self.leeway_seconds = leeway_seconds

    def sign(self, claims: TokenClaims) -> str:
        payload = claims.to_payload()
        payload["iss"] = self.issuer
        payload["aud"] = self.audience
        return jwt.encode(payload, self._signing_key, algorithm=self.algorithm)

    def verify(self, token: str, *, verify_exp: bool = True) -> TokenClaims:
        """Decode ``token`` and rebuild its claims.

        Raises:
            TokenExpiredError: The token is past ``exp`` and ``verify_exp`` is set.
            InvalidTokenError: Anything else: bad signature, wrong issuer or
                audience, missing claims, garbage input.
        """
        if not token:
            raise InvalidTokenError()
        try:
            payload = jwt.decode(
                token,
                self._verifying_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.audience,
                leeway=self.leeway_seconds,
                options={"verify_exp": verify_exp, "require": ["exp", "iat", "jti", "sub"]},
            )
            claims = TokenClaims.from_payload(payload)
        except ExpiredSignatureError:
            logger.debug("Expired token presented")
            raise TokenExpiredError()
        except (PyJWTError, ValueError) as exc:
            logger.debug("Token verification failed", error=str(exc))
            raise InvalidTokenError()

        return claims
