"""Signing capability used by the rotation service.

The rotation logic only needs to turn claims into an opaque token and back. The
signing algorithm and library stay behind this interface so they can change
without touching rotation rules.
"""

from abc import ABC, abstractmethod

from medportal.domain.value_objects.jwt_token import TokenClaims


class ITokenSigner(ABC):
    """Interface for signing and verifying tokens."""

    @abstractmethod
    def sign(self, claims: TokenClaims) -> str:
        """Encode and sign claims.

        Args:
            claims: The claims to embed.

        Returns:
            The encoded token.
        """
        raise NotImplementedError

    @abstractmethod
    def verify(self, token: str, *, verify_exp: bool = True) -> TokenClaims:
        """Verify a token's signature and registered claims.

        Args:
            token: The encoded token.
            verify_exp: Whether an elapsed ``exp`` is an error. Revocation paths
                pass ``False`` so expired tokens can still be logged out.

        Returns:
            The decoded claims.

        Raises:
            InvalidTokenError: If the token is malformed or badly signed.
            TokenExpiredError: If ``verify_exp`` is set and the token is past ``exp``.
        """
        raise NotImplementedError
