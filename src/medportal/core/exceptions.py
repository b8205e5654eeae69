"""Centralized, structured exception hierarchy for medportal.

Every exception carries a machine-readable `code` for programmatic handling and
a human-readable `message` for logging and user feedback. The hierarchy maps
cleanly to HTTP status codes in `medportal.core.handlers`:

- `AuthenticationError` and its token-specific subclasses -> 401
- `UserNotFoundError` -> 404
- `RateLimitError` -> 429 (with a retry hint)
- everything else rooted in `MedportalError` -> 500
"""

from __future__ import annotations

from typing import Final, Optional

from medportal.utils.i18n import get_translated_message

__all__: Final = [
    "MedportalError",
    "AuthenticationError",
    "InvalidCredentialsError",
    "InvalidTokenError",
    "TokenExpiredError",
    "TokenReusedError",
    "FingerprintMismatchError",
    "UserNotFoundError",
    "RateLimitError",
    "RateLimitExceededError",
    "TokenStoreError",
]


class MedportalError(Exception):
    """Base exception class for all custom errors in the application.

    Attributes:
        message (str): A human-readable error message, suitable for logging.
                       This message can be translated.
        code (str): A unique, machine-readable error code.
    """

    message: str
    code: str = "generic_error"

    def __init__(self, message: str, code: str = "generic_error"):
        self.message = message
        self.code = code
        Exception.__init__(self, self.message)

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Auth-related errors (401)
# ---------------------------------------------------------------------------


class AuthenticationError(MedportalError):
    """Raised for general authentication failures. Maps to `401 Unauthorized`."""

    def __init__(self, message: str, code: str = "authentication_error"):
        super().__init__(message, code)


class InvalidCredentialsError(AuthenticationError):
    """Raised when an email/password pair does not match an active account.

    The message is intentionally generic to prevent user enumeration.
    """

    def __init__(self, message: str | None = None, code: str = "invalid_credentials"):
        super().__init__(message or get_translated_message("invalid_email_or_password"), code)


class InvalidTokenError(AuthenticationError):
    """Raised when a token is malformed, badly signed, revoked or unknown."""

    def __init__(self, message: str | None = None, code: str = "invalid_token"):
        super().__init__(message or get_translated_message("invalid_refresh_token"), code)


class TokenExpiredError(AuthenticationError):
    """Raised when a well-formed token is past its validity window."""

    def __init__(self, message: str | None = None, code: str = "token_expired"):
        super().__init__(message or get_translated_message("refresh_token_expired"), code)


class TokenReusedError(AuthenticationError):
    """Raised when an already consumed refresh token is presented again.

    This signals a possible replay of a stolen token; the service revokes the
    whole session lineage before raising it.
    """

    def __init__(self, message: str | None = None, code: str = "token_reused"):
        super().__init__(message or get_translated_message("refresh_token_reused"), code)


class FingerprintMismatchError(AuthenticationError):
    """Raised when a refresh token is presented from a different client fingerprint."""

    def __init__(self, message: str | None = None, code: str = "fingerprint_mismatch"):
        super().__init__(message or get_translated_message("fingerprint_mismatch"), code)


# ---------------------------------------------------------------------------
# Lookup errors (404)
# ---------------------------------------------------------------------------


class UserNotFoundError(MedportalError):
    """Raised when the user referenced by a token no longer exists.

    This typically maps to a `404 Not Found` HTTP status code.
    """

    def __init__(self, message: str | None = None, code: str = "user_not_found"):
        super().__init__(message or get_translated_message("user_not_found"), code)


# ---------------------------------------------------------------------------
# Operational errors (429 / 500)
# ---------------------------------------------------------------------------


class RateLimitError(MedportalError):
    """Base class for rate limiting errors. Maps to `429 Too Many Requests`.

    Attributes:
        retry_after (Optional[int]): Seconds until the client may retry.
    """

    def __init__(
        self,
        message: str | None = None,
        code: str = "rate_limit_exceeded",
        retry_after: Optional[int] = None,
    ):
        if message is None:
            message = get_translated_message("rate_limit_exceeded", "en")
        super().__init__(message, code)
        self.retry_after = retry_after


class RateLimitExceededError(RateLimitError):
    """Raised when a per-route gate rejects a request."""

    def __init__(
        self,
        message: str | None = None,
        code: str = "rate_limit_exceeded",
        retry_after: Optional[int] = None,
    ):
        super().__init__(message, code, retry_after)


class TokenStoreError(MedportalError):
    """Raised when the token state store cannot be read or written.

    Maps to a `500 Internal Server Error`; details stay in the logs.
    """

    def __init__(self, message: str | None = None, code: str = "token_store_error"):
        super().__init__(message or get_translated_message("token_store_unavailable"), code)
