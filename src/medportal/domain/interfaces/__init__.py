"""Ports of the token rotation domain."""

from .repositories import IUserRepository
from .session_activity import ISessionActivityTracker
from .token_signer import ITokenSigner
from .token_store import ITokenStateStore

__all__ = ["ISessionActivityTracker", "ITokenSigner", "ITokenStateStore", "IUserRepository"]
