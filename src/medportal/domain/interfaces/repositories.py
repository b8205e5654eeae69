"""Repository interfaces for the user store.

The rotation service only needs to confirm that the subject of a refresh token
still exists; login additionally looks accounts up by email.
"""

from abc import ABC, abstractmethod
from typing import Optional

from medportal.domain.entities.user import User


class IUserRepository(ABC):
    """An interface defining the contract for user lookups."""

    @abstractmethod
    async def get_by_id(self, user_id: int) -> Optional[User]:
        """Retrieves a user by their unique identifier.

        Returns:
            An optional `User` entity. Returns `None` if no user is found.
        """
        raise NotImplementedError

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[User]:
        """Retrieves a user by their email address (case-insensitively).

        Returns:
            An optional `User` entity. Returns `None` if no user is found.
        """
        raise NotImplementedError
