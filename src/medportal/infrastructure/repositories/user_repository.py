"""User repository implementation using SQLModel async sessions."""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from structlog import get_logger

from medportal.domain.entities.user import User
from medportal.domain.interfaces.repositories import IUserRepository

logger = get_logger(__name__)


class UserRepository(IUserRepository):
    """SQLAlchemy implementation of the user lookups.

    Args:
        db_session: Async session injected per request.
    """

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def get_by_id(self, user_id: int) -> Optional[User]:
        """Get a user by primary key.

        Non-positive ids never match a row and are answered without a query.
        """
        if user_id <= 0:
            logger.warning("Invalid user ID provided", user_id=user_id)
            return None

        result = await self.db_session.execute(select(User).where(User.id == user_id))
        user = result.scalars().first()
        logger.debug("User lookup by ID completed", user_id=user_id, found=user is not None)
        return user

    async def get_by_email(self, email: str) -> Optional[User]:
        normalized = email.strip().lower()
        if not normalized:
            return None
        result = await self.db_session.execute(
            select(User).where(func.lower(User.email) == normalized)
        )
        user = result.scalars().first()
        logger.debug("User lookup by email completed", found=user is not None)
        return user
