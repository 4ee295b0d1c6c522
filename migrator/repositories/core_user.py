"""Repository for Core user data access."""

from typing import Optional

from sqlalchemy import select

from migrator.models.core import CoreUser
from migrator.repositories.base import BaseRepository


class CoreUserRepository(BaseRepository[CoreUser]):
    """Repository for Core user operations."""

    model_class = CoreUser

    async def get_by_email(self, email: str) -> Optional[CoreUser]:
        """Get user by email (case-insensitive)."""
        stmt = select(CoreUser).where(CoreUser.email == email.lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
