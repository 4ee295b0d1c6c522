"""Base repository pattern for data access."""

from typing import Any, Generic, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    """Generic repository bound to one session and one mapped class."""

    model_class: type[ModelT]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, id: Any) -> Optional[ModelT]:
        """Get entity by primary key."""
        return await self.session.get(self.model_class, id)

    async def create(self, entity: ModelT) -> ModelT:
        """Insert an entity and load its server-generated columns."""
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity
