"""Repository for LocalIdentityMapping data access."""

from typing import Optional

from sqlalchemy import select

from migrator.models.local import LocalIdentityMapping
from migrator.repositories.base import BaseRepository


class IdentityMappingRepository(BaseRepository[LocalIdentityMapping]):
    """Repository for local identity mapping operations.

    Mappings are only ever inserted. A duplicate insert surfaces as an
    IntegrityError from the unique constraints.
    """

    model_class = LocalIdentityMapping

    async def get_by_sso_guid(self, sso_guid: str) -> Optional[LocalIdentityMapping]:
        """Get mapping by SSO GUID."""
        stmt = select(LocalIdentityMapping).where(LocalIdentityMapping.sso_guid == sso_guid)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_owner_id(self, owner_id: str) -> Optional[LocalIdentityMapping]:
        """Get mapping by source-system owner id."""
        return await self.get_by_id(owner_id)
