"""Repository for the video variant catalog."""

from typing import Optional

from sqlalchemy import select

from migrator.models.core import VideoVariant
from migrator.repositories.base import BaseRepository


class VideoVariantRepository(BaseRepository[VideoVariant]):
    """Read-only access to the video variant catalog."""

    model_class = VideoVariant

    async def get_by_language_and_video(
        self,
        language_id: str,
        video_id: str,
    ) -> Optional[VideoVariant]:
        """Get the catalog entry for a (languageId, mediaComponentId) pair."""
        stmt = select(VideoVariant).where(
            VideoVariant.language_id == language_id,
            VideoVariant.video_id == video_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
