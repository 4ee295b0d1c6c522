"""Repositories for Core playlist and playlist item data access."""

from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import func, select

from migrator.models.core import Playlist, PlaylistItem
from migrator.repositories.base import BaseRepository


class PlaylistRepository(BaseRepository[Playlist]):
    """Repository for playlist header operations."""

    model_class = Playlist

    async def slug_exists(self, slug: str) -> bool:
        """Check if a slug is already taken."""
        stmt = select(func.count()).select_from(Playlist).where(Playlist.slug == slug)
        result = await self.session.execute(stmt)
        return (result.scalar() or 0) > 0

    async def upsert(
        self,
        playlist_id: str,
        *,
        name: str,
        note: str,
        note_updated_at: Optional[datetime],
        owner_id: str,
        slug: str,
        created_at: datetime,
        updated_at: datetime,
    ) -> tuple[Playlist, bool]:
        """Create or update a playlist header.

        On update only the mutable fields change; slug and createdAt keep
        their persisted values.

        Returns:
            Tuple of (playlist, created)
        """
        existing = await self.get_by_id(playlist_id)

        if existing:
            existing.name = name
            existing.note = note
            existing.note_updated_at = note_updated_at
            existing.owner_id = owner_id
            existing.updated_at = updated_at
            await self.session.flush()
            return existing, False

        playlist = Playlist(
            id=playlist_id,
            name=name,
            note=note,
            note_updated_at=note_updated_at,
            owner_id=owner_id,
            slug=slug,
            created_at=created_at,
            updated_at=updated_at,
        )
        self.session.add(playlist)
        await self.session.flush()
        return playlist, True


class PlaylistItemRepository(BaseRepository[PlaylistItem]):
    """Repository for playlist item operations."""

    model_class = PlaylistItem

    async def get_by_order(self, playlist_id: str, order: int) -> Optional[PlaylistItem]:
        """Get item by its (playlistId, order) composite key."""
        stmt = select(PlaylistItem).where(
            PlaylistItem.playlist_id == playlist_id,
            PlaylistItem.order == order,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_playlist(self, playlist_id: str) -> Sequence[PlaylistItem]:
        """Get all items of a playlist in order."""
        stmt = (
            select(PlaylistItem)
            .where(PlaylistItem.playlist_id == playlist_id)
            .order_by(PlaylistItem.order)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def upsert(
        self,
        playlist_id: str,
        order: int,
        video_variant_id: str,
        timestamp: datetime,
    ) -> tuple[PlaylistItem, bool]:
        """Create or update the item at (playlistId, order).

        An existing item keeps its id across re-runs.

        Returns:
            Tuple of (item, created)
        """
        existing = await self.get_by_order(playlist_id, order)

        if existing:
            existing.video_variant_id = video_variant_id
            existing.updated_at = timestamp
            await self.session.flush()
            return existing, False

        item = PlaylistItem(
            playlist_id=playlist_id,
            order=order,
            video_variant_id=video_variant_id,
            created_at=timestamp,
            updated_at=timestamp,
        )
        self.session.add(item)
        await self.session.flush()
        return item, True
