"""Data access repositories."""

from migrator.repositories.base import BaseRepository
from migrator.repositories.core_user import CoreUserRepository
from migrator.repositories.identity_mapping import IdentityMappingRepository
from migrator.repositories.ingestion_run import IngestionRunRepository
from migrator.repositories.playlist import PlaylistItemRepository, PlaylistRepository
from migrator.repositories.video_variant import VideoVariantRepository

__all__ = [
    "BaseRepository",
    "CoreUserRepository",
    "IdentityMappingRepository",
    "IngestionRunRepository",
    "PlaylistItemRepository",
    "PlaylistRepository",
    "VideoVariantRepository",
]
