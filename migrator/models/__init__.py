"""SQLAlchemy models for the local mapping store and the Core store."""

from migrator.models.base import JSONType, TextIdMixin, TimestampMixin, new_id
from migrator.models.core import CoreUser, Playlist, PlaylistItem, VideoVariant
from migrator.models.local import IngestionRun, LocalIdentityMapping, RunStatus

__all__ = [
    # Base
    "JSONType",
    "TextIdMixin",
    "TimestampMixin",
    "new_id",
    # Local store
    "LocalIdentityMapping",
    "IngestionRun",
    "RunStatus",
    # Core store
    "CoreUser",
    "Playlist",
    "PlaylistItem",
    "VideoVariant",
]
