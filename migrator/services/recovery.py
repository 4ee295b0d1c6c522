"""Re-checks playlist items that were skipped in the last playlist run.

A skipped item leaves an artifact under ``errors/playListItems``. When its
catalog entry has since appeared, the item is upserted and the artifact
removed; otherwise the artifact stays for the next attempt.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from pydantic import TypeAdapter, ValidationError

from migrator.clients import Clients
from migrator.error_sink import ErrorCategory, ErrorSink
from migrator.exceptions import SourceDirectoryNotFoundError
from migrator.logging_config import get_logger
from migrator.repositories import (
    PlaylistItemRepository,
    PlaylistRepository,
    VideoVariantRepository,
)
from migrator.validation import CachedPlaylistItem

logger = get_logger(__name__)

_item_adapter = TypeAdapter(CachedPlaylistItem)


@dataclass
class RecoverySummary:
    """Statistics from a recovery pass."""

    total: int = 0
    recovered: int = 0
    still_missing: int = 0
    playlist_missing: int = 0
    unreadable: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary."""
        return {
            "total": self.total,
            "recovered": self.recovered,
            "still_missing": self.still_missing,
            "playlist_missing": self.playlist_missing,
            "unreadable": self.unreadable,
        }


class PlaylistItemRecovery:
    """Retries skipped playlist items without re-running the playlists."""

    def __init__(self, clients: Clients):
        self.core_sessions = clients.stores.core_sessions

    async def run(
        self,
        source_dir: str | Path,
        progress: Optional[Callable[[int, int], None]] = None,
    ) -> RecoverySummary:
        if not Path(source_dir).is_dir():
            raise SourceDirectoryNotFoundError(str(source_dir))

        sink = ErrorSink(source_dir)
        artifacts = sink.artifacts(ErrorCategory.PLAYLIST_ITEMS)
        summary = RecoverySummary(total=len(artifacts))

        for index, path in enumerate(artifacts, start=1):
            await self._recover(sink, path, summary)
            if progress:
                progress(index, summary.total)

        return summary

    async def _recover(self, sink: ErrorSink, path: Path, summary: RecoverySummary) -> None:
        try:
            payload = sink.read(path)["payload"]
            playlist_id = str(payload["playlistId"])
            item = _item_adapter.validate_python(payload["item"])
        except (OSError, ValueError, KeyError, TypeError, ValidationError) as e:
            summary.unreadable += 1
            logger.warning("Unreadable item artifact", file=path.name, error=str(e))
            return

        async with self.core_sessions() as session:
            if await PlaylistRepository(session).get_by_id(playlist_id) is None:
                summary.playlist_missing += 1
                return

            variant = await VideoVariantRepository(session).get_by_language_and_video(
                str(item.language_id),
                item.media_component_id,
            )
            if variant is None:
                summary.still_missing += 1
                return

            await PlaylistItemRepository(session).upsert(
                playlist_id,
                item.order,
                variant.id,
                item.created_at,
            )
            await session.commit()

        sink.remove(path)
        summary.recovered += 1
        logger.info(
            "Recovered playlist item",
            playlist_id=playlist_id,
            order=item.order,
            media_component_id=item.media_component_id,
        )
