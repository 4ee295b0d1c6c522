"""Per-category unit processing: validate, resolve, reconcile, record."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from migrator.cache.reader import CacheReader
from migrator.error_sink import ErrorCategory, ErrorSink
from migrator.logging_config import get_logger
from migrator.services.identity import IdentityResolver, IdentitySource, Rejected
from migrator.services.outcomes import IngestionOutcome, SkipReason
from migrator.services.reconciler import PlaylistReconciler, UserReconciler
from migrator.validation import (
    ValidationStatus,
    validate_playlist_document,
    validate_user_document,
)

logger = get_logger(__name__)


class Pipeline(ABC):
    """Turns one cached file into an outcome. Never raises for unit failures."""

    category: str
    error_category: ErrorCategory
    # Every error directory the pipeline writes to, cleared per run
    error_categories: tuple[ErrorCategory, ...]
    uses_credentials: bool = False

    def __init__(
        self,
        reader: CacheReader,
        sink: ErrorSink,
        exclusions: frozenset[float],
    ):
        self.reader = reader
        self.sink = sink
        self.exclusions = exclusions

    @abstractmethod
    async def process(
        self,
        path: Path,
        credential: Optional[str],
        dry_run: bool,
    ) -> IngestionOutcome:
        pass

    def fail(self, path: Path, error: BaseException, payload: Any = None) -> IngestionOutcome:
        """Record an artifact and build the Error outcome."""
        self.sink.record(self.error_category, path.name, error, payload)
        return IngestionOutcome.failed(path.name, error, payload)


class UserPipeline(Pipeline):
    """User profiles: validate, resolve identity, reconcile."""

    category = "users"
    error_category = ErrorCategory.USERS
    error_categories = (ErrorCategory.USERS,)
    uses_credentials = True

    def __init__(
        self,
        reader: CacheReader,
        sink: ErrorSink,
        exclusions: frozenset[float],
        resolver: IdentityResolver,
        reconciler: UserReconciler,
    ):
        super().__init__(reader, sink, exclusions)
        self.resolver = resolver
        self.reconciler = reconciler

    async def process(
        self,
        path: Path,
        credential: Optional[str],
        dry_run: bool,
    ) -> IngestionOutcome:
        raw = self.reader.read_json(path)
        validation = validate_user_document(raw, self.exclusions)

        if validation.status == ValidationStatus.EXCLUDED:
            logger.debug("Skipping excluded user document", file=path.name, cas=validation.cas)
            return IngestionOutcome.skipped(path.name, SkipReason.INVALID)

        if validation.failure is not None or validation.record is None:
            logger.warning("User document failed validation", file=path.name, error=str(validation.failure))
            return self.fail(path, validation.failure or ValueError("invalid document"), raw)

        profile = validation.record
        resolution = await self.resolver.resolve(profile, credential or "", dry_run)

        if isinstance(resolution, Rejected):
            return self.fail(path, resolution.to_exception(), resolution.payload)

        if resolution.source == IdentitySource.LOCAL:
            return IngestionOutcome.skipped(
                path.name, SkipReason.ALREADY_EXISTS, entity=resolution.mapping
            )

        try:
            result = await self.reconciler.reconcile(resolution, dry_run)
        except Exception as e:
            logger.error("Error saving user", file=path.name, email=profile.email, error=str(e))
            return self.fail(path, e, profile)

        if dry_run:
            return IngestionOutcome.skipped(path.name, SkipReason.DRY_RUN, entity=resolution)
        return IngestionOutcome.success(path.name, result.mapping)


class PlaylistPipeline(Pipeline):
    """Playlists: validate, then reconcile header and items."""

    category = "playlists"
    error_category = ErrorCategory.PLAYLISTS
    error_categories = (ErrorCategory.PLAYLISTS, ErrorCategory.PLAYLIST_ITEMS)

    def __init__(
        self,
        reader: CacheReader,
        sink: ErrorSink,
        exclusions: frozenset[float],
        reconciler: PlaylistReconciler,
    ):
        super().__init__(reader, sink, exclusions)
        self.reconciler = reconciler

    async def process(
        self,
        path: Path,
        credential: Optional[str],
        dry_run: bool,
    ) -> IngestionOutcome:
        raw = self.reader.read_json(path)
        validation = validate_playlist_document(raw, path.stem, self.exclusions)

        if validation.status == ValidationStatus.DELETED:
            return IngestionOutcome.skipped(path.name, SkipReason.DELETED_MARKER)

        if validation.status == ValidationStatus.EXCLUDED:
            return IngestionOutcome.skipped(path.name, SkipReason.INVALID)

        if validation.failure is not None or validation.record is None:
            logger.warning("Playlist document failed validation", file=path.name, error=str(validation.failure))
            return self.fail(path, validation.failure or ValueError("invalid document"), raw)

        playlist = validation.record
        try:
            result = await self.reconciler.reconcile(playlist, dry_run)
        except Exception as e:
            logger.error("Error saving playlist", file=path.name, playlist_id=playlist.id, error=str(e))
            return self.fail(path, e, playlist)

        if dry_run:
            return IngestionOutcome.skipped(path.name, SkipReason.DRY_RUN, entity=result)
        return IngestionOutcome.success(path.name, result)
