"""Runs a category's pipeline over the cache in concurrency-bounded batches."""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from migrator.cache.reader import CacheReader
from migrator.clients import Clients
from migrator.error_sink import ErrorSink
from migrator.logging_config import get_logger
from migrator.repositories import IngestionRunRepository
from migrator.services.identity import IdentityResolver
from migrator.services.outcomes import IngestionOutcome, IngestionSummary
from migrator.services.pipelines import Pipeline, PlaylistPipeline, UserPipeline
from migrator.services.reconciler import PlaylistReconciler, UserReconciler
from migrator.validation import build_exclusion_set

logger = get_logger(__name__)

CATEGORIES = ("users", "playlists")

ProgressCallback = Callable[[int, int, IngestionOutcome], None]


@dataclass
class RunOptions:
    """Options for one category run."""

    dry_run: bool = False
    concurrency: int = 10
    single_file: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "dry_run": self.dry_run,
            "concurrency": self.concurrency,
            "single_file": self.single_file,
        }


class BatchOrchestrator:
    """Dispatches units batch by batch and aggregates their outcomes.

    Within a batch every unit runs concurrently and the batch completes only
    when all of them have; batches never overlap. Per-unit exceptions become
    Error outcomes. Only a missing source directory aborts the run.
    """

    def __init__(
        self,
        clients: Clients,
        on_progress: Optional[ProgressCallback] = None,
        on_start: Optional[Callable[[int], None]] = None,
    ):
        self.clients = clients
        self.settings = clients.settings
        self.on_progress = on_progress
        self.on_start = on_start

    def build_pipeline(self, category: str, reader: CacheReader, sink: ErrorSink) -> Pipeline:
        """Wire the pipeline for a category from the injected clients."""
        stores = self.clients.stores
        exclusions = build_exclusion_set(self.settings.excluded_cas)

        if category == "users":
            if self.clients.directory is None or self.clients.auth is None or not self.clients.credentials:
                raise ValueError("User ingestion requires directory, auth and credential clients")
            resolver = IdentityResolver(
                stores.local_sessions,
                self.clients.directory,
                self.clients.auth,
                provider_id=self.settings.federated_provider_id,
            )
            reconciler = UserReconciler(stores.core_sessions, stores.local_sessions)
            return UserPipeline(reader, sink, exclusions, resolver, reconciler)

        if category == "playlists":
            playlist_reconciler = PlaylistReconciler(
                stores.core_sessions,
                stores.local_sessions,
                sink,
                slug_length=self.settings.slug_length,
                slug_max_attempts=self.settings.slug_max_attempts,
            )
            return PlaylistPipeline(reader, sink, exclusions, playlist_reconciler)

        raise ValueError(f"Unknown category: {category}")

    async def run(
        self,
        category: str,
        source_dir: str | Path,
        options: Optional[RunOptions] = None,
    ) -> Optional[IngestionSummary]:
        """Ingest one category.

        Returns:
            The run summary, or None when no files matched

        Raises:
            SourceDirectoryNotFoundError: source_dir does not exist
        """
        options = options or RunOptions()
        reader = CacheReader(source_dir)
        reader.ensure_exists()

        sink = ErrorSink(source_dir)
        pipeline = self.build_pipeline(category, reader, sink)
        for error_category in pipeline.error_categories:
            sink.clear(error_category)

        files = reader.list_files(category, options.single_file)
        if not files:
            logger.info(
                "No files to ingest",
                category=category,
                source_dir=str(source_dir),
                file=options.single_file,
            )
            return None

        logger.info("Starting ingestion", category=category, files=len(files), dry_run=options.dry_run)
        if self.on_start:
            self.on_start(len(files))

        async with self.clients.stores.local_sessions() as session:
            runs = IngestionRunRepository(session)
            run = await runs.start_run(
                category,
                str(source_dir),
                dry_run=options.dry_run,
                options=options.to_dict(),
            )
            await session.commit()

            try:
                outcomes = await self._run_batches(pipeline, files, options)
            except BaseException as e:
                await runs.fail_run(run, str(e) or type(e).__name__)
                await session.commit()
                raise

            summary = IngestionSummary.from_outcomes(category, len(files), outcomes)
            await runs.complete_run(run, summary.to_dict())
            await session.commit()

        logger.info("Ingestion complete", **summary.to_dict())
        return summary

    async def _run_batches(
        self,
        pipeline: Pipeline,
        files: list[Path],
        options: RunOptions,
    ) -> list[IngestionOutcome]:
        concurrency = max(1, options.concurrency)
        outcomes: list[IngestionOutcome] = []

        for start in range(0, len(files), concurrency):
            batch = files[start:start + concurrency]
            if pipeline.uses_credentials and self.clients.credentials:
                assignments = self.clients.credentials.assign(batch)
            else:
                assignments = [(path, None) for path in batch]

            tasks = [
                asyncio.create_task(self._run_unit(pipeline, path, credential, options.dry_run))
                for path, credential in assignments
            ]
            for next_done in asyncio.as_completed(tasks):
                outcome = await next_done
                outcomes.append(outcome)
                if self.on_progress:
                    self.on_progress(len(outcomes), len(files), outcome)

        return outcomes

    async def _run_unit(
        self,
        pipeline: Pipeline,
        path: Path,
        credential: Optional[str],
        dry_run: bool,
    ) -> IngestionOutcome:
        try:
            return await pipeline.process(path, credential, dry_run)
        except Exception as e:
            logger.exception("Error processing file", file=path.name, category=pipeline.category)
            return pipeline.fail(path, e)
