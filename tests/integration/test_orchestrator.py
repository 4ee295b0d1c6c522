"""Tests for batch orchestration across whole runs."""

import pytest
from sqlalchemy import func, select

from migrator.error_sink import ErrorCategory, ErrorSink
from migrator.exceptions import OwnerNotFoundError, SourceDirectoryNotFoundError
from migrator.models import CoreUser, IngestionRun, LocalIdentityMapping, PlaylistItem
from migrator.services.orchestrator import BatchOrchestrator, RunOptions
from migrator.services.outcomes import OutcomeStatus, SkipReason
from tests.conftest import (
    deleted_playlist_document,
    playlist_document,
    playlist_item,
    seed_mapping,
    seed_variant,
    user_document,
    write_cached,
)


def seed_users(cache_dir, fake_directory, count):
    for i in range(count):
        write_cached(
            cache_dir, "u", f"owner-{i}",
            user_document(f"owner-{i}", f"guid-{i}", f"user{i}@example.com"),
        )
        fake_directory.add(f"guid-{i}", f"user{i}@example.com")


async def count_rows(sessions, model):
    async with sessions() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar()


class TestUserIngestion:
    """User runs through the orchestrator."""

    @pytest.mark.asyncio
    async def test_ingests_and_is_idempotent(self, clients, stores, cache_dir, fake_directory, auth):
        """A second run over the same cache reports everything as already existing."""
        seed_users(cache_dir, fake_directory, 4)
        orchestrator = BatchOrchestrator(clients)

        first = await orchestrator.run("users", cache_dir, RunOptions(concurrency=3))
        requests_after_first = len(fake_directory.requests)
        second = await orchestrator.run("users", cache_dir, RunOptions(concurrency=3))

        assert first.success_count == 4
        assert second.success_count == 0
        assert second.skipped_for(SkipReason.ALREADY_EXISTS) == 4
        assert len(fake_directory.requests) == requests_after_first
        assert len(auth.created) == 4
        assert await count_rows(stores.local_sessions, LocalIdentityMapping) == 4
        assert await count_rows(stores.core_sessions, CoreUser) == 4

    @pytest.mark.asyncio
    async def test_padded_sso_guid_is_idempotent(self, clients, stores, cache_dir, fake_directory):
        """A GUID with surrounding whitespace maps once and is found on re-run."""
        write_cached(
            cache_dir, "u", "owner-1", user_document("owner-1", " guid-1 ", "a@example.com")
        )
        fake_directory.add("guid-1", "a@example.com")
        orchestrator = BatchOrchestrator(clients)

        first = await orchestrator.run("users", cache_dir)
        second = await orchestrator.run("users", cache_dir)

        assert first.success_count == 1
        assert second.error_count == 0
        assert second.skipped_for(SkipReason.ALREADY_EXISTS) == 1
        async with stores.local_sessions() as session:
            mapping = (await session.execute(select(LocalIdentityMapping))).scalar_one()
        assert mapping.sso_guid == "guid-1"

    @pytest.mark.asyncio
    async def test_partial_failure(self, clients, stores, cache_dir, fake_directory):
        """One invalid document among ten fails alone and leaves one artifact."""
        seed_users(cache_dir, fake_directory, 9)
        bad = user_document("owner-bad", "guid-bad", "bad@example.com")
        bad["JFM-profiles"]["email"] = "not-an-email"
        write_cached(cache_dir, "u", "owner-bad", bad)

        summary = await BatchOrchestrator(clients).run("users", cache_dir, RunOptions(concurrency=4))

        assert summary.total_files == 10
        assert summary.success_count == 9
        assert summary.error_count == 1
        artifacts = ErrorSink(cache_dir).artifacts(ErrorCategory.USERS)
        assert [p.name for p in artifacts] == ["owner-bad.json"]

    @pytest.mark.asyncio
    async def test_directory_miss_is_an_error(self, clients, cache_dir):
        write_cached(cache_dir, "u", "owner-1", user_document("owner-1", "guid-1", "a@example.com"))

        summary = await BatchOrchestrator(clients).run("users", cache_dir)

        assert summary.error_count == 1
        assert summary.outcomes[0].status == OutcomeStatus.ERROR

    @pytest.mark.asyncio
    async def test_credentials_split_across_batch(self, clients, cache_dir, fake_directory):
        seed_users(cache_dir, fake_directory, 4)

        await BatchOrchestrator(clients).run("users", cache_dir, RunOptions(concurrency=4))

        tokens = sorted(r.headers["Authorization"] for r in fake_directory.requests)
        assert tokens == ["SSWS token-a"] * 2 + ["SSWS token-b"] * 2

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, clients, stores, cache_dir, fake_directory, auth):
        seed_users(cache_dir, fake_directory, 2)

        summary = await BatchOrchestrator(clients).run(
            "users", cache_dir, RunOptions(dry_run=True)
        )

        assert summary.skipped_for(SkipReason.DRY_RUN) == 2
        assert auth.created == []
        assert await count_rows(stores.local_sessions, LocalIdentityMapping) == 0


class TestPlaylistIngestion:
    """Playlist runs through the orchestrator."""

    @pytest.mark.asyncio
    async def test_item_independence(self, clients, stores, cache_dir):
        """Five items with the third missing from the catalog save four."""
        await seed_mapping(stores, "owner-1")
        for i in (0, 1, 3, 4):
            await seed_variant(stores, f"mc-{i}")
        items = [playlist_item(f"mc-{i}") for i in range(5)]
        write_cached(cache_dir, "pl", "pl-1", playlist_document("owner-1", items))

        summary = await BatchOrchestrator(clients).run("playlists", cache_dir)

        assert summary.success_count == 1
        assert summary.analysis.total_items == 5
        assert summary.analysis.saved_items == 4
        assert summary.analysis.skipped_items == 1
        assert summary.analysis.video_variants_not_found == 1
        assert await count_rows(stores.core_sessions, PlaylistItem) == 4
        assert len(ErrorSink(cache_dir).artifacts(ErrorCategory.PLAYLIST_ITEMS)) == 1

    @pytest.mark.asyncio
    async def test_owner_missing(self, clients, stores, cache_dir):
        items = [playlist_item("mc-a"), playlist_item("mc-b")]
        write_cached(cache_dir, "pl", "pl-1", playlist_document("ghost", items))

        summary = await BatchOrchestrator(clients).run("playlists", cache_dir)

        assert summary.error_count == 1
        assert isinstance(summary.outcomes[0].error, OwnerNotFoundError)
        assert summary.analysis.not_processed_items == 2
        assert [p.name for p in ErrorSink(cache_dir).artifacts(ErrorCategory.PLAYLISTS)] == ["pl-1.json"]

    @pytest.mark.asyncio
    async def test_deleted_marker_skipped(self, clients, cache_dir):
        write_cached(cache_dir, "pl", "pl-gone", deleted_playlist_document())

        summary = await BatchOrchestrator(clients).run("playlists", cache_dir)

        assert summary.skipped_for(SkipReason.DELETED_MARKER) == 1
        assert summary.analysis.total_items == 0
        assert ErrorSink(cache_dir).artifacts(ErrorCategory.PLAYLISTS) == []

    @pytest.mark.asyncio
    async def test_error_directories_reflect_latest_run(self, clients, stores, cache_dir):
        """Artifacts from an earlier run are gone once the cause is fixed."""
        write_cached(cache_dir, "pl", "pl-1", playlist_document("owner-1", [playlist_item("mc-a")]))
        orchestrator = BatchOrchestrator(clients)

        await orchestrator.run("playlists", cache_dir)
        assert len(ErrorSink(cache_dir).artifacts(ErrorCategory.PLAYLISTS)) == 1

        await seed_mapping(stores, "owner-1")
        await seed_variant(stores, "mc-a")
        summary = await orchestrator.run("playlists", cache_dir)

        assert summary.success_count == 1
        assert ErrorSink(cache_dir).artifacts(ErrorCategory.PLAYLISTS) == []
        assert ErrorSink(cache_dir).artifacts(ErrorCategory.PLAYLIST_ITEMS) == []

    @pytest.mark.asyncio
    async def test_single_file(self, clients, stores, cache_dir):
        await seed_mapping(stores, "owner-1")
        write_cached(cache_dir, "pl", "pl-1", playlist_document("owner-1"))
        write_cached(cache_dir, "pl", "pl-2", playlist_document("owner-1"))

        summary = await BatchOrchestrator(clients).run(
            "playlists", cache_dir, RunOptions(single_file="pl-2")
        )

        assert summary.total_files == 1
        assert summary.outcomes[0].unit_id == "pl-2.json"


class TestRunLedger:
    """Run bookkeeping and aborts."""

    @pytest.mark.asyncio
    async def test_missing_source_dir_aborts(self, clients, tmp_path):
        with pytest.raises(SourceDirectoryNotFoundError):
            await BatchOrchestrator(clients).run("playlists", tmp_path / "nope")

    @pytest.mark.asyncio
    async def test_no_files_returns_none(self, clients, cache_dir):
        assert await BatchOrchestrator(clients).run("playlists", cache_dir) is None

    @pytest.mark.asyncio
    async def test_completed_run_recorded(self, clients, stores, cache_dir):
        write_cached(cache_dir, "pl", "pl-gone", deleted_playlist_document())
        progress = []

        await BatchOrchestrator(
            clients,
            on_progress=lambda done, total, outcome: progress.append((done, total)),
        ).run("playlists", cache_dir)

        assert progress == [(1, 1)]
        async with stores.local_sessions() as session:
            run = (await session.execute(select(IngestionRun))).scalar_one()
        assert run.category == "playlists"
        assert run.status == "completed"
        assert run.stats["skipped_count"] == 1
