"""Unit tests for CLI module."""

import asyncio

import pytest
from typer.testing import CliRunner

from migrator.cli.main import app
from migrator.config import get_settings
from migrator.database import CoreBase, create_stores, init_db
from tests.conftest import (
    deleted_playlist_document,
    get_test_settings,
    playlist_document,
    playlist_item,
    seed_mapping,
    seed_variant,
    write_cached,
)

runner = CliRunner()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point the CLI's settings at throwaway stores."""
    monkeypatch.setenv("LOCAL_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'local.db'}")
    monkeypatch.setenv("CORE_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'core.db'}")
    monkeypatch.setenv("CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("OKTA_TOKENS", "[]")
    monkeypatch.setenv("GOOGLE_APPLICATION_JSON", "")
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setattr("migrator.cli.main.configure_logging", lambda level=None: None)
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


def prepare_stores(tmp_path, seed=None):
    """Create both stores' tables, optionally seeding them."""

    async def _prepare():
        stores = create_stores(get_test_settings(tmp_path))
        try:
            await init_db(stores.local_engine)
            async with stores.core_engine.begin() as conn:
                await conn.run_sync(CoreBase.metadata.create_all)
            if seed:
                await seed(stores)
        finally:
            await stores.dispose()

    asyncio.run(_prepare())


class TestIngestCommand:
    """Tests for the ingest command."""

    def test_file_requires_specific_pipeline(self, cli_env):
        result = runner.invoke(app, ["ingest", "--file", "abc"])

        assert result.exit_code == 1
        assert "--file requires" in result.output

    def test_users_require_credentials(self, cli_env):
        result = runner.invoke(app, ["ingest", "--pipeline", "users"])

        assert result.exit_code == 1
        assert "Configuration validation failed" in result.output

    def test_missing_source_dir(self, cli_env):
        result = runner.invoke(
            app,
            ["ingest", "--pipeline", "playlists", "--source-dir", str(cli_env / "missing")],
        )

        assert result.exit_code == 1
        assert "Source directory does not exist" in result.output

    def test_playlists_end_to_end(self, cli_env):
        async def seed(stores):
            await seed_mapping(stores, "owner-1")
            await seed_variant(stores, "mc-a")

        prepare_stores(cli_env, seed)
        cache = cli_env / "cache"
        write_cached(cache, "pl", "pl-1", playlist_document("owner-1", [playlist_item("mc-a")]))
        write_cached(cache, "pl", "pl-2", deleted_playlist_document())

        result = runner.invoke(app, ["ingest", "--pipeline", "playlists"])

        assert result.exit_code == 0, result.output
        assert "Playlists Ingestion Summary" in result.output
        assert "deleted-marker" in result.output
        assert "529: 1 items" in result.output

        runs = runner.invoke(app, ["runs", "--category", "playlists"])
        assert runs.exit_code == 0
        assert "Ingestion Runs (1 shown)" in runs.output

    def test_no_files(self, cli_env):
        prepare_stores(cli_env)
        (cli_env / "cache").mkdir()

        result = runner.invoke(app, ["ingest", "--pipeline", "playlists", "--dry-run"])

        assert result.exit_code == 0
        assert "No playlists files found" in result.output


class TestOtherCommands:
    """Tests for the remaining commands."""

    def test_init_db(self, cli_env):
        result = runner.invoke(app, ["init-db"])

        assert result.exit_code == 0
        assert (cli_env / "local.db").exists()

    def test_runs_empty(self, cli_env):
        result = runner.invoke(app, ["runs"])

        assert result.exit_code == 0
        assert "No ingestion runs found" in result.output

    def test_reset_auth_requires_credentials(self, cli_env):
        (cli_env / "cache").mkdir()

        result = runner.invoke(app, ["reset-auth", "--yes"])

        assert result.exit_code == 1
        assert "GOOGLE_APPLICATION_JSON" in result.output

    def test_reset_auth_can_be_aborted(self, cli_env):
        result = runner.invoke(app, ["reset-auth"], input="n\n")

        assert result.exit_code != 0

    def test_reconcile_items_missing_dir(self, cli_env):
        result = runner.invoke(app, ["reconcile-items", "--source-dir", str(cli_env / "missing")])

        assert result.exit_code == 1
