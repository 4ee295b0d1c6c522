"""Unit tests for building the cache from the document store."""

import json

import pytest

from migrator.cache.source import DocumentPage, DocumentSource, SourceDocument, paginate_rows
from migrator.cache.writer import CacheWriter
from migrator.services.cache_builder import CacheBuilder


class FakeDocumentSource(DocumentSource):
    """Serves a fixed list of rows with LIMIT+1 look-ahead."""

    def __init__(self, rows):
        self.rows = rows
        self.offsets = []

    async def count(self) -> int:
        return sum(1 for row in self.rows if not row["id"].startswith("_sync:att:"))

    async def fetch_page(self, offset: int, limit: int) -> DocumentPage:
        self.offsets.append(offset)
        return paginate_rows(self.rows[offset:offset + limit + 1], offset, limit)


async def no_sleep(delay):
    return None


class TestPaginateRows:
    """Tests for paginate_rows."""

    def test_look_ahead_row_signals_more(self):
        rows = [{"id": f"u_{i}", "cas": i} for i in range(3)]

        page = paginate_rows(rows, offset=10, limit=2)

        assert page.has_more is True
        assert page.next_offset == 12
        assert page.documents == [
            SourceDocument(id="u_0", content={"cas": 0}),
            SourceDocument(id="u_1", content={"cas": 1}),
        ]

    def test_last_page(self):
        page = paginate_rows([{"id": "u_0"}], offset=4, limit=2)

        assert page.has_more is False
        assert page.next_offset == 4


class TestCacheBuilder:
    """Tests for CacheBuilder."""

    @pytest.mark.asyncio
    async def test_pages_through_everything(self, tmp_path):
        rows = [{"id": f"pl_{i}", "cas": i, "JFM-profiles": {"type": "playlist"}} for i in range(5)]
        rows.append({"id": "_sync:att:sha1-abc", "cas": 99})
        source = FakeDocumentSource(rows)
        progress = []

        summary = await CacheBuilder(source, CacheWriter(tmp_path), page_size=2, sleep=no_sleep).run(
            progress=lambda seen, total: progress.append(seen)
        )

        assert source.offsets == [0, 2, 4]
        assert summary.pages == 3
        assert summary.written == 5
        assert summary.attachments_skipped == 1
        assert progress == [2, 4, 6]
        cached = json.loads((tmp_path / "pl" / "3.json").read_text())
        assert cached == {"cas": 3, "JFM-profiles": {"type": "playlist"}}
        assert not (tmp_path / "_sync").exists()

    @pytest.mark.asyncio
    async def test_rebuild_keeps_existing_files(self, tmp_path):
        (tmp_path / "u").mkdir()
        (tmp_path / "u" / "1.json").write_text('{"cas": "old"}')
        source = FakeDocumentSource([{"id": "u_1", "cas": 2}, {"id": "u_2", "cas": 3}])

        summary = await CacheBuilder(source, CacheWriter(tmp_path), sleep=no_sleep).run()

        assert summary.written == 1
        assert summary.already_cached == 1
        assert json.loads((tmp_path / "u" / "1.json").read_text()) == {"cas": "old"}

    @pytest.mark.asyncio
    async def test_empty_store(self, tmp_path):
        summary = await CacheBuilder(FakeDocumentSource([]), CacheWriter(tmp_path), sleep=no_sleep).run()

        assert summary.pages == 1
        assert summary.written == 0
