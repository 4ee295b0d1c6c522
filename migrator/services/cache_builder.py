"""Builds the local document cache from the legacy document store."""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from migrator.cache.layout import is_attachment
from migrator.cache.source import DocumentSource
from migrator.cache.writer import CacheWriter
from migrator.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class CacheBuildSummary:
    """Statistics from a cache build."""

    total_documents: int = 0
    pages: int = 0
    written: int = 0
    already_cached: int = 0
    attachments_skipped: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary."""
        return {
            "total_documents": self.total_documents,
            "pages": self.pages,
            "written": self.written,
            "already_cached": self.already_cached,
            "attachments_skipped": self.attachments_skipped,
            "failed": self.failed,
        }


class CacheBuilder:
    """Pages through the document store and dumps every JSON document."""

    def __init__(
        self,
        source: DocumentSource,
        writer: CacheWriter,
        page_size: int = 1000,
        page_delay: float = 0.1,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.source = source
        self.writer = writer
        self.page_size = page_size
        self.page_delay = page_delay
        self._sleep = sleep

    async def run(
        self,
        progress: Optional[Callable[[int, int], None]] = None,
    ) -> CacheBuildSummary:
        """Build the cache.

        Args:
            progress: Called with (documents seen, total) after each page
        """
        summary = CacheBuildSummary()
        summary.total_documents = await self.source.count()
        logger.info("Building cache", total_documents=summary.total_documents)

        offset = 0
        seen = 0
        while True:
            page = await self.source.fetch_page(offset, self.page_size)
            summary.pages += 1

            for document in page.documents:
                seen += 1
                if is_attachment(document.id):
                    summary.attachments_skipped += 1
                    continue
                try:
                    if self.writer.write(document.id, document.content):
                        summary.written += 1
                    else:
                        summary.already_cached += 1
                except OSError as e:
                    summary.failed += 1
                    logger.error("Failed to cache document", doc_id=document.id, error=str(e))

            logger.debug(
                "Processed page",
                page=summary.pages,
                offset=offset,
                documents=len(page.documents),
                has_more=page.has_more,
            )
            if progress:
                progress(seen, summary.total_documents)

            if not page.has_more:
                break

            offset = page.next_offset
            await self._sleep(self.page_delay)

        logger.info("Cache build complete", **summary.to_dict())
        return summary
