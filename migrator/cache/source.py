"""Paginated reads from the legacy document store."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Optional

from migrator.config import Settings
from migrator.logging_config import get_logger
from migrator.utils.retry import (
    NonRetryableError,
    is_permission_error,
    retry_with_exponential_backoff,
)

logger = get_logger(__name__)


@dataclass
class SourceDocument:
    """One extracted document. Content excludes the id."""

    id: str
    content: dict[str, Any]


@dataclass
class DocumentPage:
    """A page of documents plus the cursor for the next one."""

    documents: list[SourceDocument] = field(default_factory=list)
    has_more: bool = False
    next_offset: int = 0


class DocumentSource(ABC):
    """Abstract paginated document store."""

    @abstractmethod
    async def count(self) -> int:
        """Number of cacheable documents (attachments excluded)."""
        pass

    @abstractmethod
    async def fetch_page(self, offset: int, limit: int) -> DocumentPage:
        """Fetch documents [offset, offset + limit)."""
        pass

    async def close(self) -> None:
        """Release connections."""
        return None


def paginate_rows(rows: list[dict[str, Any]], offset: int, limit: int) -> DocumentPage:
    """Build a page from a LIMIT+1 look-ahead result."""
    has_more = len(rows) > limit
    documents = []
    for row in rows[:limit]:
        content = {key: value for key, value in row.items() if key != "id"}
        documents.append(SourceDocument(id=row["id"], content=content))
    return DocumentPage(
        documents=documents,
        has_more=has_more,
        next_offset=offset + limit if has_more else offset,
    )


class CouchbaseDocumentSource(DocumentSource):
    """Reads documents from a Couchbase bucket with N1QL.

    The couchbase SDK is blocking, so every call runs in a worker thread.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._cluster: Optional[Any] = None

    def _connect(self) -> Any:
        # Imported here so ingestion does not require the extract extra
        from couchbase.auth import PasswordAuthenticator
        from couchbase.cluster import Cluster
        from couchbase.options import ClusterOptions, ClusterTimeoutOptions

        timeout = timedelta(seconds=self.settings.couchbase_operation_timeout)
        options = ClusterOptions(
            PasswordAuthenticator(
                self.settings.couchbase_username,
                self.settings.couchbase_password,
            ),
            timeout_options=ClusterTimeoutOptions(
                kv_timeout=timeout,
                query_timeout=timeout,
            ),
        )
        logger.info(
            "Connecting to Couchbase",
            connection_string=self.settings.couchbase_connection_string,
            bucket=self.settings.couchbase_bucket_name,
        )
        return Cluster(self.settings.couchbase_connection_string, options)

    async def _get_cluster(self) -> Any:
        if self._cluster is None:
            self._cluster = await asyncio.to_thread(self._connect)
        return self._cluster

    def _run_query(self, cluster: Any, statement: str, parameters: dict[str, Any]) -> list[dict]:
        from couchbase.options import QueryOptions

        options = QueryOptions(
            named_parameters=parameters,
            timeout=timedelta(seconds=self.settings.couchbase_operation_timeout),
        )
        return list(cluster.query(statement, options).rows())

    @retry_with_exponential_backoff(max_retries=2, base_delay=0.5)
    async def _query(self, statement: str, parameters: dict[str, Any]) -> list[dict]:
        cluster = await self._get_cluster()
        try:
            return await asyncio.to_thread(self._run_query, cluster, statement, parameters)
        except Exception as e:
            if is_permission_error(e):
                raise NonRetryableError(str(e)) from e
            raise

    async def count(self) -> int:
        bucket = self.settings.couchbase_bucket_name
        statement = (
            f"SELECT COUNT(*) AS count FROM `{bucket}` "
            'WHERE NOT (META().id LIKE "_sync:att:%" OR META().id LIKE "_sync:rev:%")'
        )
        rows = await self._query(statement, {})
        return int(rows[0]["count"]) if rows else 0

    async def fetch_page(self, offset: int, limit: int) -> DocumentPage:
        bucket = self.settings.couchbase_bucket_name
        statement = (
            f"SELECT META().id AS id, META().cas AS cas, * FROM `{bucket}` "
            "LIMIT $LIMIT OFFSET $OFFSET"
        )
        rows = await self._query(statement, {"LIMIT": limit + 1, "OFFSET": offset})
        return paginate_rows(rows, offset, limit)

    async def close(self) -> None:
        if self._cluster is not None:
            await asyncio.to_thread(self._cluster.close)
            self._cluster = None
            logger.info("Disconnected from Couchbase")
