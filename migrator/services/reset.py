"""Deletes the auth provider accounts of every user found in the cache.

Destructive. Meant for resetting non-production environments before a
fresh user ingestion.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from migrator.cache.reader import CacheReader
from migrator.clients.auth_provider import (
    DELETE_USERS_BATCH_SIZE,
    GET_USERS_BATCH_SIZE,
    AuthProvider,
    LookupStatus,
)
from migrator.error_sink import ErrorCategory, ErrorSink
from migrator.logging_config import get_logger
from migrator.validation.schemas import PROFILE_KEY

logger = get_logger(__name__)


@dataclass
class ResetSummary:
    """Statistics from an auth reset."""

    emails: int = 0
    found: int = 0
    not_found: int = 0
    errors: int = 0
    deleted: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary."""
        return {
            "emails": self.emails,
            "found": self.found,
            "not_found": self.not_found,
            "errors": self.errors,
            "deleted": self.deleted,
        }


class AuthResetService:
    """Resolves cached emails to auth accounts in bulk, then deletes them."""

    def __init__(
        self,
        auth: AuthProvider,
        lookup_batch_size: int = GET_USERS_BATCH_SIZE,
        delete_batch_size: int = DELETE_USERS_BATCH_SIZE,
    ):
        self.auth = auth
        self.lookup_batch_size = lookup_batch_size
        self.delete_batch_size = delete_batch_size

    def collect_emails(self, reader: CacheReader) -> list[str]:
        """Distinct lowercased emails from the cached ``u/`` profiles."""
        reader.ensure_exists()
        directory = reader.source_dir / "u"
        if not directory.is_dir():
            logger.warning("Cache folder not found", folder=str(directory))
            return []

        emails: dict[str, None] = {}
        for path in sorted(directory.glob("*.json")):
            try:
                data = reader.read_json(path)
            except (OSError, ValueError) as e:
                logger.debug("Skipping unreadable cache file", file=path.name, error=str(e))
                continue
            profile = data.get(PROFILE_KEY) if isinstance(data, dict) else None
            email = profile.get("email") if isinstance(profile, dict) else None
            if isinstance(email, str) and email.strip():
                emails[email.strip().lower()] = None
        return list(emails)

    async def resolve_uids(
        self,
        emails: list[str],
        sink: ErrorSink,
        summary: ResetSummary,
    ) -> list[str]:
        """Bulk-resolve emails, falling back to single lookups for a failed batch."""
        uids: list[str] = []

        for start in range(0, len(emails), self.lookup_batch_size):
            batch = emails[start:start + self.lookup_batch_size]
            try:
                result = await self.auth.get_many(batch)
            except Exception as e:
                logger.warning(
                    "Bulk lookup failed, retrying one by one",
                    batch_size=len(batch),
                    error=str(e),
                )
                for email in batch:
                    lookup = await self.auth.get_by_email(email)
                    if lookup.status == LookupStatus.FOUND and lookup.value:
                        uids.append(lookup.value.uid)
                        summary.found += 1
                    elif lookup.status == LookupStatus.NOT_FOUND:
                        summary.not_found += 1
                    else:
                        summary.errors += 1
                        sink.record(
                            ErrorCategory.AUTH_DELETE,
                            email,
                            lookup.error or "lookup failed",
                            {"email": email},
                        )
                continue

            uids.extend(identity.uid for identity in result.found)
            summary.found += len(result.found)
            summary.not_found += len(result.not_found)
            logger.info(
                "Resolved emails",
                processed=summary.found + summary.not_found + summary.errors,
                total=len(emails),
            )

        return uids

    async def run(
        self,
        source_dir: str | Path,
        progress: Optional[Callable[[int, int], None]] = None,
    ) -> ResetSummary:
        """Delete every auth account whose email appears in the cache.

        Args:
            source_dir: Cache root
            progress: Called with (deleted so far, accounts to delete)
        """
        reader = CacheReader(source_dir)
        reader.ensure_exists()
        sink = ErrorSink(source_dir)
        sink.clear(ErrorCategory.AUTH_DELETE)

        summary = ResetSummary()
        emails = self.collect_emails(reader)
        summary.emails = len(emails)
        logger.info("Collected cached emails", count=len(emails))

        uids = await self.resolve_uids(emails, sink, summary)

        for start in range(0, len(uids), self.delete_batch_size):
            batch = uids[start:start + self.delete_batch_size]
            deleted = await self.auth.delete_many(batch)
            summary.deleted += deleted
            logger.info(
                "Deleted auth accounts",
                batch=start // self.delete_batch_size + 1,
                deleted=deleted,
            )
            if progress:
                progress(summary.deleted, len(uids))

        return summary
