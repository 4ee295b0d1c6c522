"""Repository for IngestionRun data access."""

from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import select

from migrator.models.local import IngestionRun, RunStatus
from migrator.repositories.base import BaseRepository


class IngestionRunRepository(BaseRepository[IngestionRun]):
    """Repository for ingestion run operations."""

    model_class = IngestionRun

    async def get_recent(
        self,
        limit: int = 20,
        category: Optional[str] = None,
    ) -> Sequence[IngestionRun]:
        """Get recent ingestion runs."""
        stmt = select(IngestionRun).order_by(IngestionRun.started_at.desc())

        if category:
            stmt = stmt.where(IngestionRun.category == category)

        stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def start_run(
        self,
        category: str,
        source_dir: str,
        dry_run: bool = False,
        options: Optional[dict] = None,
    ) -> IngestionRun:
        """Create a new running ingestion run."""
        run = IngestionRun(
            category=category,
            source_dir=source_dir,
            dry_run=dry_run,
            status=RunStatus.RUNNING.value,
            started_at=datetime.now(timezone.utc),
            options=options or {},
            stats={},
        )
        self.session.add(run)
        await self.session.flush()
        return run

    async def complete_run(
        self,
        run: IngestionRun,
        stats: Optional[dict] = None,
    ) -> IngestionRun:
        """Mark run as completed."""
        run.status = RunStatus.COMPLETED.value
        run.completed_at = datetime.now(timezone.utc)
        if stats:
            run.stats = stats
        await self.session.flush()
        return run

    async def fail_run(
        self,
        run: IngestionRun,
        error_message: str,
    ) -> IngestionRun:
        """Mark run as failed."""
        run.status = RunStatus.FAILED.value
        run.completed_at = datetime.now(timezone.utc)
        run.error_message = error_message
        await self.session.flush()
        return run
