"""Tables in the local mapping store."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from migrator.database import LocalBase
from migrator.models.base import JSONType, TextIdMixin


class LocalIdentityMapping(LocalBase):
    """Links a source-system owner id to its SSO identity and Core user.

    A row keyed by ssoGuid marks the user as fully reconciled. Rows are
    inserted once and never updated; every identifier column is unique so a
    concurrent duplicate insert fails instead of silently duplicating.
    """

    __tablename__ = "User"
    __table_args__ = (
        Index("User_email_idx", "email"),
        Index("User_ssoGuid_idx", "ssoGuid"),
        Index("User_coreId_idx", "coreId"),
    )

    owner_id: Mapped[str] = mapped_column("ownerId", String, primary_key=True)
    email: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    sso_guid: Mapped[str] = mapped_column("ssoGuid", String, unique=True, nullable=False)
    core_id: Mapped[str] = mapped_column("coreId", String, unique=True, nullable=False)
    is_secondary_account: Mapped[bool] = mapped_column(
        "isSecondaryAccount", Boolean, nullable=False, default=False, server_default="0"
    )
    firebase_user_id: Mapped[Optional[str]] = mapped_column(
        "firebaseUserId", String, unique=True, nullable=True
    )

    def __repr__(self) -> str:
        return f"<LocalIdentityMapping owner={self.owner_id} email={self.email}>"


class RunStatus(str, Enum):
    """Status of an ingestion run."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class IngestionRun(TextIdMixin, LocalBase):
    """Audit log of ingestion runs."""

    __tablename__ = "ingestion_runs"

    category: Mapped[str] = mapped_column(String(50), nullable=False)
    source_dir: Mapped[str] = mapped_column(Text, nullable=False)
    dry_run: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Status tracking
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RunStatus.RUNNING.value
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Statistics and options
    stats: Mapped[dict] = mapped_column(JSONType(), default=dict, nullable=False)
    options: Mapped[dict] = mapped_column(JSONType(), default=dict, nullable=False)

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get run duration in seconds."""
        if not (self.completed_at and self.started_at):
            return None
        started, completed = self.started_at, self.completed_at
        # SQLite hands timestamps back without tzinfo
        if (started.tzinfo is None) != (completed.tzinfo is None):
            started = started.replace(tzinfo=None)
            completed = completed.replace(tzinfo=None)
        return (completed - started).total_seconds()

    @property
    def is_complete(self) -> bool:
        return self.status == RunStatus.COMPLETED.value

    @property
    def is_failed(self) -> bool:
        return self.status == RunStatus.FAILED.value
