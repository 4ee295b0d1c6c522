"""Per-unit outcomes and per-run summaries."""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from migrator.exceptions import OwnerNotFoundError
from migrator.validation import CachedPlaylist, CachedPlaylistItem


class OutcomeStatus(str, Enum):
    """Outcome of one unit of work."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


class SkipReason(str, Enum):
    """Why a unit was skipped."""

    ALREADY_EXISTS = "already-exists"
    DRY_RUN = "dry-run"
    DELETED_MARKER = "deleted-marker"
    INVALID = "invalid"


@dataclass
class IngestionOutcome:
    """Success(entity), Skipped(reason) or Error(cause, payload)."""

    unit_id: str
    status: OutcomeStatus
    entity: Any = None
    reason: Optional[SkipReason] = None
    error: Optional[BaseException] = None
    payload: Any = None

    @classmethod
    def success(cls, unit_id: str, entity: Any) -> "IngestionOutcome":
        return cls(unit_id=unit_id, status=OutcomeStatus.SUCCESS, entity=entity)

    @classmethod
    def skipped(
        cls,
        unit_id: str,
        reason: SkipReason,
        entity: Any = None,
    ) -> "IngestionOutcome":
        return cls(unit_id=unit_id, status=OutcomeStatus.SKIPPED, reason=reason, entity=entity)

    @classmethod
    def failed(
        cls,
        unit_id: str,
        error: BaseException,
        payload: Any = None,
    ) -> "IngestionOutcome":
        return cls(unit_id=unit_id, status=OutcomeStatus.ERROR, error=error, payload=payload)


@dataclass
class PlaylistResult:
    """A reconciled (or dry-run) playlist with its per-item outcomes."""

    playlist: CachedPlaylist
    slug: Optional[str] = None
    created: bool = False
    saved_items: list[CachedPlaylistItem] = field(default_factory=list)
    skipped_items: list[CachedPlaylistItem] = field(default_factory=list)


@dataclass
class PlaylistAnalysis:
    """Item-level statistics for a playlist run."""

    total_items: int = 0
    saved_items: int = 0
    skipped_items: int = 0
    not_processed_items: int = 0
    video_variants_not_found: int = 0
    unique_media_components: int = 0
    language_distribution: dict[int, int] = field(default_factory=dict)
    average_items_per_playlist: float = 0.0

    def top_languages(self, limit: int = 5) -> list[tuple[int, int]]:
        return Counter(self.language_distribution).most_common(limit)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_items": self.total_items,
            "saved_items": self.saved_items,
            "skipped_items": self.skipped_items,
            "not_processed_items": self.not_processed_items,
            "video_variants_not_found": self.video_variants_not_found,
            "unique_media_components": self.unique_media_components,
            "language_distribution": {str(k): v for k, v in self.language_distribution.items()},
            "average_items_per_playlist": round(self.average_items_per_playlist, 2),
        }

    @classmethod
    def from_outcomes(cls, outcomes: list[IngestionOutcome]) -> "PlaylistAnalysis":
        """Aggregate playlist outcomes. Deleted markers contribute nothing."""
        results = [o.entity for o in outcomes if isinstance(o.entity, PlaylistResult)]

        media_components: set[str] = set()
        missing_variants: set[str] = set()
        languages: Counter[int] = Counter()
        analysis = cls()

        for result in results:
            analysis.total_items += len(result.playlist.items)
            analysis.saved_items += len(result.saved_items)
            analysis.skipped_items += len(result.skipped_items)
            for item in result.skipped_items:
                missing_variants.add(f"{item.media_component_id}-{item.language_id}")
            for item in result.playlist.items:
                media_components.add(item.media_component_id)
                languages[item.language_id] += 1

        for outcome in outcomes:
            if isinstance(outcome.error, OwnerNotFoundError) and isinstance(
                outcome.payload, CachedPlaylist
            ):
                analysis.not_processed_items += len(outcome.payload.items)

        analysis.video_variants_not_found = len(missing_variants)
        analysis.unique_media_components = len(media_components)
        analysis.language_distribution = dict(languages)
        analysis.average_items_per_playlist = (
            analysis.total_items / len(results) if results else 0.0
        )
        return analysis


@dataclass
class IngestionSummary:
    """Aggregate result of one category run."""

    category: str
    total_files: int = 0
    success_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    skipped_by_reason: dict[str, int] = field(default_factory=dict)
    analysis: Optional[PlaylistAnalysis] = None
    outcomes: list[IngestionOutcome] = field(default_factory=list, repr=False)

    @classmethod
    def from_outcomes(
        cls,
        category: str,
        total_files: int,
        outcomes: list[IngestionOutcome],
    ) -> "IngestionSummary":
        skipped = Counter(
            o.reason.value for o in outcomes if o.status == OutcomeStatus.SKIPPED and o.reason
        )
        summary = cls(
            category=category,
            total_files=total_files,
            success_count=sum(1 for o in outcomes if o.status == OutcomeStatus.SUCCESS),
            skipped_count=sum(skipped.values()),
            error_count=sum(1 for o in outcomes if o.status == OutcomeStatus.ERROR),
            skipped_by_reason=dict(skipped),
            outcomes=outcomes,
        )
        if category == "playlists":
            summary.analysis = PlaylistAnalysis.from_outcomes(outcomes)
        return summary

    def skipped_for(self, reason: SkipReason) -> int:
        return self.skipped_by_reason.get(reason.value, 0)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data: dict[str, Any] = {
            "category": self.category,
            "total_files": self.total_files,
            "success_count": self.success_count,
            "skipped_count": self.skipped_count,
            "error_count": self.error_count,
            "skipped_by_reason": dict(self.skipped_by_reason),
        }
        if self.analysis:
            data["analysis"] = self.analysis.to_dict()
        return data
