"""Business logic services."""

from migrator.services.cache_builder import CacheBuilder, CacheBuildSummary
from migrator.services.identity import (
    IdentityResolver,
    IdentitySource,
    Rejected,
    RejectReason,
    ResolvedIdentity,
)
from migrator.services.orchestrator import CATEGORIES, BatchOrchestrator, RunOptions
from migrator.services.outcomes import (
    IngestionOutcome,
    IngestionSummary,
    OutcomeStatus,
    PlaylistAnalysis,
    PlaylistResult,
    SkipReason,
)
from migrator.services.pipelines import Pipeline, PlaylistPipeline, UserPipeline
from migrator.services.reconciler import (
    PlaylistReconciler,
    UserReconciler,
    VideoVariantNotFoundError,
    generate_unique_slug,
)
from migrator.services.recovery import PlaylistItemRecovery, RecoverySummary
from migrator.services.reset import AuthResetService, ResetSummary

__all__ = [
    "AuthResetService",
    "BatchOrchestrator",
    "CATEGORIES",
    "CacheBuildSummary",
    "CacheBuilder",
    "IdentityResolver",
    "IdentitySource",
    "IngestionOutcome",
    "IngestionSummary",
    "OutcomeStatus",
    "Pipeline",
    "PlaylistAnalysis",
    "PlaylistItemRecovery",
    "PlaylistPipeline",
    "PlaylistReconciler",
    "PlaylistResult",
    "RecoverySummary",
    "RejectReason",
    "Rejected",
    "ResetSummary",
    "ResolvedIdentity",
    "RunOptions",
    "SkipReason",
    "UserPipeline",
    "UserReconciler",
    "VideoVariantNotFoundError",
    "generate_unique_slug",
]
