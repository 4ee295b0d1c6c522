"""Schema validation for cached documents."""

from migrator.validation.validator import (
    DEFAULT_EXCLUSIONS,
    EXCLUDED_CAS,
    CachedPlaylist,
    CachedPlaylistItem,
    CachedUserProfile,
    FieldIssue,
    Validation,
    ValidationFailure,
    ValidationStatus,
    build_exclusion_set,
    is_deleted_marker,
    is_excluded,
    validate_playlist_document,
    validate_user_document,
)

__all__ = [
    "DEFAULT_EXCLUSIONS",
    "EXCLUDED_CAS",
    "CachedPlaylist",
    "CachedPlaylistItem",
    "CachedUserProfile",
    "FieldIssue",
    "Validation",
    "ValidationFailure",
    "ValidationStatus",
    "build_exclusion_set",
    "is_deleted_marker",
    "is_excluded",
    "validate_playlist_document",
    "validate_user_document",
]
