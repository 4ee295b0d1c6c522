"""Validates raw cached documents into typed records."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, Iterable, Optional, TypeVar

from pydantic import ValidationError

from migrator.exceptions import MigratorError
from migrator.validation.schemas import (
    PROFILE_KEY,
    CachedUserProfile,
    PlaylistDocument,
    UserDocument,
)

RecordT = TypeVar("RecordT")

# Known-bad source revisions that are rejected before structural validation
EXCLUDED_CAS: tuple[int, ...] = (
    1566300870055755800,
    1687279660005064700,
    1673036801239613400,
    1593720804749148200,
    1672946638568226800,
)


@dataclass
class CachedPlaylistItem:
    """A validated playlist item. Order is its index in the source list."""

    order: int
    created_at: datetime
    media_component_id: str
    language_id: int
    type: Optional[str] = None


@dataclass
class CachedPlaylist:
    """A validated playlist. The id is the cache file stem."""

    id: str
    name: str
    display_name: str
    note: str
    note_modified_at: datetime
    owner: str
    items: list[CachedPlaylistItem]
    created_at: datetime
    updated_at: datetime
    cas: int


@dataclass
class FieldIssue:
    """One violated constraint."""

    loc: str
    message: str
    type: str

    def to_dict(self) -> dict[str, str]:
        return {"loc": self.loc, "message": self.message, "type": self.type}


class ValidationFailure(MigratorError):
    """A document violated its schema. Lists every issue, not just the first."""

    def __init__(self, issues: list[FieldIssue]):
        self.issues = issues
        summary = "; ".join(f"{i.loc}: {i.message}" for i in issues[:5])
        if len(issues) > 5:
            summary += f"; and {len(issues) - 5} more"
        super().__init__(f"{len(issues)} validation error(s): {summary}")

    @property
    def details(self) -> list[dict[str, str]]:
        return [issue.to_dict() for issue in self.issues]

    @classmethod
    def from_pydantic(cls, error: ValidationError) -> "ValidationFailure":
        issues = [
            FieldIssue(
                loc=".".join(str(part) for part in err["loc"]) or "<root>",
                message=err["msg"],
                type=err["type"],
            )
            for err in error.errors()
        ]
        return cls(issues)


class ValidationStatus(str, Enum):
    """Outcome of validating one document."""

    VALID = "valid"
    INVALID = "invalid"
    EXCLUDED = "excluded"
    DELETED = "deleted"


@dataclass
class Validation(Generic[RecordT]):
    """Either a typed record, a failure, or a skip marker."""

    status: ValidationStatus
    record: Optional[RecordT] = None
    failure: Optional[ValidationFailure] = None
    cas: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status == ValidationStatus.VALID


def build_exclusion_set(extra: Iterable[int] = ()) -> frozenset[float]:
    """Built-in excluded revisions plus configured ones, at double precision."""
    return frozenset(float(cas) for cas in (*EXCLUDED_CAS, *extra))


DEFAULT_EXCLUSIONS = build_exclusion_set()


def _raw_cas(raw: Any) -> Optional[int]:
    if isinstance(raw, dict):
        cas = raw.get("cas")
        if isinstance(cas, int) and not isinstance(cas, bool):
            return cas
    return None


def is_excluded(raw: Any, exclusions: frozenset[float] = DEFAULT_EXCLUSIONS) -> bool:
    """Check the document's cas against the exclusion set.

    Recorded values went through a double, so the comparison does too.
    """
    cas = _raw_cas(raw)
    return cas is not None and float(cas) in exclusions


def is_deleted_marker(raw: Any) -> bool:
    """A playlist tombstone carries ``JFM-profiles._deleted == true``."""
    if not isinstance(raw, dict):
        return False
    profile = raw.get(PROFILE_KEY)
    return isinstance(profile, dict) and profile.get("_deleted") is True


def validate_user_document(
    raw: Any,
    exclusions: frozenset[float] = DEFAULT_EXCLUSIONS,
) -> Validation[CachedUserProfile]:
    """Validate a cached user document."""
    if is_excluded(raw, exclusions):
        return Validation(status=ValidationStatus.EXCLUDED, cas=_raw_cas(raw))

    try:
        document = UserDocument.model_validate(raw)
    except ValidationError as e:
        return Validation(
            status=ValidationStatus.INVALID,
            failure=ValidationFailure.from_pydantic(e),
            cas=_raw_cas(raw),
        )

    record = document.profile
    record.cas = document.cas
    return Validation(status=ValidationStatus.VALID, record=record, cas=document.cas)


def validate_playlist_document(
    raw: Any,
    playlist_id: str,
    exclusions: frozenset[float] = DEFAULT_EXCLUSIONS,
    now: Optional[datetime] = None,
) -> Validation[CachedPlaylist]:
    """Validate a cached playlist document.

    Args:
        raw: Parsed JSON document
        playlist_id: The cache file stem
        exclusions: Excluded cas values
        now: Fallback for missing timestamps
    """
    if is_deleted_marker(raw):
        return Validation(status=ValidationStatus.DELETED, cas=_raw_cas(raw))

    if is_excluded(raw, exclusions):
        return Validation(status=ValidationStatus.EXCLUDED, cas=_raw_cas(raw))

    try:
        document = PlaylistDocument.model_validate(raw)
    except ValidationError as e:
        return Validation(
            status=ValidationStatus.INVALID,
            failure=ValidationFailure.from_pydantic(e),
            cas=_raw_cas(raw),
        )

    now = now or datetime.now(timezone.utc)
    profile = document.profile
    name = profile.name or ""

    items = [
        CachedPlaylistItem(
            order=index,
            created_at=item.created_at,
            media_component_id=item.media_component_id,
            language_id=item.language_id,
            type=item.type,
        )
        for index, item in enumerate(profile.items or [])
    ]

    record = CachedPlaylist(
        id=playlist_id,
        name=name,
        display_name=profile.display_name or name,
        note=profile.note or "",
        note_modified_at=profile.note_modified_at or profile.created_at or now,
        owner=profile.owner,
        items=items,
        created_at=profile.created_at or now,
        updated_at=profile.updated_at or now,
        cas=document.cas,
    )
    return Validation(status=ValidationStatus.VALID, record=record, cas=document.cas)
