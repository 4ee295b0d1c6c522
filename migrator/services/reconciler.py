"""Upserts resolved users and validated playlists into the Core store."""

import secrets
import string
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from migrator.error_sink import ErrorCategory, ErrorSink
from migrator.exceptions import MigratorError, OwnerNotFoundError, SlugGenerationError
from migrator.logging_config import get_logger
from migrator.models import CoreUser, LocalIdentityMapping, new_id
from migrator.repositories import (
    CoreUserRepository,
    IdentityMappingRepository,
    PlaylistItemRepository,
    PlaylistRepository,
    VideoVariantRepository,
)
from migrator.services.identity import IdentitySource, ResolvedIdentity
from migrator.services.outcomes import PlaylistResult
from migrator.validation import CachedPlaylist, CachedPlaylistItem

logger = get_logger(__name__)

SLUG_ALPHABET = string.ascii_lowercase + string.digits


class VideoVariantNotFoundError(MigratorError):
    """No catalog entry for a playlist item's (language, media component)."""

    def __init__(self, media_component_id: str, language_id: int):
        self.media_component_id = media_component_id
        self.language_id = language_id
        super().__init__(
            f"VideoVariant not found for mediaComponentId: {media_component_id} "
            f"(languageId {language_id})"
        )


def split_display_name(display_name: Optional[str]) -> tuple[str, str]:
    """First and second whitespace-separated tokens of a display name."""
    parts = (display_name or "").split(" ")
    first = parts[0] if parts else ""
    last = parts[1] if len(parts) > 1 else ""
    return first, last


def random_slug(length: int = 6) -> str:
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(length))


def item_artifact_id(playlist_id: str, item: CachedPlaylistItem) -> str:
    return f"{playlist_id}-{item.order}-{item.media_component_id}.json"


async def generate_unique_slug(
    slug_exists: Callable[[str], Awaitable[bool]],
    length: int = 6,
    max_attempts: int = 10,
    generate: Callable[[int], str] = random_slug,
) -> str:
    """Generate a slug not yet in the store.

    Raises:
        SlugGenerationError: Every attempt collided
    """
    for _ in range(max_attempts):
        slug = generate(length)
        if not await slug_exists(slug):
            return slug
    raise SlugGenerationError(max_attempts)


@dataclass
class UserReconciliation:
    """Result of reconciling one resolved identity."""

    mapping: Optional[LocalIdentityMapping] = None
    core_user: Optional[CoreUser] = None
    core_user_created: bool = False
    mapping_created: bool = False


class UserReconciler:
    """Writes the Core user and the local identity mapping."""

    def __init__(
        self,
        core_sessions: async_sessionmaker[AsyncSession],
        local_sessions: async_sessionmaker[AsyncSession],
    ):
        self.core_sessions = core_sessions
        self.local_sessions = local_sessions

    async def reconcile(
        self,
        identity: ResolvedIdentity,
        dry_run: bool = False,
    ) -> UserReconciliation:
        """Reuse or create the Core user, then insert the mapping.

        LOCAL identities are returned as-is. Existing Core users are reused
        without field updates. The mapping is a plain insert, so a racing
        duplicate raises IntegrityError.
        """
        if identity.source == IdentitySource.LOCAL:
            return UserReconciliation(mapping=identity.mapping)

        account = identity.auth_identity
        email = ((account.email if account else None) or identity.primary_email or "").lower()
        if not email:
            raise MigratorError(f"Auth account has no email for {identity.profile.email}")

        async with self.core_sessions() as session:
            repo = CoreUserRepository(session)
            core_user = await repo.get_by_email(email)

            if dry_run or account is None:
                return UserReconciliation(core_user=core_user)

            created = False
            if core_user is None:
                first_name, last_name = split_display_name(account.display_name)
                core_user = await repo.create(
                    CoreUser(
                        id=new_id(),
                        user_id=account.uid,
                        first_name=first_name,
                        last_name=last_name,
                        email=email,
                        email_verified=account.email_verified,
                        super_admin=False,
                    )
                )
                await session.commit()
                created = True
                logger.info("Created Core user", email=email, core_id=core_user.id)

        async with self.local_sessions() as session:
            mapping = LocalIdentityMapping(
                owner_id=identity.profile.owner,
                email=email,
                sso_guid=identity.sso_guid,
                core_id=core_user.id,
                is_secondary_account=identity.is_secondary_account,
                firebase_user_id=account.uid,
            )
            session.add(mapping)
            await session.commit()

        logger.info("Saved identity mapping", owner_id=mapping.owner_id, email=email)
        return UserReconciliation(
            mapping=mapping,
            core_user=core_user,
            core_user_created=created,
            mapping_created=True,
        )


class PlaylistReconciler:
    """Upserts playlist headers and their items."""

    def __init__(
        self,
        core_sessions: async_sessionmaker[AsyncSession],
        local_sessions: async_sessionmaker[AsyncSession],
        sink: ErrorSink,
        slug_length: int = 6,
        slug_max_attempts: int = 10,
        slug_generator: Callable[[int], str] = random_slug,
    ):
        self.core_sessions = core_sessions
        self.local_sessions = local_sessions
        self.sink = sink
        self.slug_length = slug_length
        self.slug_max_attempts = slug_max_attempts
        self.slug_generator = slug_generator

    async def reconcile(
        self,
        playlist: CachedPlaylist,
        dry_run: bool = False,
    ) -> PlaylistResult:
        """Reconcile one playlist.

        Raises:
            OwnerNotFoundError: Owner has no local mapping; nothing is written
            SlugGenerationError: No free slug for a new playlist
        """
        async with self.local_sessions() as session:
            owner = await IdentityMappingRepository(session).get_by_owner_id(playlist.owner)
        if owner is None:
            raise OwnerNotFoundError(playlist.owner, playlist.id)

        result = PlaylistResult(playlist=playlist)

        async with self.core_sessions() as session:
            playlists = PlaylistRepository(session)
            existing = await playlists.get_by_id(playlist.id)

            if existing is not None:
                result.slug = existing.slug
            elif not dry_run:
                result.slug = await generate_unique_slug(
                    playlists.slug_exists,
                    length=self.slug_length,
                    max_attempts=self.slug_max_attempts,
                    generate=self.slug_generator,
                )

            if not dry_run:
                _, result.created = await playlists.upsert(
                    playlist.id,
                    name=playlist.name,
                    note=playlist.note,
                    note_updated_at=playlist.note_modified_at,
                    owner_id=owner.core_id,
                    slug=result.slug or "",
                    created_at=playlist.created_at,
                    updated_at=playlist.updated_at,
                )
                await session.commit()

            for item in playlist.items:
                if await self._reconcile_item(session, playlist, item, dry_run):
                    result.saved_items.append(item)
                else:
                    result.skipped_items.append(item)

        logger.info(
            "Reconciled playlist",
            playlist_id=playlist.id,
            saved=len(result.saved_items),
            skipped=len(result.skipped_items),
            dry_run=dry_run,
        )
        return result

    async def _reconcile_item(
        self,
        session: AsyncSession,
        playlist: CachedPlaylist,
        item: CachedPlaylistItem,
        dry_run: bool,
    ) -> bool:
        """Upsert one item. Failures are recorded and reported as skipped."""
        try:
            variant = await VideoVariantRepository(session).get_by_language_and_video(
                str(item.language_id),
                item.media_component_id,
            )
            if variant is None:
                raise VideoVariantNotFoundError(item.media_component_id, item.language_id)

            if not dry_run:
                await PlaylistItemRepository(session).upsert(
                    playlist.id,
                    item.order,
                    variant.id,
                    item.created_at,
                )
                await session.commit()
            return True

        except Exception as e:
            await session.rollback()
            if isinstance(e, VideoVariantNotFoundError):
                logger.warning(str(e), playlist_id=playlist.id, order=item.order)
            else:
                logger.error(
                    "Error saving playlist item",
                    playlist_id=playlist.id,
                    order=item.order,
                    media_component_id=item.media_component_id,
                    error=str(e),
                )
            self.sink.record(
                ErrorCategory.PLAYLIST_ITEMS,
                item_artifact_id(playlist.id, item),
                e,
                {"playlistId": playlist.id, "playlistName": playlist.name, "item": item},
            )
            return False
