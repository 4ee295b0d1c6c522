"""Core store tables touched by the migration.

Column names follow the Core schema (camelCase, quoted table names); Python
attributes are snake_case.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from migrator.database import CoreBase
from migrator.models.base import TextIdMixin, TimestampMixin


class CoreUser(TextIdMixin, CoreBase):
    """A Core user account. Unique by email and by auth provider uid."""

    __tablename__ = "User"

    user_id: Mapped[str] = mapped_column("userId", String, unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column("firstName", String, nullable=False)
    last_name: Mapped[Optional[str]] = mapped_column("lastName", String, nullable=True)
    email: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column("imageUrl", String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        "createdAt", DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    super_admin: Mapped[bool] = mapped_column(
        "superAdmin", Boolean, nullable=False, default=False
    )
    email_verified: Mapped[bool] = mapped_column(
        "emailVerified", Boolean, nullable=False, default=True
    )


class VideoVariant(TextIdMixin, CoreBase):
    """Catalog entry for a playable (language, media component) pair."""

    __tablename__ = "VideoVariant"
    __table_args__ = (
        UniqueConstraint("languageId", "videoId", name="VideoVariant_languageId_videoId_key"),
    )

    language_id: Mapped[str] = mapped_column("languageId", String, nullable=False)
    video_id: Mapped[str] = mapped_column("videoId", String, nullable=False)
    slug: Mapped[Optional[str]] = mapped_column(String, nullable=True)


class Playlist(TimestampMixin, CoreBase):
    """Playlist header. The id is the source document's owner field."""

    __tablename__ = "Playlist"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")
    note_updated_at: Mapped[Optional[datetime]] = mapped_column(
        "noteUpdatedAt", DateTime(timezone=True), nullable=True
    )
    owner_id: Mapped[str] = mapped_column("ownerId", String, nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String, unique=True, nullable=False)

    items: Mapped[list["PlaylistItem"]] = relationship(
        back_populates="playlist",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PlaylistItem.order",
    )


class PlaylistItem(TextIdMixin, TimestampMixin, CoreBase):
    """One ordered entry of a playlist. Unique by (playlistId, order)."""

    __tablename__ = "PlaylistItem"
    __table_args__ = (
        UniqueConstraint("playlistId", "order", name="PlaylistItem_playlistId_order_key"),
    )

    playlist_id: Mapped[str] = mapped_column(
        "playlistId",
        String,
        ForeignKey("Playlist.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    video_variant_id: Mapped[str] = mapped_column(
        "videoVariantId",
        String,
        ForeignKey("VideoVariant.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    order: Mapped[int] = mapped_column(Integer, nullable=False)

    playlist: Mapped["Playlist"] = relationship(back_populates="items")
    video_variant: Mapped["VideoVariant"] = relationship()
