"""Pydantic schemas for cached source documents.

Documents are stored as ``{"cas": <int>, "JFM-profiles": {...}}``. All
schemas are strict: a string is never coerced into a number or the reverse.
"""

from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    StrictFloat,
    StrictInt,
    field_validator,
)

Number = Union[StrictInt, StrictFloat]

PROFILE_KEY = "JFM-profiles"


class StrictModel(BaseModel):
    """Base for document schemas."""

    model_config = ConfigDict(strict=True, populate_by_name=True, extra="ignore")


class SyncHistory(StrictModel):
    """Revision history from the sync gateway."""

    revs: list[str]
    parents: list[Number]
    channels: list[Optional[list[str]]]


class SyncData(StrictModel):
    """Sync gateway metadata. Carried through, never interpreted."""

    rev: str
    sequence: Number
    recent_sequences: list[Number]
    history: SyncHistory
    channels: Optional[dict[str, Optional[dict]]] = None
    access: Optional[dict[str, dict[str, Number]]] = None
    time_saved: str


class CachedUserProfile(StrictModel):
    """A cached user profile (``type == "profile"``).

    ``cas`` is copied from the document envelope after validation.
    """

    sync: SyncData = Field(..., alias="_sync")
    created_at: str = Field(..., alias="createdAt")
    email: EmailStr
    home_country: Optional[str] = Field(None, alias="homeCountry")
    first_name: str = Field(..., alias="nameFirst")
    last_name: str = Field(..., alias="nameLast")
    notification_countries: list[str] = Field(default_factory=list, alias="notificationCountries")
    owner: str = Field(..., min_length=1)
    gr_person_id: Optional[str] = Field(None, alias="theKeyGrPersonId")
    key_guid: str = Field(..., alias="theKeyGuid")
    relay_guid: str = Field(..., alias="theKeyRelayGuid")
    sso_guid: str = Field(..., alias="theKeySsoGuid", min_length=1)
    type: Literal["profile"]
    updated_at: str = Field(..., alias="updatedAt")
    cas: StrictInt = 0

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("sso_guid")
    @classmethod
    def sso_guid_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("SSO GUID must not be blank")
        return value


class UserDocument(StrictModel):
    """Envelope of a cached user document."""

    cas: StrictInt
    profile: CachedUserProfile = Field(..., alias=PROFILE_KEY)


class PlaylistItemSchema(StrictModel):
    """One entry of a cached playlist."""

    created_at: datetime = Field(..., alias="createdAt", strict=False)
    language_id: StrictInt = Field(..., alias="languageId")
    media_component_id: str = Field(..., alias="mediaComponentId")
    type: Optional[str] = None


class PlaylistProfileSchema(StrictModel):
    """A cached playlist (``type == "playlist"``)."""

    sync: SyncData = Field(..., alias="_sync")
    created_at: Optional[datetime] = Field(None, alias="createdAt", strict=False)
    note: Optional[str] = ""
    note_modified_at: Optional[datetime] = Field(None, alias="noteModifiedAt", strict=False)
    owner: str = Field(..., min_length=1)
    display_name: Optional[str] = Field(None, alias="playlistByDisplayName")
    items: Optional[list[PlaylistItemSchema]] = Field(default_factory=list, alias="playlistItems")
    name: Optional[str] = Field(None, alias="playlistName")
    type: Literal["playlist"]
    updated_at: Optional[datetime] = Field(None, alias="updatedAt", strict=False)


class PlaylistDocument(StrictModel):
    """Envelope of a cached playlist document."""

    cas: StrictInt
    profile: PlaylistProfileSchema = Field(..., alias=PROFILE_KEY)
