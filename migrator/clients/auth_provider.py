"""Auth provider accounts (Firebase Authentication)."""

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, Sequence, TypeVar
from uuid import uuid4

import firebase_admin
import httpx
from firebase_admin import auth, credentials
from firebase_admin.exceptions import FirebaseError

from migrator.config import Settings
from migrator.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"

# Limits of the bulk endpoints
GET_USERS_BATCH_SIZE = 100
DELETE_USERS_BATCH_SIZE = 1000


class LookupStatus(str, Enum):
    """Result of a single-account lookup."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass
class Lookup(Generic[T]):
    """Found(value), NotFound, or Error(cause)."""

    status: LookupStatus
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @classmethod
    def found(cls, value: T) -> "Lookup[T]":
        return cls(status=LookupStatus.FOUND, value=value)

    @classmethod
    def not_found(cls) -> "Lookup[T]":
        return cls(status=LookupStatus.NOT_FOUND)

    @classmethod
    def failed(cls, error: BaseException) -> "Lookup[T]":
        return cls(status=LookupStatus.ERROR, error=error)


@dataclass
class AuthIdentity:
    """An auth provider account."""

    uid: str
    email: Optional[str]
    email_verified: bool = False
    display_name: Optional[str] = None
    # Federated provider id -> provider-side uid
    providers: dict[str, str] = field(default_factory=dict)

    def has_provider(self, provider_id: str) -> bool:
        return provider_id in self.providers


@dataclass
class BulkLookup:
    """Result of a bulk lookup by email."""

    found: list[AuthIdentity] = field(default_factory=list)
    not_found: list[str] = field(default_factory=list)


class AuthProvider(ABC):
    """Operations the migrator needs from the auth provider."""

    @abstractmethod
    async def get_by_email(self, email: str) -> Lookup[AuthIdentity]:
        pass

    @abstractmethod
    async def create(
        self,
        email: str,
        email_verified: bool,
        display_name: Optional[str],
    ) -> AuthIdentity:
        pass

    @abstractmethod
    async def link_federated_provider(
        self,
        uid: str,
        provider_id: str,
        provider_uid: str,
        display_name: Optional[str],
        email: Optional[str],
    ) -> AuthIdentity:
        """Attach a federated provider link to an existing account."""
        pass

    @abstractmethod
    async def get_many(self, emails: Sequence[str]) -> BulkLookup:
        """Look up at most 100 accounts by email."""
        pass

    @abstractmethod
    async def delete_many(self, uids: Sequence[str]) -> int:
        """Delete at most 1000 accounts. Returns the success count."""
        pass

    async def close(self) -> None:
        return None


def identity_from_record(record: Any) -> AuthIdentity:
    """Convert a firebase_admin UserRecord."""
    return AuthIdentity(
        uid=record.uid,
        email=record.email,
        email_verified=bool(record.email_verified),
        display_name=record.display_name,
        providers={info.provider_id: info.uid for info in (record.provider_data or [])},
    )


class FirebaseAuthProvider(AuthProvider):
    """Firebase Admin SDK backed provider.

    The SDK is blocking, so calls run in worker threads. Each instance owns
    a uniquely named app, deleted on close. A prebuilt ``app`` is used as is.
    """

    def __init__(
        self,
        settings: Settings,
        http: Optional[httpx.AsyncClient] = None,
        app: Optional[firebase_admin.App] = None,
    ):
        if app is None:
            if not settings.google_application_json:
                raise ValueError("GOOGLE_APPLICATION_JSON is not configured")
            service_account = json.loads(settings.google_application_json)
            app = firebase_admin.initialize_app(
                credentials.Certificate(service_account),
                name=f"migrator-{uuid4().hex}",
            )
        self.app = app
        self._http = http or httpx.AsyncClient(timeout=settings.okta_timeout)

    async def get_by_email(self, email: str) -> Lookup[AuthIdentity]:
        try:
            record = await asyncio.to_thread(auth.get_user_by_email, email, app=self.app)
        except auth.UserNotFoundError:
            return Lookup.not_found()
        except (FirebaseError, ValueError) as e:
            # ValueError is the SDK rejecting a malformed email before any request
            return Lookup.failed(e)
        return Lookup.found(identity_from_record(record))

    async def create(
        self,
        email: str,
        email_verified: bool,
        display_name: Optional[str],
    ) -> AuthIdentity:
        record = await asyncio.to_thread(
            auth.create_user,
            email=email,
            email_verified=email_verified,
            display_name=display_name or None,
            app=self.app,
        )
        logger.info("Created auth account", email=email, uid=record.uid)
        return identity_from_record(record)

    async def link_federated_provider(
        self,
        uid: str,
        provider_id: str,
        provider_uid: str,
        display_name: Optional[str],
        email: Optional[str],
    ) -> AuthIdentity:
        # The Admin SDK has no provider linking, so call the accounts:update endpoint
        token = await asyncio.to_thread(self.app.credential.get_access_token)
        body: dict[str, Any] = {
            "localId": uid,
            "linkProviderUserInfo": {
                "providerId": provider_id,
                "rawId": provider_uid,
                "displayName": display_name,
                "email": email,
            },
        }
        response = await self._http.post(
            f"{IDENTITY_TOOLKIT_URL}/projects/{self.app.project_id}/accounts:update",
            json=body,
            headers={"Authorization": f"Bearer {token.access_token}"},
        )
        response.raise_for_status()
        logger.info("Linked federated provider", uid=uid, provider_id=provider_id)

        record = await asyncio.to_thread(auth.get_user, uid, app=self.app)
        return identity_from_record(record)

    async def get_many(self, emails: Sequence[str]) -> BulkLookup:
        identifiers = [auth.EmailIdentifier(email) for email in emails]
        result = await asyncio.to_thread(auth.get_users, identifiers, app=self.app)
        return BulkLookup(
            found=[identity_from_record(record) for record in result.users],
            not_found=[identifier.email for identifier in result.not_found],
        )

    async def delete_many(self, uids: Sequence[str]) -> int:
        result = await asyncio.to_thread(auth.delete_users, list(uids), app=self.app)
        for error in result.errors:
            logger.warning("Failed to delete auth account", index=error.index, reason=error.reason)
        return result.success_count

    async def close(self) -> None:
        await self._http.aclose()
        firebase_admin.delete_app(self.app)
