"""Pytest configuration and fixtures."""

import json
import re
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any, Optional, Sequence
from urllib.parse import unquote

import httpx
import pytest
import pytest_asyncio

from migrator.clients import Clients, CredentialPool
from migrator.clients.auth_provider import AuthIdentity, AuthProvider, BulkLookup, Lookup
from migrator.clients.directory import DirectoryClient
from migrator.config import Settings
from migrator.database import CoreBase, Stores, create_stores, init_db
from migrator.models import CoreUser, LocalIdentityMapping, VideoVariant

TEST_TOKENS = ["token-a", "token-b"]
DIRECTORY_URL = "https://directory.test"
PROVIDER_ID = "oidc.okta"

_GUID_FILTER = re.compile(r'profile\.theKeyGuid eq "(?P<guid>[^"]*)"')


def get_test_settings(tmp_path: Path, **overrides: Any) -> Settings:
    """Settings pointing both stores at throwaway SQLite files."""
    values: dict[str, Any] = {
        "local_database_url": f"sqlite+aiosqlite:///{tmp_path / 'local.db'}",
        "core_database_url": f"sqlite+aiosqlite:///{tmp_path / 'core.db'}",
        "okta_base_url": DIRECTORY_URL,
        "okta_tokens": TEST_TOKENS,
        "okta_reset_buffer": 1.0,
        "google_application_json": None,
        "federated_provider_id": PROVIDER_ID,
        "cache_dir": str(tmp_path / "cache"),
        "environment": "test",
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


# ---------------------------------------------------------------------------
# Cached document builders
# ---------------------------------------------------------------------------


def sync_block() -> dict[str, Any]:
    return {
        "rev": "1-6b6b",
        "sequence": 12,
        "recent_sequences": [12],
        "history": {"revs": ["1-6b6b"], "parents": [-1], "channels": [None]},
        "time_saved": "2020-05-01T10:00:00.000Z",
    }


def user_document(
    owner: str,
    sso_guid: str,
    email: str,
    cas: int = 1600000000000000000,
    **profile: Any,
) -> dict[str, Any]:
    body = {
        "_sync": sync_block(),
        "createdAt": "2020-05-01T10:00:00.000Z",
        "email": email,
        "homeCountry": "US",
        "nameFirst": "Ada",
        "nameLast": "Lovelace",
        "notificationCountries": [],
        "owner": owner,
        "theKeyGrPersonId": f"gr-{owner}",
        "theKeyGuid": sso_guid,
        "theKeyRelayGuid": sso_guid,
        "theKeySsoGuid": sso_guid,
        "type": "profile",
        "updatedAt": "2020-05-02T10:00:00.000Z",
    }
    body.update(profile)
    return {"cas": cas, "JFM-profiles": body}


def playlist_item(
    media_component_id: str,
    language_id: int = 529,
    created_at: str = "2021-03-01T10:00:00.000Z",
) -> dict[str, Any]:
    return {
        "createdAt": created_at,
        "languageId": language_id,
        "mediaComponentId": media_component_id,
        "type": "video",
    }


def playlist_document(
    owner: str,
    items: Sequence[dict[str, Any]] = (),
    name: str = "Favourites",
    cas: int = 1600000000000000001,
    **profile: Any,
) -> dict[str, Any]:
    body = {
        "_sync": sync_block(),
        "createdAt": "2021-03-01T09:00:00.000Z",
        "note": "",
        "owner": owner,
        "playlistByDisplayName": name,
        "playlistItems": list(items),
        "playlistName": name,
        "type": "playlist",
        "updatedAt": "2021-03-02T09:00:00.000Z",
    }
    body.update(profile)
    return {"cas": cas, "JFM-profiles": body}


def deleted_playlist_document(cas: int = 1600000000000000002) -> dict[str, Any]:
    return {"cas": cas, "JFM-profiles": {"_deleted": True, "_sync": sync_block()}}


def write_cached(root: Path, folder: str, name: str, document: Any) -> Path:
    """Write a document into the cache layout and return its path."""
    directory = root / folder
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{name}.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


def directory_user(
    sso_guid: str,
    email: Optional[str],
    record_id: Optional[str] = None,
    email_status: str = "VERIFIED",
) -> dict[str, Any]:
    emails = [{"type": "PRIMARY", "status": email_status, "value": email}] if email else []
    return {
        "id": record_id or f"00u{sso_guid}",
        "status": "ACTIVE",
        "profile": {"firstName": "Ada", "lastName": "Lovelace", "theKeyGuid": sso_guid},
        "credentials": {"emails": emails},
    }


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeAuthProvider(AuthProvider):
    """In-memory auth provider keyed by lowercased email."""

    def __init__(self) -> None:
        self.accounts: dict[str, AuthIdentity] = {}
        self.created: list[str] = []
        self.linked: list[tuple[str, str, str]] = []
        self.deleted: list[str] = []
        self.failing_emails: set[str] = set()
        self.fail_bulk = False
        self._next_uid = 0

    def add(self, email: str, providers: Optional[dict[str, str]] = None) -> AuthIdentity:
        self._next_uid += 1
        account = AuthIdentity(
            uid=f"uid-{self._next_uid}",
            email=email.lower(),
            email_verified=True,
            display_name="Ada Lovelace",
            providers=dict(providers or {}),
        )
        self.accounts[account.email] = account
        return account

    async def get_by_email(self, email: str) -> Lookup[AuthIdentity]:
        if email in self.failing_emails:
            return Lookup.failed(RuntimeError(f"lookup failed for {email}"))
        account = self.accounts.get(email.lower())
        return Lookup.found(account) if account else Lookup.not_found()

    async def create(
        self,
        email: str,
        email_verified: bool,
        display_name: Optional[str],
    ) -> AuthIdentity:
        account = self.add(email)
        account.email_verified = email_verified
        account.display_name = display_name
        self.created.append(account.email or "")
        return account

    async def link_federated_provider(
        self,
        uid: str,
        provider_id: str,
        provider_uid: str,
        display_name: Optional[str],
        email: Optional[str],
    ) -> AuthIdentity:
        account = next(a for a in self.accounts.values() if a.uid == uid)
        account.providers[provider_id] = provider_uid
        self.linked.append((uid, provider_id, provider_uid))
        return account

    async def get_many(self, emails: Sequence[str]) -> BulkLookup:
        if self.fail_bulk:
            raise RuntimeError("bulk lookup unavailable")
        result = BulkLookup()
        for email in emails:
            account = self.accounts.get(email.lower())
            if account:
                result.found.append(account)
            else:
                result.not_found.append(email)
        return result

    async def delete_many(self, uids: Sequence[str]) -> int:
        wanted = set(uids)
        for email in [e for e, a in self.accounts.items() if a.uid in wanted]:
            del self.accounts[email]
        self.deleted.extend(uids)
        return len(wanted)


class FakeDirectory:
    """Directory search backend served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.users: dict[str, list[dict[str, Any]]] = {}
        self.requests: list[httpx.Request] = []
        self.responses: list[httpx.Response] = []

    def add(self, sso_guid: str, email: Optional[str], **kwargs: Any) -> None:
        self.users.setdefault(sso_guid, []).append(directory_user(sso_guid, email, **kwargs))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            return self.responses.pop(0)
        match = _GUID_FILTER.search(unquote(request.url.params.get("search", "")))
        guid = match.group("guid") if match else ""
        return httpx.Response(200, json=self.users.get(guid, []))


async def _no_sleep(delay: float) -> None:
    return None


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return get_test_settings(tmp_path)


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    path = tmp_path / "cache"
    path.mkdir()
    return path


@pytest_asyncio.fixture
async def stores(settings: Settings) -> AsyncGenerator[Stores, None]:
    """Both stores with their tables created."""
    stores = create_stores(settings)
    await init_db(stores.local_engine)
    async with stores.core_engine.begin() as conn:
        await conn.run_sync(CoreBase.metadata.create_all)

    yield stores

    await stores.dispose()


@pytest.fixture
def auth() -> FakeAuthProvider:
    return FakeAuthProvider()


@pytest.fixture
def fake_directory() -> FakeDirectory:
    return FakeDirectory()


@pytest_asyncio.fixture
async def directory(settings: Settings, fake_directory: FakeDirectory) -> AsyncGenerator[DirectoryClient, None]:
    http = httpx.AsyncClient(
        base_url=DIRECTORY_URL,
        transport=httpx.MockTransport(fake_directory.handler),
    )
    client = DirectoryClient(settings, http=http, sleep=_no_sleep)
    yield client
    await client.close()


@pytest.fixture
def clients(
    settings: Settings,
    stores: Stores,
    directory: DirectoryClient,
    auth: FakeAuthProvider,
) -> Clients:
    return Clients(
        settings=settings,
        stores=stores,
        directory=directory,
        auth=auth,
        credentials=CredentialPool(settings.okta_tokens),
    )


async def seed_variant(stores: Stores, media_component_id: str, language_id: int = 529) -> VideoVariant:
    async with stores.core_sessions() as session:
        variant = VideoVariant(
            language_id=str(language_id),
            video_id=media_component_id,
            slug=f"{media_component_id}/{language_id}",
        )
        session.add(variant)
        await session.commit()
        return variant


async def seed_mapping(
    stores: Stores,
    owner_id: str,
    email: Optional[str] = None,
    core_id: Optional[str] = None,
) -> LocalIdentityMapping:
    async with stores.local_sessions() as session:
        mapping = LocalIdentityMapping(
            owner_id=owner_id,
            email=email or f"{owner_id}@example.com",
            sso_guid=f"guid-{owner_id}",
            core_id=core_id or f"core-{owner_id}",
            is_secondary_account=False,
        )
        session.add(mapping)
        await session.commit()
        return mapping


async def seed_core_user(stores: Stores, email: str, user_id: str = "uid-existing") -> CoreUser:
    async with stores.core_sessions() as session:
        user = CoreUser(user_id=user_id, first_name="Existing", last_name="User", email=email)
        session.add(user)
        await session.commit()
        return user
