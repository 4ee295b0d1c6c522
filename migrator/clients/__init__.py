"""External collaborator clients, scoped to one CLI invocation."""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from migrator.clients.auth_provider import (
    AuthIdentity,
    AuthProvider,
    BulkLookup,
    FirebaseAuthProvider,
    Lookup,
    LookupStatus,
)
from migrator.clients.credentials import CredentialPool
from migrator.clients.directory import DirectoryClient, DirectoryRecord
from migrator.config import Settings
from migrator.database import Stores, create_stores


@dataclass
class Clients:
    """Handles injected into services. Identity clients are only built for users."""

    settings: Settings
    stores: Stores
    directory: Optional[DirectoryClient] = None
    auth: Optional[AuthProvider] = None
    credentials: Optional[CredentialPool[str]] = None

    async def close(self) -> None:
        if self.directory:
            await self.directory.close()
        if self.auth:
            await self.auth.close()
        await self.stores.dispose()


@asynccontextmanager
async def open_clients(
    settings: Settings,
    with_directory: bool = False,
    with_auth: bool = False,
) -> AsyncIterator[Clients]:
    """Build the clients a command needs and dispose of them afterwards."""
    clients = Clients(settings=settings, stores=create_stores(settings))
    try:
        if with_directory:
            clients.directory = DirectoryClient(settings)
            clients.credentials = CredentialPool(settings.okta_tokens)
        if with_auth:
            clients.auth = FirebaseAuthProvider(settings)
        yield clients
    finally:
        await clients.close()


__all__ = [
    "AuthIdentity",
    "AuthProvider",
    "BulkLookup",
    "Clients",
    "CredentialPool",
    "DirectoryClient",
    "DirectoryRecord",
    "FirebaseAuthProvider",
    "Lookup",
    "LookupStatus",
    "open_clients",
]
