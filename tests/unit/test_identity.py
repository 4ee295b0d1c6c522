"""Unit tests for identity resolution."""

import pytest

from migrator.services.identity import (
    IdentityResolver,
    IdentitySource,
    Rejected,
    RejectReason,
    ResolvedIdentity,
)
from migrator.validation import validate_user_document
from tests.conftest import PROVIDER_ID, seed_mapping, user_document


def profile_for(owner="owner-1", guid="guid-1", email="ada@example.com"):
    return validate_user_document(user_document(owner, guid, email)).record


@pytest.fixture
def resolver(stores, directory, auth):
    return IdentityResolver(stores.local_sessions, directory, auth, provider_id=PROVIDER_ID)


class TestIdentityResolver:
    """Tests for IdentityResolver."""

    @pytest.mark.asyncio
    async def test_local_mapping_short_circuits(self, resolver, stores, fake_directory):
        """An already mapped SSO GUID makes no external calls."""
        await seed_mapping(stores, "owner-1")

        result = await resolver.resolve(profile_for(guid="guid-owner-1"), "token-a")

        assert isinstance(result, ResolvedIdentity)
        assert result.source == IdentitySource.LOCAL
        assert result.mapping.owner_id == "owner-1"
        assert fake_directory.requests == []

    @pytest.mark.asyncio
    async def test_not_found(self, resolver):
        result = await resolver.resolve(profile_for(), "token-a")

        assert isinstance(result, Rejected)
        assert result.reason == RejectReason.NOT_FOUND

    @pytest.mark.asyncio
    async def test_ambiguous(self, resolver, fake_directory):
        fake_directory.add("guid-1", "a@example.com", record_id="00u1")
        fake_directory.add("guid-1", "b@example.com", record_id="00u2")

        result = await resolver.resolve(profile_for(), "token-a")

        assert isinstance(result, Rejected)
        assert result.reason == RejectReason.AMBIGUOUS
        assert len(result.payload["directory"]) == 2

    @pytest.mark.asyncio
    async def test_no_primary_email(self, resolver, fake_directory):
        fake_directory.add("guid-1", None)

        result = await resolver.resolve(profile_for(), "token-a")

        assert result.reason == RejectReason.NO_PRIMARY_EMAIL

    @pytest.mark.asyncio
    async def test_creates_and_links_missing_account(self, resolver, fake_directory, auth):
        """No auth account: one is created with the directory's verification state and linked."""
        fake_directory.add("guid-1", "Ada@Example.com")

        result = await resolver.resolve(profile_for(), "token-a")

        assert result.source == IdentitySource.EXTERNAL
        assert result.primary_email == "ada@example.com"
        assert result.email_verified is True
        assert result.is_secondary_account is False
        assert auth.created == ["ada@example.com"]
        assert auth.linked == [(result.auth_identity.uid, PROVIDER_ID, "guid-1")]
        assert result.auth_identity.has_provider(PROVIDER_ID)

    @pytest.mark.asyncio
    async def test_links_existing_account_once(self, resolver, fake_directory, auth):
        fake_directory.add("guid-1", "ada@example.com")
        auth.add("ada@example.com")

        await resolver.resolve(profile_for(), "token-a")
        await resolver.resolve(profile_for(), "token-a")

        assert auth.created == []
        assert len(auth.linked) == 1

    @pytest.mark.asyncio
    async def test_secondary_account(self, resolver, fake_directory, auth):
        """A cached email differing from the directory primary marks a secondary account."""
        fake_directory.add("guid-1", "primary@example.com")
        auth.add("primary@example.com", providers={PROVIDER_ID: "guid-1"})

        result = await resolver.resolve(profile_for(email="old@example.com"), "token-a")

        assert result.is_secondary_account is True
        assert result.primary_email == "primary@example.com"
        assert auth.linked == []

    @pytest.mark.asyncio
    async def test_dry_run_never_writes(self, resolver, fake_directory, auth):
        fake_directory.add("guid-1", "ada@example.com")

        result = await resolver.resolve(profile_for(), "token-a", dry_run=True)

        assert result.would_create is True
        assert result.auth_identity is None
        assert auth.created == []
        assert auth.linked == []

    @pytest.mark.asyncio
    async def test_auth_lookup_error_is_unexpected(self, resolver, fake_directory, auth):
        fake_directory.add("guid-1", "ada@example.com")
        auth.failing_emails.add("ada@example.com")

        result = await resolver.resolve(profile_for(), "token-a")

        assert result.reason == RejectReason.UNEXPECTED
        assert isinstance(result.to_exception(), RuntimeError)
        assert "directory" in result.payload
