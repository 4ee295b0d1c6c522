"""Resolves a cached user profile to an SSO directory record and auth account.

Resolution order, each step an early exit:

1. local mapping by SSO GUID (already reconciled, no external calls)
2. directory search by SSO GUID, exactly one match required
3. the match's PRIMARY email
4. auth account by primary email, created and/or linked to the federated
   provider as needed

Unexpected failures in steps 2-4 are logged and returned as
``Rejected(UNEXPECTED)`` with whatever context was resolved so far.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from migrator.clients.auth_provider import AuthIdentity, AuthProvider, LookupStatus
from migrator.clients.directory import DirectoryClient, DirectoryRecord
from migrator.exceptions import IdentityRejectedError
from migrator.logging_config import get_logger
from migrator.models.local import LocalIdentityMapping
from migrator.repositories import IdentityMappingRepository
from migrator.validation import CachedUserProfile

logger = get_logger(__name__)


class IdentitySource(str, Enum):
    """Where a resolved identity came from."""

    LOCAL = "local"
    EXTERNAL = "external"


class RejectReason(str, Enum):
    NOT_FOUND = "not-found"
    AMBIGUOUS = "ambiguous"
    NO_PRIMARY_EMAIL = "no-primary-email"
    UNEXPECTED = "unexpected"


@dataclass
class ResolvedIdentity:
    """A profile resolved either to its local mapping or to external accounts.

    LOCAL identities carry ``mapping``. EXTERNAL identities carry the
    directory record and, outside dry-run, the auth account.
    """

    source: IdentitySource
    profile: CachedUserProfile
    mapping: Optional[LocalIdentityMapping] = None
    directory_record: Optional[DirectoryRecord] = None
    primary_email: Optional[str] = None
    email_verified: bool = False
    is_secondary_account: bool = False
    auth_identity: Optional[AuthIdentity] = None
    would_create: bool = False
    would_link: bool = False

    @property
    def sso_guid(self) -> str:
        # Mapping rows are keyed by the trimmed cached GUID, the same value
        # the local lookup and the directory search use.
        return self.profile.sso_guid


@dataclass
class Rejected:
    """Resolution stopped; the profile is not ingested."""

    reason: RejectReason
    message: str
    payload: dict[str, Any] = field(default_factory=dict)
    error: Optional[BaseException] = None

    def to_exception(self) -> BaseException:
        if self.error is not None:
            return self.error
        return IdentityRejectedError(self.reason.value, self.message)


class IdentityResolver:
    """Resolves profiles against the local store, directory and auth provider."""

    def __init__(
        self,
        local_sessions: async_sessionmaker[AsyncSession],
        directory: DirectoryClient,
        auth: AuthProvider,
        provider_id: str = "oidc.okta",
    ):
        self.local_sessions = local_sessions
        self.directory = directory
        self.auth = auth
        self.provider_id = provider_id

    async def resolve(
        self,
        profile: CachedUserProfile,
        credential: str,
        dry_run: bool = False,
    ) -> Union[ResolvedIdentity, Rejected]:
        """Resolve one profile.

        Args:
            profile: Validated user profile
            credential: Directory API token to use
            dry_run: Look up only; never create or link auth accounts
        """
        async with self.local_sessions() as session:
            mapping = await IdentityMappingRepository(session).get_by_sso_guid(profile.sso_guid)
        if mapping is not None:
            logger.debug("User already mapped", email=profile.email, sso_guid=profile.sso_guid)
            return ResolvedIdentity(source=IdentitySource.LOCAL, profile=profile, mapping=mapping)

        context: dict[str, Any] = {"profile": profile}
        try:
            records = await self.directory.find_by_sso_guid(profile.sso_guid, credential)
            if not records:
                logger.warning("User not found in directory", email=profile.email, sso_guid=profile.sso_guid)
                return Rejected(
                    RejectReason.NOT_FOUND,
                    f"No directory user found for ssoGuid {profile.sso_guid}",
                    context,
                )
            if len(records) > 1:
                logger.warning(
                    "Multiple directory users matched",
                    email=profile.email,
                    sso_guid=profile.sso_guid,
                    matches=len(records),
                )
                return Rejected(
                    RejectReason.AMBIGUOUS,
                    f"{len(records)} directory users found for ssoGuid {profile.sso_guid}",
                    {**context, "directory": records},
                )

            record = records[0]
            context["directory"] = record
            primary = record.primary_email
            if primary is None:
                return Rejected(
                    RejectReason.NO_PRIMARY_EMAIL,
                    f"No primary email on directory user {record.id}",
                    context,
                )

            identity = ResolvedIdentity(
                source=IdentitySource.EXTERNAL,
                profile=profile,
                directory_record=record,
                primary_email=primary.value.lower(),
                email_verified=primary.status == "VERIFIED",
                is_secondary_account=profile.email != primary.value.lower(),
            )
            await self._resolve_auth(identity, record, dry_run)
            return identity

        except Exception as e:
            logger.exception(
                "Unexpected error resolving identity",
                email=profile.email,
                sso_guid=profile.sso_guid,
            )
            return Rejected(RejectReason.UNEXPECTED, str(e), context, error=e)

    async def _resolve_auth(
        self,
        identity: ResolvedIdentity,
        record: DirectoryRecord,
        dry_run: bool,
    ) -> None:
        email = identity.primary_email or ""

        lookup = await self.auth.get_by_email(email)
        if lookup.status == LookupStatus.ERROR:
            raise lookup.error or RuntimeError(f"Auth lookup failed for {email}")

        if lookup.status == LookupStatus.FOUND:
            account = lookup.value
            if account is None:
                raise RuntimeError(f"Auth lookup for {email} returned no account")
            if account.has_provider(self.provider_id):
                identity.auth_identity = account
            elif dry_run:
                identity.auth_identity = account
                identity.would_link = True
            else:
                identity.auth_identity = await self._link(account.uid, identity, record)
            return

        if dry_run:
            identity.would_create = True
            logger.info("Would create auth account", email=email)
            return

        account = await self.auth.create(
            email=email,
            email_verified=identity.email_verified,
            display_name=record.display_name,
        )
        identity.auth_identity = await self._link(account.uid, identity, record)

    async def _link(
        self,
        uid: str,
        identity: ResolvedIdentity,
        record: DirectoryRecord,
    ) -> AuthIdentity:
        return await self.auth.link_federated_provider(
            uid=uid,
            provider_id=self.provider_id,
            provider_uid=identity.sso_guid,
            display_name=record.display_name,
            email=identity.primary_email,
        )
