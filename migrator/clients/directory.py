"""Okta users API client used to resolve SSO identities."""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from migrator.config import Settings
from migrator.exceptions import DirectoryServiceError, RateLimitExceededError
from migrator.logging_config import get_logger
from migrator.utils.retry import backoff_delay

logger = get_logger(__name__)

RATE_LIMIT_RESET_HEADER = "X-Rate-Limit-Reset"


class DirectoryEmail(BaseModel):
    """An email on a directory account."""

    type: str
    status: str
    value: str


class DirectoryCredentials(BaseModel):
    model_config = ConfigDict(extra="ignore")

    emails: list[DirectoryEmail] = Field(default_factory=list)


class DirectoryProfile(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    key_guid: Optional[str] = Field(None, alias="theKeyGuid")


class DirectoryRecord(BaseModel):
    """A user returned by the directory search."""

    model_config = ConfigDict(extra="ignore")

    id: str
    status: Optional[str] = None
    profile: DirectoryProfile = Field(default_factory=DirectoryProfile)
    credentials: Optional[DirectoryCredentials] = None

    @property
    def primary_email(self) -> Optional[DirectoryEmail]:
        """The PRIMARY email, if the account has one."""
        if not self.credentials:
            return None
        for email in self.credentials.emails:
            if email.type == "PRIMARY":
                return email
        return None

    @property
    def display_name(self) -> str:
        parts = [self.profile.first_name or "", self.profile.last_name or ""]
        return " ".join(parts).strip()


def sso_guid_filter(sso_guid: str) -> str:
    """Search expression matching a user by SSO GUID."""
    return f'profile.theKeyGuid eq "{sso_guid.strip()}"'


class DirectoryClient:
    """Searches the directory, retrying on rate limits.

    A 429 waits until the time in ``X-Rate-Limit-Reset`` (epoch seconds)
    plus a buffer, or backs off exponentially without the header. Other
    error statuses are raised immediately.
    """

    def __init__(
        self,
        settings: Settings,
        http: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self._http = http or httpx.AsyncClient(
            base_url=settings.okta_base_url,
            timeout=settings.okta_timeout,
        )
        self._sleep = sleep
        self._clock = clock

    @staticmethod
    def reset_at(response: httpx.Response) -> Optional[float]:
        """Epoch seconds at which the quota resets, if the header is usable."""
        reset = response.headers.get(RATE_LIMIT_RESET_HEADER)
        if reset is None:
            return None
        try:
            return float(reset)
        except ValueError:
            logger.warning("Unparseable rate limit reset header", value=reset)
            return None

    def retry_delay(self, response: httpx.Response, attempt: int) -> float:
        """Seconds to wait before retrying a rate-limited request."""
        reset_at = self.reset_at(response)
        if reset_at is not None:
            return max(0.0, reset_at - self._clock()) + self.settings.okta_reset_buffer

        return backoff_delay(
            attempt,
            self.settings.okta_backoff_base,
            self.settings.okta_backoff_max,
        )

    async def search(self, filter_expression: str, credential: str) -> list[DirectoryRecord]:
        """Search users by filter expression.

        Returns:
            Matching records; empty on 404 or no matches

        Raises:
            RateLimitExceededError: Still rate limited after the retry ceiling
            DirectoryServiceError: Any other error status
        """
        headers = {
            "Authorization": f"SSWS {credential}",
            "Accept": "application/json",
        }
        max_retries = self.settings.okta_max_retries

        for attempt in range(max_retries + 1):
            response = await self._http.get(
                "/api/v1/users",
                params={"search": filter_expression},
                headers=headers,
            )

            if response.status_code == 429:
                if attempt >= max_retries:
                    raise RateLimitExceededError(attempt + 1, self.reset_at(response))
                delay = self.retry_delay(response, attempt)
                logger.warning(
                    "Directory rate limit hit",
                    attempt=attempt + 1,
                    max_attempts=max_retries + 1,
                    retry_in=round(delay, 2),
                )
                await self._sleep(delay)
                continue

            if response.status_code == 404:
                return []

            if response.is_error:
                raise DirectoryServiceError(response.status_code, response.text)

            return [DirectoryRecord.model_validate(item) for item in response.json() or []]

        raise RateLimitExceededError(max_retries + 1)

    async def find_by_sso_guid(self, sso_guid: str, credential: str) -> list[DirectoryRecord]:
        return await self.search(sso_guid_filter(sso_guid), credential)

    async def close(self) -> None:
        await self._http.aclose()
