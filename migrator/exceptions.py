"""Exception types raised across the migrator."""

from typing import Optional


class MigratorError(Exception):
    """Base class for migrator errors."""

    pass


class SourceDirectoryNotFoundError(MigratorError):
    """Raised when the cache source directory does not exist. Aborts the run."""

    def __init__(self, source_dir: str):
        self.source_dir = source_dir
        super().__init__(f"Source directory does not exist: {source_dir}")


class OwnerNotFoundError(MigratorError):
    """Raised when a playlist owner has no local identity mapping."""

    def __init__(self, owner_id: str, playlist_id: str):
        self.owner_id = owner_id
        self.playlist_id = playlist_id
        super().__init__(f"User not found for playlist {playlist_id} (owner {owner_id})")


class SlugGenerationError(MigratorError):
    """Raised when no free playlist slug was found within the attempt budget."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Unable to generate unique slug after {attempts} attempts")


class DirectoryServiceError(MigratorError):
    """Non-retryable error response from the directory service."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Directory service error ({status_code}): {body[:500]}")


class RateLimitExceededError(DirectoryServiceError):
    """Directory quota still exhausted after the retry ceiling."""

    def __init__(self, attempts: int, reset_at: Optional[float] = None):
        self.attempts = attempts
        self.reset_at = reset_at
        super().__init__(429, f"Rate limit exceeded after {attempts} attempts")


class IdentityRejectedError(MigratorError):
    """Identity resolution ended in a policy rejection."""

    def __init__(self, reason: str, message: str):
        self.reason = reason
        super().__init__(message)
