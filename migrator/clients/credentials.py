"""Pool of rate-limited API credentials."""

from typing import Generic, Sequence, TypeVar

T = TypeVar("T")
U = TypeVar("U")


class CredentialPool(Generic[T]):
    """Credential pool with contiguous batch assignment.

    Each credential carries its own rate limit, so spreading a batch across
    the pool multiplies throughput by the pool size.
    """

    def __init__(self, credentials: Sequence[T]):
        if not credentials:
            raise ValueError("CredentialPool requires at least one credential")
        self._credentials = list(credentials)

    def __len__(self) -> int:
        return len(self._credentials)

    def index_for(self, position: int, batch_size: int) -> int:
        """Credential index for the item at ``position`` of a batch."""
        return position * len(self._credentials) // batch_size

    def assign(self, batch: Sequence[U]) -> list[tuple[U, T]]:
        """Pair each item with a credential, one contiguous chunk per credential.

        With two credentials the first half of the batch gets the first one.
        """
        size = len(batch)
        return [
            (item, self._credentials[self.index_for(position, size)])
            for position, item in enumerate(batch)
        ]
