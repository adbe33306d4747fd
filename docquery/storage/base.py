"""Storage I/O collaborator contract."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from ..models import Document, Predicate


@dataclass(frozen=True)
class FetchResult:
    """Outcome of one round trip to one physical partition.

    Attributes:
        documents: Matching documents in the partition's stable order
        continuation: Storage token for the next round trip (None when exhausted)
        bytes_transferred: Payload bytes moved, used for pricing
    """

    documents: tuple[Document, ...] = field(default_factory=tuple)
    continuation: str | None = None
    bytes_transferred: int = 0


@runtime_checkable
class StorageClient(Protocol):
    """Protocol for storage nodes that serve partition round trips.

    Implementations may be in-process (InMemoryStorage) or remote
    (HTTPStorageClient). The execution engine treats every call as an opaque,
    retryable remote call.
    """

    async def fetch(
        self,
        partition_id: str,
        predicate: Predicate,
        continuation: str | None = None,
        max_item_count: int | None = None,
    ) -> FetchResult:
        """Fetch the next batch of matching documents from one partition.

        Args:
            partition_id: Physical partition to read
            predicate: Predicate to evaluate inside the partition
            continuation: Token returned by the previous round trip, or None to start
            max_item_count: Upper bound on documents returned; implementations
                must not exceed it

        Raises:
            PartitionUnavailableError: For transient failures (the engine retries)
            StorageError: For non-retryable failures
        """
        ...
