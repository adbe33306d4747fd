"""Custom exception hierarchy."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..models import Document


class DocQueryError(Exception):
    """Base exception for all library errors."""

    pass


class NotFoundError(DocQueryError):
    """Requested document or partition does not exist."""

    pass


class ConflictError(DocQueryError):
    """A document with the same id already exists in the logical partition."""

    pass


class PartitionMapError(DocQueryError):
    """Partition map operation cannot be applied (e.g. unsplittable range)."""

    pass


class PartitionUnavailableError(DocQueryError):
    """Physical partition could not be reached.

    Raised by storage clients for transient failures. The execution engine
    retries these; once retries are exhausted on a single-partition route the
    error propagates with the number of attempts made.
    """

    def __init__(self, message: str, partition_id: str, attempts: int = 1) -> None:
        super().__init__(message)
        self.partition_id = partition_id
        self.attempts = attempts


class PartialResultsError(DocQueryError):
    """Cross-partition query finished with some partitions unreachable.

    Carries everything the caller needs to decide whether the partial result
    is acceptable: documents delivered so far, which partitions were fully drained,
    which were not, and a continuation token that resumes only the
    unreachable partitions.
    """

    def __init__(
        self,
        message: str,
        *,
        documents: Iterable[Document],
        unavailable_partitions: Iterable[str],
        covered_partitions: Iterable[str],
        cost: float = 0.0,
        continuation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.documents = list(documents)
        self.unavailable_partitions = frozenset(unavailable_partitions)
        self.covered_partitions = frozenset(covered_partitions)
        self.cost = cost
        self.continuation = continuation


class InvalidPredicateError(DocQueryError):
    """Predicate is malformed or unsatisfiable; rejected before any round trip."""

    pass


class ConfigurationError(DocQueryError):
    """Invalid concurrency, buffering or paging settings."""

    pass


class InvalidContinuationError(ConfigurationError):
    """Continuation token is undecodable or belongs to another query."""

    pass


class StorageError(DocQueryError):
    """Non-retryable error reported by a storage node."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
