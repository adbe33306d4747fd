"""In-process reference storage over a partition map.

InMemoryStorage plays the storage-node side of the contract: it owns the
documents, evaluates predicates inside a partition, prices writes, and splits
a physical partition when it grows past capacity. It backs the default
Container and the query_patterns script.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter

from ..core.constants import DEFAULT_PARTITION_CAPACITY
from ..core.cost import DEFAULT_COST_MODEL, CostModel
from ..core.enums import OperationKind
from ..core.exceptions import (
    ConflictError,
    InvalidContinuationError,
    NotFoundError,
    PartitionUnavailableError,
)
from ..core.partition_map import PartitionKeyValue, PartitionMap, effective_key, key_identity
from ..models import Document, ItemResponse, Predicate
from .base import FetchResult

logger = logging.getLogger(__name__)


class InMemoryStorage:
    """Dictionary-backed storage node honoring the StorageClient protocol."""

    def __init__(
        self,
        partition_map: PartitionMap,
        *,
        capacity: int | None = DEFAULT_PARTITION_CAPACITY,
        cost_model: CostModel | None = None,
        latency: float = 0.0,
    ) -> None:
        """Initialize storage.

        Args:
            partition_map: Map the storage keeps in sync when it splits
            capacity: Documents per physical partition before a split (None disables)
            cost_model: Model used to price writes
            latency: Simulated seconds per round trip
        """
        self._map = partition_map
        self._capacity = capacity
        self._cost_model = cost_model or DEFAULT_COST_MODEL
        self._latency = latency
        # logical partition -> id -> document
        self._partitions: dict[str, dict[str, Document]] = {}
        self._effective: dict[str, int] = {}
        # physical partition -> documents, filled lazily since splits retire ids
        self._counts: dict[str, int] = {}
        # remaining injected failures per partition; None means always fail
        self._failures: dict[str, int | None] = {}
        self.round_trips: Counter[str] = Counter()

    @property
    def partition_map(self) -> PartitionMap:
        return self._map

    def fail_partition(self, partition_id: str, times: int | None = None) -> None:
        """Make the next ``times`` round trips to a partition fail (None = forever)."""
        self._failures[partition_id] = times

    def heal_partition(self, partition_id: str) -> None:
        self._failures.pop(partition_id, None)

    def document_count(self, partition_id: str | None = None) -> int:
        """Documents stored overall or inside one physical partition."""
        if partition_id is None:
            return sum(len(docs) for docs in self._partitions.values())
        key_range = self._map.range(partition_id)
        return sum(
            len(docs)
            for key, docs in self._partitions.items()
            if key_range.contains(self._effective[key])
        )

    async def fetch(
        self,
        partition_id: str,
        predicate: Predicate,
        continuation: str | None = None,
        max_item_count: int | None = None,
    ) -> FetchResult:
        """Serve one round trip; continuation tokens are match offsets."""
        self.round_trips[partition_id] += 1
        if self._latency > 0:
            await asyncio.sleep(self._latency)
        self._maybe_fail(partition_id)

        key_range = self._map.range(partition_id)
        offset = _parse_offset(continuation)

        matches: list[Document] = []
        for key in self._candidate_keys(predicate):
            if not key_range.contains(self._effective[key]):
                continue
            docs = self._partitions[key]
            if predicate.id is not None:
                doc = docs.get(predicate.id)
                if doc is not None and predicate.matches(doc):
                    matches.append(doc)
                continue
            matches.extend(doc for _, doc in sorted(docs.items()) if predicate.matches(doc))

        end = len(matches) if max_item_count is None else offset + max_item_count
        batch = tuple(predicate.apply_projection(doc) for doc in matches[offset:end])
        next_token = str(end) if end < len(matches) else None
        return FetchResult(
            documents=batch,
            continuation=next_token,
            bytes_transferred=sum(doc.size_bytes for doc in batch),
        )

    async def create(self, document: Document) -> ItemResponse:
        """Insert a new document.

        Raises:
            ConflictError: If the id already exists in the logical partition
        """
        docs = self._partitions.get(key_identity(document.partition_key), {})
        if document.id in docs:
            raise ConflictError(
                f"Document '{document.id}' already exists in partition key "
                f"{document.partition_key!r}"
            )
        return self._write(document, OperationKind.CREATE)

    async def replace(self, document: Document) -> ItemResponse:
        """Replace an existing document.

        Raises:
            NotFoundError: If no document with that id exists under that key
        """
        docs = self._partitions.get(key_identity(document.partition_key), {})
        if document.id not in docs:
            raise NotFoundError(
                f"Document '{document.id}' not found in partition key {document.partition_key!r}"
            )
        return self._write(document, OperationKind.UPDATE)

    async def upsert(self, document: Document) -> ItemResponse:
        docs = self._partitions.get(key_identity(document.partition_key), {})
        kind = OperationKind.UPDATE if document.id in docs else OperationKind.CREATE
        return self._write(document, kind)

    async def delete(self, document_id: str, partition_key: PartitionKeyValue) -> ItemResponse:
        """Delete a document.

        Raises:
            NotFoundError: If the document does not exist
        """
        key = key_identity(partition_key)
        docs = self._partitions.get(key, {})
        doc = docs.pop(document_id, None)
        if doc is None:
            raise NotFoundError(
                f"Document '{document_id}' not found in partition key {partition_key!r}"
            )
        if not docs:
            del self._partitions[key]
            del self._effective[key]
        partition_id = self._map.resolve(partition_key)
        if partition_id in self._counts:
            self._counts[partition_id] -= 1
        return ItemResponse(
            document=None,
            cost=self._cost_model.cost(OperationKind.DELETE, doc.size_bytes),
            partition_id=partition_id,
        )

    def _write(self, document: Document, kind: OperationKind) -> ItemResponse:
        key = key_identity(document.partition_key)
        self._effective.setdefault(key, effective_key(document.partition_key))
        partition_id = self._map.resolve(document.partition_key)
        docs = self._partitions.setdefault(key, {})
        count = self._physical_count(partition_id)
        if document.id not in docs:
            self._counts[partition_id] = count + 1
        docs[document.id] = document
        response = ItemResponse(
            document=document,
            cost=self._cost_model.cost(kind, document.size_bytes),
            partition_id=partition_id,
        )
        self._split_if_needed(partition_id)
        return response

    def _split_if_needed(self, partition_id: str) -> None:
        if self._capacity is None:
            return
        count = self._counts[partition_id]
        if count <= self._capacity:
            return
        # One logical partition never spans physical partitions
        keys = {
            key
            for key in self._partitions
            if self._map.range(partition_id).contains(self._effective[key])
        }
        if len(keys) < 2:
            logger.warning(
                "partition_over_capacity",
                extra={"partition_id": partition_id, "documents": count},
            )
            return
        self._map.split(partition_id)
        self._counts.pop(partition_id, None)

    def _physical_count(self, partition_id: str) -> int:
        if partition_id not in self._counts:
            self._counts[partition_id] = self.document_count(partition_id)
        return self._counts[partition_id]

    def _candidate_keys(self, predicate: Predicate) -> list[str]:
        keys = predicate.partition_key_values()
        if keys:
            candidates = [key_identity(value) for value in keys]
            return [key for key in candidates if key in self._partitions]
        return sorted(self._partitions, key=lambda key: (self._effective[key], key))

    def _maybe_fail(self, partition_id: str) -> None:
        if partition_id not in self._failures:
            return
        remaining = self._failures[partition_id]
        if remaining is not None:
            if remaining <= 0:
                del self._failures[partition_id]
                return
            self._failures[partition_id] = remaining - 1
        raise PartitionUnavailableError(
            f"Partition '{partition_id}' is unavailable", partition_id=partition_id
        )


def _parse_offset(token: str | None) -> int:
    if token is None:
        return 0
    try:
        offset = int(token)
    except ValueError:
        raise InvalidContinuationError(f"Malformed storage continuation '{token}'") from None
    if offset < 0:
        raise InvalidContinuationError(f"Malformed storage continuation '{token}'")
    return offset
