"""Result containers for query and item operations."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from ..core.cost import CostUnit
from .document import Document


@dataclass(frozen=True)
class Page:
    """Documents delivered by one round trip.

    Attributes:
        documents: Documents in server order for the partition
        cost: Cost of the round trip that produced this page
        continuation: Token resuming after this page (None when exhausted)
        partition_id: Physical partition the page came from
        round_trips: Round trips spent producing the page
    """

    documents: tuple[Document, ...]
    cost: CostUnit
    continuation: str | None = None
    partition_id: str | None = None
    round_trips: int = 1

    def __iter__(self) -> Iterator[Document]:
        return iter(self.documents)

    def __len__(self) -> int:
        return len(self.documents)


@dataclass
class QueryResult:
    """Aggregate of every page of a query.

    Attributes:
        documents: All delivered documents
        cost: Total cost across round trips
        pages: Number of pages delivered
        round_trips: Number of round trips
        partitions: Physical partitions that contributed pages
    """

    documents: list[Document] = field(default_factory=list)
    cost: CostUnit = 0.0
    pages: int = 0
    round_trips: int = 0
    partitions: set[str] = field(default_factory=set)

    def add(self, page: Page) -> None:
        self.documents.extend(page.documents)
        self.cost += page.cost
        self.pages += 1
        self.round_trips += page.round_trips
        if page.partition_id is not None:
            self.partitions.add(page.partition_id)


@dataclass(frozen=True)
class ItemResponse:
    """Result of a single-item operation.

    Attributes:
        document: The document read or written (None when absent or deleted)
        cost: Cost of the operation
        partition_id: Physical partition that served it
    """

    document: Document | None
    cost: CostUnit
    partition_id: str | None = None
