"""Container facade over routing, execution and storage.

The Container provides the high-level surface callers use: single-item
operations (read, create, replace, upsert, delete) and queries returning a
FeedIterator. It wires a PartitionMap, a storage collaborator, a
QueryRouter and a QueryEngine together from ContainerProperties.

Architecture:
    This module implements the Facade pattern over the runtime layer:
    - Item reads go through the engine as point lookups, so they are routed,
      retried and priced exactly like queries
    - Writes go straight to storage collaborators that support them
    - Queries return a FeedIterator mirroring the has-more/read-next loop of
      document-database SDKs, while also supporting ``async for``

Example:
    >>> container = Container(ContainerProperties(id="food", partition_key_path="/foodGroup"))
    >>> await container.create_item({"id": "19293", "foodGroup": "Sweets"})
    >>> response = await container.read_item("19293", "Sweets")
    >>> async for page in container.query_items(Predicate(partition_key="Sweets")):
    ...     print(page.cost, len(page))
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.constants import DEFAULT_PARTITION_CAPACITY, DEFAULT_PARTITION_COUNT
from ..core.cost import CostModel
from ..core.exceptions import StorageError
from ..core.partition_map import PartitionKeyValue, PartitionMap
from ..models import Document, ItemResponse, Page, Predicate
from ..runtime.engine import QueryEngine
from ..runtime.pagination import QueryOptions
from ..runtime.retry import RetryPolicy
from ..runtime.router import QueryRouter
from ..storage.base import StorageClient
from ..storage.memory import InMemoryStorage

logger = logging.getLogger(__name__)


class ContainerProperties(BaseModel):
    """Collection-level settings.

    Attributes:
        id: Container name
        partition_key_path: Property documents are partitioned by (e.g. ``/foodGroup``)
        partition_count: Physical partitions created up front
        partition_capacity: Documents per physical partition before a split
            (None disables splitting)
    """

    id: str = Field(..., min_length=1)
    partition_key_path: str = Field(..., min_length=2)
    partition_count: int = Field(DEFAULT_PARTITION_COUNT, ge=1)
    partition_capacity: int | None = Field(DEFAULT_PARTITION_CAPACITY, ge=1)

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    @field_validator("partition_key_path")
    @classmethod
    def validate_partition_key_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("partition_key_path must start with '/'")
        return v


@runtime_checkable
class DocumentWriter(Protocol):
    """Storage collaborators that accept writes."""

    async def create(self, document: Document) -> ItemResponse: ...

    async def replace(self, document: Document) -> ItemResponse: ...

    async def upsert(self, document: Document) -> ItemResponse: ...

    async def delete(
        self, document_id: str, partition_key: PartitionKeyValue
    ) -> ItemResponse: ...


class FeedIterator:
    """Lazy page iterator for one query.

    Use either the explicit loop::

        while feed.has_more_results:
            page = await feed.read_next()

    or ``async for page in feed``. Closing the iterator (``aclose`` or leaving
    ``async with``) cancels any partition workers still running.
    """

    def __init__(
        self,
        engine: QueryEngine,
        predicate: Predicate,
        options: QueryOptions | None = None,
        continuation: str | None = None,
    ) -> None:
        self._pages = engine.execute(predicate, options, continuation)
        self._has_more = True
        self._continuation = continuation
        self.total_cost = 0.0
        self.page_count = 0

    @property
    def has_more_results(self) -> bool:
        return self._has_more

    @property
    def continuation(self) -> str | None:
        """Token resuming after the last page read."""
        return self._continuation

    async def read_next(self) -> Page:
        """Read the next page; an exhausted iterator returns an empty page."""
        page = await self._next_page()
        return page if page is not None else Page(documents=(), cost=0.0)

    def __aiter__(self) -> FeedIterator:
        return self

    async def __anext__(self) -> Page:
        page = await self._next_page()
        if page is None:
            raise StopAsyncIteration
        return page

    async def _next_page(self) -> Page | None:
        if not self._has_more:
            return None
        try:
            page = await self._pages.__anext__()
        except StopAsyncIteration:
            self._has_more = False
            self._continuation = None
            return None
        except BaseException:
            self._has_more = False
            raise
        self._continuation = page.continuation
        self._has_more = page.continuation is not None
        self.total_cost += page.cost
        self.page_count += 1
        return page

    async def aclose(self) -> None:
        self._has_more = False
        await self._pages.aclose()

    async def __aenter__(self) -> FeedIterator:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()


class Container:
    """High-level access to one partitioned collection."""

    def __init__(
        self,
        properties: ContainerProperties,
        *,
        storage: StorageClient | None = None,
        partition_map: PartitionMap | None = None,
        cost_model: CostModel | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize the container.

        Args:
            properties: Collection settings
            storage: Storage collaborator (defaults to an InMemoryStorage)
            partition_map: Partition map shared with storage (defaults to a
                fresh map with ``properties.partition_count`` partitions)
            cost_model: Pricing model
            retry_policy: Retry settings for partition round trips
        """
        self._properties = properties
        self._map = partition_map or PartitionMap.create(properties.partition_count)
        self._storage = storage or InMemoryStorage(
            self._map,
            capacity=properties.partition_capacity,
            cost_model=cost_model,
        )
        self._router = QueryRouter(properties.partition_key_path)
        self._engine = QueryEngine(
            self._storage,
            self._map,
            router=self._router,
            cost_model=cost_model,
            retry_policy=retry_policy,
        )

    @property
    def id(self) -> str:
        return self._properties.id

    @property
    def properties(self) -> ContainerProperties:
        return self._properties

    @property
    def partition_map(self) -> PartitionMap:
        return self._map

    @property
    def storage(self) -> StorageClient:
        return self._storage

    @property
    def engine(self) -> QueryEngine:
        return self._engine

    async def read_item(self, item_id: str, partition_key: PartitionKeyValue) -> ItemResponse:
        """Point read by id and partition key.

        A missing document is not an error: the response has ``document=None``
        and still carries the cost of the lookup.
        """
        predicate = Predicate(id=item_id, partition_key=partition_key)
        result = await self._engine.execute_all(predicate)
        document = result.documents[0] if result.documents else None
        return ItemResponse(
            document=document,
            cost=result.cost,
            partition_id=next(iter(result.partitions), None),
        )

    async def create_item(self, body: dict[str, Any]) -> ItemResponse:
        """Create a document.

        Raises:
            ConflictError: If the id already exists under the partition key
        """
        return await self._writer().create(self._document(body))

    async def replace_item(self, item_id: str, body: dict[str, Any]) -> ItemResponse:
        """Replace a document under the same id and partition key.

        Raises:
            ValueError: If the body's id differs from ``item_id``
            NotFoundError: If no such document exists under the body's partition key
        """
        document = self._document(body)
        if document.id != item_id:
            raise ValueError(f"Body id '{document.id}' does not match '{item_id}'")
        return await self._writer().replace(document)

    async def upsert_item(self, body: dict[str, Any]) -> ItemResponse:
        return await self._writer().upsert(self._document(body))

    async def delete_item(self, item_id: str, partition_key: PartitionKeyValue) -> ItemResponse:
        """Delete a document.

        Raises:
            NotFoundError: If the document does not exist
        """
        return await self._writer().delete(item_id, partition_key)

    def query_items(
        self,
        predicate: Predicate,
        *,
        options: QueryOptions | None = None,
        continuation: str | None = None,
    ) -> FeedIterator:
        """Start a lazy query; nothing is fetched until the first page is read."""
        return FeedIterator(self._engine, predicate, options, continuation)

    def _document(self, body: dict[str, Any]) -> Document:
        return Document.from_item(body, self._properties.partition_key_path)

    def _writer(self) -> DocumentWriter:
        if not isinstance(self._storage, DocumentWriter):
            raise StorageError(
                f"Storage {self._storage.__class__.__name__} does not support writes"
            )
        return self._storage
