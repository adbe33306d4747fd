"""docquery - Partition-aware query routing and cost accounting for document stores."""

from .api import Container, ContainerProperties, FeedIterator
from .core import (
    DEFAULT_COST_MODEL,
    ConfigurationError,
    ConflictError,
    CostModel,
    DocQueryError,
    FilterOp,
    InvalidContinuationError,
    InvalidPredicateError,
    KeyRange,
    NotFoundError,
    OperationKind,
    PartialResultsError,
    PartitionMap,
    PartitionMapError,
    PartitionMapSnapshot,
    PartitionUnavailableError,
    RouteKind,
    StorageError,
    cost,
    effective_key,
)
from .models import Document, Filter, ItemResponse, Page, Predicate, QueryResult
from .runtime import (
    FanOut,
    MultiPartition,
    PointLookup,
    QueryEngine,
    QueryOptions,
    QueryRouter,
    RetryPolicy,
    SinglePartition,
)
from .storage import FetchResult, HTTPStorageClient, InMemoryStorage, StorageClient

__version__ = "0.1.0"

__all__ = [
    # API
    "Container",
    "ContainerProperties",
    "FeedIterator",
    # Core
    "CostModel",
    "DEFAULT_COST_MODEL",
    "FilterOp",
    "KeyRange",
    "OperationKind",
    "PartitionMap",
    "PartitionMapSnapshot",
    "RouteKind",
    "cost",
    "effective_key",
    # Exceptions
    "ConfigurationError",
    "ConflictError",
    "DocQueryError",
    "InvalidContinuationError",
    "InvalidPredicateError",
    "NotFoundError",
    "PartialResultsError",
    "PartitionMapError",
    "PartitionUnavailableError",
    "StorageError",
    # Models
    "Document",
    "Filter",
    "ItemResponse",
    "Page",
    "Predicate",
    "QueryResult",
    # Runtime
    "FanOut",
    "MultiPartition",
    "PointLookup",
    "QueryEngine",
    "QueryOptions",
    "QueryRouter",
    "RetryPolicy",
    "SinglePartition",
    # Storage
    "FetchResult",
    "HTTPStorageClient",
    "InMemoryStorage",
    "StorageClient",
]
