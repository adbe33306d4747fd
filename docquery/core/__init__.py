"""Core components."""

from .constants import KEY_SPACE_MAX, KEY_SPACE_MIN
from .cost import DEFAULT_COST_MODEL, CostModel, CostUnit, cost
from .enums import FilterOp, OperationKind, RouteKind
from .exceptions import (
    ConfigurationError,
    ConflictError,
    DocQueryError,
    InvalidContinuationError,
    InvalidPredicateError,
    NotFoundError,
    PartialResultsError,
    PartitionMapError,
    PartitionUnavailableError,
    StorageError,
)
from .partition_map import (
    KeyRange,
    PartitionKeyValue,
    PartitionMap,
    PartitionMapSnapshot,
    PartitionRange,
    effective_key,
    key_identity,
)

__all__ = [
    "KEY_SPACE_MAX",
    "KEY_SPACE_MIN",
    # Cost model
    "CostModel",
    "CostUnit",
    "DEFAULT_COST_MODEL",
    "cost",
    # Enums
    "FilterOp",
    "OperationKind",
    "RouteKind",
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
    # Partition map
    "KeyRange",
    "PartitionKeyValue",
    "PartitionMap",
    "PartitionMapSnapshot",
    "PartitionRange",
    "effective_key",
    "key_identity",
]
