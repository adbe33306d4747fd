"""Core enumerations shared across routing, execution, and cost accounting.

Design Decisions:
    - String enums: values serialize directly into continuation tokens,
      log records, and the HTTP storage payload
    - One enum per concern so routing, filtering and pricing stay independent
"""

from enum import Enum


class OperationKind(str, Enum):
    """Kind of storage operation, used to price a round trip."""

    READ = "read"
    POINT_READ = "point_read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class RouteKind(str, Enum):
    """How a predicate was routed across physical partitions."""

    POINT_LOOKUP = "point_lookup"
    SINGLE_PARTITION = "single_partition"
    MULTI_PARTITION = "multi_partition"
    FAN_OUT = "fan_out"

    @property
    def is_cross_partition(self) -> bool:
        """Whether more than one physical partition may be visited."""
        return self in (RouteKind.MULTI_PARTITION, RouteKind.FAN_OUT)


class FilterOp(str, Enum):
    """Comparison operators accepted in pre-parsed filters."""

    EQ = "eq"
    NE = "ne"
    LT = "lt"
    LE = "le"
    GT = "gt"
    GE = "ge"
    IN = "in"
    DEFINED = "defined"
