"""Query routing, execution and pagination.

Architecture:
    - router.py: classifies predicates into point lookup, single-partition,
      multi-partition or fan-out routes
    - engine.py: executes routes, prices round trips, builds pages
    - pagination.py: concurrency, backpressure, continuation tokens
    - retry.py: bounded exponential backoff for transient partition failures
    - telemetry.py: structured logging
"""

from __future__ import annotations

from .engine import QueryEngine
from .pagination import (
    ContinuationState,
    PageBuffer,
    PaginationController,
    QueryOptions,
)
from .retry import RetryPolicy, call_with_retry
from .router import FanOut, MultiPartition, PointLookup, QueryRouter, Route, SinglePartition

__all__ = [
    "ContinuationState",
    "FanOut",
    "MultiPartition",
    "PageBuffer",
    "PaginationController",
    "PointLookup",
    "QueryEngine",
    "QueryOptions",
    "QueryRouter",
    "RetryPolicy",
    "Route",
    "SinglePartition",
    "call_with_retry",
]
