"""Structured logging for routing and execution.

Every helper emits one event name with its context in ``extra`` so log
pipelines can index on fields rather than parse messages.
"""

from __future__ import annotations

import logging

from ..core.enums import RouteKind

logger = logging.getLogger(__name__)


def log_route_classified(
    *,
    route_kind: RouteKind,
    partition_ids: tuple[str, ...],
    fingerprint: str,
    map_version: int,
) -> None:
    """Log the routing decision for a predicate.

    Args:
        route_kind: How the predicate was routed
        partition_ids: Physical partitions targeted
        fingerprint: Predicate fingerprint
        map_version: Partition map snapshot version used
    """
    logger.debug(
        "route_classified",
        extra={
            "route_kind": route_kind.value,
            "partition_count": len(partition_ids),
            "partition_ids": list(partition_ids),
            "fingerprint": fingerprint,
            "map_version": map_version,
        },
    )


def log_round_trip(
    *,
    partition_id: str,
    documents: int,
    bytes_transferred: int,
    cost: float,
    latency_ms: float,
    attempts: int,
) -> None:
    """Log one successful round trip to a partition."""
    logger.debug(
        "round_trip_completed",
        extra={
            "partition_id": partition_id,
            "documents": documents,
            "bytes_transferred": bytes_transferred,
            "cost": cost,
            "latency_ms": latency_ms,
            "attempts": attempts,
        },
    )


def log_partition_retry(
    *,
    partition_id: str,
    attempt: int,
    max_attempts: int,
    delay: float,
    error_message: str,
) -> None:
    logger.warning(
        "partition_retry",
        extra={
            "partition_id": partition_id,
            "attempt": attempt,
            "max_attempts": max_attempts,
            "delay": delay,
            "error_message": error_message,
        },
    )


def log_partition_unavailable(*, partition_id: str, attempts: int, error_message: str) -> None:
    logger.error(
        "partition_unavailable",
        extra={
            "partition_id": partition_id,
            "attempts": attempts,
            "error_message": error_message,
        },
    )


def log_query_completed(
    *,
    route_kind: RouteKind,
    pages: int,
    documents: int,
    cost: float,
    partitions: int,
    unavailable: list[str] | None = None,
) -> None:
    """Log the end of a query.

    Args:
        route_kind: How the query was routed
        pages: Pages delivered
        documents: Documents delivered
        cost: Total cost of all round trips
        partitions: Partitions that contributed pages
        unavailable: Partitions that could not be reached
    """
    logger.info(
        "query_completed",
        extra={
            "route_kind": route_kind.value,
            "pages": pages,
            "documents": documents,
            "cost": cost,
            "partitions": partitions,
            "unavailable": unavailable or [],
        },
    )
