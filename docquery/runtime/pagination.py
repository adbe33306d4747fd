"""Pagination controller for partition fan-out.

This module governs how partitions are drained once a query is routed:

- QueryOptions: concurrency, buffering and page-size settings
- ContinuationState: the opaque, resumable cursor handed back with each page
- PageBuffer: bounded, item-counting buffer between workers and the consumer
- PaginationController: runs one worker per partition (up to the concurrency
  bound) and yields round trips to the consumer in completion order

Architecture:
    Producer-consumer. Workers reserve buffer capacity before every round
    trip and suspend while the buffer is full; the consumer takes one entry at
    a time, which frees capacity. A worker drains its partitions one round trip
    after another, so the order of pages within a partition is stable while
    pages from different partitions interleave freely.

Cancellation:
    Closing the generator returned by ``drain`` cancels every worker and
    waits for it; reservations held by cancelled workers are dropped and no
    further round trip is delivered.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from collections import deque
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from ..core.constants import DEFAULT_MAX_ITEM_COUNT, SYSTEM_MAX_CONCURRENCY
from ..core.cost import CostUnit
from ..core.enums import RouteKind
from ..core.exceptions import (
    ConfigurationError,
    InvalidContinuationError,
    PartitionUnavailableError,
)
from ..storage.base import FetchResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryOptions:
    """Per-query pagination settings.

    Attributes:
        max_concurrency: Partitions queried at once (-1 = system chosen,
            0 = strictly sequential, n > 0 = at most n)
        max_buffered_items: Items buffered before workers suspend
            (-1 = system chosen)
        max_item_count: Maximum documents per page
    """

    max_concurrency: int = -1
    max_buffered_items: int = -1
    max_item_count: int = DEFAULT_MAX_ITEM_COUNT

    def __post_init__(self) -> None:
        """Validate the combination of settings."""
        for name in ("max_concurrency", "max_buffered_items", "max_item_count"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an int, got {value!r}")
        if self.max_item_count < 1:
            raise ConfigurationError("max_item_count must be >= 1")
        if self.max_concurrency < -1:
            raise ConfigurationError("max_concurrency must be -1, 0 or positive")
        if self.max_buffered_items == 0 or self.max_buffered_items < -1:
            raise ConfigurationError("max_buffered_items must be -1 or positive")
        if 0 < self.max_buffered_items < self.max_item_count:
            raise ConfigurationError(
                f"max_buffered_items ({self.max_buffered_items}) cannot hold a single page "
                f"of max_item_count ({self.max_item_count})"
            )

    def workers_for(self, partition_count: int) -> int:
        """Number of concurrent workers for a given number of partitions."""
        if partition_count <= 0:
            return 0
        if self.max_concurrency == 0:
            return 1
        if self.max_concurrency == -1:
            return min(partition_count, SYSTEM_MAX_CONCURRENCY)
        return min(partition_count, self.max_concurrency)

    def buffer_limit(self, workers: int) -> int:
        """Buffered-item bound for a given number of workers."""
        if self.max_buffered_items == -1:
            return self.max_item_count * max(1, workers)
        return self.max_buffered_items


class ContinuationState(BaseModel):
    """Decoded continuation token.

    Attributes:
        version: Partition map snapshot version the query started on
        fingerprint: Fingerprint of the predicate the token belongs to
        route: Route kind the query started with
        cursors: Partitions not fully delivered, mapped to the storage token
            after their last delivered page (None = start of partition)
    """

    version: int
    fingerprint: str
    route: RouteKind
    cursors: dict[str, str | None]

    model_config = ConfigDict(frozen=True)

    def encode(self) -> str:
        raw = self.model_dump_json().encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii")

    @classmethod
    def decode(cls, token: str) -> ContinuationState:
        """Decode a token produced by ``encode``.

        Raises:
            InvalidContinuationError: If the token is not a valid continuation
        """
        try:
            raw = base64.urlsafe_b64decode(token.encode("ascii"))
            return cls.model_validate_json(raw)
        except (binascii.Error, UnicodeError, ValueError, PydanticValidationError) as e:
            raise InvalidContinuationError(f"Invalid continuation token: {e}") from e


@dataclass(frozen=True)
class RoundTrip:
    """A completed, priced round trip."""

    result: FetchResult
    cost: CostUnit
    attempts: int = 1


@dataclass(frozen=True)
class PartitionPage:
    """A round trip delivered to the consumer.

    Attributes:
        partition_id: Partition the round trip went to
        start_token: Storage token the round trip started from
        round_trip: The priced fetch result
    """

    partition_id: str
    start_token: str | None
    round_trip: RoundTrip

    @property
    def next_token(self) -> str | None:
        return self.round_trip.result.continuation

    @property
    def is_last(self) -> bool:
        return self.round_trip.result.continuation is None


@dataclass(frozen=True)
class PartitionFailed:
    """A partition whose retries were exhausted."""

    partition_id: str
    start_token: str | None
    error: PartitionUnavailableError


@dataclass(frozen=True)
class _WorkerCrashed:
    error: BaseException


class PageBuffer:
    """Bounded buffer counting items rather than entries.

    Workers ``reserve`` room for a full page before each round trip. A
    reservation is granted while reserved plus buffered items stay within the
    limit, or when nothing at all is held, so a single page larger than the
    limit can still make progress.
    """

    def __init__(self, limit: int) -> None:
        self._limit = limit
        self._items = 0
        self._reserved = 0
        self._entries: deque[tuple[object, int]] = deque()
        self._cond = asyncio.Condition()

    @property
    def buffered_items(self) -> int:
        return self._items

    @property
    def limit(self) -> int:
        return self._limit

    def __len__(self) -> int:
        return len(self._entries)

    async def reserve(self, count: int) -> None:
        """Suspend until ``count`` items of room can be reserved."""
        async with self._cond:
            await self._cond.wait_for(lambda: self._has_room(count))
            self._reserved += count

    def release(self, count: int) -> None:
        """Drop a reservation without delivering anything."""
        self._reserved -= count

    async def put(self, entry: object, *, reserved: int, items: int) -> None:
        """Deliver an entry, converting a reservation into buffered items."""
        async with self._cond:
            self._reserved -= reserved
            self._items += items
            self._entries.append((entry, items))
            self._cond.notify_all()

    async def get(self) -> object:
        """Take the oldest entry, freeing its items."""
        async with self._cond:
            await self._cond.wait_for(lambda: bool(self._entries))
            entry, items = self._entries.popleft()
            self._items -= items
            self._cond.notify_all()
            return entry

    def _has_room(self, count: int) -> bool:
        held = self._items + self._reserved
        return held == 0 or held + count <= self._limit


FetchPage = Callable[[str, "str | None"], Awaitable[RoundTrip]]


class PaginationController:
    """Drains partitions concurrently under the configured bounds."""

    def __init__(self, options: QueryOptions) -> None:
        self._options = options

    @property
    def options(self) -> QueryOptions:
        return self._options

    async def drain(
        self,
        cursors: dict[str, str | None],
        fetch_page: FetchPage,
    ) -> AsyncIterator[PartitionPage | PartitionFailed]:
        """Yield round trips from every partition in completion order.

        Args:
            cursors: Partitions to drain, mapped to the storage token to start from
            fetch_page: Performs one priced round trip (retries included)

        Yields:
            PartitionPage per round trip, or PartitionFailed when a partition's
            retries are exhausted. Exactly one terminal event (a last page or a
            failure) is yielded per partition.
        """
        if not cursors:
            return

        workers = self._options.workers_for(len(cursors))
        buffer = PageBuffer(self._options.buffer_limit(workers))
        pending: deque[tuple[str, str | None]] = deque(cursors.items())
        tasks = [
            asyncio.create_task(self._worker(pending, buffer, fetch_page))
            for _ in range(workers)
        ]
        logger.debug(
            "pagination_started",
            extra={
                "partitions": len(cursors),
                "workers": workers,
                "buffer_limit": buffer.limit,
                "max_item_count": self._options.max_item_count,
            },
        )

        open_partitions = len(cursors)
        try:
            while open_partitions:
                entry = await buffer.get()
                if isinstance(entry, _WorkerCrashed):
                    raise entry.error
                if isinstance(entry, PartitionFailed) or (
                    isinstance(entry, PartitionPage) and entry.is_last
                ):
                    open_partitions -= 1
                yield entry
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _worker(
        self,
        pending: deque[tuple[str, str | None]],
        buffer: PageBuffer,
        fetch_page: FetchPage,
    ) -> None:
        page_size = self._options.max_item_count
        while pending:
            partition_id, token = pending.popleft()
            while True:
                await buffer.reserve(page_size)
                try:
                    round_trip = await fetch_page(partition_id, token)
                except PartitionUnavailableError as e:
                    await buffer.put(
                        PartitionFailed(partition_id, token, e), reserved=page_size, items=0
                    )
                    break
                except asyncio.CancelledError:
                    buffer.release(page_size)
                    raise
                except Exception as e:
                    await buffer.put(_WorkerCrashed(e), reserved=page_size, items=0)
                    return
                page = PartitionPage(partition_id, token, round_trip)
                await buffer.put(
                    page, reserved=page_size, items=len(round_trip.result.documents)
                )
                if page.is_last:
                    break
                token = page.next_token
