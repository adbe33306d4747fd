"""Execution engine turning routed predicates into priced pages.

Request Flow:
    1. Capture a partition map snapshot (or restore one from a continuation)
    2. Classify the predicate via QueryRouter (fail fast on bad predicates)
    3. Point lookups: one round trip, priced as a point read
    4. Everything else: drain the targeted partitions through the
       PaginationController, pricing each round trip as a query read
    5. Attach a continuation token to every page and log the query summary

Failure Handling:
    Transient partition failures are retried by ``call_with_retry`` and stay
    invisible while retries succeed. When they are exhausted:
    - point lookups and single-partition queries raise PartitionUnavailableError
    - multi-partition and fan-out queries keep draining the healthy partitions,
      then raise PartialResultsError with the documents delivered, the fully
      drained and the unreachable partitions, and a continuation for the
      unreachable ones

See Also:
    - QueryRouter: classification rules
    - PaginationController: concurrency, backpressure and cancellation
    - CostModel: pricing
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from time import perf_counter

from ..core.cost import DEFAULT_COST_MODEL, CostModel
from ..core.enums import OperationKind, RouteKind
from ..core.exceptions import (
    InvalidContinuationError,
    NotFoundError,
    PartialResultsError,
    PartitionUnavailableError,
)
from ..core.partition_map import PartitionMap
from ..models import Document, Page, Predicate, QueryResult
from ..storage.base import StorageClient
from .pagination import (
    ContinuationState,
    PaginationController,
    PartitionFailed,
    QueryOptions,
    RoundTrip,
)
from .retry import RetryPolicy, call_with_retry
from .router import PointLookup, QueryRouter
from .telemetry import log_query_completed, log_round_trip

logger = logging.getLogger(__name__)


class QueryEngine:
    """Executes predicates against a storage client.

    The engine holds no per-query state; every ``execute`` call captures its
    own partition map snapshot, so concurrent queries and splits do not
    interfere.
    """

    def __init__(
        self,
        storage: StorageClient,
        partition_map: PartitionMap,
        *,
        router: QueryRouter | None = None,
        cost_model: CostModel | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            storage: Storage collaborator serving round trips
            partition_map: Partition map to route against
            router: Router (defaults to one without a partition-key path)
            cost_model: Pricing model (defaults to DEFAULT_COST_MODEL)
            retry_policy: Retry settings for transient partition failures
        """
        self._storage = storage
        self._map = partition_map
        self._router = router or QueryRouter()
        self._cost_model = cost_model or DEFAULT_COST_MODEL
        self._retry_policy = retry_policy or RetryPolicy()

    @property
    def router(self) -> QueryRouter:
        return self._router

    async def execute(
        self,
        predicate: Predicate,
        options: QueryOptions | None = None,
        continuation: str | None = None,
    ) -> AsyncIterator[Page]:
        """Execute a predicate lazily, one page per round trip.

        Args:
            predicate: Predicate to execute
            options: Pagination settings (defaults to QueryOptions())
            continuation: Token from a previously delivered page to resume after

        Yields:
            Pages in completion order; each carries the continuation that
            resumes right after it (None once everything is delivered)

        Raises:
            InvalidPredicateError: Malformed predicate, before any round trip
            InvalidContinuationError: Token undecodable or for another predicate
            PartitionUnavailableError: Single-partition route exhausted retries
            PartialResultsError: Cross-partition route left partitions unreachable
        """
        options = options or QueryOptions()

        if continuation is None:
            snapshot = self._map.snapshot()
            route = self._router.classify(predicate, snapshot, map_version=snapshot.version)
            if isinstance(route, PointLookup):
                yield await self._point_lookup(predicate, route)
                return
            state = ContinuationState(
                version=snapshot.version,
                fingerprint=predicate.fingerprint(),
                route=route.kind,
                cursors={partition_id: None for partition_id in route.partition_ids},
            )
        else:
            state = self._restore(predicate, continuation)

        pages = self._drain(predicate, options, state)
        try:
            async for page in pages:
                yield page
        finally:
            await pages.aclose()

    async def execute_all(
        self,
        predicate: Predicate,
        options: QueryOptions | None = None,
        continuation: str | None = None,
    ) -> QueryResult:
        """Execute a predicate and collect every page.

        Raises:
            PartialResultsError: As for ``execute``; the error carries the
                documents gathered before it was raised
        """
        result = QueryResult()
        pages = self.execute(predicate, options, continuation)
        try:
            async for page in pages:
                result.add(page)
        finally:
            await pages.aclose()
        return result

    async def _point_lookup(self, predicate: Predicate, route: PointLookup) -> Page:
        round_trip = await self._round_trip(
            route.partition_id, predicate, None, 1, OperationKind.POINT_READ
        )
        documents = round_trip.result.documents
        if not documents:
            logger.debug(
                "point_lookup_not_found",
                extra={"document_id": route.document_id, "partition_id": route.partition_id},
            )
        log_query_completed(
            route_kind=route.kind,
            pages=1,
            documents=len(documents),
            cost=round_trip.cost,
            partitions=1,
        )
        return Page(
            documents=documents,
            cost=round_trip.cost,
            continuation=None,
            partition_id=route.partition_id,
        )

    async def _drain(
        self,
        predicate: Predicate,
        options: QueryOptions,
        state: ContinuationState,
    ) -> AsyncIterator[Page]:
        controller = PaginationController(options)
        cursors = dict(state.cursors)
        delivered: list[Document] = []
        covered: set[str] = set()
        failed: dict[str, PartitionUnavailableError] = {}
        total_cost = 0.0
        pages = 0

        async def fetch_page(partition_id: str, token: str | None) -> RoundTrip:
            return await self._round_trip(
                partition_id, predicate, token, options.max_item_count, OperationKind.READ
            )

        events = controller.drain(dict(state.cursors), fetch_page)
        try:
            async for event in events:
                if isinstance(event, PartitionFailed):
                    failed[event.partition_id] = event.error
                    if state.route == RouteKind.SINGLE_PARTITION:
                        raise event.error
                    continue

                if event.is_last:
                    cursors.pop(event.partition_id, None)
                else:
                    cursors[event.partition_id] = event.next_token
                covered.add(event.partition_id)

                round_trip = event.round_trip
                delivered.extend(round_trip.result.documents)
                total_cost += round_trip.cost
                pages += 1
                yield Page(
                    documents=round_trip.result.documents,
                    cost=round_trip.cost,
                    continuation=self._encode(state, cursors),
                    partition_id=event.partition_id,
                )
        finally:
            await events.aclose()

        # a partition that failed after delivering pages is unreachable, not covered
        covered.difference_update(failed)
        log_query_completed(
            route_kind=state.route,
            pages=pages,
            documents=len(delivered),
            cost=total_cost,
            partitions=len(covered),
            unavailable=sorted(failed),
        )

        if failed:
            remaining = {pid: token for pid, token in cursors.items() if pid in failed}
            raise PartialResultsError(
                f"{len(failed)} of {len(state.cursors)} partitions unreachable: "
                f"{', '.join(sorted(failed))}",
                documents=delivered,
                unavailable_partitions=failed,
                covered_partitions=covered,
                cost=total_cost,
                continuation=self._encode(state, remaining),
            )

    async def _round_trip(
        self,
        partition_id: str,
        predicate: Predicate,
        token: str | None,
        max_item_count: int,
        kind: OperationKind,
    ) -> RoundTrip:
        started = perf_counter()

        async def fetch():
            return await self._storage.fetch(partition_id, predicate, token, max_item_count)

        result, attempts = await call_with_retry(self._retry_policy, partition_id, fetch)
        price = self._cost_model.cost(kind, result.bytes_transferred)
        log_round_trip(
            partition_id=partition_id,
            documents=len(result.documents),
            bytes_transferred=result.bytes_transferred,
            cost=price,
            latency_ms=(perf_counter() - started) * 1000.0,
            attempts=attempts,
        )
        return RoundTrip(result=result, cost=price, attempts=attempts)

    def _restore(self, predicate: Predicate, continuation: str) -> ContinuationState:
        state = ContinuationState.decode(continuation)
        if state.fingerprint != predicate.fingerprint():
            raise InvalidContinuationError("Continuation token belongs to a different predicate")
        if state.version > self._map.version:
            raise InvalidContinuationError(
                f"Continuation token references partition map version {state.version}, "
                f"current is {self._map.version}"
            )
        for partition_id in state.cursors:
            try:
                self._map.range(partition_id)
            except NotFoundError:
                raise InvalidContinuationError(
                    f"Continuation token references unknown partition '{partition_id}'"
                ) from None
        self._router.validate(predicate)
        return state

    @staticmethod
    def _encode(state: ContinuationState, cursors: dict[str, str | None]) -> str | None:
        if not cursors:
            return None
        return ContinuationState(
            version=state.version,
            fingerprint=state.fingerprint,
            route=state.route,
            cursors=dict(cursors),
        ).encode()
