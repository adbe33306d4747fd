"""Query router classifying predicates against the partition map.

The QueryRouter decides how many physical partitions a predicate must visit:

1. id + one partition-key value     -> PointLookup (one round trip)
2. one partition-key value          -> SinglePartition, whatever else is AND-ed
3. several partition-key values     -> MultiPartition over each resolved partition
4. no partition-key constraint      -> FanOut over every partition

Architecture:
    The router is pure: it reads a partition map snapshot and never touches
    storage. Equality and ``in`` filters on the collection's partition-key
    property count as partition-key constraints, so a predicate written as
    ``Filter(field="foodGroup", value="Sweets")`` routes the same way as
    ``Predicate(partition_key="Sweets")``.

Design Decisions:
    - OR'd partition-key values decompose into MultiPartition; they never
      collapse onto the partition of the first key
    - Malformed or unsatisfiable predicates fail here, before any round trip
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import ClassVar, Protocol, Union

from ..core.enums import FilterOp, RouteKind
from ..core.exceptions import InvalidPredicateError
from ..core.partition_map import PartitionKeyValue, key_identity
from ..models import Predicate
from .telemetry import log_route_classified

logger = logging.getLogger(__name__)


class PartitionResolver(Protocol):
    """Anything that resolves keys and lists partitions (map or snapshot)."""

    def resolve(self, value: PartitionKeyValue) -> str: ...

    def partition_ids(self) -> list[str]: ...


@dataclass(frozen=True)
class PointLookup:
    kind: ClassVar[RouteKind] = RouteKind.POINT_LOOKUP

    document_id: str
    partition_key: PartitionKeyValue
    partition_id: str

    @property
    def partition_ids(self) -> tuple[str, ...]:
        return (self.partition_id,)


@dataclass(frozen=True)
class SinglePartition:
    kind: ClassVar[RouteKind] = RouteKind.SINGLE_PARTITION

    partition_key: PartitionKeyValue
    partition_id: str

    @property
    def partition_ids(self) -> tuple[str, ...]:
        return (self.partition_id,)


@dataclass(frozen=True)
class MultiPartition:
    """Several partition-key values, each resolved to its own partition."""

    kind: ClassVar[RouteKind] = RouteKind.MULTI_PARTITION

    partition_keys: tuple[PartitionKeyValue, ...]
    partition_ids: tuple[str, ...]


@dataclass(frozen=True)
class FanOut:
    kind: ClassVar[RouteKind] = RouteKind.FAN_OUT

    partition_ids: tuple[str, ...]


Route = Union[PointLookup, SinglePartition, MultiPartition, FanOut]


def _normalize_path(path: str) -> str:
    return path.replace("/", ".").strip(".")


class QueryRouter:
    """Classifies predicates into routes.

    Args:
        partition_key_path: The collection's partition-key property (e.g.
            ``/foodGroup``). When None, only the predicate's explicit
            ``partition_key`` fields constrain routing.
    """

    def __init__(self, partition_key_path: str | None = None) -> None:
        self._key_field = _normalize_path(partition_key_path) if partition_key_path else None

    def classify(
        self,
        predicate: Predicate,
        partition_map: PartitionResolver,
        *,
        map_version: int = 0,
    ) -> Route:
        """Classify a predicate against a partition map or snapshot.

        Args:
            predicate: Predicate to route
            partition_map: PartitionMap or PartitionMapSnapshot to resolve keys with
            map_version: Snapshot version, for logging only

        Returns:
            PointLookup, SinglePartition, MultiPartition or FanOut

        Raises:
            InvalidPredicateError: If the predicate is malformed or unsatisfiable
        """
        self.validate(predicate)
        keys = self.routing_keys(predicate)

        route: Route
        if keys is None:
            route = FanOut(partition_ids=tuple(partition_map.partition_ids()))
        elif len(keys) == 1:
            partition_id = partition_map.resolve(keys[0])
            if predicate.id is not None:
                route = PointLookup(
                    document_id=predicate.id,
                    partition_key=keys[0],
                    partition_id=partition_id,
                )
            else:
                route = SinglePartition(partition_key=keys[0], partition_id=partition_id)
        else:
            partition_ids: list[str] = []
            for key in keys:
                partition_id = partition_map.resolve(key)
                if partition_id not in partition_ids:
                    partition_ids.append(partition_id)
            route = MultiPartition(partition_keys=keys, partition_ids=tuple(partition_ids))

        log_route_classified(
            route_kind=route.kind,
            partition_ids=route.partition_ids,
            fingerprint=predicate.fingerprint(),
            map_version=map_version,
        )
        return route

    def routing_keys(self, predicate: Predicate) -> tuple[PartitionKeyValue, ...] | None:
        """Partition-key values the predicate is confined to (None = unconstrained).

        Explicit ``partition_key``/``partition_key_in`` values are OR'd together;
        equality and ``in`` filters on the partition-key property are AND-ed
        with them by intersection. Keys are compared by type-aware identity,
        so ``1`` and ``True`` stay two partition keys.

        Raises:
            InvalidPredicateError: If the constraints leave no key possible
        """
        explicit = predicate.partition_key_values()
        keys: dict[str, PartitionKeyValue] | None = None
        if explicit:
            keys = {key_identity(value): value for value in explicit}

        for condition in predicate.filters:
            if self._key_field is None or _normalize_path(condition.field) != self._key_field:
                continue
            if condition.op == FilterOp.EQ:
                allowed = {key_identity(condition.value): condition.value}
            elif condition.op == FilterOp.IN:
                allowed = {}
                for value in condition.value:
                    allowed.setdefault(key_identity(value), value)
            else:
                continue
            if keys is None:
                keys = allowed
            else:
                keys = {identity: key for identity, key in keys.items() if identity in allowed}

        if keys is not None and not keys:
            raise InvalidPredicateError(
                "Partition-key conditions are contradictory; no partition can match"
            )
        return tuple(keys.values()) if keys is not None else None

    def validate(self, predicate: Predicate) -> None:
        """Reject malformed predicates.

        Raises:
            InvalidPredicateError: On empty ids or keys, malformed filters or
                an empty projection
        """
        if predicate.id is not None and not predicate.id:
            raise InvalidPredicateError("Document id must not be empty")
        for value in predicate.partition_key_values():
            if value == "":
                raise InvalidPredicateError("Partition-key value must not be empty")
        if predicate.projection is not None and not predicate.projection:
            raise InvalidPredicateError("Projection must list at least one property")
        for condition in predicate.filters:
            if condition.op == FilterOp.IN:
                if not isinstance(condition.value, (list, tuple)) or not condition.value:
                    raise InvalidPredicateError(
                        f"Filter '{condition.field} in' needs a non-empty list of values"
                    )
            elif condition.op == FilterOp.DEFINED:
                if condition.value is not None:
                    raise InvalidPredicateError(
                        f"Filter '{condition.field} defined' does not take a value"
                    )
            elif (
                self._key_field is not None
                and _normalize_path(condition.field) == self._key_field
                and condition.op == FilterOp.EQ
                and condition.value is None
            ):
                raise InvalidPredicateError("Partition-key equality needs a value")
