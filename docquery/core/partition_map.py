"""Partition map: effective-key ranges to physical partitions.

Architecture:
    Partition-key values are hashed to a 64-bit effective key. The key space
    [0, 2**64) is divided into contiguous half-open ranges, each owned by one
    physical partition. Lookups bisect the sorted range starts, so resolving a
    key is O(log P) over P physical partitions.

Design Decisions:
    - Copy-on-write snapshots: a split builds a new immutable snapshot and
      publishes it with a single reference swap under a lock. Readers hold
      whichever snapshot they captured and never see a torn map
    - Versioned: every published snapshot carries a monotonically increasing
      version that continuation tokens record
    - Retired ids stay resolvable through ``range()`` so queries running on a
      pre-split snapshot can still be served by storage

See Also:
    - QueryRouter: resolves predicates against a captured snapshot
    - InMemoryStorage: triggers splits when a partition exceeds capacity
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from bisect import bisect_right
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Union

from .constants import KEY_SPACE_MAX, KEY_SPACE_MIN
from .exceptions import NotFoundError, PartitionMapError

logger = logging.getLogger(__name__)

PartitionKeyValue = Union[str, int, float, bool]


def key_identity(value: PartitionKeyValue) -> str:
    """Type-aware identity of a partition-key value.

    ``1``, ``1.0``, ``True`` and ``"1"`` compare equal or hash alike in Python
    but name four different logical partitions; compare keys through this.
    """
    return json.dumps(value, sort_keys=True)


def effective_key(value: PartitionKeyValue) -> int:
    """Hash a partition-key value onto the 64-bit effective key space."""
    encoded = key_identity(value).encode("utf-8")
    digest = hashlib.blake2b(encoded, digest_size=8).digest()
    return int.from_bytes(digest, "big")


@dataclass(frozen=True)
class KeyRange:
    """Half-open range [min, max) over the effective key space."""

    min: int
    max: int

    def __post_init__(self) -> None:
        if not KEY_SPACE_MIN <= self.min < self.max <= KEY_SPACE_MAX:
            raise PartitionMapError(f"Invalid key range [{self.min}, {self.max})")

    @property
    def width(self) -> int:
        return self.max - self.min

    def contains(self, key: int) -> bool:
        return self.min <= key < self.max

    def split(self) -> tuple[KeyRange, KeyRange]:
        """Split at the midpoint into two adjacent sub-ranges."""
        if self.width < 2:
            raise PartitionMapError(f"Key range [{self.min}, {self.max}) is too small to split")
        mid = self.min + self.width // 2
        return KeyRange(self.min, mid), KeyRange(mid, self.max)


@dataclass(frozen=True)
class PartitionRange:
    """A physical partition and the key range it currently owns."""

    partition_id: str
    key_range: KeyRange


@dataclass(frozen=True)
class PartitionMapSnapshot:
    """Immutable, versioned view of the partition map.

    Attributes:
        version: Snapshot version (increments per split)
        ranges: Partition ranges ordered by key range start
    """

    version: int
    ranges: tuple[PartitionRange, ...]
    _starts: tuple[int, ...] = field(init=False, repr=False, compare=False)
    _by_id: dict[str, KeyRange] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.ranges, key=lambda r: r.key_range.min))
        _check_coverage(ordered)
        object.__setattr__(self, "ranges", ordered)
        object.__setattr__(self, "_starts", tuple(r.key_range.min for r in ordered))
        object.__setattr__(self, "_by_id", {r.partition_id: r.key_range for r in ordered})

    def __len__(self) -> int:
        return len(self.ranges)

    def __contains__(self, partition_id: object) -> bool:
        return partition_id in self._by_id

    def partition_ids(self) -> list[str]:
        """Partition ids in key order."""
        return [r.partition_id for r in self.ranges]

    def resolve(self, value: PartitionKeyValue) -> str:
        """Resolve a partition-key value to its physical partition id."""
        return self.resolve_effective(effective_key(value))

    def resolve_effective(self, key: int) -> str:
        """Resolve an effective key to its physical partition id.

        Raises:
            NotFoundError: If the snapshot holds no partitions
        """
        if not self.ranges:
            raise NotFoundError("Partition map is empty")
        index = bisect_right(self._starts, key) - 1
        return self.ranges[index].partition_id

    def range(self, partition_id: str) -> KeyRange:
        """Key range owned by a partition in this snapshot."""
        try:
            return self._by_id[partition_id]
        except KeyError:
            raise NotFoundError(f"Unknown partition '{partition_id}'") from None


def _check_coverage(ranges: tuple[PartitionRange, ...]) -> None:
    """Ensure ranges are contiguous, non-overlapping and cover the key space."""
    if not ranges:
        return
    seen: set[str] = set()
    expected = KEY_SPACE_MIN
    for entry in ranges:
        if entry.partition_id in seen:
            raise PartitionMapError(f"Duplicate partition id '{entry.partition_id}'")
        seen.add(entry.partition_id)
        if entry.key_range.min != expected:
            raise PartitionMapError(
                f"Partition ranges must be contiguous: expected start {expected}, "
                f"got {entry.key_range.min} for '{entry.partition_id}'"
            )
        expected = entry.key_range.max
    if expected != KEY_SPACE_MAX:
        raise PartitionMapError("Partition ranges do not cover the whole key space")


class PartitionMap:
    """Mutable handle publishing versioned partition-map snapshots.

    Reads go through the current snapshot and never take the lock; only
    ``split`` serializes on it.
    """

    def __init__(self, ranges: Iterable[PartitionRange] = ()) -> None:
        snapshot = PartitionMapSnapshot(version=0, ranges=tuple(ranges))
        self._lock = threading.Lock()
        self._snapshot = snapshot
        # Every range ever issued, including those retired by splits
        self._history: dict[str, KeyRange] = {r.partition_id: r.key_range for r in snapshot.ranges}
        self._next_id = len(self._history)

    @classmethod
    def create(cls, partition_count: int = 1) -> PartitionMap:
        """Build a map dividing the key space evenly across partitions."""
        if partition_count < 1:
            raise PartitionMapError("partition_count must be >= 1")
        step = (KEY_SPACE_MAX - KEY_SPACE_MIN) // partition_count
        ranges = []
        for index in range(partition_count):
            start = KEY_SPACE_MIN + index * step
            end = KEY_SPACE_MAX if index == partition_count - 1 else start + step
            ranges.append(PartitionRange(str(index), KeyRange(start, end)))
        return cls(ranges)

    @property
    def version(self) -> int:
        return self._snapshot.version

    def snapshot(self) -> PartitionMapSnapshot:
        """Current snapshot; stays valid and unchanged after later splits."""
        return self._snapshot

    def partition_ids(self) -> list[str]:
        return self._snapshot.partition_ids()

    def resolve(self, value: PartitionKeyValue) -> str:
        """Resolve a partition-key value against the current snapshot."""
        return self._snapshot.resolve(value)

    def range(self, partition_id: str) -> KeyRange:
        """Key range of any partition id ever issued, live or retired."""
        try:
            return self._history[partition_id]
        except KeyError:
            raise NotFoundError(f"Unknown partition '{partition_id}'") from None

    def is_live(self, partition_id: str) -> bool:
        return partition_id in self._snapshot

    def split(self, partition_id: str) -> tuple[KeyRange, KeyRange]:
        """Replace a partition with two partitions owning adjacent halves.

        Args:
            partition_id: Live partition to split

        Returns:
            The two new key ranges, lower half first

        Raises:
            NotFoundError: If the partition is unknown or already retired
            PartitionMapError: If the range cannot be split further
        """
        with self._lock:
            current = self._snapshot
            old_range = current.range(partition_id)
            lower, upper = old_range.split()
            lower_id, upper_id = str(self._next_id), str(self._next_id + 1)

            ranges = [r for r in current.ranges if r.partition_id != partition_id]
            ranges.append(PartitionRange(lower_id, lower))
            ranges.append(PartitionRange(upper_id, upper))
            updated = PartitionMapSnapshot(version=current.version + 1, ranges=tuple(ranges))

            self._history[lower_id] = lower
            self._history[upper_id] = upper
            self._next_id += 2
            self._snapshot = updated

        logger.info(
            "partition_split",
            extra={
                "partition_id": partition_id,
                "children": [lower_id, upper_id],
                "version": updated.version,
            },
        )
        return lower, upper
