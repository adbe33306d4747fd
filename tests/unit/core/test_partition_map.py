"""Unit tests for the partition map."""

from __future__ import annotations

import threading

import pytest

from docquery.core import (
    KEY_SPACE_MAX,
    KEY_SPACE_MIN,
    KeyRange,
    NotFoundError,
    PartitionMap,
    PartitionMapError,
    PartitionMapSnapshot,
    PartitionRange,
    effective_key,
)


def assert_covers_key_space(snapshot: PartitionMapSnapshot) -> None:
    expected = KEY_SPACE_MIN
    for entry in snapshot.ranges:
        assert entry.key_range.min == expected
        expected = entry.key_range.max
    assert expected == KEY_SPACE_MAX


class TestEffectiveKey:
    def test_deterministic(self):
        assert effective_key("Sweets") == effective_key("Sweets")

    def test_within_key_space(self):
        for value in ("Sweets", "", 0, 1.5, True):
            assert KEY_SPACE_MIN <= effective_key(value) < KEY_SPACE_MAX

    def test_types_are_distinguished(self):
        """Test "1" and 1 are different logical partitions."""
        assert effective_key("1") != effective_key(1)


class TestKeyRange:
    def test_half_open(self):
        key_range = KeyRange(10, 20)
        assert key_range.contains(10)
        assert key_range.contains(19)
        assert not key_range.contains(20)
        assert key_range.width == 10

    @pytest.mark.parametrize("bounds", [(5, 5), (6, 5), (-1, 5), (0, KEY_SPACE_MAX + 1)])
    def test_invalid_bounds_rejected(self, bounds):
        with pytest.raises(PartitionMapError):
            KeyRange(*bounds)

    def test_split_at_midpoint(self):
        lower, upper = KeyRange(0, 10).split()
        assert lower == KeyRange(0, 5)
        assert upper == KeyRange(5, 10)

    def test_unit_range_cannot_split(self):
        with pytest.raises(PartitionMapError, match="too small"):
            KeyRange(7, 8).split()


class TestPartitionMapSnapshot:
    def test_gaps_rejected(self):
        with pytest.raises(PartitionMapError, match="contiguous"):
            PartitionMapSnapshot(
                version=0,
                ranges=(
                    PartitionRange("a", KeyRange(0, 100)),
                    PartitionRange("b", KeyRange(200, KEY_SPACE_MAX)),
                ),
            )

    def test_partial_coverage_rejected(self):
        with pytest.raises(PartitionMapError, match="cover"):
            PartitionMapSnapshot(version=0, ranges=(PartitionRange("a", KeyRange(0, 100)),))

    def test_duplicate_ids_rejected(self):
        with pytest.raises(PartitionMapError, match="Duplicate"):
            PartitionMapSnapshot(
                version=0,
                ranges=(
                    PartitionRange("a", KeyRange(0, 100)),
                    PartitionRange("a", KeyRange(100, KEY_SPACE_MAX)),
                ),
            )

    def test_ranges_sorted_on_construction(self):
        snapshot = PartitionMapSnapshot(
            version=0,
            ranges=(
                PartitionRange("hi", KeyRange(100, KEY_SPACE_MAX)),
                PartitionRange("lo", KeyRange(0, 100)),
            ),
        )
        assert snapshot.partition_ids() == ["lo", "hi"]
        assert snapshot.resolve_effective(99) == "lo"
        assert snapshot.resolve_effective(100) == "hi"

    def test_empty_snapshot_cannot_resolve(self):
        snapshot = PartitionMapSnapshot(version=0, ranges=())
        with pytest.raises(NotFoundError, match="empty"):
            snapshot.resolve("Sweets")


class TestPartitionMap:
    """Test PartitionMap lookups and splits."""

    def test_create_divides_key_space(self):
        partition_map = PartitionMap.create(4)
        snapshot = partition_map.snapshot()
        assert partition_map.partition_ids() == ["0", "1", "2", "3"]
        assert partition_map.version == 0
        assert_covers_key_space(snapshot)

    def test_create_rejects_zero_partitions(self):
        with pytest.raises(PartitionMapError):
            PartitionMap.create(0)

    def test_resolve_is_stable(self):
        partition_map = PartitionMap.create(8)
        assert partition_map.resolve("Sweets") == partition_map.resolve("Sweets")
        partition_id = partition_map.resolve("Sweets")
        assert partition_map.range(partition_id).contains(effective_key("Sweets"))

    def test_empty_map_resolve_raises_not_found(self):
        with pytest.raises(NotFoundError):
            PartitionMap().resolve("Sweets")

    def test_split_replaces_partition_with_two_children(self):
        partition_map = PartitionMap.create(2)
        old_range = partition_map.range("0")

        lower, upper = partition_map.split("0")

        assert partition_map.version == 1
        assert partition_map.partition_ids() == ["2", "3", "1"]
        assert lower.min == old_range.min
        assert upper.max == old_range.max
        assert lower.max == upper.min
        assert not partition_map.is_live("0")
        assert partition_map.is_live("2")
        assert_covers_key_space(partition_map.snapshot())

    def test_coverage_preserved_across_many_splits(self):
        partition_map = PartitionMap.create(3)
        for _ in range(10):
            partition_map.split(partition_map.partition_ids()[0])
            assert_covers_key_space(partition_map.snapshot())
        assert len(partition_map.snapshot()) == 13
        assert partition_map.version == 10

    def test_retired_partition_range_stays_resolvable(self):
        """Test queries started before a split can still address the old id."""
        partition_map = PartitionMap.create(1)
        original = partition_map.range("0")
        partition_map.split("0")
        assert partition_map.range("0") == original
        assert "0" not in partition_map.snapshot()

    def test_split_of_retired_partition_raises(self):
        partition_map = PartitionMap.create(1)
        partition_map.split("0")
        with pytest.raises(NotFoundError):
            partition_map.split("0")

    def test_unknown_partition_range_raises(self):
        with pytest.raises(NotFoundError, match="Unknown partition"):
            PartitionMap.create(1).range("42")

    def test_unsplittable_partition(self):
        partition_map = PartitionMap(
            [
                PartitionRange("tiny", KeyRange(0, 1)),
                PartitionRange("rest", KeyRange(1, KEY_SPACE_MAX)),
            ]
        )
        with pytest.raises(PartitionMapError):
            partition_map.split("tiny")
        assert partition_map.version == 0

    def test_snapshot_isolated_from_later_splits(self):
        """Test a captured snapshot never changes."""
        partition_map = PartitionMap.create(2)
        before = partition_map.snapshot()
        key = "Sweets"
        resolved_before = before.resolve(key)

        partition_map.split(resolved_before)

        assert before.version == 0
        assert before.partition_ids() == ["0", "1"]
        assert before.resolve(key) == resolved_before
        assert partition_map.resolve(key) != resolved_before

    def test_concurrent_splits_keep_map_consistent(self):
        partition_map = PartitionMap.create(8)
        errors: list[Exception] = []

        def split(partition_id: str) -> None:
            try:
                partition_map.split(partition_id)
            except Exception as e:  # noqa: BLE001
                errors.append(e)

        threads = [threading.Thread(target=split, args=(str(i),)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert partition_map.version == 8
        assert len(partition_map.snapshot()) == 16
        assert_covers_key_space(partition_map.snapshot())
