"""Shared fixtures."""

from __future__ import annotations

import pytest
import pytest_asyncio

from docquery import (
    Container,
    ContainerProperties,
    Document,
    InMemoryStorage,
    PartitionMap,
    QueryEngine,
    QueryRouter,
    RetryPolicy,
)

FOOD_GROUPS = ["Sweets", "Breakfast Cereals", "Fats and Oils", "Beef Products", "Snacks"]
DOCS_PER_GROUP = 25


def _food(item_id: str, group: str, **extra) -> dict:
    item = {"id": item_id, "foodGroup": group, "description": f"{group} {item_id}", "version": 1}
    item.update(extra)
    return item


@pytest.fixture
def make_food():
    """Factory for raw food items partitioned by ``/foodGroup``."""
    return _food


@pytest.fixture
def fast_retry() -> RetryPolicy:
    """Retry policy that never sleeps."""
    return RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0, jitter=0.0)


@pytest.fixture
def partition_map() -> PartitionMap:
    return PartitionMap.create(5)


@pytest.fixture
def storage(partition_map) -> InMemoryStorage:
    return InMemoryStorage(partition_map, capacity=None)


@pytest.fixture
def engine(storage, partition_map, fast_retry) -> QueryEngine:
    return QueryEngine(
        storage,
        partition_map,
        router=QueryRouter("/foodGroup"),
        retry_policy=fast_retry,
    )


@pytest_asyncio.fixture
async def seeded(storage) -> InMemoryStorage:
    """Storage holding DOCS_PER_GROUP documents for each food group."""
    for group in FOOD_GROUPS:
        for index in range(DOCS_PER_GROUP):
            item = _food(f"{group[:3].lower()}-{index:03d}", group)
            await storage.create(Document.from_item(item, "/foodGroup"))
    return storage


@pytest.fixture
def container(partition_map, storage, fast_retry) -> Container:
    return Container(
        ContainerProperties(id="food", partition_key_path="/foodGroup", partition_count=5),
        storage=storage,
        partition_map=partition_map,
        retry_policy=fast_retry,
    )
