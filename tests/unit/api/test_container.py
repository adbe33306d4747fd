"""Unit tests for Container and FeedIterator."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from docquery.api import Container, ContainerProperties, FeedIterator
from docquery.core import ConflictError, NotFoundError, StorageError
from docquery.models import Filter, Predicate
from docquery.runtime import QueryOptions
from docquery.storage import FetchResult


class TestContainerProperties:
    def test_defaults(self):
        properties = ContainerProperties(id="food", partition_key_path="/foodGroup")
        assert properties.partition_count == 1
        assert properties.partition_capacity == 10_000

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"id": "", "partition_key_path": "/foodGroup"},
            {"id": "food", "partition_key_path": "foodGroup"},
            {"id": "food", "partition_key_path": "/foodGroup", "partition_count": 0},
            {"id": "food", "partition_key_path": "/foodGroup", "partition_capacity": 0},
        ],
    )
    def test_invalid_properties_rejected(self, kwargs):
        with pytest.raises(ValidationError):
            ContainerProperties(**kwargs)

    def test_default_storage_uses_partition_count(self):
        container = Container(
            ContainerProperties(id="food", partition_key_path="/foodGroup", partition_count=3)
        )
        assert container.id == "food"
        assert container.partition_map.partition_ids() == ["0", "1", "2"]


class TestItems:
    """Test single-item operations."""

    @pytest.mark.asyncio
    async def test_create_then_read(self, container, make_food):
        await container.create_item(make_food("19293", "Sweets"))

        response = await container.read_item("19293", "Sweets")

        assert response.document is not None
        assert response.document.value("description") == "Sweets 19293"
        assert response.cost == pytest.approx(1.0)
        assert response.partition_id == container.partition_map.resolve("Sweets")

    @pytest.mark.asyncio
    async def test_read_missing_item(self, container):
        response = await container.read_item("08065", "Breakfast Cereals")
        assert response.document is None
        assert response.cost == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_create_conflict(self, container, make_food):
        await container.create_item(make_food("1", "Sweets"))
        with pytest.raises(ConflictError):
            await container.create_item(make_food("1", "Sweets"))

    @pytest.mark.asyncio
    async def test_create_requires_partition_key(self, container):
        with pytest.raises(ValueError, match="partition key"):
            await container.create_item({"id": "1"})

    @pytest.mark.asyncio
    async def test_replace_and_upsert(self, container, make_food):
        await container.create_item(make_food("1", "Sweets"))
        await container.replace_item("1", make_food("1", "Sweets", version=2))
        await container.upsert_item(make_food("1", "Sweets", version=3))
        response = await container.read_item("1", "Sweets")
        assert response.document.value("version") == 3

    @pytest.mark.asyncio
    async def test_replace_id_mismatch(self, container, make_food):
        with pytest.raises(ValueError, match="does not match"):
            await container.replace_item("2", make_food("1", "Sweets"))

    @pytest.mark.asyncio
    async def test_delete(self, container, make_food):
        await container.create_item(make_food("1", "Sweets"))
        await container.delete_item("1", "Sweets")
        with pytest.raises(NotFoundError):
            await container.delete_item("1", "Sweets")

    @pytest.mark.asyncio
    async def test_read_only_storage_rejects_writes(self, make_food):
        class ReadOnlyStorage:
            async def fetch(self, partition_id, predicate, continuation=None, max_item_count=None):
                return FetchResult()

        container = Container(
            ContainerProperties(id="food", partition_key_path="/foodGroup"),
            storage=ReadOnlyStorage(),
        )
        with pytest.raises(StorageError, match="does not support writes"):
            await container.create_item(make_food("1", "Sweets"))


class TestFeedIterator:
    """Test the page-at-a-time query surface."""

    @pytest.mark.asyncio
    async def test_read_next_loop(self, container, seeded):
        feed = container.query_items(
            Predicate(partition_key="Sweets"), options=QueryOptions(max_item_count=10)
        )
        assert isinstance(feed, FeedIterator)

        sizes = []
        while feed.has_more_results:
            page = await feed.read_next()
            sizes.append(len(page))

        assert sizes == [10, 10, 5]
        assert feed.page_count == 3
        assert feed.continuation is None
        assert feed.total_cost > 0

    @pytest.mark.asyncio
    async def test_read_next_after_exhaustion_is_empty(self, container, seeded):
        feed = container.query_items(Predicate(partition_key="Sweets"))
        await feed.read_next()
        assert not feed.has_more_results
        page = await feed.read_next()
        assert len(page) == 0
        assert page.cost == 0.0

    @pytest.mark.asyncio
    async def test_async_iteration_over_fan_out(self, container, seeded):
        predicate = Predicate(filters=(Filter(field="version", value=1),))
        options = QueryOptions(max_item_count=20)
        ids = []
        async for page in container.query_items(predicate, options=options):
            ids.extend(doc.id for doc in page)
        assert len(ids) == len(set(ids)) == 125

    @pytest.mark.asyncio
    async def test_continuation_resumes_in_new_iterator(self, container, seeded):
        predicate = Predicate()
        options = QueryOptions(max_item_count=10, max_concurrency=1)

        async with container.query_items(predicate, options=options) as feed:
            first = await feed.read_next()
            token = feed.continuation
        assert token is not None

        rest = container.query_items(predicate, options=options, continuation=token)
        ids = [doc.id for doc in first]
        async for page in rest:
            ids.extend(doc.id for doc in page)
        assert len(ids) == len(set(ids)) == 125

    @pytest.mark.asyncio
    async def test_query_is_lazy(self, container, seeded):
        container.query_items(Predicate())
        assert sum(seeded.round_trips.values()) == 0
