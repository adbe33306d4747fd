"""Unit tests for HTTPStorageClient."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from docquery.core import PartitionUnavailableError, StorageError
from docquery.models import Predicate
from docquery.storage import HTTPStorageClient


@pytest.fixture
def client() -> HTTPStorageClient:
    return HTTPStorageClient("http://storage.local/")


def envelope(item_id: str, group, **properties) -> dict:
    return {"id": item_id, "partition_key": group, "body": properties}


def body(documents: list[dict], continuation: str | None = None) -> bytes:
    return json.dumps({"documents": documents, "continuation": continuation}).encode()


class TestFetch:
    """Test response handling."""

    @pytest.mark.asyncio
    async def test_successful_round_trip(self, client):
        raw = body([envelope("19293", "Sweets", id="19293", foodGroup="Sweets")], "next")
        post = AsyncMock(return_value=(200, raw))
        with patch.object(client, "_post", post):
            result = await client.fetch("3", Predicate(partition_key="Sweets"), "tok", 10)

        assert [doc.id for doc in result.documents] == ["19293"]
        assert result.documents[0].partition_key == "Sweets"
        assert result.documents[0].body == {"id": "19293", "foodGroup": "Sweets"}
        assert result.continuation == "next"
        assert result.bytes_transferred == len(raw)

        url, payload = post.await_args.args
        assert url == "http://storage.local/partitions/3/query"
        assert payload["continuation"] == "tok"
        assert payload["max_item_count"] == 10
        assert payload["predicate"]["partition_key"] == "Sweets"

    @pytest.mark.asyncio
    async def test_projected_documents_keep_id_and_key(self, client):
        raw = body([envelope("19293", True, version=2)])
        predicate = Predicate(partition_key=True, projection=("version",))
        with patch.object(client, "_post", AsyncMock(return_value=(200, raw))):
            result = await client.fetch("1", predicate)

        (document,) = result.documents
        assert document.id == "19293"
        assert document.partition_key is True
        assert document.body == {"version": 2}

    @pytest.mark.asyncio
    async def test_not_found_is_empty_result(self, client):
        with patch.object(client, "_post", AsyncMock(return_value=(404, b""))):
            result = await client.fetch("0", Predicate(id="1", partition_key="Sweets"))
        assert result.documents == ()
        assert result.continuation is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [408, 410, 429, 500, 503])
    async def test_retryable_status_raises_unavailable(self, client, status):
        with patch.object(client, "_post", AsyncMock(return_value=(status, b""))):
            with pytest.raises(PartitionUnavailableError) as exc_info:
                await client.fetch("2", Predicate())
        assert exc_info.value.partition_id == "2"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError()],
    )
    async def test_connection_errors_raise_unavailable(self, client, error):
        with patch.object(client, "_post", AsyncMock(side_effect=error)):
            with pytest.raises(PartitionUnavailableError):
                await client.fetch("2", Predicate())

    @pytest.mark.asyncio
    async def test_client_error_is_not_retryable(self, client):
        with patch.object(client, "_post", AsyncMock(return_value=(400, b"bad"))):
            with pytest.raises(StorageError) as exc_info:
                await client.fetch("0", Predicate())
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw",
        [
            b"not json",
            b"[]",
            body(["19293"]),
            body([{"partition_key": "Sweets", "body": {}}]),
            body([{"id": "1", "body": {}}]),
            body([{"id": "1", "partition_key": ["Sweets"], "body": {}}]),
        ],
    )
    async def test_malformed_response(self, client, raw):
        with patch.object(client, "_post", AsyncMock(return_value=(200, raw))):
            with pytest.raises(StorageError, match="Malformed"):
                await client.fetch("0", Predicate())

    @pytest.mark.asyncio
    async def test_oversized_page_rejected(self, client):
        raw = body([envelope(str(i), "Sweets") for i in range(3)])
        with patch.object(client, "_post", AsyncMock(return_value=(200, raw))):
            with pytest.raises(StorageError, match="more than the requested"):
                await client.fetch("0", Predicate(), max_item_count=2)


class TestSession:
    """Test session lifecycle."""

    @pytest.mark.asyncio
    async def test_session_created_lazily_and_closed(self, client):
        assert client._session is None
        session = client.session
        assert client.session is session
        await client.close()
        assert session.closed

    @pytest.mark.asyncio
    async def test_context_manager_closes(self):
        async with HTTPStorageClient("http://storage.local") as client:
            session = client.session
        assert session.closed

    @pytest.mark.asyncio
    async def test_close_without_session(self, client):
        await client.close()
        assert client._session is None
