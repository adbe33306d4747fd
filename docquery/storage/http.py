"""HTTP storage client adapter."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import aiohttp

from ..core.exceptions import PartitionUnavailableError, StorageError
from ..models import Document, Predicate
from .base import FetchResult

logger = logging.getLogger(__name__)

# Statuses a storage node returns while a partition is moving, throttled or down
_RETRYABLE_STATUSES = frozenset({408, 410, 429, 500, 502, 503, 504})


class HTTPStorageClient:
    """Async HTTP client speaking to storage nodes.

    Each round trip is ``POST {base_url}/partitions/{partition_id}/query`` with
    a JSON body ``{"predicate", "continuation", "max_item_count"}``; the node
    answers ``{"documents": [...], "continuation": ...}`` where every document
    is an envelope ``{"id", "partition_key", "body"}``, since a projected body
    may lack both the id and the partition-key property.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._headers = headers or {}
        self._session: aiohttp.ClientSession | None = None

    @property
    def session(self) -> aiohttp.ClientSession:
        """Get or create session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def fetch(
        self,
        partition_id: str,
        predicate: Predicate,
        continuation: str | None = None,
        max_item_count: int | None = None,
    ) -> FetchResult:
        """Run one round trip against a storage node."""
        url = f"{self.base_url}/partitions/{partition_id}/query"
        payload = {
            "predicate": predicate.model_dump(mode="json"),
            "continuation": continuation,
            "max_item_count": max_item_count,
        }
        try:
            status, raw = await self._post(url, payload)
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
            raise PartitionUnavailableError(
                f"Partition '{partition_id}' unreachable: {e}", partition_id=partition_id
            ) from e

        if status == 404:
            return FetchResult(bytes_transferred=len(raw))
        if status in _RETRYABLE_STATUSES:
            raise PartitionUnavailableError(
                f"Partition '{partition_id}' returned HTTP {status}", partition_id=partition_id
            )
        if status >= 400:
            raise StorageError(
                f"Storage node rejected query on partition '{partition_id}': HTTP {status}",
                status_code=status,
            )

        try:
            data = json.loads(raw)
            documents = tuple(
                Document.model_validate(item)
                for item in data.get("documents", [])
            )
        except (ValueError, AttributeError, TypeError) as e:
            raise StorageError(f"Malformed response from partition '{partition_id}': {e}") from e

        if max_item_count is not None and len(documents) > max_item_count:
            raise StorageError(
                f"Partition '{partition_id}' returned {len(documents)} documents, "
                f"more than the requested {max_item_count}"
            )
        return FetchResult(
            documents=documents,
            continuation=data.get("continuation"),
            bytes_transferred=len(raw),
        )

    async def _post(self, url: str, payload: dict[str, Any]) -> tuple[int, bytes]:
        async with self.session.post(url, json=payload, headers=self._headers) as response:
            return response.status, await response.read()

    async def close(self) -> None:
        """Close session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> HTTPStorageClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
