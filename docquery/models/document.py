"""Document data model."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..core.partition_map import PartitionKeyValue

_MISSING = object()


class Document(BaseModel):
    """A JSON-like record owned by exactly one logical partition.

    ``body`` holds the full item as stored, including ``id`` and the
    partition-key property; ``id`` and ``partition_key`` are lifted out so
    routing never has to parse the body.
    """

    id: str = Field(..., min_length=1)
    partition_key: PartitionKeyValue
    body: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_item(cls, item: dict[str, Any], partition_key_path: str) -> Document:
        """Build a document from a raw item and the collection's key path.

        Raises:
            ValueError: If the item lacks an id or the partition-key property
        """
        if "id" not in item:
            raise ValueError("Item must have an 'id' property")
        value = lookup(item, partition_key_path)
        if value is _MISSING or value is None:
            raise ValueError(f"Item is missing partition key '{partition_key_path}'")
        return cls(id=str(item["id"]), partition_key=value, body=dict(item))

    @property
    def size_bytes(self) -> int:
        """Payload size as UTF-8 JSON."""
        return len(json.dumps(self.body, separators=(",", ":"), default=str).encode("utf-8"))

    def value(self, path: str, default: Any = None) -> Any:
        """Value at a dotted or slash-separated property path."""
        found = lookup(self.body, path)
        return default if found is _MISSING else found

    def has(self, path: str) -> bool:
        return lookup(self.body, path) is not _MISSING

    def project(self, fields: tuple[str, ...]) -> Document:
        """Copy keeping only the listed top-level properties."""
        body = {name: self.body[name] for name in fields if name in self.body}
        return Document(id=self.id, partition_key=self.partition_key, body=body)


def lookup(item: dict[str, Any], path: str) -> Any:
    """Walk ``path`` into a nested dict, returning a sentinel when absent."""
    current: Any = item
    for part in path.replace("/", ".").strip(".").split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def is_missing(value: Any) -> bool:
    return value is _MISSING
