"""Pre-parsed query predicates.

A predicate is the normalized form of a query such as::

    SELECT c.description FROM c
    WHERE c.foodGroup = 'Sweets' AND IS_DEFINED(c.description)

which becomes ``Predicate(partition_key="Sweets",
filters=(Filter(field="description", op=FilterOp.DEFINED),),
projection=("description",))``. Parsing query text is not this library's job.
"""

from __future__ import annotations

import hashlib
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..core.enums import FilterOp
from ..core.partition_map import PartitionKeyValue, key_identity
from .document import Document, is_missing, lookup


_SCALARS = (str, int, float, bool)


def _equal(found: Any, value: Any) -> bool:
    if isinstance(found, _SCALARS) and isinstance(value, _SCALARS):
        return key_identity(found) == key_identity(value)
    return bool(found == value)


class Filter(BaseModel):
    """A single AND-ed condition on a document property."""

    field: str = Field(..., min_length=1)
    op: FilterOp = FilterOp.EQ
    value: Any = None

    model_config = ConfigDict(frozen=True)

    def matches(self, document: Document) -> bool:
        """Evaluate the condition against a document.

        Comparisons against an undefined property are false, as are ordering
        comparisons between incompatible types. Equality on scalars is
        type-aware: ``1``, ``1.0`` and ``True`` are three different values.
        """
        found = lookup(document.body, self.field)
        if self.op == FilterOp.DEFINED:
            return not is_missing(found)
        if is_missing(found):
            return False
        if self.op == FilterOp.EQ:
            return _equal(found, self.value)
        if self.op == FilterOp.NE:
            return not _equal(found, self.value)
        if self.op == FilterOp.IN:
            return any(_equal(found, value) for value in self.value)
        try:
            if self.op == FilterOp.LT:
                return bool(found < self.value)
            if self.op == FilterOp.LE:
                return bool(found <= self.value)
            if self.op == FilterOp.GT:
                return bool(found > self.value)
            if self.op == FilterOp.GE:
                return bool(found >= self.value)
        except TypeError:
            return False
        return False


class Predicate(BaseModel):
    """Normalized query descriptor.

    Attributes:
        id: Document id to match (with a single partition key this is a point lookup)
        partition_key: Equality filter on the partition key
        partition_key_in: Alternative partition-key values OR'd with ``partition_key``
        filters: Additional AND-ed conditions
        projection: Top-level properties to return (None returns whole documents)
    """

    id: str | None = None
    partition_key: PartitionKeyValue | None = None
    partition_key_in: tuple[PartitionKeyValue, ...] = ()
    filters: tuple[Filter, ...] = ()
    projection: tuple[str, ...] | None = None

    model_config = ConfigDict(frozen=True)

    def partition_key_values(self) -> tuple[PartitionKeyValue, ...]:
        """Every partition-key value named, deduplicated, in order."""
        values: dict[str, PartitionKeyValue] = {}
        candidates = ([self.partition_key] if self.partition_key is not None else []) + list(
            self.partition_key_in
        )
        for value in candidates:
            values.setdefault(key_identity(value), value)
        return tuple(values.values())

    def fingerprint(self) -> str:
        """Stable digest identifying this predicate in continuation tokens."""
        payload = self.model_dump_json().encode("utf-8")
        return hashlib.sha256(payload).hexdigest()[:16]

    def matches(self, document: Document) -> bool:
        """Whether a document satisfies id, partition-key and filter conditions."""
        if self.id is not None and document.id != self.id:
            return False
        keys = {key_identity(value) for value in self.partition_key_values()}
        if keys and key_identity(document.partition_key) not in keys:
            return False
        return all(f.matches(document) for f in self.filters)

    def apply_projection(self, document: Document) -> Document:
        if self.projection is None:
            return document
        return document.project(self.projection)
