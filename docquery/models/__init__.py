"""Data models for documents, predicates and query results.

Architecture:
    Documents and predicates are Pydantic v2 models with ``frozen=True``: a
    predicate cannot change once submitted and a document cannot change once
    written. Result containers are plain dataclasses.
"""

from .document import Document
from .page import ItemResponse, Page, QueryResult
from .predicate import Filter, Predicate

__all__ = [
    "Document",
    "Filter",
    "ItemResponse",
    "Page",
    "Predicate",
    "QueryResult",
]
