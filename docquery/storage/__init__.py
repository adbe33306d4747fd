"""Storage collaborators serving partition round trips."""

from .base import FetchResult, StorageClient
from .http import HTTPStorageClient
from .memory import InMemoryStorage

__all__ = [
    "FetchResult",
    "HTTPStorageClient",
    "InMemoryStorage",
    "StorageClient",
]
