"""High-level container API."""

from .container import Container, ContainerProperties, DocumentWriter, FeedIterator

__all__ = [
    "Container",
    "ContainerProperties",
    "DocumentWriter",
    "FeedIterator",
]
