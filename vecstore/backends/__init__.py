"""Document store backends."""

from vecstore.backends.base import DocumentStore
from vecstore.backends.memory import InMemoryDocumentStore
from vecstore.backends.qdrant import QdrantDocumentStore

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "QdrantDocumentStore",
]
