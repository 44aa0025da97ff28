"""Domain vector store module."""

from vecstore.store.facade import DomainVectorStore

__all__ = ["DomainVectorStore"]
