"""Embedding service module."""

from vecstore.embeddings.batching import (
    BatchingStrategy,
    CharacterBudgetBatchingStrategy,
    FixedSizeBatchingStrategy,
)
from vecstore.embeddings.bridge import EmbeddingBridge
from vecstore.embeddings.models import EmbeddingOptions, EmbeddingResult
from vecstore.embeddings.service import EmbeddingService, HTTPEmbeddingService

__all__ = [
    "BatchingStrategy",
    "CharacterBudgetBatchingStrategy",
    "EmbeddingBridge",
    "EmbeddingOptions",
    "EmbeddingResult",
    "EmbeddingService",
    "FixedSizeBatchingStrategy",
    "HTTPEmbeddingService",
]
