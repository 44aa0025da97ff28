"""Pytest configuration and shared fixtures."""

import re
from dataclasses import dataclass, field
from typing import Annotated

import pytest

from vecstore.backends.memory import InMemoryDocumentStore
from vecstore.config import VectorIndexSettings
from vecstore.embeddings.models import EmbeddingOptions, EmbeddingResult
from vecstore.embeddings.service import EmbeddingService
from vecstore.mapping.entity import Content, Embedding, Id


class BagOfWordsEmbeddingService(EmbeddingService):
    """Deterministic embedder for tests.

    Each distinct lower-cased word gets its own dimension on first sight,
    so texts sharing no words are orthogonal.
    """

    def __init__(self, dimensions: int = 32) -> None:
        self._dims = dimensions
        self._vocabulary: dict[str, int] = {}
        self.calls: list[list[str]] = []

    @property
    def model_name(self) -> str:
        return "bag-of-words"

    @property
    def dimensions(self) -> int:
        return self._dims

    def vector(self, text: str) -> list[float]:
        vector = [0.0] * self._dims
        for word in re.findall(r"\w+", text.lower()):
            index = self._vocabulary.setdefault(word, len(self._vocabulary) % self._dims)
            vector[index] += 1.0
        return vector

    async def embed_batch(
        self,
        texts: list[str],
        options: EmbeddingOptions | None = None,
    ) -> list[EmbeddingResult]:
        self.calls.append(list(texts))
        return [
            EmbeddingResult(
                text=text,
                embedding=self.vector(text),
                model=self.model_name,
                dimensions=self._dims,
            )
            for text in texts
        ]


@dataclass
class Note:
    """Mutable test entity with two metadata fields."""

    id: Annotated[str | None, Id()] = None
    text: Annotated[str, Content()] = ""
    embedding: Annotated[list[float], Embedding()] = field(default_factory=list)
    meta1: str | None = None
    meta2: str | None = None


@pytest.fixture
def embedder() -> BagOfWordsEmbeddingService:
    """Deterministic embedding service."""
    return BagOfWordsEmbeddingService()


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    """Empty in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def index_settings() -> VectorIndexSettings:
    """Index settings with both metadata fields filterable."""
    return VectorIndexSettings(filterable_fields=["meta1", "meta2"])
