"""End-to-end tests for DomainVectorStore."""

from typing import Annotated
from unittest.mock import AsyncMock

import pytest
from pydantic import BaseModel, ConfigDict

from tests.conftest import BagOfWordsEmbeddingService, Note
from vecstore.backends.memory import InMemoryDocumentStore
from vecstore.config import VectorIndexSettings
from vecstore.documents.models import Document
from vecstore.embeddings.models import EmbeddingOptions, EmbeddingResult
from vecstore.exceptions import (
    ConversionError,
    EmbeddingError,
    MappingError,
    SchemaInitError,
    UnsupportedFilterError,
)
from vecstore.filters import eq
from vecstore.mapping.entity import Content, Embedding, Id
from vecstore.schema.models import IndexCreationOutcome
from vecstore.search.models import SearchRequest
from vecstore.store.facade import DomainVectorStore


class Quote(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Annotated[str | None, Id()] = None
    text: Annotated[str, Content()]
    embedding: Annotated[tuple[float, ...], Embedding()] = ()
    author: str = ""


class Counter(BaseModel):
    text: Annotated[str, Content()]
    embedding: Annotated[list[int], Embedding()] = []


class Review(BaseModel):
    id: Annotated[str | None, Id()] = None
    text: Annotated[str, Content()]
    embedding: Annotated[list[float], Embedding()] = []
    score: int = 0


@pytest.fixture
async def store(
    embedder: BagOfWordsEmbeddingService,
    document_store: InMemoryDocumentStore,
    index_settings: VectorIndexSettings,
) -> DomainVectorStore[Note]:
    """Initialized store of notes."""
    notes = DomainVectorStore(
        Note,
        embedder,
        document_store,
        index_settings=index_settings,
        initialize_schema=True,
    )
    await notes.initialize()
    return notes


async def _add_samples(store: DomainVectorStore[Note]) -> list[Note]:
    return await store.add(
        [
            Note(text="Spring AI rocks", meta1="meta1"),
            Note(text="Hello World"),
            Note(text="Great Depression", meta2="meta2"),
        ]
    )


class TestConstruction:
    """Tests for store construction."""

    def test_defaults_from_entity(
        self,
        embedder: BagOfWordsEmbeddingService,
        document_store: InMemoryDocumentStore,
        index_settings: VectorIndexSettings,
    ) -> None:
        store = DomainVectorStore(Note, embedder, document_store, index_settings=index_settings)

        assert store.collection == "note"
        assert store.index.embedding_field_path == "embedding"
        assert store.index.num_dimensions == 32
        assert store.index.filterable_fields == frozenset({"meta1", "meta2"})

    def test_dimensions_from_options(
        self,
        embedder: BagOfWordsEmbeddingService,
        document_store: InMemoryDocumentStore,
    ) -> None:
        store = DomainVectorStore(
            Note,
            embedder,
            document_store,
            index_settings=VectorIndexSettings(),
            collection="custom",
            embedding_options=EmbeddingOptions(dimensions=8),
        )

        assert store.collection == "custom"
        assert store.index.num_dimensions == 8

    def test_unknown_filterable_field(
        self,
        embedder: BagOfWordsEmbeddingService,
        document_store: InMemoryDocumentStore,
    ) -> None:
        settings = VectorIndexSettings(filterable_fields=["meta1", "country"])

        with pytest.raises(MappingError, match="country"):
            DomainVectorStore(Note, embedder, document_store, index_settings=settings)

    @pytest.mark.asyncio
    async def test_schema_off_by_default(
        self,
        embedder: BagOfWordsEmbeddingService,
        document_store: InMemoryDocumentStore,
    ) -> None:
        store = DomainVectorStore(
            Note,
            embedder,
            document_store,
            index_settings=VectorIndexSettings(),
        )

        await store.initialize()

        assert not await document_store.collection_exists("note")

    @pytest.mark.asyncio
    async def test_fatal_schema_error(self, embedder: BagOfWordsEmbeddingService) -> None:
        backend = AsyncMock()
        backend.collection_exists.return_value = True
        backend.create_search_index.return_value = IndexCreationOutcome.fatal("no permission")
        store = DomainVectorStore(
            Note,
            embedder,
            backend,
            index_settings=VectorIndexSettings(),
            initialize_schema=True,
        )

        with pytest.raises(SchemaInitError):
            await store.initialize()


class TestAddAndSearch:
    """Tests for writing and searching entities."""

    @pytest.mark.asyncio
    async def test_search_finds_matching_document(self, store: DomainVectorStore[Note]) -> None:
        added = await _add_samples(store)

        results = await store.search(SearchRequest(query="Great", top_k=1))

        assert len(results) == 1
        assert results[0].id == added[2].id
        assert results[0].content == "Great Depression"
        assert results[0].metadata["meta2"] == "meta2"
        assert results[0].score is not None and results[0].score > 0.5

    @pytest.mark.asyncio
    async def test_search_empty_after_delete(self, store: DomainVectorStore[Note]) -> None:
        added = await _add_samples(store)

        assert await store.delete([n.id for n in added if n.id]) is True

        assert await store.search(SearchRequest(query="Great", top_k=1)) == []

    @pytest.mark.asyncio
    async def test_add_assigns_ids_and_embeddings(
        self,
        store: DomainVectorStore[Note],
        embedder: BagOfWordsEmbeddingService,
    ) -> None:
        notes = [Note(text="first"), Note(id="fixed", text="second")]

        added = await store.add(notes)

        assert added[0] is notes[0]
        assert added[0].id is not None
        assert added[1].id == "fixed"
        assert added[1].embedding == embedder.vector("second")
        assert len(embedder.calls) == 1

    @pytest.mark.asyncio
    async def test_add_empty(
        self,
        store: DomainVectorStore[Note],
        embedder: BagOfWordsEmbeddingService,
    ) -> None:
        assert await store.add([]) == []
        assert embedder.calls == []

    @pytest.mark.asyncio
    async def test_results_carry_query_vector(
        self,
        store: DomainVectorStore[Note],
        embedder: BagOfWordsEmbeddingService,
    ) -> None:
        await _add_samples(store)

        results = await store.search(SearchRequest(query="hello world"))

        assert results[0].content == "Hello World"
        assert results[0].embedding == embedder.vector("hello world")

    @pytest.mark.asyncio
    async def test_rank_order(self, store: DomainVectorStore[Note]) -> None:
        await _add_samples(store)

        results = await store.search(SearchRequest(query="Great", top_k=3))

        scores = [doc.score for doc in results]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_threshold_monotonic(self, store: DomainVectorStore[Note]) -> None:
        """Raising the threshold never returns more results."""
        await _add_samples(store)

        counts = []
        for threshold in (0.0, 0.5, 0.6, 0.9, 1.0):
            request = SearchRequest(query="Great", top_k=10, similarity_threshold=threshold)
            counts.append(len(await store.search(request)))

        assert counts == sorted(counts, reverse=True)
        assert counts[0] == 3
        assert counts[2] == 1

    @pytest.mark.asyncio
    async def test_filter_text(self, store: DomainVectorStore[Note]) -> None:
        await _add_samples(store)

        request = SearchRequest(query="rocks world", top_k=3, filter_expression="meta1 == 'meta1'")
        results = await store.search(request)

        assert [doc.content for doc in results] == ["Spring AI rocks"]

    @pytest.mark.asyncio
    async def test_filter_tree(self, store: DomainVectorStore[Note]) -> None:
        await _add_samples(store)

        request = SearchRequest(query="rocks", top_k=3, filter_expression=~eq("meta1", "meta1"))
        results = await store.search(request)

        assert "Spring AI rocks" not in [doc.content for doc in results]
        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_unsupported_filter_before_io(self) -> None:
        embedder = AsyncMock()
        embedder.dimensions = 4
        backend = AsyncMock()
        store = DomainVectorStore(
            Note,
            embedder,
            backend,
            index_settings=VectorIndexSettings(filterable_fields=["meta1"]),
        )

        with pytest.raises(UnsupportedFilterError):
            await store.search(SearchRequest(query="q", filter_expression="meta2 == 'x'"))

        embedder.embed_batch.assert_not_called()
        backend.aggregate.assert_not_called()

    @pytest.mark.asyncio
    async def test_similarity_search(self, store: DomainVectorStore[Note]) -> None:
        await _add_samples(store)

        results = await store.similarity_search("Great")

        assert len(results) == 3
        assert results[0].content == "Great Depression"

    @pytest.mark.asyncio
    async def test_add_documents(self, store: DomainVectorStore[Note]) -> None:
        docs = [Document.from_text("Great Gatsby", meta2="book")]

        added = await store.add_documents(docs)

        assert added[0].id is not None
        results = await store.search(SearchRequest(query="Gatsby", top_k=1))
        assert results[0].id == added[0].id
        assert results[0].metadata["meta2"] == "book"

    @pytest.mark.asyncio
    async def test_add_documents_rejects_unknown_metadata(
        self,
        store: DomainVectorStore[Note],
    ) -> None:
        with pytest.raises(MappingError):
            await store.add_documents([Document.from_text("x", country="UK")])


class TestUpdateAndDelete:
    """Tests for updating and deleting entities."""

    @pytest.mark.asyncio
    async def test_update_replaces(self, store: DomainVectorStore[Note]) -> None:
        (note,) = await store.add([Note(text="old text", meta1="a")])
        note.text = "brand new"
        note.meta1 = "b"

        await store.update([note])

        results = await store.search(SearchRequest(query="brand new", top_k=5))
        assert len(results) == 1
        assert results[0].id == note.id
        assert results[0].metadata["meta1"] == "b"

    @pytest.mark.asyncio
    async def test_update_without_id_inserts(self, store: DomainVectorStore[Note]) -> None:
        (note,) = await store.update([Note(text="fresh")])

        assert note.id is not None
        assert len(await store.similarity_search("fresh")) == 1

    @pytest.mark.asyncio
    async def test_delete_mixed_ids(self, store: DomainVectorStore[Note]) -> None:
        """Partial deletes report False but still remove what exists."""
        added = await _add_samples(store)

        assert await store.delete([added[0].id, "does-not-exist"]) is False  # type: ignore[list-item]

        contents = [doc.content for doc in await store.similarity_search("anything")]
        assert "Spring AI rocks" not in contents

    @pytest.mark.asyncio
    async def test_delete_empty(self) -> None:
        backend = AsyncMock()
        embedder = AsyncMock()
        embedder.dimensions = 4
        store = DomainVectorStore(Note, embedder, backend, index_settings=VectorIndexSettings())

        assert await store.delete([]) is True
        backend.delete_many.assert_not_called()


class TestEntityShapes:
    """Tests for non-default entity representations."""

    @pytest.mark.asyncio
    async def test_frozen_entities_copied(
        self,
        embedder: BagOfWordsEmbeddingService,
        document_store: InMemoryDocumentStore,
    ) -> None:
        store = DomainVectorStore(
            Quote,
            embedder,
            document_store,
            index_settings=VectorIndexSettings(filterable_fields=["author"]),
            initialize_schema=True,
        )
        await store.initialize()
        original = Quote(text="To be or not to be", author="Shakespeare")

        (added,) = await store.add([original])

        assert added is not original
        assert original.id is None
        assert added.id is not None
        assert isinstance(added.embedding, tuple)
        results = await store.search(
            SearchRequest(query="be", filter_expression="author == 'Shakespeare'")
        )
        assert results[0].metadata == {"author": "Shakespeare"}

    @pytest.mark.asyncio
    async def test_conversion_error_fails_batch(self, document_store: InMemoryDocumentStore) -> None:
        embedder = AsyncMock()
        embedder.dimensions = 2
        embedder.embed_batch.return_value = [
            EmbeddingResult(text="a", embedding=[1.0, 2.0], model="m", dimensions=2),
            EmbeddingResult(text="b", embedding=[0.5, 2.0], model="m", dimensions=2),
        ]
        store = DomainVectorStore(
            Counter,
            embedder,
            document_store,
            index_settings=VectorIndexSettings(),
            initialize_schema=True,
        )
        await store.initialize()

        with pytest.raises(ConversionError):
            await store.add([Counter(text="a"), Counter(text="b")])

        embedder.embed_batch.return_value = [
            EmbeddingResult(text="a", embedding=[1.0, 2.0], model="m", dimensions=2),
        ]
        assert await store.similarity_search("a") == []

    @pytest.mark.asyncio
    async def test_score_metadata_field_kept(
        self,
        embedder: BagOfWordsEmbeddingService,
        document_store: InMemoryDocumentStore,
    ) -> None:
        """A metadata field named score is not replaced by the relevance."""
        store = DomainVectorStore(
            Review,
            embedder,
            document_store,
            index_settings=VectorIndexSettings(),
            initialize_schema=True,
        )
        await store.initialize()
        await store.add([Review(text="great battery", score=5)])

        (result,) = await store.search(SearchRequest(query="battery", top_k=1))

        assert result.metadata == {"score": 5}
        assert result.score is not None
        assert 0.0 < result.score <= 1.0

    @pytest.mark.asyncio
    async def test_wrong_vector_length_rejected(self, document_store: InMemoryDocumentStore) -> None:
        """Vectors longer than the declared dimensionality never reach the store."""
        embedder = AsyncMock()
        embedder.dimensions = 16
        embedder.embed_batch.return_value = [
            EmbeddingResult(text="a", embedding=[1.0] * 32, model="m", dimensions=32),
        ]
        store = DomainVectorStore(
            Note,
            embedder,
            document_store,
            index_settings=VectorIndexSettings(),
            initialize_schema=True,
        )
        await store.initialize()

        with pytest.raises(EmbeddingError, match="expected 16"):
            await store.add([Note(id="a", text="a")])

        assert await store.delete(["a"]) is False
