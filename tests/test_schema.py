"""Tests for index definitions and schema provisioning."""

import asyncio
from typing import Any
from unittest.mock import AsyncMock

import pytest

from vecstore.backends.memory import InMemoryDocumentStore
from vecstore.exceptions import SchemaInitError
from vecstore.schema.manager import SchemaManager, SchemaState
from vecstore.schema.models import CreationStatus, IndexCreationOutcome, VectorIndexConfig


class InterleavingStore(InMemoryDocumentStore):
    """In-memory store that lets every caller check before anyone creates."""

    def __init__(self, parties: int) -> None:
        super().__init__()
        self._barrier = asyncio.Barrier(parties)
        self.outcomes: list[IndexCreationOutcome] = []

    async def collection_exists(self, collection: str) -> bool:
        exists = await super().collection_exists(collection)
        await self._barrier.wait()
        return exists

    async def create_collection(self, collection: str) -> IndexCreationOutcome:
        outcome = await super().create_collection(collection)
        self.outcomes.append(outcome)
        await asyncio.sleep(0)
        return outcome

    async def create_search_index(
        self,
        collection: str,
        definition: dict[str, Any],
    ) -> IndexCreationOutcome:
        outcome = await super().create_search_index(collection, definition)
        self.outcomes.append(outcome)
        return outcome


def _config(**overrides: object) -> VectorIndexConfig:
    values: dict[str, object] = {
        "embedding_field_path": "embedding",
        "num_dimensions": 3,
        "filterable_fields": frozenset({"year", "country"}),
    }
    values.update(overrides)
    return VectorIndexConfig(**values)  # type: ignore[arg-type]


class TestVectorIndexConfig:
    """Tests for VectorIndexConfig."""

    def test_to_definition(self) -> None:
        assert _config().to_definition("notes") == {
            "createSearchIndexes": "notes",
            "indexes": [
                {
                    "name": "vector_index",
                    "type": "vectorSearch",
                    "definition": {
                        "fields": [
                            {
                                "type": "vector",
                                "path": "embedding",
                                "numDimensions": 3,
                                "similarity": "cosine",
                            },
                            {"type": "filter", "path": "country"},
                            {"type": "filter", "path": "year"},
                        ]
                    },
                }
            ],
        }

    def test_dimensions_positive(self) -> None:
        with pytest.raises(ValueError):
            _config(num_dimensions=0)


class TestIndexCreationOutcome:
    """Tests for IndexCreationOutcome."""

    def test_conflict_succeeds(self) -> None:
        outcome = IndexCreationOutcome.conflict("exists", error_code=68)
        assert outcome.status is CreationStatus.EXPECTED_CONFLICT
        assert outcome.succeeded

    def test_fatal_fails(self) -> None:
        assert not IndexCreationOutcome.fatal("boom").succeeded


class TestSchemaManager:
    """Tests for SchemaManager."""

    @pytest.mark.asyncio
    async def test_disabled_does_nothing(self) -> None:
        store = AsyncMock()
        manager = SchemaManager(store, "notes", _config())

        await manager.initialize()

        store.collection_exists.assert_not_called()
        store.create_search_index.assert_not_called()
        assert manager.state is SchemaState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_creates_collection_and_index(self) -> None:
        store = InMemoryDocumentStore()
        manager = SchemaManager(store, "notes", _config(), initialize_schema=True)

        await manager.initialize()

        assert manager.state is SchemaState.READY
        assert await store.collection_exists("notes")
        assert list(store.indexes("notes")) == ["vector_index"]

    @pytest.mark.asyncio
    async def test_existing_collection_not_recreated(self) -> None:
        store = AsyncMock()
        store.collection_exists.return_value = True
        store.create_search_index.return_value = IndexCreationOutcome.created()
        manager = SchemaManager(store, "notes", _config(), initialize_schema=True)

        await manager.initialize()

        store.create_collection.assert_not_called()
        store.create_search_index.assert_awaited_once_with(
            "notes",
            _config().to_definition("notes"),
        )

    @pytest.mark.asyncio
    async def test_ready_manager_is_idempotent(self) -> None:
        store = InMemoryDocumentStore()
        manager = SchemaManager(store, "notes", _config(), initialize_schema=True)

        await manager.initialize()
        await manager.initialize()

        assert list(store.indexes("notes")) == ["vector_index"]

    @pytest.mark.asyncio
    async def test_existing_index_is_success(self, caplog: pytest.LogCaptureFixture) -> None:
        """A second process finding the index already there succeeds."""
        store = InMemoryDocumentStore()
        first = SchemaManager(store, "notes", _config(), initialize_schema=True)
        second = SchemaManager(store, "notes", _config(), initialize_schema=True)

        await first.initialize()
        with caplog.at_level("INFO", logger="vecstore.schema.manager"):
            await second.initialize()

        assert second.state is SchemaState.READY
        assert "already exists" in caplog.text

    @pytest.mark.asyncio
    async def test_concurrent_initialization(self) -> None:
        """Racing managers leave exactly one index and both succeed."""
        store = InterleavingStore(parties=2)
        managers = [
            SchemaManager(store, "notes", _config(), initialize_schema=True)
            for _ in range(2)
        ]

        await asyncio.gather(*(m.initialize() for m in managers))

        assert all(m.state is SchemaState.READY for m in managers)
        assert list(store.indexes("notes")) == ["vector_index"]
        statuses = sorted(o.status.value for o in store.outcomes)
        assert statuses == sorted(
            [CreationStatus.CREATED.value] * 2 + [CreationStatus.EXPECTED_CONFLICT.value] * 2
        )
        assert sorted(o.error_code for o in store.outcomes if o.error_code) == [48, 68]

    @pytest.mark.asyncio
    async def test_collection_conflict_tolerated(self) -> None:
        store = AsyncMock()
        store.collection_exists.return_value = False
        store.create_collection.return_value = IndexCreationOutcome.conflict(error_code=48)
        store.create_search_index.return_value = IndexCreationOutcome.created()
        manager = SchemaManager(store, "notes", _config(), initialize_schema=True)

        await manager.initialize()

        assert manager.state is SchemaState.READY

    @pytest.mark.asyncio
    async def test_fatal_index_error(self, caplog: pytest.LogCaptureFixture) -> None:
        store = AsyncMock()
        store.collection_exists.return_value = True
        store.create_search_index.return_value = IndexCreationOutcome.fatal(
            "unauthorized",
            error_code=13,
        )
        manager = SchemaManager(store, "notes", _config(), initialize_schema=True)

        with caplog.at_level("ERROR", logger="vecstore.schema.manager"):
            with pytest.raises(SchemaInitError) as exc_info:
                await manager.initialize()

        assert exc_info.value.details["error_code"] == 13
        assert manager.state is SchemaState.UNINITIALIZED
        assert "unauthorized" in caplog.text

    @pytest.mark.asyncio
    async def test_fatal_collection_error(self) -> None:
        store = AsyncMock()
        store.collection_exists.return_value = False
        store.create_collection.return_value = IndexCreationOutcome.fatal("disk full")
        manager = SchemaManager(store, "notes", _config(), initialize_schema=True)

        with pytest.raises(SchemaInitError, match="disk full"):
            await manager.initialize()

        store.create_search_index.assert_not_called()
