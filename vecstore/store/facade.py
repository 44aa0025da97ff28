"""Vector store over domain objects."""

from typing import Generic, TypeVar

from vecstore.backends.base import DocumentStore
from vecstore.config import VectorIndexSettings, get_settings
from vecstore.documents.models import Document
from vecstore.embeddings.bridge import EmbeddingBridge
from vecstore.embeddings.models import EmbeddingOptions
from vecstore.embeddings.service import EmbeddingService
from vecstore.filters.translator import FilterExpressionTranslator
from vecstore.logging_config import get_logger
from vecstore.mapping.entity import EntityModel, describe
from vecstore.mapping.mapper import from_native, score_field_for, to_native
from vecstore.schema.manager import SchemaManager
from vecstore.schema.models import VectorIndexConfig
from vecstore.search.models import SearchRequest
from vecstore.search.pipeline import SearchPipelineBuilder

logger = get_logger(__name__)

T = TypeVar("T")


class DomainVectorStore(Generic[T]):
    """Stores and searches domain objects of one type.

    Entities are embedded through the embedding service, stored as native
    records of one collection and searched with the ANN pipeline. Search
    results are returned as documents whose embedding is the query vector.

    Example:
        store = DomainVectorStore(Review, embedder, InMemoryDocumentStore(),
                                  initialize_schema=True)
        await store.initialize()
        await store.add([Review(text="Great battery", product="phone")])
        hits = await store.search(SearchRequest(query="battery", top_k=3))
    """

    def __init__(
        self,
        entity_type: type[T],
        embedding_service: EmbeddingService,
        document_store: DocumentStore,
        index_settings: VectorIndexSettings | None = None,
        collection: str | None = None,
        initialize_schema: bool | None = None,
        embedding_options: EmbeddingOptions | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            entity_type: Dataclass or pydantic model with role markers.
            embedding_service: Provider of embeddings.
            document_store: Backend holding the records.
            index_settings: Index configuration. Defaults to settings.
            collection: Collection name. Defaults to the type's collection.
            initialize_schema: Overrides ``index_settings.initialize_schema``.
            embedding_options: Options forwarded on every embedding call.

        Raises:
            MappingError: If the type is not mappable or a filterable field
                is not one of its metadata fields.
        """
        self._model = describe(entity_type)
        self._index_settings = index_settings or get_settings().index
        self._model.require_metadata_fields(
            self._index_settings.filterable_fields,
            "filterable",
        )

        self._store = document_store
        self._collection = collection or self._model.collection_name

        dimensions = embedding_service.dimensions
        if embedding_options is not None and embedding_options.dimensions:
            dimensions = embedding_options.dimensions
        self._bridge = EmbeddingBridge(embedding_service, embedding_options, dimensions)

        self._index = VectorIndexConfig(
            name=self._index_settings.name,
            embedding_field_path=self._model.embedding_field,
            num_dimensions=dimensions,
            filterable_fields=frozenset(self._index_settings.filterable_fields),
            num_candidates=self._index_settings.num_candidates,
        )
        self._translator = FilterExpressionTranslator(self._index.filterable_fields)
        self._score_field = score_field_for(self._model)
        self._pipeline_builder = SearchPipelineBuilder(score_field=self._score_field)

        if initialize_schema is None:
            initialize_schema = self._index_settings.initialize_schema
        self._schema = SchemaManager(
            document_store,
            self._collection,
            self._index,
            initialize_schema=initialize_schema,
        )

    @property
    def collection(self) -> str:
        return self._collection

    @property
    def model(self) -> EntityModel:
        return self._model

    @property
    def index(self) -> VectorIndexConfig:
        return self._index

    @property
    def schema(self) -> SchemaManager:
        return self._schema

    async def initialize(self) -> None:
        """Create the collection and vector index if enabled.

        Raises:
            SchemaInitError: If provisioning fails.
        """
        await self._schema.initialize()

    async def add(self, entities: list[T]) -> list[T]:
        """Embed and insert entities.

        Returns:
            The entities with embeddings and store-assigned ids, in input
            order. Frozen entities are returned as updated copies.
        """
        if not entities:
            return []

        embedded = await self._bridge.embed(entities, self._model)
        records = [to_native(self._model.to_document(e), self._model) for e in embedded]
        ids = await self._store.insert_many(
            self._collection,
            records,
            self._model.native_id_field,
        )

        logger.debug(
            f"Added {len(ids)} entities to {self._collection}",
            extra={"collection": self._collection, "count": len(ids)},
        )
        return [
            self._model.with_id(entity, record_id)
            for entity, record_id in zip(embedded, ids, strict=True)
        ]

    async def add_documents(self, documents: list[Document]) -> list[Document]:
        """Embed and insert plain documents, setting their ids."""
        if not documents:
            return []

        embedded = await self._bridge.embed_documents(documents)
        records = [to_native(doc, self._model) for doc in embedded]
        ids = await self._store.insert_many(
            self._collection,
            records,
            self._model.native_id_field,
        )
        for doc, record_id in zip(embedded, ids, strict=True):
            doc.id = record_id

        logger.debug(
            f"Added {len(ids)} documents to {self._collection}",
            extra={"collection": self._collection, "count": len(ids)},
        )
        return embedded

    async def update(self, entities: list[T]) -> list[T]:
        """Re-embed and fully replace entities, upserting by id.

        Entities without an id are inserted under a new id.
        """
        if not entities:
            return []

        embedded = await self._bridge.embed(entities, self._model)
        updated: list[T] = []
        for entity in embedded:
            record = to_native(self._model.to_document(entity), self._model)
            record_id = await self._store.replace_one(
                self._collection,
                record,
                self._model.native_id_field,
            )
            updated.append(self._model.with_id(entity, record_id))

        logger.debug(
            f"Updated {len(updated)} entities in {self._collection}",
            extra={"collection": self._collection, "count": len(updated)},
        )
        return updated

    async def delete(self, ids: list[str]) -> bool:
        """Delete records by id.

        Returns:
            True if every id was deleted. Ids that match nothing make the
            result False; the others are still deleted.
        """
        if not ids:
            return True

        deleted = await self._store.delete_many(
            self._collection,
            self._model.native_id_field,
            list(ids),
        )

        logger.debug(
            f"Deleted {deleted} of {len(ids)} records from {self._collection}",
            extra={"collection": self._collection, "requested": len(ids), "deleted": deleted},
        )
        return deleted == len(ids)

    async def search(self, request: SearchRequest) -> list[Document]:
        """Run a similarity search.

        Args:
            request: Query, result limit, score threshold and filter.

        Returns:
            Matching documents in rank order, each carrying its score and
            the query vector as embedding.

        Raises:
            UnsupportedFilterError: If the filter references a field that
                is not filterable. Raised before any I/O.
        """
        native_filter = self._translator.translate(request.filter_expression)
        query_vector = await self._bridge.embed_query(request.query)

        pipeline = self._pipeline_builder.build(
            query_vector=query_vector,
            embedding_field=self._model.embedding_field,
            num_candidates=self._index.num_candidates,
            index_name=self._index.name,
            top_k=request.top_k,
            native_filter=native_filter,
            similarity_threshold=request.similarity_threshold,
        )
        records = await self._store.aggregate(self._collection, pipeline.to_native())

        logger.debug(
            f"Search returned {len(records)} results",
            extra={
                "collection": self._collection,
                "top_k": request.top_k,
                "filter": native_filter,
            },
        )
        return [
            from_native(record, self._model, query_vector, self._score_field)
            for record in records
        ]

    async def similarity_search(self, query: str) -> list[Document]:
        """Search with default limit, threshold and no filter."""
        return await self.search(SearchRequest(query=query))
