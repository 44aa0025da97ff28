"""Bridge between domain entities and the embedding provider."""

from typing import Any, TypeVar

from vecstore.documents.models import Document
from vecstore.embeddings.models import EmbeddingOptions
from vecstore.embeddings.service import EmbeddingService
from vecstore.exceptions import EmbeddingError, ErrorCode
from vecstore.logging_config import get_logger
from vecstore.mapping.entity import EntityModel

logger = get_logger(__name__)

T = TypeVar("T")


class EmbeddingBridge:
    """Embeds entity content and writes the vectors back.

    Every call makes exactly one ``embed_batch`` request covering the whole
    input; how that request is split on the wire is the provider's
    batching strategy.
    """

    def __init__(
        self,
        service: EmbeddingService,
        options: EmbeddingOptions | None = None,
        dimensions: int | None = None,
    ) -> None:
        """Initialize the bridge.

        Args:
            service: Embedding provider.
            options: Options forwarded on every call.
            dimensions: Required vector length. Defaults to the options'
                dimensions, then the provider's declared dimensions.
        """
        self._service = service
        self._options = options
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        if self._dimensions is not None:
            return self._dimensions
        if self._options is not None and self._options.dimensions:
            return self._options.dimensions
        return self._service.dimensions

    async def _vectors(self, texts: list[str]) -> list[list[float]]:
        results = await self._service.embed_batch(texts, self._options)
        if len(results) != len(texts):
            raise EmbeddingError(
                f"Embedding provider returned {len(results)} vectors for {len(texts)} texts",
                code=ErrorCode.EMBEDDING_SERVICE_ERROR,
                details={"expected": len(texts), "received": len(results)},
            )

        expected = self.dimensions
        for position, result in enumerate(results):
            if len(result.embedding) != expected:
                raise EmbeddingError(
                    f"Embedding provider returned a {len(result.embedding)}-dimensional "
                    f"vector, expected {expected}",
                    code=ErrorCode.EMBEDDING_SERVICE_ERROR,
                    details={
                        "expected": expected,
                        "received": len(result.embedding),
                        "position": position,
                    },
                )
        return [result.embedding for result in results]

    async def embed(self, entities: list[T], model: EntityModel) -> list[T]:
        """Embed a batch of entities.

        Args:
            entities: Entities of the model's type.
            model: Entity model describing the type.

        Returns:
            The entities with embeddings set, in input order. Frozen
            entities are replaced by updated copies.

        Raises:
            MappingError: If an entity has no content.
            ConversionError: If a vector does not fit the embedding field.
                The whole batch fails.
        """
        if not entities:
            return []

        contents = [model.content_of(entity) for entity in entities]
        vectors = await self._vectors(contents)

        # Convert everything before touching any entity
        converted = [model.embedding.convert(vector) for vector in vectors]
        updated: list[Any] = [
            model.with_embedding(entity, vector)
            for entity, vector in zip(entities, converted, strict=True)
        ]
        logger.debug(
            f"Embedded {len(updated)} {model.entity_type.__name__} entities",
            extra={"count": len(updated)},
        )
        return updated

    async def embed_documents(self, documents: list[Document]) -> list[Document]:
        """Embed plain documents in place."""
        if not documents:
            return []

        vectors = await self._vectors([doc.content for doc in documents])
        for doc, vector in zip(documents, vectors, strict=True):
            doc.embedding = list(vector)
        return documents

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query text."""
        vectors = await self._vectors([text])
        return vectors[0]
