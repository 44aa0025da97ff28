"""Embedding service interface and HTTP implementation."""

from abc import ABC, abstractmethod

import httpx

from vecstore.config import EmbeddingSettings, get_settings
from vecstore.embeddings.batching import BatchingStrategy, FixedSizeBatchingStrategy
from vecstore.embeddings.models import EmbeddingOptions, EmbeddingResult
from vecstore.exceptions import EmbeddingError, ErrorCode
from vecstore.logging_config import get_logger

logger = get_logger(__name__)


class EmbeddingService(ABC):
    """Abstract base class for embedding services.

    Implementations must return one result per input text, in input order.
    """

    @abstractmethod
    async def embed_batch(
        self,
        texts: list[str],
        options: EmbeddingOptions | None = None,
    ) -> list[EmbeddingResult]:
        """Generate embeddings for multiple texts.

        Args:
            texts: List of texts to embed.
            options: Per-call provider options.

        Returns:
            List of EmbeddingResult objects, same length and order as texts.

        Raises:
            EmbeddingError: If embedding fails.
        """
        ...

    async def embed(
        self,
        text: str,
        options: EmbeddingOptions | None = None,
    ) -> EmbeddingResult:
        """Generate embedding for a single text."""
        results = await self.embed_batch([text], options)
        return results[0]

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name used for embeddings."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Get the embedding dimensions."""
        ...


class HTTPEmbeddingService(EmbeddingService):
    """Embedding service using HTTP API.

    Compatible with OpenAI-style embedding APIs and
    text-embeddings-inference (TEI) servers.
    """

    # Known model dimensions
    MODEL_DIMENSIONS = {
        "BAAI/bge-large-en-v1.5": 1024,
        "BAAI/bge-base-en-v1.5": 768,
        "BAAI/bge-small-en-v1.5": 384,
        "nomic-embed-text": 768,
        "mxbai-embed-large": 1024,
        "text-embedding-ada-002": 1536,
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
    }

    DEFAULT_DIMENSIONS = 1024

    def __init__(
        self,
        settings: EmbeddingSettings | None = None,
        client: httpx.AsyncClient | None = None,
        batching_strategy: BatchingStrategy | None = None,
    ) -> None:
        """Initialize the HTTP embedding service.

        Args:
            settings: Embedding configuration. Uses defaults if not provided.
            client: HTTP client. Creates new one if not provided.
            batching_strategy: How texts are split into requests.
                Defaults to fixed-size batches of ``settings.batch_size``.
        """
        self._settings = settings or get_settings().embedding
        self._client = client
        self._owns_client = client is None
        self._batching = batching_strategy or FixedSizeBatchingStrategy(
            self._settings.batch_size
        )
        self._dimensions: int | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._settings.model

    @property
    def dimensions(self) -> int:
        """Get embedding dimensions.

        Resolution order: configured override, dimensions observed in a
        response, known model table, default.
        """
        if self._settings.dimensions is not None:
            return self._settings.dimensions
        if self._dimensions is not None:
            return self._dimensions
        return self.MODEL_DIMENSIONS.get(self._settings.model, self.DEFAULT_DIMENSIONS)

    async def embed_batch(
        self,
        texts: list[str],
        options: EmbeddingOptions | None = None,
    ) -> list[EmbeddingResult]:
        """Generate embeddings for multiple texts.

        Args:
            texts: List of texts to embed.
            options: Per-call provider options.

        Returns:
            List of EmbeddingResult objects.

        Raises:
            EmbeddingError: If embedding fails.
        """
        if not texts:
            return []

        client = await self._get_client()
        url = f"{self._settings.base_url}/embeddings"

        all_results: list[EmbeddingResult] = []
        for batch in self._batching.batch(texts):
            batch_results = await self._embed_batch_request(client, url, batch, options)
            all_results.extend(batch_results)

        return all_results

    async def _embed_batch_request(
        self,
        client: httpx.AsyncClient,
        url: str,
        texts: list[str],
        options: EmbeddingOptions | None,
    ) -> list[EmbeddingResult]:
        """Make embedding request for a batch.

        Raises:
            EmbeddingError: If request fails or the response is malformed.
        """
        model = (options.model if options else None) or self._settings.model
        payload: dict[str, object] = {"input": texts, "model": model}
        if options and options.dimensions:
            payload["dimensions"] = options.dimensions

        try:
            response = await client.post(url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Embedding request failed: {e.response.status_code}",
                extra={"url": url, "status": e.response.status_code},
            )
            raise EmbeddingError(
                f"Embedding service returned {e.response.status_code}",
                code=ErrorCode.EMBEDDING_SERVICE_ERROR,
                details={"status_code": e.response.status_code},
            ) from e
        except httpx.RequestError as e:
            logger.error(
                f"Embedding request error: {e}",
                extra={"url": url},
            )
            raise EmbeddingError(
                f"Failed to connect to embedding service: {e}",
                code=ErrorCode.EMBEDDING_SERVICE_ERROR,
                details={"url": url},
            ) from e

        try:
            data = response.json()
            embeddings = data["data"]
            if len(embeddings) != len(texts):
                raise ValueError(
                    f"expected {len(texts)} embeddings, got {len(embeddings)}"
                )

            # OpenAI-style responses carry an index per item
            if all("index" in item for item in embeddings):
                embeddings = sorted(embeddings, key=lambda item: item["index"])

            results: list[EmbeddingResult] = []
            for text, item in zip(texts, embeddings, strict=True):
                embedding = item["embedding"]
                if self._dimensions is None and embedding:
                    self._dimensions = len(embedding)

                results.append(
                    EmbeddingResult(
                        text=text,
                        embedding=embedding,
                        model=model,
                        dimensions=len(embedding),
                    )
                )

            return results

        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise EmbeddingError(
                f"Invalid response from embedding service: {e}",
                code=ErrorCode.EMBEDDING_SERVICE_ERROR,
                details={"error": str(e)},
            ) from e
