"""Embedding data models."""

from pydantic import BaseModel, Field


class EmbeddingOptions(BaseModel):
    """Per-call options forwarded to the embedding provider.

    Attributes:
        model: Model override for this call.
        dimensions: Requested output dimensions, for models that support it.
    """

    model: str | None = Field(default=None, description="Model override")
    dimensions: int | None = Field(
        default=None,
        gt=0,
        description="Requested output dimensions",
    )


class EmbeddingResult(BaseModel):
    """Result of an embedding operation.

    Attributes:
        text: The original text that was embedded.
        embedding: The embedding vector.
        model: The model used to generate the embedding.
        dimensions: Number of dimensions in the embedding.
    """

    text: str = Field(description="Original text")
    embedding: list[float] = Field(description="Embedding vector")
    model: str = Field(description="Model used for embedding")
    dimensions: int = Field(description="Vector dimensions")

    def model_post_init(self, __context: object) -> None:
        """Validate dimensions match embedding length."""
        if self.dimensions != len(self.embedding):
            raise ValueError(
                f"dimensions ({self.dimensions}) does not match "
                f"embedding length ({len(self.embedding)})"
            )
