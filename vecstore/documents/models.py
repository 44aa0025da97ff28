"""Document data models."""

from typing import Any

from pydantic import BaseModel, Field


class Document(BaseModel):
    """Canonical view of a stored record.

    Attributes:
        id: Record identifier. None until the store assigns one.
        content: Natural-language text the embedding represents.
        metadata: Remaining fields, in declaration order.
        embedding: Vector representation of the content.
        score: Similarity score; set only on search results.
    """

    id: str | None = Field(default=None, description="Record identifier")
    content: str = Field(description="Text content of the document")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Metadata fields",
    )
    embedding: list[float] = Field(
        default_factory=list,
        description="Embedding vector",
    )
    score: float | None = Field(
        default=None,
        description="Similarity score from the last search",
    )

    @classmethod
    def from_text(cls, content: str, **metadata: Any) -> "Document":
        """Create a document from text content.

        Args:
            content: The text content.
            **metadata: Metadata fields.

        Returns:
            New Document instance.
        """
        return cls(content=content, metadata=metadata)
