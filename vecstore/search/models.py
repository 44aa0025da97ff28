"""Search request model."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from vecstore.filters.expression import FilterExpression
from vecstore.filters.parser import parse_filter

DEFAULT_TOP_K = 4

SIMILARITY_THRESHOLD_ACCEPT_ALL = 0.0


class SearchRequest(BaseModel):
    """Similarity search parameters.

    Attributes:
        query: Text to embed and search with.
        top_k: Maximum number of results.
        similarity_threshold: Minimum similarity score in [0, 1]; 0 accepts all.
        filter_expression: Metadata filter, as a tree or as filter text.
    """

    query: str = Field(description="Query text")
    top_k: int = Field(default=DEFAULT_TOP_K, gt=0, description="Maximum results")
    similarity_threshold: float = Field(
        default=SIMILARITY_THRESHOLD_ACCEPT_ALL,
        ge=0.0,
        le=1.0,
        description="Minimum similarity score",
    )
    filter_expression: FilterExpression | None = Field(
        default=None,
        description="Metadata filter",
    )

    @field_validator("filter_expression", mode="before")
    @classmethod
    def _parse_text(cls, value: Any) -> Any:
        # FilterParseError propagates as-is; it is not a ValueError
        if isinstance(value, str):
            return parse_filter(value) if value.strip() else None
        return value
