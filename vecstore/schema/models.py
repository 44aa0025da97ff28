"""Schema data models."""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_INDEX_NAME = "vector_index"

DEFAULT_NUM_CANDIDATES = 200


class VectorIndexConfig(BaseModel):
    """Definition of the ANN index backing a collection.

    Attributes:
        name: Index name.
        embedding_field_path: Field holding the vectors.
        num_dimensions: Vector dimensionality.
        similarity: Similarity metric; always cosine.
        filterable_fields: Fields registered for pre-filtering.
        num_candidates: Recall breadth used at query time.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(default=DEFAULT_INDEX_NAME, min_length=1)
    embedding_field_path: str = Field(min_length=1)
    num_dimensions: int = Field(gt=0)
    similarity: Literal["cosine"] = "cosine"
    filterable_fields: frozenset[str] = Field(default_factory=frozenset)
    num_candidates: int = Field(default=DEFAULT_NUM_CANDIDATES, gt=0)

    def to_definition(self, collection: str) -> dict[str, Any]:
        """Render the native create-index command."""
        fields: list[dict[str, Any]] = [
            {
                "type": "vector",
                "path": self.embedding_field_path,
                "numDimensions": self.num_dimensions,
                "similarity": self.similarity,
            }
        ]
        fields.extend(
            {"type": "filter", "path": name} for name in sorted(self.filterable_fields)
        )
        return {
            "createSearchIndexes": collection,
            "indexes": [
                {
                    "name": self.name,
                    "type": "vectorSearch",
                    "definition": {"fields": fields},
                }
            ],
        }


class CreationStatus(str, Enum):
    """Outcome of a create-collection or create-index command."""

    CREATED = "created"
    EXPECTED_CONFLICT = "expected_conflict"
    FATAL = "fatal"


class IndexCreationOutcome(BaseModel):
    """Typed result of a schema command.

    ``EXPECTED_CONFLICT`` means the object already exists, which happens
    when several instances initialize the same collection.
    """

    status: CreationStatus
    detail: str = ""
    error_code: int | str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is not CreationStatus.FATAL

    @classmethod
    def created(cls) -> "IndexCreationOutcome":
        return cls(status=CreationStatus.CREATED)

    @classmethod
    def conflict(
        cls,
        detail: str = "",
        error_code: int | str | None = None,
    ) -> "IndexCreationOutcome":
        return cls(status=CreationStatus.EXPECTED_CONFLICT, detail=detail, error_code=error_code)

    @classmethod
    def fatal(
        cls,
        detail: str,
        error_code: int | str | None = None,
    ) -> "IndexCreationOutcome":
        return cls(status=CreationStatus.FATAL, detail=detail, error_code=error_code)
