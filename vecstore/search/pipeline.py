"""ANN query pipeline.

A search runs as three stages, always in this order:

1. ``$vectorSearch`` recalls ``numCandidates`` approximate neighbours of the
   query vector through the named index, keeps the best ``limit`` and
   applies the native filter inside recall (pre-filter). Filtering after
   recall could leave fewer than ``limit`` matches.
2. ``$addFields`` copies the engine's relevance score into a named field;
   it is not visible to later stages otherwise.
3. ``$match`` drops records scoring below the similarity threshold.

Records come back in the engine's rank order; nothing here re-sorts them.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from vecstore.logging_config import get_logger
from vecstore.mapping.mapper import SCORE_FIELD

logger = get_logger(__name__)

VECTOR_SEARCH_SCORE = "vectorSearchScore"


class VectorSearchStage(BaseModel):
    """Recall stage."""

    model_config = ConfigDict(frozen=True)

    index: str
    path: str
    query_vector: list[float]
    num_candidates: int = Field(gt=0)
    limit: int = Field(gt=0)
    filter: str = ""

    def to_native(self) -> dict[str, Any]:
        search: dict[str, Any] = {
            "index": self.index,
            "path": self.path,
            "queryVector": list(self.query_vector),
            "numCandidates": self.num_candidates,
            "limit": self.limit,
        }
        if self.filter:
            search["filter"] = self.filter
        return {"$vectorSearch": search}


class ScoreStage(BaseModel):
    """Score materialization stage."""

    model_config = ConfigDict(frozen=True)

    field: str = SCORE_FIELD

    def to_native(self) -> dict[str, Any]:
        return {"$addFields": {self.field: {"$meta": VECTOR_SEARCH_SCORE}}}


class ThresholdStage(BaseModel):
    """Similarity threshold stage."""

    model_config = ConfigDict(frozen=True)

    field: str = SCORE_FIELD
    min_score: float = Field(default=0.0, ge=0.0, le=1.0)

    def to_native(self) -> dict[str, Any]:
        return {"$match": {self.field: {"$gte": self.min_score}}}


class SearchPipeline(BaseModel):
    """The ordered recall, score and threshold stages."""

    model_config = ConfigDict(frozen=True)

    recall: VectorSearchStage
    score: ScoreStage
    threshold: ThresholdStage

    @property
    def stages(self) -> tuple[VectorSearchStage, ScoreStage, ThresholdStage]:
        return (self.recall, self.score, self.threshold)

    def to_native(self) -> list[dict[str, Any]]:
        return [stage.to_native() for stage in self.stages]


class SearchPipelineBuilder:
    """Assembles the three-stage ANN query pipeline."""

    def __init__(self, score_field: str = SCORE_FIELD) -> None:
        self._score_field = score_field

    def build(
        self,
        query_vector: list[float],
        embedding_field: str,
        num_candidates: int,
        index_name: str,
        top_k: int,
        native_filter: str = "",
        similarity_threshold: float = 0.0,
    ) -> SearchPipeline:
        """Build the pipeline for one search.

        Args:
            query_vector: Embedded query.
            embedding_field: Field the index covers.
            num_candidates: Recall breadth.
            index_name: Vector index name.
            top_k: Maximum results.
            native_filter: Translated filter, or ``""`` for none.
            similarity_threshold: Minimum score; 0 keeps everything.

        Returns:
            The assembled pipeline.
        """
        if num_candidates < top_k:
            # Recall breadth below the limit is rejected by the engine
            logger.debug(
                f"Raising numCandidates from {num_candidates} to top_k={top_k}",
                extra={"num_candidates": num_candidates, "top_k": top_k},
            )
            num_candidates = top_k

        return SearchPipeline(
            recall=VectorSearchStage(
                index=index_name,
                path=embedding_field,
                query_vector=query_vector,
                num_candidates=num_candidates,
                limit=top_k,
                filter=native_filter,
            ),
            score=ScoreStage(field=self._score_field),
            threshold=ThresholdStage(
                field=self._score_field,
                min_score=similarity_threshold,
            ),
        )
