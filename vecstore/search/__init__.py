"""Similarity search module."""

from vecstore.search.models import SearchRequest
from vecstore.search.pipeline import (
    ScoreStage,
    SearchPipeline,
    SearchPipelineBuilder,
    ThresholdStage,
    VectorSearchStage,
)

__all__ = [
    "ScoreStage",
    "SearchPipeline",
    "SearchPipelineBuilder",
    "SearchRequest",
    "ThresholdStage",
    "VectorSearchStage",
]
