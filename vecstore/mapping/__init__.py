"""Entity mapping module."""

from vecstore.mapping.conversion import EmbeddingKind, EmbeddingRepresentation
from vecstore.mapping.entity import (
    DEFAULT_ID_FIELD,
    Content,
    Embedding,
    EntityModel,
    Id,
    describe,
)
from vecstore.mapping.mapper import SCORE_FIELD, from_native, score_field_for, to_native

__all__ = [
    "DEFAULT_ID_FIELD",
    "SCORE_FIELD",
    "Content",
    "Embedding",
    "EmbeddingKind",
    "EmbeddingRepresentation",
    "EntityModel",
    "Id",
    "describe",
    "from_native",
    "score_field_for",
    "to_native",
]
