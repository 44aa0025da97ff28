"""Collection and vector index schema module."""

from vecstore.schema.manager import SchemaManager, SchemaState
from vecstore.schema.models import (
    CreationStatus,
    IndexCreationOutcome,
    VectorIndexConfig,
)

__all__ = [
    "CreationStatus",
    "IndexCreationOutcome",
    "SchemaManager",
    "SchemaState",
    "VectorIndexConfig",
]
