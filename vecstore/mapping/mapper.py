"""Conversion between documents and native store records."""

from collections.abc import Mapping, Sequence
from typing import Any

from vecstore.documents.models import Document
from vecstore.mapping.entity import EntityModel

SCORE_FIELD = "score"


def score_field_for(model: EntityModel) -> str:
    """Field name search uses to materialize the relevance score.

    ``score`` unless the type stores a field of that name, in which case
    underscores are prepended until the name is free.
    """
    taken = {
        model.native_id_field,
        model.content_field,
        model.embedding_field,
        *model.metadata_fields,
    }
    name = SCORE_FIELD
    while name in taken:
        name = f"_{name}"
    return name


def to_native(doc: Document, model: EntityModel) -> dict[str, Any]:
    """Build the native record for a document.

    Metadata keys become top-level fields. The id is written only when the
    document has one; otherwise the store assigns it.

    Raises:
        MappingError: If a metadata key is not a declared field of the type.
    """
    model.require_metadata_fields(doc.metadata.keys(), "metadata")

    record: dict[str, Any] = dict(doc.metadata)
    record[model.embedding_field] = list(doc.embedding)
    record[model.content_field] = doc.content
    if doc.id:
        record[model.native_id_field] = doc.id
    return record


def from_native(
    record: Mapping[str, Any],
    model: EntityModel,
    embedding_override: Sequence[float],
    score_field: str = SCORE_FIELD,
) -> Document:
    """Build a document from a native record.

    Search responses carry a relevance score instead of the stored vector,
    so the embedding is taken from ``embedding_override`` (the query vector
    on search). The score is read from ``score_field``; pass
    ``score_field_for(model)`` so it cannot shadow a metadata field.
    """
    record_id = record.get(model.native_id_field)
    score = None if score_field in model.metadata_fields else record.get(score_field)

    return Document(
        id=None if record_id is None else str(record_id),
        content=record[model.content_field],
        metadata={
            name: record[name] for name in model.metadata_fields if name in record
        },
        embedding=list(embedding_override),
        score=score,
    )
