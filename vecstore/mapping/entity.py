"""Entity model: which field of a domain type plays which role.

Domain types are dataclasses or pydantic models whose fields carry role
markers through ``typing.Annotated``::

    @dataclass
    class Review:
        id: Annotated[str | None, Id()] = None
        text: Annotated[str, Content()] = ""
        vector: Annotated[list[float], Embedding()] = field(default_factory=list)
        product: str = ""

Every field that is not the id, content or embedding is metadata.
"""

import dataclasses
import re
from collections.abc import Iterable
from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated, Any, get_args, get_origin, get_type_hints

from pydantic import BaseModel

from vecstore.documents.models import Document
from vecstore.exceptions import MappingError
from vecstore.mapping.conversion import EmbeddingRepresentation, resolve_representation

DEFAULT_ID_FIELD = "_id"


class Id:
    """Marks the identifier field."""


class Content:
    """Marks the field holding the text that gets embedded."""


@dataclass(frozen=True)
class Embedding:
    """Marks the field holding the embedding vector.

    Attributes:
        typecode: ``array.array`` typecode when the field is an array.
    """

    typecode: str | None = None


def _has_marker(metadata: Iterable[Any], marker: type) -> bool:
    return any(m is marker or isinstance(m, marker) for m in metadata)


def _embedding_marker(metadata: Iterable[Any]) -> Embedding:
    for m in metadata:
        if isinstance(m, Embedding):
            return m
    return Embedding()


def _fields_of(entity_type: type) -> list[tuple[str, Any, tuple[Any, ...]]]:
    """List (name, annotation, markers) for each declared field."""
    if isinstance(entity_type, type) and issubclass(entity_type, BaseModel):
        return [
            (name, info.annotation, tuple(info.metadata))
            for name, info in entity_type.model_fields.items()
        ]

    if dataclasses.is_dataclass(entity_type):
        hints = get_type_hints(entity_type, include_extras=True)
        result = []
        for f in dataclasses.fields(entity_type):
            hint = hints.get(f.name, f.type)
            if get_origin(hint) is Annotated:
                base, *markers = get_args(hint)
                result.append((f.name, base, tuple(markers)))
            else:
                result.append((f.name, hint, ()))
        return result

    raise MappingError(
        f"Domain type [{getattr(entity_type, '__name__', entity_type)}] "
        "must be a dataclass or a pydantic model",
        details={"type": repr(entity_type)},
    )


def _is_frozen(entity_type: type) -> bool:
    if isinstance(entity_type, type) and issubclass(entity_type, BaseModel):
        return bool(entity_type.model_config.get("frozen", False))
    return bool(entity_type.__dataclass_params__.frozen)  # type: ignore[attr-defined]


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


@dataclass(frozen=True)
class EntityModel:
    """Role descriptor for one domain type.

    Built once per type by :func:`describe` and reused for the lifetime
    of the store.
    """

    entity_type: type
    id_field: str | None
    content_field: str
    embedding_field: str
    embedding: EmbeddingRepresentation
    metadata_fields: tuple[str, ...]
    collection_name: str
    frozen: bool = False

    @property
    def native_id_field(self) -> str:
        """Field name that holds the record id in the store."""
        return self.id_field or DEFAULT_ID_FIELD

    def require_metadata_fields(self, names: Iterable[str], purpose: str) -> None:
        """Raise MappingError if any name is not a declared metadata field."""
        unknown = [n for n in names if n not in self.metadata_fields]
        if unknown:
            raise MappingError(
                f"Domain type [{self.entity_type.__name__}] has no {purpose} field(s) {unknown}",
                details={"fields": unknown, "declared": list(self.metadata_fields)},
            )

    def id_of(self, entity: Any) -> str | None:
        if self.id_field is None:
            return None
        value = getattr(entity, self.id_field)
        return None if value is None else str(value)

    def content_of(self, entity: Any) -> str:
        """Read the content of an entity.

        Raises:
            MappingError: If the content is None.
        """
        value = getattr(entity, self.content_field)
        if value is None:
            raise MappingError(
                f"Content of [{self.entity_type.__name__}] is null",
                details={"field": self.content_field},
            )
        return value if isinstance(value, str) else str(value)

    def embedding_of(self, entity: Any) -> list[float]:
        return self.embedding.to_floats(getattr(entity, self.embedding_field))

    def metadata_of(self, entity: Any) -> dict[str, Any]:
        return {name: getattr(entity, name) for name in self.metadata_fields}

    def to_document(self, entity: Any) -> Document:
        """Project an entity onto the canonical document view."""
        return Document(
            id=self.id_of(entity),
            content=self.content_of(entity),
            metadata=self.metadata_of(entity),
            embedding=self.embedding_of(entity),
        )

    def with_embedding(self, entity: Any, vector: Iterable[float]) -> Any:
        """Write a vector into the entity's embedding field.

        Frozen entities are copied; mutable ones are updated in place.

        Raises:
            ConversionError: If the vector does not fit the declared type.
        """
        return self._assign(entity, self.embedding_field, self.embedding.convert(vector))

    def with_id(self, entity: Any, record_id: str) -> Any:
        if self.id_field is None:
            return entity
        return self._assign(entity, self.id_field, record_id)

    def _assign(self, entity: Any, name: str, value: Any) -> Any:
        if not self.frozen:
            setattr(entity, name, value)
            return entity
        if isinstance(entity, BaseModel):
            return entity.model_copy(update={name: value})
        return dataclasses.replace(entity, **{name: value})


@lru_cache(maxsize=256)
def describe(entity_type: type) -> EntityModel:
    """Build the entity model for a domain type.

    Args:
        entity_type: Dataclass or pydantic model class.

    Returns:
        Cached EntityModel for the type.

    Raises:
        MappingError: If the type does not declare exactly one content field
            and exactly one embedding field, or declares more than one id.
    """
    fields = _fields_of(entity_type)
    type_name = entity_type.__name__

    ids = [name for name, _, markers in fields if _has_marker(markers, Id)]
    contents = [name for name, _, markers in fields if _has_marker(markers, Content)]
    embeddings = [
        (name, annotation, markers)
        for name, annotation, markers in fields
        if _has_marker(markers, Embedding)
    ]

    if len(contents) != 1:
        raise MappingError(
            f"Domain type [{type_name}] must declare exactly one content property, "
            f"found {len(contents)}. Annotate the text property with Content().",
            details={"type": type_name, "content_fields": contents},
        )
    if len(embeddings) != 1:
        raise MappingError(
            f"Domain type [{type_name}] must declare exactly one embedding property, "
            f"found {len(embeddings)}. Annotate the vector property with Embedding().",
            details={"type": type_name, "embedding_fields": [e[0] for e in embeddings]},
        )
    if len(ids) > 1:
        raise MappingError(
            f"Domain type [{type_name}] declares more than one id property",
            details={"type": type_name, "id_fields": ids},
        )

    content_field = contents[0]
    embedding_field, embedding_annotation, embedding_markers = embeddings[0]
    if content_field == embedding_field or content_field in ids or embedding_field in ids:
        raise MappingError(
            f"Domain type [{type_name}] assigns several roles to one property",
            details={"type": type_name},
        )

    names = [name for name, _, _ in fields]
    if ids:
        id_field: str | None = ids[0]
    elif "id" in names and "id" not in (content_field, embedding_field):
        id_field = "id"
    else:
        id_field = None

    representation = resolve_representation(
        embedding_annotation,
        _embedding_marker(embedding_markers).typecode,
    )

    reserved = {id_field, content_field, embedding_field}
    metadata_fields = tuple(name for name in names if name not in reserved)

    return EntityModel(
        entity_type=entity_type,
        id_field=id_field,
        content_field=content_field,
        embedding_field=embedding_field,
        embedding=representation,
        metadata_fields=metadata_fields,
        collection_name=getattr(entity_type, "__collection__", None) or _snake_case(type_name),
        frozen=_is_frozen(entity_type),
    )
