"""Qdrant document store.

Maps the store contract onto Qdrant:

* records become points; the record id is kept in the payload and the
  point id is its deterministic UUIDv5
* the vector index is a named vector on the collection, plus payload
  indexes for the filterable fields. Qdrant fixes vector parameters when a
  collection is created, so the collection is materialized by the index
  command
* ``$vectorSearch`` runs as ``query_points`` with the native filter
  converted to a Qdrant ``Filter``; cosine scores are normalized to
  ``(1 + cos) / 2``
"""

from typing import Any
from uuid import NAMESPACE_URL, uuid4, uuid5

from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import UnexpectedResponse
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchAny,
    MatchExcept,
    MatchValue,
    PayloadSchemaType,
    PointIdsList,
    PointStruct,
    Range,
    SearchParams,
    VectorParams,
)

from vecstore.backends.base import DocumentStore, apply_stages, split_pipeline
from vecstore.config import QdrantSettings, get_settings
from vecstore.exceptions import ErrorCode, VectorStoreError
from vecstore.filters.expression import (
    And,
    Comparison,
    FilterExpression,
    Not,
    Operator,
    Or,
)
from vecstore.filters.parser import parse_filter
from vecstore.logging_config import get_logger
from vecstore.schema.models import IndexCreationOutcome

logger = get_logger(__name__)

CONFLICT_STATUS = 409

_DISTANCES = {
    "cosine": Distance.COSINE,
    "euclidean": Distance.EUCLID,
    "dotProduct": Distance.DOT,
}

_RANGE_KEYS = {
    Operator.GT: "gt",
    Operator.GTE: "gte",
    Operator.LT: "lt",
    Operator.LTE: "lte",
}


def point_id(record_id: str) -> str:
    """Deterministic Qdrant point id for a record id."""
    return str(uuid5(NAMESPACE_URL, record_id))


def _comparison_condition(expr: Comparison) -> FieldCondition | Filter:
    value = expr.value
    if expr.op in (Operator.IN, Operator.NIN) and any(isinstance(v, float) for v in value):
        raise VectorStoreError(
            f"Set membership on {expr.field!r} supports only strings and integers",
            details={"field": expr.field, "op": expr.op.value},
        )
    if expr.op is Operator.IN:
        return FieldCondition(key=expr.field, match=MatchAny(any=value))
    if expr.op is Operator.NIN:
        return FieldCondition(key=expr.field, match=MatchExcept(**{"except": value}))

    if expr.op in (Operator.EQ, Operator.NE):
        if isinstance(value, float):
            condition = FieldCondition(key=expr.field, range=Range(gte=value, lte=value))
        else:
            condition = FieldCondition(key=expr.field, match=MatchValue(value=value))
        return condition if expr.op is Operator.EQ else Filter(must_not=[condition])

    if isinstance(value, (str, bool)):
        raise VectorStoreError(
            f"Range comparison on {expr.field!r} requires a number",
            details={"field": expr.field, "op": expr.op.value},
        )
    return FieldCondition(key=expr.field, range=Range(**{_RANGE_KEYS[expr.op]: value}))


def _condition(expr: FilterExpression) -> FieldCondition | Filter:
    if isinstance(expr, Comparison):
        return _comparison_condition(expr)
    if isinstance(expr, And):
        return Filter(must=[_condition(op) for op in expr.operands])
    if isinstance(expr, Or):
        return Filter(should=[_condition(op) for op in expr.operands])
    if isinstance(expr, Not):
        return Filter(must_not=[_condition(expr.operand)])
    raise TypeError(f"Unknown filter node {type(expr).__name__}")


def to_qdrant_filter(expr: FilterExpression) -> Filter:
    """Convert a filter expression into a Qdrant filter."""
    condition = _condition(expr)
    return condition if isinstance(condition, Filter) else Filter(must=[condition])


class QdrantDocumentStore(DocumentStore):
    """Qdrant implementation of the document store."""

    def __init__(
        self,
        settings: QdrantSettings | None = None,
        client: AsyncQdrantClient | None = None,
        field_schemas: dict[str, PayloadSchemaType] | None = None,
    ) -> None:
        """Initialize Qdrant document store.

        Args:
            settings: Qdrant configuration.
            client: Existing client (for testing).
            field_schemas: Payload index type per filterable field;
                unlisted fields are indexed as keywords.
        """
        self._settings = settings or get_settings().qdrant
        self._client = client
        self._owns_client = client is None
        self._field_schemas = field_schemas or {}

    async def _get_client(self) -> AsyncQdrantClient:
        """Get or create Qdrant client."""
        if self._client is None:
            api_key = None
            if self._settings.api_key:
                api_key = self._settings.api_key.get_secret_value()

            self._client = AsyncQdrantClient(
                url=self._settings.url,
                api_key=api_key,
            )
        return self._client

    async def close(self) -> None:
        """Close the Qdrant client."""
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    async def collection_exists(self, collection: str) -> bool:
        client = await self._get_client()
        try:
            return await client.collection_exists(collection)
        except Exception as e:
            raise VectorStoreError(
                f"Failed to check collection: {e}",
                details={"collection": collection, "error": str(e)},
            ) from e

    async def create_collection(self, collection: str) -> IndexCreationOutcome:
        # Vector parameters are only known to the index command
        logger.debug(f"Deferring creation of {collection} to index creation")
        return IndexCreationOutcome.created()

    async def create_search_index(
        self,
        collection: str,
        definition: dict[str, Any],
    ) -> IndexCreationOutcome:
        client = await self._get_client()

        try:
            (index,) = definition["indexes"]
            fields = index["definition"]["fields"]
            (vector,) = [f for f in fields if f["type"] == "vector"]
            filter_paths = [f["path"] for f in fields if f["type"] == "filter"]
            params = VectorParams(
                size=vector["numDimensions"],
                distance=_DISTANCES[vector["similarity"]],
            )
        except (KeyError, ValueError) as e:
            return IndexCreationOutcome.fatal(f"Invalid index definition: {e}")

        try:
            if await client.collection_exists(collection):
                return await self._check_existing(
                    client, collection, vector["path"], params, filter_paths
                )

            await client.create_collection(
                collection_name=collection,
                vectors_config={vector["path"]: params},
            )
            for path in filter_paths:
                await self._create_payload_index(client, collection, path)
        except UnexpectedResponse as e:
            if e.status_code == CONFLICT_STATUS:
                return IndexCreationOutcome.conflict(str(e), error_code=CONFLICT_STATUS)
            return IndexCreationOutcome.fatal(str(e), error_code=e.status_code)
        except Exception as e:
            return IndexCreationOutcome.fatal(str(e))

        logger.info(
            f"Created collection {collection} with vector {vector['path']}",
            extra={"dimensions": params.size, "filters": filter_paths},
        )
        return IndexCreationOutcome.created()

    async def _check_existing(
        self,
        client: AsyncQdrantClient,
        collection: str,
        vector_name: str,
        params: VectorParams,
        filter_paths: list[str],
    ) -> IndexCreationOutcome:
        info = await client.get_collection(collection)
        vectors = info.config.params.vectors
        existing = vectors.get(vector_name) if isinstance(vectors, dict) else None
        if existing is None:
            return IndexCreationOutcome.fatal(
                f"Collection {collection} exists without vector {vector_name!r}"
            )
        if existing.size != params.size:
            return IndexCreationOutcome.fatal(
                f"Vector {vector_name!r} has size {existing.size}, expected {params.size}"
            )

        indexed = info.payload_schema or {}
        added = [path for path in filter_paths if path not in indexed]
        for path in added:
            await self._create_payload_index(client, collection, path)
        if added:
            logger.info(
                f"Added payload indexes to {collection}: {added}",
                extra={"collection": collection, "filters": added},
            )
        return IndexCreationOutcome.conflict(f"Vector {vector_name!r} already exists")

    async def _create_payload_index(
        self,
        client: AsyncQdrantClient,
        collection: str,
        path: str,
    ) -> None:
        await client.create_payload_index(
            collection_name=collection,
            field_name=path,
            field_schema=self._field_schemas.get(path, PayloadSchemaType.KEYWORD),
        )

    def _point(self, record: dict[str, Any], id_field: str, vector_name: str) -> PointStruct:
        payload = {k: v for k, v in record.items() if k != vector_name}
        return PointStruct(
            id=point_id(payload[id_field]),
            vector={vector_name: list(record.get(vector_name) or [])},
            payload=payload,
        )

    async def _vector_name(self, client: AsyncQdrantClient, collection: str) -> str:
        info = await client.get_collection(collection)
        vectors = info.config.params.vectors
        if not isinstance(vectors, dict) or len(vectors) != 1:
            raise VectorStoreError(
                f"Collection {collection} must have exactly one named vector",
                details={"collection": collection},
            )
        return next(iter(vectors))

    async def _reject_existing(
        self,
        client: AsyncQdrantClient,
        collection: str,
        records: list[dict[str, Any]],
        id_field: str,
    ) -> None:
        ids = [r[id_field] for r in records]
        repeated = sorted({i for i in ids if ids.count(i) > 1})
        if not repeated:
            found = await client.retrieve(
                collection_name=collection,
                ids=[point_id(i) for i in ids],
                with_payload=[id_field],
                with_vectors=False,
            )
            repeated = sorted(str((p.payload or {}).get(id_field)) for p in found)
        if repeated:
            raise VectorStoreError(
                f"Duplicate key {id_field}={repeated[0]!r}",
                details={"collection": collection, "ids": repeated},
            )

    async def _upsert(
        self,
        collection: str,
        records: list[dict[str, Any]],
        id_field: str,
        insert_only: bool = False,
    ) -> list[str]:
        client = await self._get_client()
        prepared = [
            {**record, id_field: str(record.get(id_field) or uuid4().hex)}
            for record in records
        ]
        try:
            vector_name = await self._vector_name(client, collection)
            if insert_only:
                await self._reject_existing(client, collection, prepared, id_field)
            await client.upsert(
                collection_name=collection,
                points=[self._point(r, id_field, vector_name) for r in prepared],
            )
        except VectorStoreError:
            raise
        except Exception as e:
            raise VectorStoreError(
                f"Failed to upsert records: {e}",
                details={"collection": collection, "error": str(e)},
            ) from e

        logger.debug(
            f"Upserted {len(prepared)} records",
            extra={"collection": collection},
        )
        return [r[id_field] for r in prepared]

    async def insert_many(
        self,
        collection: str,
        records: list[dict[str, Any]],
        id_field: str,
    ) -> list[str]:
        if not records:
            return []
        return await self._upsert(collection, records, id_field, insert_only=True)

    async def replace_one(
        self,
        collection: str,
        record: dict[str, Any],
        id_field: str,
    ) -> str:
        (record_id,) = await self._upsert(collection, [record], id_field)
        return record_id

    async def delete_many(
        self,
        collection: str,
        id_field: str,
        ids: list[str],
    ) -> int:
        if not ids:
            return 0

        client = await self._get_client()
        points = [point_id(str(i)) for i in ids]
        try:
            existing = await client.retrieve(
                collection_name=collection,
                ids=points,
                with_payload=False,
                with_vectors=False,
            )
            await client.delete(
                collection_name=collection,
                points_selector=PointIdsList(points=points),  # type: ignore[arg-type]
            )
        except Exception as e:
            raise VectorStoreError(
                f"Failed to delete records: {e}",
                code=ErrorCode.VECTOR_STORE_ERROR,
                details={"collection": collection, "error": str(e)},
            ) from e

        logger.debug(
            f"Deleted {len(existing)} of {len(ids)} records",
            extra={"collection": collection},
        )
        return len(existing)

    async def aggregate(
        self,
        collection: str,
        pipeline: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        search, rest = split_pipeline(pipeline)
        query_filter = to_qdrant_filter(parse_filter(search["filter"])) if search.get("filter") else None

        client = await self._get_client()
        try:
            response = await client.query_points(
                collection_name=collection,
                query=list(search["queryVector"]),
                using=search["path"],
                query_filter=query_filter,
                limit=search["limit"],
                search_params=SearchParams(hnsw_ef=search["numCandidates"]),
                with_payload=True,
            )
        except Exception as e:
            raise VectorStoreError(
                f"Failed to search: {e}",
                details={"collection": collection, "error": str(e)},
            ) from e

        candidates = [
            (
                dict(point.payload or {}),
                (1.0 + (point.score if point.score is not None else -1.0)) / 2.0,
            )
            for point in response.points
        ]
        return apply_stages(candidates, rest)
