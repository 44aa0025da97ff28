"""In-process document store.

Interprets the same native commands and pipelines a remote store would
receive: index definitions, ``$vectorSearch`` with a native filter string,
``$addFields`` and ``$match``. Recall is exhaustive cosine similarity,
reported as the normalized score ``(1 + cos) / 2`` in [0, 1].
"""

import copy
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

import numpy as np

from vecstore.backends.base import (
    INDEX_ALREADY_EXISTS_CODE,
    INDEX_ALREADY_EXISTS_NAME,
    DocumentStore,
    apply_stages,
    split_pipeline,
)
from vecstore.exceptions import ErrorCode, VectorStoreError
from vecstore.filters.expression import (
    And,
    Comparison,
    FilterExpression,
    Not,
    Operator,
    Or,
    referenced_fields,
)
from vecstore.filters.parser import parse_filter
from vecstore.logging_config import get_logger
from vecstore.schema.models import IndexCreationOutcome

logger = get_logger(__name__)

NAMESPACE_EXISTS_CODE = 48

_SIMILARITIES = {"cosine", "euclidean", "dotProduct"}


@dataclass
class _Collection:
    records: dict[str, dict[str, Any]] = field(default_factory=dict)
    indexes: dict[str, dict[str, Any]] = field(default_factory=dict)

    def vector_dimensions(self) -> dict[str, int]:
        """Declared vector length per indexed path."""
        return {
            f["path"]: f["numDimensions"]
            for index in self.indexes.values()
            for f in index["definition"]["fields"]
            if f["type"] == "vector"
        }


def _cosine_similarities(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of the query against each row of the matrix.

    Rows with zero norm get NaN.
    """
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    with np.errstate(divide="ignore", invalid="ignore"):
        return (matrix @ query) / norms


def _compare(value: Any, op: Operator, literal: Any) -> bool:
    if op is Operator.EQ:
        return bool(value == literal)
    if op is Operator.NE:
        return bool(value != literal)
    if op is Operator.IN:
        return value in literal
    if op is Operator.NIN:
        return value not in literal
    if value is None:
        return False
    try:
        if op is Operator.GT:
            return bool(value > literal)
        if op is Operator.GTE:
            return bool(value >= literal)
        if op is Operator.LT:
            return bool(value < literal)
        return bool(value <= literal)
    except TypeError:
        return False


def matches(expr: FilterExpression, record: dict[str, Any]) -> bool:
    """Evaluate a filter expression against a record."""
    if isinstance(expr, Comparison):
        return _compare(record.get(expr.field), expr.op, expr.value)
    if isinstance(expr, And):
        return all(matches(op, record) for op in expr.operands)
    if isinstance(expr, Or):
        return any(matches(op, record) for op in expr.operands)
    if isinstance(expr, Not):
        return not matches(expr.operand, record)
    raise TypeError(f"Unknown filter node {type(expr).__name__}")


class InMemoryDocumentStore(DocumentStore):
    """Document store held in process memory."""

    def __init__(self) -> None:
        self._collections: dict[str, _Collection] = {}

    def _require(self, collection: str) -> _Collection:
        found = self._collections.get(collection)
        if found is None:
            raise VectorStoreError(
                f"Collection not found: {collection}",
                code=ErrorCode.COLLECTION_NOT_FOUND,
                details={"collection": collection},
            )
        return found

    @staticmethod
    def _check_dimensions(collection: str, target: _Collection, record: dict[str, Any]) -> None:
        for path, dims in target.vector_dimensions().items():
            vector = record.get(path)
            if vector is not None and len(vector) != dims:
                raise VectorStoreError(
                    f"Vector at {path!r} has {len(vector)} dimensions, index expects {dims}",
                    details={"collection": collection, "path": path, "expected": dims},
                )

    def indexes(self, collection: str) -> dict[str, dict[str, Any]]:
        """Index definitions registered on a collection, by name."""
        return dict(self._require(collection).indexes)

    async def collection_exists(self, collection: str) -> bool:
        return collection in self._collections

    async def create_collection(self, collection: str) -> IndexCreationOutcome:
        if collection in self._collections:
            return IndexCreationOutcome.conflict(
                f"Collection already exists: {collection}",
                error_code=NAMESPACE_EXISTS_CODE,
            )
        self._collections[collection] = _Collection()
        logger.info(f"Created collection: {collection}")
        return IndexCreationOutcome.created()

    async def create_search_index(
        self,
        collection: str,
        definition: dict[str, Any],
    ) -> IndexCreationOutcome:
        target = self._collections.get(collection)
        if target is None:
            return IndexCreationOutcome.fatal(f"Collection not found: {collection}")

        indexes = definition.get("indexes") or []
        for index in indexes:
            problem = self._validate_index(index)
            if problem:
                return IndexCreationOutcome.fatal(problem)

        for index in indexes:
            if index["name"] in target.indexes:
                return IndexCreationOutcome.conflict(
                    f"{INDEX_ALREADY_EXISTS_NAME}: {index['name']}",
                    error_code=INDEX_ALREADY_EXISTS_CODE,
                )

        for index in indexes:
            target.indexes[index["name"]] = copy.deepcopy(index)
            logger.info(f"Created search index {index['name']} on {collection}")
        return IndexCreationOutcome.created()

    @staticmethod
    def _validate_index(index: dict[str, Any]) -> str | None:
        if not index.get("name"):
            return "Index definition has no name"
        fields = index.get("definition", {}).get("fields", [])
        vectors = [f for f in fields if f.get("type") == "vector"]
        if len(vectors) != 1:
            return "Index definition must contain exactly one vector field"
        vector = vectors[0]
        dims = vector.get("numDimensions")
        if not isinstance(dims, int) or dims <= 0:
            return f"Invalid numDimensions: {dims!r}"
        if vector.get("similarity") not in _SIMILARITIES:
            return f"Invalid similarity: {vector.get('similarity')!r}"
        return None

    async def insert_many(
        self,
        collection: str,
        records: list[dict[str, Any]],
        id_field: str,
    ) -> list[str]:
        target = self._require(collection)

        prepared: list[tuple[str, dict[str, Any]]] = []
        seen: set[str] = set()
        for record in records:
            self._check_dimensions(collection, target, record)
            record_id = str(record.get(id_field) or uuid4().hex)
            if record_id in target.records or record_id in seen:
                raise VectorStoreError(
                    f"Duplicate key {id_field}={record_id!r}",
                    details={"collection": collection, "id": record_id},
                )
            seen.add(record_id)
            stored = copy.deepcopy(record)
            stored[id_field] = record_id
            prepared.append((record_id, stored))

        target.records.update(prepared)
        return [record_id for record_id, _ in prepared]

    async def replace_one(
        self,
        collection: str,
        record: dict[str, Any],
        id_field: str,
    ) -> str:
        target = self._require(collection)
        self._check_dimensions(collection, target, record)
        record_id = str(record.get(id_field) or uuid4().hex)
        stored = copy.deepcopy(record)
        stored[id_field] = record_id
        target.records[record_id] = stored
        return record_id

    async def delete_many(
        self,
        collection: str,
        id_field: str,
        ids: list[str],
    ) -> int:
        target = self._require(collection)
        wanted = {str(i) for i in ids}
        doomed = [
            key for key, record in target.records.items()
            if str(record.get(id_field)) in wanted
        ]
        for key in doomed:
            del target.records[key]
        return len(doomed)

    async def aggregate(
        self,
        collection: str,
        pipeline: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        target = self._require(collection)
        search, rest = split_pipeline(pipeline)

        index = target.indexes.get(search["index"])
        if index is None:
            logger.warning(
                f"Search index {search['index']} not found on {collection}; no results",
                extra={"collection": collection, "index": search["index"]},
            )
            return []

        fields = index["definition"]["fields"]
        vector_path = next(f["path"] for f in fields if f["type"] == "vector")
        if search["path"] != vector_path:
            raise VectorStoreError(
                f"Index {search['index']} covers {vector_path!r}, not {search['path']!r}",
                details={"index": search["index"], "path": search["path"]},
            )

        expr = parse_filter(search["filter"]) if search.get("filter") else None
        if expr is not None:
            indexed = {f["path"] for f in fields if f["type"] == "filter"}
            missing = sorted(referenced_fields(expr) - indexed)
            if missing:
                raise VectorStoreError(
                    f"Path(s) {missing} need to be indexed as filter",
                    details={"index": search["index"], "fields": missing},
                )

        query = np.asarray(search["queryVector"], dtype=np.float64)
        candidates = [
            record for record in target.records.values()
            if record.get(vector_path) is not None
            and (expr is None or matches(expr, record))
        ]
        if not candidates:
            return apply_stages([], rest)

        lengths = sorted({len(record[vector_path]) for record in candidates})
        if lengths != [query.shape[0]]:
            raise VectorStoreError(
                f"Query has {query.shape[0]} dimensions, stored vectors have {lengths}",
                details={"index": search["index"], "query": int(query.shape[0]), "stored": lengths},
            )

        matrix = np.asarray([record[vector_path] for record in candidates], dtype=np.float64)
        scores = (1.0 + _cosine_similarities(query, matrix)) / 2.0

        # Stable sort keeps insertion order among ties
        ranked = [i for i in np.argsort(-scores, kind="stable") if not np.isnan(scores[i])]
        recalled = ranked[: search["numCandidates"]][: search["limit"]]
        return apply_stages(
            [(copy.deepcopy(candidates[i]), float(scores[i])) for i in recalled],
            rest,
        )
