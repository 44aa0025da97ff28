"""Document store interface.

Backends expose CRUD over named collections, schema commands that report
a typed :class:`IndexCreationOutcome`, and execution of the native
aggregation pipeline built by :mod:`vecstore.search.pipeline`.
"""

import operator
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from vecstore.exceptions import VectorStoreError
from vecstore.schema.models import IndexCreationOutcome
from vecstore.search.pipeline import VECTOR_SEARCH_SCORE

# Vendor error identifying an index that already exists
INDEX_ALREADY_EXISTS_CODE = 68
INDEX_ALREADY_EXISTS_NAME = "IndexAlreadyExists"

_MATCH_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "$eq": operator.eq,
    "$gt": operator.gt,
    "$gte": operator.ge,
    "$lt": operator.lt,
    "$lte": operator.le,
}


class DocumentStore(ABC):
    """Abstract document store with ANN query support."""

    @abstractmethod
    async def collection_exists(self, collection: str) -> bool:
        """Check if a collection exists."""
        ...

    @abstractmethod
    async def create_collection(self, collection: str) -> IndexCreationOutcome:
        """Create a collection.

        Returns:
            ``EXPECTED_CONFLICT`` if it already exists.
        """
        ...

    @abstractmethod
    async def create_search_index(
        self,
        collection: str,
        definition: dict[str, Any],
    ) -> IndexCreationOutcome:
        """Run a native create-index command.

        Args:
            collection: Collection name.
            definition: Command from ``VectorIndexConfig.to_definition``.

        Returns:
            ``EXPECTED_CONFLICT`` if the index already exists, ``FATAL`` for
            any other failure.
        """
        ...

    @abstractmethod
    async def insert_many(
        self,
        collection: str,
        records: list[dict[str, Any]],
        id_field: str,
    ) -> list[str]:
        """Insert records, assigning ids where ``id_field`` is absent.

        Returns:
            Record ids, in input order.

        Raises:
            VectorStoreError: If the insert fails.
        """
        ...

    @abstractmethod
    async def replace_one(
        self,
        collection: str,
        record: dict[str, Any],
        id_field: str,
    ) -> str:
        """Replace the record with the same id, inserting it if absent.

        Returns:
            The record id.

        Raises:
            VectorStoreError: If the write fails.
        """
        ...

    @abstractmethod
    async def delete_many(
        self,
        collection: str,
        id_field: str,
        ids: list[str],
    ) -> int:
        """Delete records whose id is in ``ids``.

        Returns:
            Number of records deleted.

        Raises:
            VectorStoreError: If the delete fails.
        """
        ...

    @abstractmethod
    async def aggregate(
        self,
        collection: str,
        pipeline: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """Execute a native pipeline starting with ``$vectorSearch``.

        Returns:
            Records in rank order.

        Raises:
            VectorStoreError: If the query fails.
        """
        ...


def split_pipeline(
    pipeline: list[dict[str, Any]],
) -> tuple[dict[str, Any], list[dict[str, Any]]]:
    """Separate the recall stage from the stages after it.

    Raises:
        VectorStoreError: If the pipeline does not start with ``$vectorSearch``.
    """
    if not pipeline or "$vectorSearch" not in pipeline[0]:
        raise VectorStoreError(
            "Pipeline must start with a $vectorSearch stage",
            details={"stages": [next(iter(stage), None) for stage in pipeline]},
        )
    return pipeline[0]["$vectorSearch"], pipeline[1:]


def apply_stages(
    candidates: list[tuple[dict[str, Any], float]],
    stages: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Run ``$addFields`` and ``$match`` stages over recalled records.

    Args:
        candidates: Recalled records paired with their engine score, in
            rank order.
        stages: Native stages following ``$vectorSearch``.

    Returns:
        Surviving records, order preserved.
    """
    results: list[dict[str, Any]] = []
    for record, raw_score in candidates:
        doc = dict(record)
        keep = True
        for stage in stages:
            if "$addFields" in stage:
                for name, expr in stage["$addFields"].items():
                    doc[name] = raw_score if expr == {"$meta": VECTOR_SEARCH_SCORE} else expr
            elif "$match" in stage:
                keep = all(
                    _match_condition(doc.get(name), condition)
                    for name, condition in stage["$match"].items()
                )
                if not keep:
                    break
            else:
                raise VectorStoreError(
                    f"Unsupported pipeline stage {next(iter(stage), None)!r}",
                    details={"stage": stage},
                )
        if keep:
            results.append(doc)
    return results


def _match_condition(value: Any, condition: Any) -> bool:
    if not isinstance(condition, dict):
        return bool(value == condition)
    if value is None:
        return False
    for op_name, operand in condition.items():
        compare = _MATCH_OPERATORS.get(op_name)
        if compare is None:
            raise VectorStoreError(
                f"Unsupported match operator {op_name!r}",
                details={"operator": op_name},
            )
        if not compare(value, operand):
            return False
    return True
