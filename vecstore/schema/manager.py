"""Idempotent collection and vector index provisioning."""

from enum import Enum
from typing import TYPE_CHECKING

from vecstore.exceptions import SchemaInitError
from vecstore.logging_config import get_logger
from vecstore.schema.models import CreationStatus, IndexCreationOutcome, VectorIndexConfig

if TYPE_CHECKING:
    from vecstore.backends.base import DocumentStore

logger = get_logger(__name__)


class SchemaState(str, Enum):
    """Lifecycle of a schema manager."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"


class SchemaManager:
    """Creates the collection and its vector index exactly once.

    Several processes may initialize the same collection concurrently. The
    losers of that race see an "already exists" outcome, which is treated
    as success; any other failure aborts initialization.
    """

    def __init__(
        self,
        store: "DocumentStore",
        collection: str,
        config: VectorIndexConfig,
        initialize_schema: bool = False,
    ) -> None:
        """Initialize the schema manager.

        Args:
            store: Backend receiving the schema commands.
            collection: Collection to provision.
            config: Vector index definition.
            initialize_schema: When False, ``initialize`` does nothing.
        """
        self._store = store
        self._collection = collection
        self._config = config
        self._initialize_schema = initialize_schema
        self._state = SchemaState.UNINITIALIZED

    @property
    def state(self) -> SchemaState:
        return self._state

    @property
    def config(self) -> VectorIndexConfig:
        return self._config

    async def initialize(self) -> None:
        """Ensure the collection and vector index exist.

        Raises:
            SchemaInitError: If a schema command fails for a reason other
                than the object already existing.
        """
        if not self._initialize_schema or self._state is SchemaState.READY:
            return

        if not await self._store.collection_exists(self._collection):
            outcome = await self._store.create_collection(self._collection)
            self._check(outcome, f"collection {self._collection}")

        outcome = await self._store.create_search_index(
            self._collection,
            self._config.to_definition(self._collection),
        )
        self._check(outcome, f"search index {self._config.name}")

        self._state = SchemaState.READY
        logger.info(
            f"Schema ready for collection {self._collection}",
            extra={"index": self._config.name, "dimensions": self._config.num_dimensions},
        )

    def _check(self, outcome: IndexCreationOutcome, target: str) -> None:
        if outcome.status is CreationStatus.EXPECTED_CONFLICT:
            logger.info(
                f"Skipping {target}: already exists",
                extra={"collection": self._collection, "error_code": outcome.error_code},
            )
            return
        if outcome.status is CreationStatus.FATAL:
            logger.error(
                f"Failed to create {target}: {outcome.detail}",
                extra={"collection": self._collection, "error_code": outcome.error_code},
            )
            raise SchemaInitError(
                f"Failed to create {target}: {outcome.detail}",
                details={
                    "collection": self._collection,
                    "error_code": outcome.error_code,
                },
            )
