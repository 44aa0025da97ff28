#!/usr/bin/env python
"""Provision a Qdrant collection and its vector index.

Usage:
    python -m scripts.init_schema --embedding-field embedding --filter-field product

Safe to run from several deploy jobs at once: an index that already
exists counts as success. Exits non-zero on any other failure.
"""

import argparse
import asyncio
import sys

from vecstore.backends.qdrant import QdrantDocumentStore
from vecstore.config import get_settings
from vecstore.embeddings.service import HTTPEmbeddingService
from vecstore.exceptions import SchemaInitError, VectorStoreError
from vecstore.logging_config import get_logger, setup_logging
from vecstore.schema.manager import SchemaManager
from vecstore.schema.models import VectorIndexConfig

logger = get_logger(__name__)


async def provision(
    collection: str,
    embedding_field: str,
    dimensions: int | None,
    filter_fields: list[str],
) -> bool:
    """Create the collection and index.

    Args:
        collection: Collection to provision.
        embedding_field: Field (named vector) holding embeddings.
        dimensions: Vector size. Defaults to the embedding model's size.
        filter_fields: Payload fields to index for filtering.

    Returns:
        True if the schema is ready.
    """
    setup_logging(level="INFO")
    settings = get_settings()

    if dimensions is None:
        dimensions = HTTPEmbeddingService(settings.embedding).dimensions

    config = VectorIndexConfig(
        name=settings.index.name,
        embedding_field_path=embedding_field,
        num_dimensions=dimensions,
        filterable_fields=frozenset(filter_fields or settings.index.filterable_fields),
        num_candidates=settings.index.num_candidates,
    )

    store = QdrantDocumentStore(settings.qdrant)
    manager = SchemaManager(store, collection, config, initialize_schema=True)

    logger.info(
        f"Provisioning collection {collection} at {settings.qdrant.url}",
        extra={"dimensions": dimensions, "filters": sorted(config.filterable_fields)},
    )
    try:
        await manager.initialize()
    except (SchemaInitError, VectorStoreError) as e:
        logger.error(f"Provisioning failed: {e.message}", extra={"code": e.code.value, "details": e.details})
        return False
    finally:
        await store.close()

    print(f"Collection {collection} ready (index {config.name}, {dimensions} dimensions)")
    return True


def main() -> None:
    """Main entry point."""
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="Provision a collection and its vector index",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--collection",
        default=settings.qdrant.collection_name,
        help="Collection name",
    )
    parser.add_argument(
        "--embedding-field",
        default="embedding",
        help="Field holding the embedding vector",
    )
    parser.add_argument(
        "--dimensions",
        type=int,
        default=None,
        help="Vector dimensions (defaults to the embedding model's)",
    )
    parser.add_argument(
        "--filter-field",
        action="append",
        default=[],
        dest="filter_fields",
        help="Metadata field to index for filtering (repeatable)",
    )

    args = parser.parse_args()

    ready = asyncio.run(
        provision(
            collection=args.collection,
            embedding_field=args.embedding_field,
            dimensions=args.dimensions,
            filter_fields=args.filter_fields,
        )
    )

    sys.exit(0 if ready else 1)


if __name__ == "__main__":
    main()
