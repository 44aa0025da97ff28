"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
No secrets are hardcoded.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class EmbeddingSettings(BaseSettings):
    """Embedding service configuration."""

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    base_url: str = Field(
        default="http://localhost:8080",
        description="Embedding service base URL",
    )
    model: str = Field(
        default="BAAI/bge-large-en-v1.5",
        description="Embedding model name",
    )
    batch_size: int = Field(
        default=32,
        gt=0,
        description="Maximum texts per embedding request",
    )
    timeout: float = Field(
        default=60.0,
        description="Request timeout in seconds",
    )
    dimensions: int | None = Field(
        default=None,
        gt=0,
        description="Vector dimensions override for models not in the known list",
    )


class QdrantSettings(BaseSettings):
    """Qdrant backend configuration."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_")

    url: str = Field(
        default="http://localhost:6333",
        description="Qdrant server URL",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Qdrant API key (optional for local)",
    )
    collection_name: str = Field(
        default="vector_store",
        description="Default collection name",
    )


class VectorIndexSettings(BaseSettings):
    """ANN index configuration."""

    model_config = SettingsConfigDict(env_prefix="VECTOR_INDEX_")

    name: str = Field(
        default="vector_index",
        min_length=1,
        description="Name of the vector search index",
    )
    num_candidates: int = Field(
        default=200,
        gt=0,
        description="Approximate neighbours considered during recall",
    )
    filterable_fields: list[str] = Field(
        default_factory=list,
        description="Metadata fields registered with the index for pre-filtering",
    )
    initialize_schema: bool = Field(
        default=False,
        description="Create the collection and index at startup",
    )


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    # Nested settings
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    qdrant: QdrantSettings = Field(default_factory=QdrantSettings)
    index: VectorIndexSettings = Field(default_factory=VectorIndexSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
