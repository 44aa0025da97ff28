"""Application exception hierarchy.

All custom exceptions inherit from VectorStorePlatformError.
Each exception has an error code for structured error handling.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "VEC-1000"
    CONFIGURATION_ERROR = "VEC-1001"
    VALIDATION_ERROR = "VEC-1002"

    # Entity mapping errors (2xxx)
    MAPPING_ERROR = "VEC-2000"
    CONVERSION_ERROR = "VEC-2001"

    # Filter errors (3xxx)
    UNSUPPORTED_FILTER = "VEC-3000"
    FILTER_PARSE_ERROR = "VEC-3001"

    # Vector store errors (4xxx)
    VECTOR_STORE_ERROR = "VEC-4000"
    COLLECTION_NOT_FOUND = "VEC-4001"
    SCHEMA_INIT_ERROR = "VEC-4002"

    # Embedding errors (5xxx)
    EMBEDDING_SERVICE_ERROR = "VEC-5000"


class VectorStorePlatformError(Exception):
    """Base exception for all vector store errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable dictionary."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            }
        }


class ConfigurationError(VectorStorePlatformError):
    """Configuration or environment error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class MappingError(VectorStorePlatformError):
    """Entity type cannot be mapped to the document view."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.MAPPING_ERROR, details)


class ConversionError(VectorStorePlatformError):
    """Embedding value cannot be converted to the declared representation."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONVERSION_ERROR, details)


class UnsupportedFilterError(VectorStorePlatformError):
    """Filter references a field that is not registered with the index."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.UNSUPPORTED_FILTER, details)


class FilterParseError(VectorStorePlatformError):
    """Filter text is malformed."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.FILTER_PARSE_ERROR, details)


class VectorStoreError(VectorStorePlatformError):
    """Vector store operation error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VECTOR_STORE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class SchemaInitError(VectorStoreError):
    """Collection or index creation failed for a reason other than a conflict."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.SCHEMA_INIT_ERROR, details)


class EmbeddingError(VectorStorePlatformError):
    """Embedding service error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.EMBEDDING_SERVICE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)
