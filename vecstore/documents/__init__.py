"""Document module."""

from vecstore.documents.models import Document

__all__ = [
    "Document",
]
