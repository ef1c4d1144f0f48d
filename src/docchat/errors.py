"""Exception hierarchy shared by the ingest, chat and delete flows."""
from __future__ import annotations


class DocChatError(RuntimeError):
    """Base class for every error raised by the service layer."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause


# Input validation errors, raised before any provider is contacted.


class UnsupportedMediaType(DocChatError):
    """Raised when an upload's MIME type is not PDF, plain text or DOCX."""


class DocumentTooLarge(DocChatError):
    """Raised when an upload exceeds the configured size limit."""


class EmptyDocument(DocChatError):
    """Raised when a document yields no extractable text."""


class EmptyMessage(DocChatError):
    """Raised when a chat message is empty or whitespace only."""


class InvalidDocumentId(DocChatError):
    """Raised when a document identifier is blank."""


# Processing errors.


class ExtractionFailed(DocChatError):
    """Raised when text extraction throws for a supported document."""


class ProviderUnavailable(DocChatError):
    """Raised when an embedding, generation or vector store call fails."""


class EmbeddingProviderError(ProviderUnavailable):
    """Raised when the embedding backend cannot produce vectors."""


class GenerationProviderError(ProviderUnavailable):
    """Raised when the generation backend cannot produce a completion."""


class VectorStoreUnavailableError(ProviderUnavailable):
    """Raised when the vector store backend cannot be initialised or queried."""


# Namespace deletion outcomes.


class NamespaceNotFound(DocChatError):
    """Raised when no vectors are stored under the requested namespace."""


class DeletionUnsupported(DocChatError):
    """Raised when the vector store backend cannot drop a namespace."""


class DeletionFailed(DocChatError):
    """Raised when the backend reported an error while dropping a namespace."""


__all__ = [
    "DeletionFailed",
    "DeletionUnsupported",
    "DocChatError",
    "DocumentTooLarge",
    "EmbeddingProviderError",
    "EmptyDocument",
    "EmptyMessage",
    "ExtractionFailed",
    "GenerationProviderError",
    "InvalidDocumentId",
    "NamespaceNotFound",
    "ProviderUnavailable",
    "UnsupportedMediaType",
    "VectorStoreUnavailableError",
]
