"""Service layer."""

from .sessions import ChatResult, DocumentSessionManager, IngestResult, SourceDocument, get_session_manager

__all__ = ["ChatResult", "DocumentSessionManager", "IngestResult", "SourceDocument", "get_session_manager"]
