"""Vector store helpers backed by pluggable backends."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from docchat.config import Settings, get_settings
from docchat.errors import VectorStoreUnavailableError

from .base import NamespaceVectorStore, SearchResult
from .memory_store import InMemoryVectorStore


def build_vector_store(settings: Optional[Settings] = None) -> NamespaceVectorStore:
    """Instantiate the backend named by ``VECTOR_STORE``."""

    settings = settings or get_settings()
    backend = settings.vector_store

    if backend == "memory":
        return InMemoryVectorStore()

    if backend == "chroma":
        from .chroma_store import ChromaVectorStore, build_chroma_client

        client = build_chroma_client(
            url=settings.chroma_url,
            api_key=settings.chroma_api_key,
            persist_dir=settings.chroma_persist_dir,
        )
        return ChromaVectorStore(client, distance_metric=settings.chroma_distance_metric)

    raise VectorStoreUnavailableError(f"Unsupported VECTOR_STORE backend: {backend!r}")


@lru_cache()
def get_vector_store() -> NamespaceVectorStore:
    """Return a lazily initialised vector store instance based on configuration."""

    return build_vector_store()


def reset_vector_store_cache() -> None:
    """Clear the cached vector store (primarily for testing)."""

    get_vector_store.cache_clear()  # type: ignore[attr-defined]


__all__ = [
    "InMemoryVectorStore",
    "NamespaceVectorStore",
    "SearchResult",
    "VectorStoreUnavailableError",
    "build_vector_store",
    "get_vector_store",
    "reset_vector_store_cache",
]
