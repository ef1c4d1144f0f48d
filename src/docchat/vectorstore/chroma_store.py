"""Chroma backend: one collection per document namespace."""
from __future__ import annotations

import logging
import re
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

import chromadb
from chromadb.errors import NotFoundError

from docchat.errors import DeletionFailed, NamespaceNotFound, VectorStoreUnavailableError
from docchat.ingest.models import Segment
from docchat.telemetry import emit_vectorstore_event

from .base import NamespaceVectorStore, SearchResult, check_lengths, segment_id, segment_metadata

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from chromadb.api import ClientAPI
    from chromadb.api.models.Collection import Collection

LOGGER = logging.getLogger(__name__)

# Chroma collection names: 3-63 chars of [A-Za-z0-9._-], alphanumeric at both ends.
_COLLECTION_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{1,61}[A-Za-z0-9]$")


def build_chroma_client(
    *,
    url: str = "",
    api_key: str = "",
    persist_dir: str | Path = "chroma_db",
) -> "ClientAPI":
    """Connect to a Chroma server when ``url`` is set, else open a local store."""

    try:
        if url:
            parsed = urlparse(url)
            headers = {"x-chroma-token": api_key} if api_key else None
            return chromadb.HttpClient(
                host=parsed.hostname or "localhost",
                port=parsed.port or (443 if parsed.scheme == "https" else 8000),
                ssl=parsed.scheme == "https",
                headers=headers,
            )
        path = Path(persist_dir)
        path.mkdir(parents=True, exist_ok=True)
        return chromadb.PersistentClient(path=str(path))
    except Exception as exc:
        raise VectorStoreUnavailableError("Failed to initialise Chroma client", cause=exc) from exc


class ChromaVectorStore(NamespaceVectorStore):
    """Adapter around a Chroma client mapping each namespace to a collection."""

    backend = "chroma"

    def __init__(self, client: "ClientAPI", *, distance_metric: str = "cosine") -> None:
        self._client = client
        self.distance_metric = distance_metric

    @staticmethod
    def is_valid_namespace(namespace: str) -> bool:
        return bool(_COLLECTION_NAME_RE.match(namespace)) and ".." not in namespace

    def _get_collection(self, namespace: str) -> Optional["Collection"]:
        if not self.is_valid_namespace(namespace):
            return None
        try:
            return self._client.get_collection(name=namespace)
        except (NotFoundError, ValueError):
            return None
        except Exception as exc:
            raise VectorStoreUnavailableError("Chroma lookup failed", cause=exc) from exc

    def add(
        self,
        namespace: str,
        segments: Sequence[Segment],
        embeddings: Sequence[Sequence[float]],
    ) -> List[str]:
        check_lengths(segments, embeddings)
        if not self.is_valid_namespace(namespace):
            raise ValueError(f"{namespace!r} is not a valid Chroma collection name")
        started = time.perf_counter()
        ids = [segment_id(namespace, segment) for segment in segments]
        try:
            collection = self._client.get_or_create_collection(
                name=namespace, metadata={"hnsw:space": self.distance_metric}
            )
            if ids:
                collection.upsert(
                    ids=ids,
                    embeddings=[[float(value) for value in embedding] for embedding in embeddings],
                    documents=[segment.content for segment in segments],
                    metadatas=[segment_metadata(segment) for segment in segments],
                )
        except Exception as exc:
            emit_vectorstore_event(
                "vectorstore.add", backend=self.backend, namespace=namespace, count=len(ids), error=exc
            )
            raise VectorStoreUnavailableError("Failed to add segments to Chroma", cause=exc) from exc
        emit_vectorstore_event(
            "vectorstore.add",
            backend=self.backend,
            namespace=namespace,
            count=len(ids),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return ids

    def search(self, namespace: str, embedding: Sequence[float], k: int) -> List[SearchResult]:
        if k <= 0:
            return []
        collection = self._get_collection(namespace)
        if collection is None:
            LOGGER.info("Search against unknown namespace %s", namespace)
            return []
        started = time.perf_counter()
        try:
            available = collection.count()
            if available == 0:
                return []
            result = collection.query(
                query_embeddings=[[float(value) for value in embedding]],
                n_results=min(k, available),
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            emit_vectorstore_event(
                "vectorstore.query", backend=self.backend, namespace=namespace, count=0, error=exc
            )
            raise VectorStoreUnavailableError("Chroma query failed", cause=exc) from exc

        ids = (result.get("ids") or [[]])[0]
        documents = (result.get("documents") or [[]])[0]
        metadatas = (result.get("metadatas") or [[]])[0]
        distances = (result.get("distances") or [[]])[0]

        neighbours = [
            SearchResult(
                id=str(item_id),
                content=document or "",
                distance=float(distance) if distance is not None else 0.0,
                metadata=dict(metadata or {}),
            )
            for item_id, document, metadata, distance in zip(ids, documents, metadatas, distances)
        ]
        emit_vectorstore_event(
            "vectorstore.query",
            backend=self.backend,
            namespace=namespace,
            count=len(neighbours),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return neighbours

    def has_namespace(self, namespace: str) -> bool:
        return self._get_collection(namespace) is not None

    def list_namespaces(self) -> List[str]:
        try:
            collections = self._client.list_collections()
        except Exception as exc:
            raise VectorStoreUnavailableError("Failed to list Chroma collections", cause=exc) from exc
        # Older clients return names, newer ones return Collection objects.
        return sorted(getattr(item, "name", item) for item in collections)

    def delete_namespace(self, namespace: str) -> None:
        try:
            exists = self.has_namespace(namespace)
        except VectorStoreUnavailableError as exc:
            raise DeletionFailed(f"Chroma could not look up {namespace!r}", cause=exc) from exc
        if not exists:
            raise NamespaceNotFound(f"No document stored under {namespace!r}")
        try:
            self._client.delete_collection(name=namespace)
        except (NotFoundError, ValueError) as exc:
            raise NamespaceNotFound(f"No document stored under {namespace!r}", cause=exc) from exc
        except Exception as exc:
            emit_vectorstore_event(
                "vectorstore.delete", backend=self.backend, namespace=namespace, count=0, error=exc
            )
            raise DeletionFailed(f"Chroma could not delete {namespace!r}", cause=exc) from exc
        emit_vectorstore_event("vectorstore.delete", backend=self.backend, namespace=namespace, count=1)

    def ping(self) -> bool:
        try:
            self._client.heartbeat()
        except Exception as exc:
            LOGGER.warning("Chroma heartbeat failed: %s", exc)
            return False
        return True


__all__ = ["ChromaVectorStore", "build_chroma_client"]
