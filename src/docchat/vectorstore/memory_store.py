"""In-memory vector store used for development and tests."""
from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Sequence

from docchat.errors import NamespaceNotFound
from docchat.ingest.models import Segment
from docchat.telemetry import emit_vectorstore_event

from .base import NamespaceVectorStore, SearchResult, check_lengths, segment_id, segment_metadata

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class _StoredItem:
    id: str
    embedding: List[float]
    document: str
    metadata: dict


class InMemoryVectorStore(NamespaceVectorStore):
    """Keep namespaces in a process-local dict, ranked by cosine distance."""

    backend = "memory"

    def __init__(self) -> None:
        self._namespaces: Dict[str, List[_StoredItem]] = {}
        self._lock = threading.Lock()

    def add(
        self,
        namespace: str,
        segments: Sequence[Segment],
        embeddings: Sequence[Sequence[float]],
    ) -> List[str]:
        check_lengths(segments, embeddings)
        started = time.perf_counter()
        items = [
            _StoredItem(
                id=segment_id(namespace, segment),
                embedding=[float(value) for value in embedding],
                document=segment.content,
                metadata=segment_metadata(segment),
            )
            for segment, embedding in zip(segments, embeddings)
        ]
        with self._lock:
            stored = self._namespaces.setdefault(namespace, [])
            known = {item.id: index for index, item in enumerate(stored)}
            for item in items:
                if item.id in known:
                    stored[known[item.id]] = item
                else:
                    stored.append(item)
        emit_vectorstore_event(
            "vectorstore.add",
            backend=self.backend,
            namespace=namespace,
            count=len(items),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return [item.id for item in items]

    def search(self, namespace: str, embedding: Sequence[float], k: int) -> List[SearchResult]:
        if k <= 0:
            return []
        with self._lock:
            items = list(self._namespaces.get(namespace, ()))
        scored = sorted(
            ((_cosine_distance(embedding, item.embedding), item) for item in items),
            key=lambda pair: pair[0],
        )[:k]
        emit_vectorstore_event("vectorstore.query", backend=self.backend, namespace=namespace, count=len(scored))
        return [
            SearchResult(id=item.id, content=item.document, distance=distance, metadata=dict(item.metadata))
            for distance, item in scored
        ]

    def has_namespace(self, namespace: str) -> bool:
        with self._lock:
            return namespace in self._namespaces

    def list_namespaces(self) -> List[str]:
        with self._lock:
            return sorted(self._namespaces)

    def delete_namespace(self, namespace: str) -> None:
        with self._lock:
            removed = self._namespaces.pop(namespace, None)
        if removed is None:
            raise NamespaceNotFound(f"No document stored under {namespace!r}")
        emit_vectorstore_event("vectorstore.delete", backend=self.backend, namespace=namespace, count=len(removed))


def _cosine_distance(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    if len(vec_a) != len(vec_b):
        raise ValueError("Vectors must be of the same dimension")
    dot = sum(a * b for a, b in zip(vec_a, vec_b))
    norm = math.sqrt(sum(a * a for a in vec_a)) * math.sqrt(sum(b * b for b in vec_b))
    if norm == 0.0:
        return 1.0
    return 1.0 - dot / norm


__all__ = ["InMemoryVectorStore"]
