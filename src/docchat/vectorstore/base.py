"""Backend-neutral contract of the namespace-partitioned vector store."""
from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from docchat.errors import DeletionUnsupported
from docchat.ingest.models import Segment


@dataclass(slots=True)
class SearchResult:
    """One neighbour returned by :meth:`NamespaceVectorStore.search`."""

    id: str
    content: str
    distance: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def score(self) -> float:
        return max(0.0, 1.0 - self.distance)


def segment_id(namespace: str, segment: Segment) -> str:
    meta = segment.metadata
    seed = f"{namespace}:{meta.chunk_index}:{meta.char_start}:{meta.char_end}"
    return uuid.uuid5(uuid.NAMESPACE_URL, seed).hex


def segment_metadata(segment: Segment) -> Dict[str, Any]:
    """Flatten segment metadata into scalar values, dropping unset keys."""

    metadata = {key: value for key, value in segment.metadata.to_dict().items() if value is not None}
    metadata["content_length"] = len(segment.content)
    return metadata


class NamespaceVectorStore(ABC):
    """Stores ``(segment, vector)`` pairs partitioned by namespace.

    All methods are blocking; async callers run them in a worker thread.
    Searching a namespace that does not exist returns no results rather than
    raising, so grounded chat can fall back to its canned reply.
    """

    backend: str = "abstract"

    @abstractmethod
    def add(
        self,
        namespace: str,
        segments: Sequence[Segment],
        embeddings: Sequence[Sequence[float]],
    ) -> List[str]:
        """Persist segments and their vectors; return the stored ids."""

    @abstractmethod
    def search(self, namespace: str, embedding: Sequence[float], k: int) -> List[SearchResult]:
        """Return up to ``k`` neighbours of ``embedding``, closest first."""

    @abstractmethod
    def has_namespace(self, namespace: str) -> bool:
        ...

    @abstractmethod
    def list_namespaces(self) -> List[str]:
        ...

    def delete_namespace(self, namespace: str) -> None:
        """Drop every vector stored under ``namespace``.

        Raises ``NamespaceNotFound``, ``DeletionUnsupported`` or
        ``DeletionFailed``; returning normally means the namespace is gone.
        """

        raise DeletionUnsupported(f"The {self.backend} backend cannot delete namespaces")

    def ping(self) -> bool:
        return True


def check_lengths(segments: Sequence[Segment], embeddings: Sequence[Sequence[float]]) -> None:
    if len(segments) != len(embeddings):
        raise ValueError(
            f"Got {len(embeddings)} embeddings for {len(segments)} segments"
        )
