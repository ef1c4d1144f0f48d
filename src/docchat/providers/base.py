"""Base provider interfaces for embeddings and text generation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Sequence

__all__ = ["EmbeddingIntent", "EmbeddingProvider", "GenerationProvider"]


class EmbeddingIntent(str, Enum):
    """What an embedding will be used for.

    Providers may optimise differently for indexing and for querying, but
    vectors of both intents are always comparable.
    """

    DOCUMENT = "document"
    QUERY = "query"


class EmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    name: str = "embedding"
    model: str = ""

    @abstractmethod
    async def embed(self, texts: Sequence[str], intent: EmbeddingIntent) -> List[List[float]]:
        """Return one vector per text, in input order."""

    async def embed_query(self, text: str) -> List[float]:
        vectors = await self.embed([text], EmbeddingIntent.QUERY)
        return vectors[0]

    async def aclose(self) -> None:
        """Release network resources held by the provider."""


class GenerationProvider(ABC):
    """Abstract interface for large language model providers."""

    name: str = "generation"
    model: str = ""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Return the completion for ``prompt``."""

    async def aclose(self) -> None:
        """Release network resources held by the provider."""
