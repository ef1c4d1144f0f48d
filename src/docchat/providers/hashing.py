"""Offline embedding provider based on feature hashing."""
from __future__ import annotations

import hashlib
import math
import re
import time
from typing import List, Sequence

from docchat.telemetry import emit_embeddings_event

from .base import EmbeddingIntent, EmbeddingProvider

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


class HashingEmbeddingProvider(EmbeddingProvider):
    """Deterministic bag-of-words vectors that need no model or network.

    Each lower-cased token is hashed into one of ``dimension`` buckets with a
    hashed sign; the result is L2-normalised, so texts sharing vocabulary land
    close together under cosine distance. Good enough for development and
    tests, not for real retrieval quality.
    """

    name = "hashing"

    def __init__(self, dimension: int = 256) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be a positive integer")
        self.dimension = dimension
        self.model = f"feature-hashing-{dimension}"

    async def embed(self, texts: Sequence[str], intent: EmbeddingIntent) -> List[List[float]]:
        started = time.perf_counter()
        vectors = [self.vectorize(text) for text in texts]
        if texts:
            emit_embeddings_event(
                model=self.model,
                intent=intent.value,
                count=len(texts),
                duration_ms=(time.perf_counter() - started) * 1000.0,
            )
        return vectors

    def vectorize(self, text: str) -> List[float]:
        vector = [0.0] * self.dimension
        for token in _TOKEN_RE.findall(text.lower()):
            digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
            bucket = int.from_bytes(digest[:4], "big") % self.dimension
            vector[bucket] += 1.0 if digest[4] & 1 else -1.0
        norm = math.sqrt(sum(value * value for value in vector))
        if norm == 0.0:
            return vector
        return [value / norm for value in vector]
