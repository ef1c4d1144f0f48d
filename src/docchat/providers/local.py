"""Embedding provider backed by a local Sentence Transformers model."""
from __future__ import annotations

import logging
import time
from typing import Any, List, Optional, Sequence

from starlette.concurrency import run_in_threadpool

from docchat.errors import EmbeddingProviderError
from docchat.telemetry import emit_embeddings_event

from .base import EmbeddingIntent, EmbeddingProvider

LOGGER = logging.getLogger(__name__)


class SentenceTransformerEmbeddingProvider(EmbeddingProvider):
    """Encode texts with ``sentence-transformers`` in a worker thread.

    Models such as E5 or nomic expect a task prefix; ``query_prefix`` and
    ``document_prefix`` are prepended according to the intent.
    """

    name = "sentence-transformers"

    def __init__(
        self,
        model_name_or_path: str,
        *,
        query_prefix: str = "",
        document_prefix: str = "",
        device: Optional[str] = None,
        model: Any = None,
    ) -> None:
        self.model = model_name_or_path
        self.query_prefix = query_prefix
        self.document_prefix = document_prefix
        if model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as exc:
                raise EmbeddingProviderError(
                    "sentence-transformers is not installed; install the 'local' extra",
                    cause=exc,
                ) from exc
            try:
                model = SentenceTransformer(model_name_or_path, device=device)
            except Exception as exc:
                raise EmbeddingProviderError(
                    f"Failed to load embedding model {model_name_or_path!r}", cause=exc
                ) from exc
        self._model = model
        LOGGER.info("Loaded local embedding model %s", model_name_or_path)

    async def embed(self, texts: Sequence[str], intent: EmbeddingIntent) -> List[List[float]]:
        if not texts:
            return []
        prefix = self.query_prefix if intent is EmbeddingIntent.QUERY else self.document_prefix
        inputs = [f"{prefix}{text}" for text in texts]
        started = time.perf_counter()
        try:
            embeddings = await run_in_threadpool(
                self._model.encode,
                inputs,
                convert_to_numpy=True,
                show_progress_bar=False,
                normalize_embeddings=True,
            )
        except Exception as exc:
            emit_embeddings_event(
                model=self.model,
                intent=intent.value,
                count=len(texts),
                duration_ms=(time.perf_counter() - started) * 1000.0,
                errors=[str(exc)],
            )
            raise EmbeddingProviderError("Local embedding model failed", cause=exc) from exc

        emit_embeddings_event(
            model=self.model,
            intent=intent.value,
            count=len(texts),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return [list(map(float, row)) for row in embeddings]
