"""Gemini REST adapters for embeddings and text generation.

Both adapters talk to the public ``generativelanguage`` API with ``httpx``.
An ``http_client`` may be injected (tests use ``httpx.MockTransport``);
otherwise a short-lived client is opened per call.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import httpx

from docchat.errors import EmbeddingProviderError, GenerationProviderError, ProviderUnavailable
from docchat.telemetry import emit_embeddings_event

from .base import EmbeddingIntent, EmbeddingProvider, GenerationProvider

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
# batchEmbedContents accepts at most 100 requests per call.
MAX_EMBED_BATCH = 100

_TASK_TYPES = {
    EmbeddingIntent.DOCUMENT: "RETRIEVAL_DOCUMENT",
    EmbeddingIntent.QUERY: "RETRIEVAL_QUERY",
}


@dataclass(frozen=True, slots=True)
class GenerationConfig:
    temperature: float = 0.9
    top_p: float = 1.0
    top_k: int = 32
    max_output_tokens: int = 4096

    def to_payload(self) -> dict[str, Any]:
        return {
            "temperature": self.temperature,
            "topP": self.top_p,
            "topK": self.top_k,
            "maxOutputTokens": self.max_output_tokens,
        }


class _GeminiRestClient:
    error_class: type[ProviderUnavailable] = ProviderUnavailable

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not api_key:
            raise self.error_class("GEMINI_API_KEY is not configured")
        self._api_key = api_key
        self.model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http_client = http_client

    def _headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self._api_key, "Content-Type": "application/json"}

    def _url(self, method: str) -> str:
        return f"{self._base_url}/models/{self.model}:{method}"

    async def _post(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        client = self._http_client or httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        should_close = self._http_client is None
        try:
            response = await client.post(self._url(method), headers=self._headers(), json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as exc:
            raise self.error_class(f"Gemini {method} timed out", cause=exc) from exc
        except httpx.ConnectError as exc:
            raise self.error_class(f"Could not reach Gemini: {exc}", cause=exc) from exc
        except httpx.HTTPStatusError as exc:
            body = exc.response.text[:500]
            LOGGER.error("Gemini %s returned %s: %s", method, exc.response.status_code, body)
            raise self.error_class(
                f"Gemini {method} returned {exc.response.status_code}", cause=exc
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise self.error_class(f"Gemini {method} failed: {exc}", cause=exc) from exc
        finally:
            if should_close:
                await client.aclose()

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()


class GeminiEmbeddingProvider(_GeminiRestClient, EmbeddingProvider):
    """Embeddings through ``models/{model}:batchEmbedContents``."""

    name = "gemini"
    error_class = EmbeddingProviderError

    async def embed(self, texts: Sequence[str], intent: EmbeddingIntent) -> List[List[float]]:
        if not texts:
            return []
        started = time.perf_counter()
        vectors: List[List[float]] = []
        try:
            for offset in range(0, len(texts), MAX_EMBED_BATCH):
                batch = texts[offset : offset + MAX_EMBED_BATCH]
                vectors.extend(await self._embed_batch(batch, intent))
        except EmbeddingProviderError as exc:
            emit_embeddings_event(
                model=self.model,
                intent=intent.value,
                count=len(texts),
                duration_ms=(time.perf_counter() - started) * 1000.0,
                errors=[str(exc)],
            )
            raise
        emit_embeddings_event(
            model=self.model,
            intent=intent.value,
            count=len(texts),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return vectors

    async def _embed_batch(self, texts: Sequence[str], intent: EmbeddingIntent) -> List[List[float]]:
        payload = {
            "requests": [
                {
                    "model": f"models/{self.model}",
                    "content": {"parts": [{"text": text}]},
                    "taskType": _TASK_TYPES[intent],
                }
                for text in texts
            ]
        }
        data = await self._post("batchEmbedContents", payload)
        embeddings = data.get("embeddings") or []
        if len(embeddings) != len(texts):
            raise EmbeddingProviderError(
                f"Gemini returned {len(embeddings)} embeddings for {len(texts)} inputs"
            )
        return [[float(value) for value in item.get("values", [])] for item in embeddings]


class GeminiGenerationProvider(_GeminiRestClient, GenerationProvider):
    """Completions through ``models/{model}:generateContent``."""

    name = "gemini"
    error_class = GenerationProviderError

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        generation_config: Optional[GenerationConfig] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(api_key, model, **kwargs)
        self.generation_config = generation_config or GenerationConfig()

    async def generate(self, prompt: str) -> str:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": self.generation_config.to_payload(),
        }
        data = await self._post("generateContent", payload)
        return self._extract_text(data)

    @staticmethod
    def _extract_text(data: dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            reason = (data.get("promptFeedback") or {}).get("blockReason")
            raise GenerationProviderError(
                f"Gemini returned no candidates (block reason: {reason or 'unknown'})"
            )
        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts)
        if not text.strip():
            finish = candidates[0].get("finishReason", "unknown")
            raise GenerationProviderError(f"Gemini returned an empty completion (finish reason: {finish})")
        return text
