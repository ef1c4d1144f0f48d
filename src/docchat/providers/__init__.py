"""Embedding and generation providers selected from configuration."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from docchat.config import Settings, get_settings
from docchat.errors import EmbeddingProviderError, GenerationProviderError
from docchat.telemetry import emit_provider_init

from .base import EmbeddingIntent, EmbeddingProvider, GenerationProvider
from .gemini import GeminiEmbeddingProvider, GeminiGenerationProvider, GenerationConfig
from .hashing import HashingEmbeddingProvider
from .stub import StubGenerationProvider

LOGGER = logging.getLogger(__name__)


def build_embedding_provider(settings: Optional[Settings] = None) -> EmbeddingProvider:
    """Instantiate the embedding provider named by ``EMBEDDING_PROVIDER``."""

    settings = settings or get_settings()
    kind = settings.embedding_provider
    provider: EmbeddingProvider
    if kind == "gemini":
        provider = GeminiEmbeddingProvider(
            settings.gemini_api_key,
            settings.gemini_embedding_model,
            base_url=settings.gemini_base_url,
            timeout=settings.provider_timeout_seconds,
        )
    elif kind in {"sentence-transformers", "local"}:
        from .local import SentenceTransformerEmbeddingProvider

        provider = SentenceTransformerEmbeddingProvider(
            settings.embedding_model_path,
            query_prefix=settings.embedding_query_prefix,
            document_prefix=settings.embedding_document_prefix,
        )
    elif kind == "hashing":
        provider = HashingEmbeddingProvider()
    else:
        raise EmbeddingProviderError(f"Unknown EMBEDDING_PROVIDER {kind!r}")
    emit_provider_init(kind="embedding", provider=provider.name, model=provider.model)
    return provider


def build_generation_provider(settings: Optional[Settings] = None) -> GenerationProvider:
    """Instantiate the generation provider named by ``LLM_PROVIDER``."""

    settings = settings or get_settings()
    kind = settings.llm_provider
    provider: GenerationProvider
    if kind == "gemini":
        provider = GeminiGenerationProvider(
            settings.gemini_api_key,
            settings.gemini_chat_model,
            base_url=settings.gemini_base_url,
            timeout=settings.provider_timeout_seconds,
            generation_config=GenerationConfig(
                temperature=settings.llm_temperature,
                top_p=settings.llm_top_p,
                top_k=settings.llm_top_k,
                max_output_tokens=settings.llm_max_tokens,
            ),
        )
    elif kind == "stub":
        LOGGER.warning("LLM_PROVIDER=stub: answers are placeholders, not model output")
        provider = StubGenerationProvider()
    else:
        raise GenerationProviderError(f"Unknown LLM_PROVIDER {kind!r}")
    emit_provider_init(kind="generation", provider=provider.name, model=provider.model)
    return provider


@lru_cache()
def get_embedding_provider() -> EmbeddingProvider:
    return build_embedding_provider()


@lru_cache()
def get_generation_provider() -> GenerationProvider:
    return build_generation_provider()


def reset_provider_cache() -> None:
    """Clear cached provider instances (primarily for testing)."""

    get_embedding_provider.cache_clear()  # type: ignore[attr-defined]
    get_generation_provider.cache_clear()  # type: ignore[attr-defined]


__all__ = [
    "EmbeddingIntent",
    "EmbeddingProvider",
    "GeminiEmbeddingProvider",
    "GeminiGenerationProvider",
    "GenerationConfig",
    "GenerationProvider",
    "HashingEmbeddingProvider",
    "StubGenerationProvider",
    "build_embedding_provider",
    "build_generation_provider",
    "get_embedding_provider",
    "get_generation_provider",
    "reset_provider_cache",
]
