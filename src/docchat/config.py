"""Runtime configuration loaded from the environment."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

LOGGER = logging.getLogger(__name__)

MiB = 1024 * 1024

DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_CHAT_MODEL = "gemini-2.0-flash"
DEFAULT_EMBEDDING_MODEL = "text-embedding-004"
DEFAULT_LOCAL_EMBEDDING_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


def _str_from_env(name: str, default: str = "") -> str:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip()


def _int_from_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _float_from_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


def _chunking_from_env() -> tuple[int, int]:
    """Read ``CHUNK_SIZE``/``CHUNK_OVERLAP``; overlap must stay below size."""

    size = _int_from_env("CHUNK_SIZE", 1000)
    if size < 1:
        LOGGER.warning("Invalid CHUNK_SIZE %s; using default 1000", size)
        size = 1000
    overlap = _int_from_env("CHUNK_OVERLAP", 200)
    if not 0 <= overlap < size:
        fallback = min(200, size // 5)
        LOGGER.warning(
            "CHUNK_OVERLAP %s must be between 0 and CHUNK_SIZE - 1 (%s); using %s", overlap, size - 1, fallback
        )
        overlap = fallback
    return size, overlap


def _list_from_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.getenv(name)
    if value is None:
        return default
    items = tuple(item.strip() for item in value.split(",") if item.strip())
    return items or default


@dataclass(frozen=True, slots=True)
class Settings:
    """Immutable snapshot of every environment-driven setting."""

    gemini_api_key: str
    gemini_base_url: str
    gemini_chat_model: str
    gemini_embedding_model: str
    llm_provider: str
    embedding_provider: str
    embedding_model_path: str
    embedding_query_prefix: str
    embedding_document_prefix: str
    llm_temperature: float
    llm_top_p: float
    llm_top_k: int
    llm_max_tokens: int
    vector_store: str
    chroma_url: str
    chroma_api_key: str
    chroma_persist_dir: Path
    chroma_distance_metric: str
    chunk_size: int
    chunk_overlap: int
    retrieval_top_k: int
    max_upload_bytes: int
    upload_dir: Path
    provider_timeout_seconds: float
    cors_allow_origins: tuple[str, ...]
    log_level: str
    log_dir: Path

    @classmethod
    def from_env(cls) -> "Settings":
        api_key = _str_from_env("GEMINI_API_KEY")
        remote_default = "gemini" if api_key else ""
        chunk_size, chunk_overlap = _chunking_from_env()
        return cls(
            gemini_api_key=api_key,
            gemini_base_url=_str_from_env("GEMINI_BASE_URL", DEFAULT_GEMINI_BASE_URL).rstrip("/"),
            gemini_chat_model=_str_from_env("GEMINI_CHAT_MODEL", DEFAULT_CHAT_MODEL),
            gemini_embedding_model=_str_from_env("GEMINI_EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL),
            llm_provider=_str_from_env("LLM_PROVIDER", remote_default or "stub").lower(),
            embedding_provider=_str_from_env("EMBEDDING_PROVIDER", remote_default or "hashing").lower(),
            embedding_model_path=_str_from_env("EMBEDDING_MODEL_PATH", DEFAULT_LOCAL_EMBEDDING_MODEL),
            embedding_query_prefix=os.getenv("EMBEDDING_QUERY_PREFIX", ""),
            embedding_document_prefix=os.getenv("EMBEDDING_DOCUMENT_PREFIX", ""),
            llm_temperature=_float_from_env("LLM_TEMPERATURE", 0.9),
            llm_top_p=_float_from_env("LLM_TOP_P", 1.0),
            llm_top_k=_int_from_env("LLM_TOP_K", 32),
            llm_max_tokens=_int_from_env("LLM_MAX_TOKENS", 4096),
            vector_store=_str_from_env("VECTOR_STORE", "memory").lower(),
            chroma_url=_str_from_env("CHROMA_URL"),
            chroma_api_key=_str_from_env("CHROMA_API_KEY"),
            chroma_persist_dir=Path(_str_from_env("CHROMA_PERSIST_DIR", "chroma_db")),
            chroma_distance_metric=_str_from_env("CHROMA_DISTANCE_METRIC", "cosine").lower(),
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            retrieval_top_k=_int_from_env("RETRIEVAL_TOP_K", 4),
            max_upload_bytes=_int_from_env("MAX_UPLOAD_BYTES", 10 * MiB),
            upload_dir=Path(_str_from_env("UPLOAD_DIR", "uploads")),
            provider_timeout_seconds=_float_from_env("PROVIDER_TIMEOUT_SECONDS", 120.0),
            cors_allow_origins=_list_from_env("CORS_ALLOW_ORIGINS", ("*",)),
            log_level=_str_from_env("LOG_LEVEL", "INFO").upper(),
            log_dir=Path(_str_from_env("LOG_DIR", "logs")),
        )


@lru_cache()
def get_settings() -> Settings:
    """Return the cached settings, reading ``.env`` on first use."""

    load_dotenv()
    return Settings.from_env()


def reset_settings_cache() -> None:
    """Clear the cached settings (primarily for testing)."""

    get_settings.cache_clear()  # type: ignore[attr-defined]


__all__ = ["MiB", "Settings", "get_settings", "reset_settings_cache"]
