"""Shared fixtures: offline settings, recording providers and a session manager."""
from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

import pytest

from docchat.config import reset_settings_cache
from docchat.providers import (
    EmbeddingIntent,
    EmbeddingProvider,
    GenerationProvider,
    HashingEmbeddingProvider,
    reset_provider_cache,
)
from docchat.services.sessions import DocumentSessionManager, reset_session_manager_cache
from docchat.vectorstore import InMemoryVectorStore, reset_vector_store_cache


@pytest.fixture
def anyio_backend():
    return "asyncio"


def _reset_caches() -> None:
    reset_settings_cache()
    reset_provider_cache()
    reset_vector_store_cache()
    reset_session_manager_cache()


@pytest.fixture(autouse=True)
def offline_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setenv("LLM_PROVIDER", "stub")
    monkeypatch.setenv("EMBEDDING_PROVIDER", "hashing")
    monkeypatch.setenv("VECTOR_STORE", "memory")
    monkeypatch.setenv("GEMINI_API_KEY", "")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    _reset_caches()
    yield
    _reset_caches()


class RecordingEmbeddingProvider(EmbeddingProvider):
    """Hashing embeddings that remember every call."""

    name = "recording"
    model = "recording"

    def __init__(self) -> None:
        self._delegate = HashingEmbeddingProvider()
        self.calls: List[tuple[List[str], EmbeddingIntent]] = []

    async def embed(self, texts: Sequence[str], intent: EmbeddingIntent) -> List[List[float]]:
        self.calls.append((list(texts), intent))
        return await self._delegate.embed(texts, intent)


class RecordingGenerationProvider(GenerationProvider):
    name = "recording"
    model = "recording"

    def __init__(self, answer: str = "ANSWER") -> None:
        self.answer = answer
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.answer


@pytest.fixture
def embedder() -> RecordingEmbeddingProvider:
    return RecordingEmbeddingProvider()


@pytest.fixture
def generator() -> RecordingGenerationProvider:
    return RecordingGenerationProvider()


@pytest.fixture
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def manager(
    embedder: RecordingEmbeddingProvider,
    generator: RecordingGenerationProvider,
    store: InMemoryVectorStore,
    upload_dir: Path,
) -> DocumentSessionManager:
    return DocumentSessionManager(
        embedding_provider=embedder,
        generation_provider=generator,
        vector_store=store,
        upload_dir=upload_dir,
    )


@pytest.fixture
def pdf_bytes() -> bytes:
    # Minimal PDF document with extractable text "Hello PDF"
    return (
        b"%PDF-1.4\n"
        b"1 0 obj\n<< /Type /Catalog /Pages 2 0 R >>\nendobj\n"
        b"2 0 obj\n<< /Type /Pages /Kids [3 0 R] /Count 1 >>\nendobj\n"
        b"3 0 obj\n<< /Type /Page /Parent 2 0 R /MediaBox [0 0 200 200] "
        b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>\nendobj\n"
        b"4 0 obj\n<< /Length 53 >>\nstream\nBT /F1 12 Tf 72 120 Td (Hello PDF) Tj ET\nendstream\nendobj\n"
        b"5 0 obj\n<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>\nendobj\n"
        b"xref\n0 6\n0000000000 65535 f \n0000000010 00000 n \n0000000059 00000 n \n0000000110 00000 n \n"
        b"0000000276 00000 n \n0000000393 00000 n \ntrailer\n<< /Size 6 /Root 1 0 R >>\nstartxref\n452\n%%EOF\n"
    )
