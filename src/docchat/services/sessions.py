"""Document-scoped retrieval-augmented chat sessions.

The :class:`DocumentSessionManager` owns the three server-side operations:

* ``ingest`` turns an upload into a fresh, fully queryable namespace;
* ``chat`` answers a message, grounded in one namespace or ungrounded;
* ``delete`` drops a namespace and reports the outcome honestly.

Input validation always happens before any provider is contacted.
"""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Optional, Sequence

from starlette.concurrency import run_in_threadpool

from docchat.config import MiB, Settings, get_settings
from docchat.errors import (
    DeletionFailed,
    DeletionUnsupported,
    DocumentTooLarge,
    EmbeddingProviderError,
    EmptyDocument,
    EmptyMessage,
    GenerationProviderError,
    InvalidDocumentId,
    NamespaceNotFound,
    ProviderUnavailable,
    VectorStoreUnavailableError,
)
from docchat.ingest import DocumentFormatDetector, IngestPipeline, IngestPipelineConfig, new_document_id
from docchat.logging_config import AUDIT_LOGGER_NAME
from docchat.prompts import NO_RELEVANT_INFORMATION_MESSAGE, build_grounded_prompt, build_ungrounded_prompt
from docchat.providers import (
    EmbeddingIntent,
    EmbeddingProvider,
    GenerationProvider,
    get_embedding_provider,
    get_generation_provider,
)
from docchat.storage import discard_upload, save_temporary_upload
from docchat.telemetry import (
    emit_exception,
    emit_inference_request,
    emit_inference_result,
    emit_ingest_event,
    emit_prompt_event,
    emit_retriever_event,
)
from docchat.vectorstore import NamespaceVectorStore, SearchResult, get_vector_store

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)


@dataclass(slots=True)
class SourceDocument:
    """A retrieved segment cited alongside a grounded answer."""

    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class IngestResult:
    """Structured result returned from :meth:`DocumentSessionManager.ingest`."""

    document_id: str
    original_name: str
    segment_count: int


@dataclass(slots=True)
class ChatResult:
    """Structured result returned from :meth:`DocumentSessionManager.chat`.

    ``sources`` is ``None`` for ungrounded turns and a (possibly empty) list,
    in rank order, for grounded ones.
    """

    response: str
    sources: Optional[List[SourceDocument]] = None

    @property
    def grounded(self) -> bool:
        return self.sources is not None


class DocumentSessionManager:
    """High level orchestration of ingest, chat and delete."""

    def __init__(
        self,
        *,
        embedding_provider: EmbeddingProvider,
        generation_provider: GenerationProvider,
        vector_store: NamespaceVectorStore,
        pipeline: Optional[IngestPipeline] = None,
        top_k: int = 4,
        max_upload_bytes: int = 10 * MiB,
        upload_dir: Path = Path("uploads"),
    ) -> None:
        self.embedding_provider = embedding_provider
        self.generation_provider = generation_provider
        self.vector_store = vector_store
        self.pipeline = pipeline or IngestPipeline()
        self.top_k = top_k
        self.max_upload_bytes = max_upload_bytes
        self.upload_dir = Path(upload_dir)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "DocumentSessionManager":
        settings = settings or get_settings()
        return cls(
            embedding_provider=get_embedding_provider(),
            generation_provider=get_generation_provider(),
            vector_store=get_vector_store(),
            pipeline=IngestPipeline(
                IngestPipelineConfig(chunk_size=settings.chunk_size, chunk_overlap=settings.chunk_overlap)
            ),
            top_k=settings.retrieval_top_k,
            max_upload_bytes=settings.max_upload_bytes,
            upload_dir=settings.upload_dir,
        )

    # ------------------------------------------------------------------ ingest

    async def ingest(self, data: bytes, mime_type: Optional[str], file_name: str) -> IngestResult:
        """Index an upload under a new namespace and return its identifier.

        The identifier is returned only once every segment has been submitted
        to the vector store. Partial writes from a failed ingest are not rolled
        back.
        """

        document_format = DocumentFormatDetector.detect(mime_type)
        size = len(data)
        if size > self.max_upload_bytes:
            raise DocumentTooLarge(
                f"File is {size} bytes; the limit is {self.max_upload_bytes} bytes."
            )

        started = time.perf_counter()
        emit_ingest_event(
            "ingest.file.start", file_name=file_name, mime_type=document_format.value, size_bytes=size
        )
        path = await run_in_threadpool(save_temporary_upload, self.upload_dir, file_name, data)
        document_id: Optional[str] = None
        try:
            extracted = await run_in_threadpool(self.pipeline.extract, path, document_format, file_name)
            if not extracted.text.strip():
                raise EmptyDocument(f"No text could be extracted from {file_name!r}.")

            document_id = new_document_id()
            segments = await run_in_threadpool(self.pipeline.split, extracted, document_id)
            vectors = await self._embed([segment.content for segment in segments], EmbeddingIntent.DOCUMENT)
            try:
                await run_in_threadpool(self.vector_store.add, document_id, segments, vectors)
            except ProviderUnavailable:
                raise
            except Exception as exc:
                raise VectorStoreUnavailableError("Failed to store document segments", cause=exc) from exc
        except ProviderUnavailable as error:
            if document_id is not None:
                LOGGER.warning("Ingest of %s into %s failed; stored segments are not rolled back", file_name, document_id)
            emit_exception(module=f"{__name__}.ingest", error=error, document_id=document_id)
            raise
        finally:
            await run_in_threadpool(discard_upload, path)

        emit_ingest_event(
            "ingest.file.complete",
            file_name=file_name,
            document_id=document_id,
            mime_type=document_format.value,
            size_bytes=size,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            language=extracted.language,
            segments=len(segments),
        )
        AUDIT_LOGGER.info(
            {
                "event": "ingest",
                "document_id": document_id,
                "file_name": file_name,
                "segment_count": len(segments),
            }
        )
        return IngestResult(document_id=document_id, original_name=file_name, segment_count=len(segments))

    # -------------------------------------------------------------------- chat

    async def chat(self, message: Optional[str], document_id: Optional[str] = None) -> ChatResult:
        """Answer ``message``; grounded when ``document_id`` is given."""

        if not message or not message.strip():
            raise EmptyMessage("Message cannot be empty.")
        if document_id is not None and not document_id.strip():
            document_id = None

        req_id = uuid.uuid4().hex
        if document_id is None:
            result = await self._chat_ungrounded(req_id, message)
        else:
            result = await self._chat_grounded(req_id, message, document_id)

        AUDIT_LOGGER.info(
            {
                "event": "chat",
                "req_id": req_id,
                "document_id": document_id,
                "grounded": result.grounded,
                "sources": len(result.sources or []),
            }
        )
        return result

    async def _chat_ungrounded(self, req_id: str, message: str) -> ChatResult:
        prompt = build_ungrounded_prompt(message)
        emit_prompt_event(mode="ungrounded", sources=[], context_chars=0)
        answer = await self._generate(req_id, None, prompt)
        return ChatResult(response=answer, sources=None)

    async def _chat_grounded(self, req_id: str, message: str, document_id: str) -> ChatResult:
        query_vector = (await self._embed([message], EmbeddingIntent.QUERY))[0]
        results = await self._search(document_id, message, query_vector)

        if not results:
            emit_inference_result(
                req_id=req_id,
                document_id=document_id,
                duration_ms=0.0,
                model="none",
                answer_preview=NO_RELEVANT_INFORMATION_MESSAGE,
                fallback=True,
            )
            return ChatResult(response=NO_RELEVANT_INFORMATION_MESSAGE, sources=[])

        passages = [result.content for result in results]
        prompt = build_grounded_prompt(message, passages)
        emit_prompt_event(
            mode="grounded",
            sources=[result.id for result in results],
            context_chars=sum(len(passage) for passage in passages),
        )
        answer = await self._generate(req_id, document_id, prompt)
        return ChatResult(response=answer, sources=[self._to_source(result) for result in results])

    async def _search(self, document_id: str, query: str, vector: Sequence[float]) -> List[SearchResult]:
        started = time.perf_counter()
        try:
            results = await run_in_threadpool(self.vector_store.search, document_id, vector, self.top_k)
        except ProviderUnavailable as error:
            emit_exception(module=f"{__name__}.search", error=error, document_id=document_id)
            raise
        except Exception as exc:
            emit_exception(module=f"{__name__}.search", error=exc, document_id=document_id)
            raise VectorStoreUnavailableError("Vector store query failed", cause=exc) from exc
        emit_retriever_event(
            document_id=document_id,
            query=query,
            top_k=self.top_k,
            results=[{"id": item.id, "distance": item.distance} for item in results],
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return results

    @staticmethod
    def _to_source(result: SearchResult) -> SourceDocument:
        metadata = dict(result.metadata)
        metadata["distance"] = float(result.distance)
        metadata["score"] = result.score
        return SourceDocument(content=result.content, metadata=metadata)

    # ------------------------------------------------------------------ delete

    async def delete(self, document_id: Optional[str]) -> None:
        """Drop every vector stored under ``document_id``.

        Raises ``NamespaceNotFound``, ``DeletionUnsupported`` or
        ``DeletionFailed``; never reports success it did not achieve.
        """

        if not document_id or not document_id.strip():
            raise InvalidDocumentId("Document ID is required.")
        try:
            await run_in_threadpool(self.vector_store.delete_namespace, document_id)
        except (NamespaceNotFound, DeletionUnsupported) as error:
            AUDIT_LOGGER.info(
                {"event": "delete", "document_id": document_id, "outcome": type(error).__name__}
            )
            raise
        except DeletionFailed as error:
            emit_exception(module=f"{__name__}.delete", error=error, document_id=document_id)
            raise
        except Exception as exc:
            emit_exception(module=f"{__name__}.delete", error=exc, document_id=document_id)
            raise DeletionFailed(f"Could not delete {document_id!r}", cause=exc) from exc
        AUDIT_LOGGER.info({"event": "delete", "document_id": document_id, "outcome": "deleted"})

    # --------------------------------------------------------------- providers

    async def _embed(self, texts: Sequence[str], intent: EmbeddingIntent) -> List[List[float]]:
        try:
            vectors = await self.embedding_provider.embed(texts, intent)
        except ProviderUnavailable:
            raise
        except Exception as exc:
            raise EmbeddingProviderError("Embedding provider failed", cause=exc) from exc
        if len(vectors) != len(texts):
            raise EmbeddingProviderError(f"Expected {len(texts)} embeddings, got {len(vectors)}")
        return vectors

    async def _generate(self, req_id: str, document_id: Optional[str], prompt: str) -> str:
        model = self.generation_provider.model
        emit_inference_request(
            req_id=req_id,
            document_id=document_id,
            model=model,
            prompt_preview=prompt,
            prompt_len=len(prompt),
        )
        started = time.perf_counter()
        try:
            answer = await self.generation_provider.generate(prompt)
        except Exception as exc:
            LOGGER.error("Generation failed for request %s: %s", req_id, exc)
            emit_exception(module=f"{__name__}.generate", error=exc, req_id=req_id, document_id=document_id)
            if isinstance(exc, ProviderUnavailable):
                raise
            raise GenerationProviderError("Generation provider failed", cause=exc) from exc
        emit_inference_result(
            req_id=req_id,
            document_id=document_id,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            model=model,
            answer_preview=answer,
            fallback=False,
        )
        return answer

    # ------------------------------------------------------------------ health

    def readiness_problems(self) -> List[str]:
        problems: List[str] = []
        if not self.vector_store.ping():
            problems.append(f"vector store ({self.vector_store.backend}) is unreachable")
        return problems


@lru_cache()
def get_session_manager() -> DocumentSessionManager:
    """FastAPI dependency returning the shared :class:`DocumentSessionManager`."""

    return DocumentSessionManager.from_settings()


def reset_session_manager_cache() -> None:
    get_session_manager.cache_clear()  # type: ignore[attr-defined]


__all__ = [
    "ChatResult",
    "DocumentSessionManager",
    "IngestResult",
    "SourceDocument",
    "get_session_manager",
    "reset_session_manager_cache",
]
