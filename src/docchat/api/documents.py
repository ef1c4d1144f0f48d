"""API router exposing upload, chat and delete endpoints."""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, ConfigDict, Field

from docchat.errors import (
    DeletionFailed,
    DeletionUnsupported,
    DocChatError,
    DocumentTooLarge,
    EmptyDocument,
    EmptyMessage,
    InvalidDocumentId,
    NamespaceNotFound,
    ProviderUnavailable,
    UnsupportedMediaType,
)
from docchat.services.sessions import (
    ChatResult,
    DocumentSessionManager,
    IngestResult,
    get_session_manager,
)

LOGGER = logging.getLogger(__name__)

router = APIRouter(tags=["documents"])

UPLOAD_SUCCESS_MESSAGE = "Document processed and ready for chat."

# Order matters: subclasses before their bases.
_STATUS_BY_ERROR: tuple[tuple[type[DocChatError], int], ...] = (
    (UnsupportedMediaType, 400),
    (EmptyDocument, 400),
    (EmptyMessage, 400),
    (InvalidDocumentId, 400),
    (DocumentTooLarge, 413),
    (NamespaceNotFound, 404),
    (DeletionUnsupported, 501),
    (DeletionFailed, 500),
    (ProviderUnavailable, 500),
)


def _http_error(exc: DocChatError, fallback_detail: str) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            break
    else:
        status_code = 500
    detail = fallback_detail if status_code == 500 else str(exc)
    if status_code == 500:
        LOGGER.error("%s: %s", fallback_detail, exc)
    return HTTPException(status_code=status_code, detail=detail)


class UploadResponse(BaseModel):
    """Response body returned from the upload endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    document_id: str = Field(..., alias="documentId")
    original_name: str = Field(..., alias="originalName")


class ChatRequest(BaseModel):
    """Request body accepted by the chat endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = Field(None, description="User message; must contain non-whitespace text.")
    document_id: Optional[str] = Field(
        None,
        alias="documentId",
        description="Namespace returned by /upload-document. Omit for ungrounded chat.",
    )


class SourceDocumentModel(BaseModel):
    """Retrieved segment cited by a grounded answer."""

    content: str
    metadata: dict[str, Any]


class ChatResponse(BaseModel):
    """Response payload for the chat endpoint.

    ``sourceDocuments`` is omitted for ungrounded answers.
    """

    model_config = ConfigDict(populate_by_name=True)

    response: str
    source_documents: Optional[list[SourceDocumentModel]] = Field(None, alias="sourceDocuments")


class DeleteResponse(BaseModel):
    message: str


def _serialise_chat(result: ChatResult) -> ChatResponse:
    sources = None
    if result.sources is not None:
        sources = [
            SourceDocumentModel(content=source.content, metadata=dict(source.metadata))
            for source in result.sources
        ]
    return ChatResponse(response=result.response, source_documents=sources)


@router.post("/upload-document", response_model=UploadResponse)
async def upload_document(
    document: Optional[UploadFile] = File(None),
    manager: DocumentSessionManager = Depends(get_session_manager),
) -> UploadResponse:
    """Extract, embed and index one document under a fresh document id."""

    if document is None:
        raise HTTPException(status_code=400, detail="No file uploaded.")

    # Read one byte past the limit so oversize uploads are detected without
    # buffering the whole body.
    data = await document.read(manager.max_upload_bytes + 1)
    file_name = document.filename or "upload"
    try:
        result: IngestResult = await manager.ingest(data, document.content_type, file_name)
    except DocChatError as exc:
        raise _http_error(exc, "Failed to process document.") from exc
    finally:
        await document.close()

    return UploadResponse(
        message=UPLOAD_SUCCESS_MESSAGE,
        document_id=result.document_id,
        original_name=result.original_name,
    )


@router.post("/chat", response_model=ChatResponse, response_model_exclude_none=True)
async def chat(
    request: ChatRequest,
    manager: DocumentSessionManager = Depends(get_session_manager),
) -> ChatResponse:
    """Answer a message, grounded in ``documentId`` when one is supplied."""

    try:
        result = await manager.chat(request.message, request.document_id)
    except DocChatError as exc:
        raise _http_error(exc, "Failed to get a response from the chatbot.") from exc
    return _serialise_chat(result)


@router.delete("/delete-document/{document_id}", response_model=DeleteResponse)
async def delete_document(
    document_id: str,
    manager: DocumentSessionManager = Depends(get_session_manager),
) -> DeleteResponse:
    """Drop every segment stored under ``document_id``."""

    try:
        await manager.delete(document_id)
    except DocChatError as exc:
        raise _http_error(exc, f"Failed to delete document {document_id}.") from exc
    return DeleteResponse(message=f"Document {document_id} deleted successfully.")
