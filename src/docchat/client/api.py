"""Async HTTP client for the DocChat API."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import httpx

from docchat.ingest.format_detection import DocumentFormatDetector

from .state import SourceReference

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:5000"


class ClientRequestError(RuntimeError):
    """Raised when a request fails in transport or returns a non-2xx status."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True, slots=True)
class UploadedDocument:
    document_id: str
    original_name: str


@dataclass(frozen=True, slots=True)
class ChatReply:
    response: str
    sources: tuple[SourceReference, ...] = ()


class DocChatClient:
    """Thin wrapper over ``httpx.AsyncClient`` speaking the DocChat wire format."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: float = 120.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._client = http_client or httpx.AsyncClient(base_url=base_url, timeout=httpx.Timeout(timeout))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "DocChatClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise ClientRequestError(f"{method} {url} timed out") from exc
        except httpx.HTTPError as exc:
            raise ClientRequestError(f"{method} {url} failed: {exc}") from exc
        if response.is_error:
            raise ClientRequestError(_error_detail(response), status_code=response.status_code)
        try:
            data = response.json()
        except ValueError as exc:
            raise ClientRequestError(f"{method} {url} returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise ClientRequestError(f"{method} {url} returned an unexpected body")
        return data

    async def upload_document(self, path: Path, mime_type: Optional[str] = None) -> UploadedDocument:
        mime_type = mime_type or DocumentFormatDetector.mime_for_suffix(path.suffix) or "application/octet-stream"
        try:
            content = path.read_bytes()
        except OSError as exc:
            raise ClientRequestError(f"Cannot read {path}: {exc}") from exc
        data = await self._request(
            "POST", "/upload-document", files={"document": (path.name, content, mime_type)}
        )
        document_id = data.get("documentId")
        if not document_id:
            raise ClientRequestError("Upload response did not include a documentId")
        return UploadedDocument(document_id=document_id, original_name=data.get("originalName") or path.name)

    async def chat(self, message: str, document_id: Optional[str] = None) -> ChatReply:
        payload: dict[str, Any] = {"message": message}
        if document_id:
            payload["documentId"] = document_id
        data = await self._request("POST", "/chat", json=payload)
        sources = tuple(
            SourceReference(content=item.get("content", ""), metadata=item.get("metadata") or {})
            for item in data.get("sourceDocuments") or ()
        )
        return ChatReply(response=data.get("response", ""), sources=sources)

    async def delete_document(self, document_id: str) -> str:
        data = await self._request("DELETE", f"/delete-document/{document_id}")
        return data.get("message", "")


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    detail = body.get("detail") if isinstance(body, dict) else None
    return str(detail or f"HTTP {response.status_code}")


__all__ = ["ChatReply", "ClientRequestError", "DocChatClient", "UploadedDocument"]
