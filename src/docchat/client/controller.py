"""Event handlers that turn user actions into state transitions."""
from __future__ import annotations

import logging
from pathlib import Path

from .api import ClientRequestError, DocChatClient
from .state import (
    CHAT_FAILED_MESSAGE,
    UPLOAD_FAILED_MESSAGE,
    ActiveDocument,
    ChatMessage,
    SessionState,
    append_message,
    begin_request,
    clear_active_document,
    end_request,
    set_active_document,
    upload_succeeded_message,
)

LOGGER = logging.getLogger(__name__)


class ChatController:
    """Thread a :class:`SessionState` through upload, send, clear and delete.

    Each handler takes the current state and returns the next one. While a
    request is outstanding the state is ``loading`` and further input is
    ignored, so at most one request is in flight per session.
    """

    def __init__(self, client: DocChatClient) -> None:
        self.client = client

    async def upload(self, state: SessionState, path: Path) -> SessionState:
        if state.loading:
            return state
        state = begin_request(state)
        try:
            uploaded = await self.client.upload_document(path)
        except ClientRequestError as exc:
            LOGGER.warning("Upload of %s failed: %s", path, exc)
            state = append_message(state, ChatMessage.assistant(UPLOAD_FAILED_MESSAGE))
        else:
            state = set_active_document(state, ActiveDocument(uploaded.document_id, uploaded.original_name))
            state = append_message(
                state, ChatMessage.assistant(upload_succeeded_message(uploaded.original_name))
            )
        return end_request(state)

    async def send(self, state: SessionState, text: str) -> SessionState:
        if not text.strip() or state.loading:
            return state
        state = begin_request(append_message(state, ChatMessage.user(text)))
        document_id = state.active_document.document_id if state.active_document else None
        try:
            reply = await self.client.chat(text, document_id)
        except ClientRequestError as exc:
            LOGGER.warning("Chat request failed: %s", exc)
            state = append_message(state, ChatMessage.assistant(CHAT_FAILED_MESSAGE))
        else:
            state = append_message(state, ChatMessage.assistant(reply.response, reply.sources))
        return end_request(state)

    def clear(self, state: SessionState) -> SessionState:
        if state.active_document is None:
            return state
        return clear_active_document(state)

    async def delete_active(self, state: SessionState) -> SessionState:
        """Ask the server to drop the active document, then return to general chat."""

        if state.loading or state.active_document is None:
            return state
        document = state.active_document
        state = begin_request(state)
        try:
            acknowledgement = await self.client.delete_document(document.document_id)
        except ClientRequestError as exc:
            LOGGER.warning("Delete of %s failed: %s", document.document_id, exc)
            state = append_message(
                state, ChatMessage.assistant(f'Could not delete "{document.name}": {exc}')
            )
            return end_request(state)
        state = append_message(state, ChatMessage.assistant(acknowledgement or f'Deleted "{document.name}".'))
        return clear_active_document(end_request(state))
