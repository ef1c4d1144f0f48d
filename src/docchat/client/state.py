"""Immutable chat-session state and the pure reducers that advance it.

Every UI event produces a new :class:`SessionState`; nothing is mutated in
place, so a handler can never leave the transcript half-updated.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional, Sequence

GREETING = "Good afternoon! Upload a document or ask me anything."
GENERAL_CHAT_NOTICE = "You have switched to general chat mode. Feel free to ask any questions!"
UPLOAD_FAILED_MESSAGE = "Failed to upload document. Please try again."
CHAT_FAILED_MESSAGE = "Sorry, I encountered an error. Please try again."


def upload_succeeded_message(name: str) -> str:
    return f'Document "{name}" uploaded successfully. You can now ask questions about it.'


@dataclass(frozen=True, slots=True)
class SourceReference:
    content: str
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ChatMessage:
    role: str
    text: str
    sources: tuple[SourceReference, ...] = ()

    @classmethod
    def user(cls, text: str) -> "ChatMessage":
        return cls(role="user", text=text)

    @classmethod
    def assistant(cls, text: str, sources: Sequence[SourceReference] = ()) -> "ChatMessage":
        return cls(role="assistant", text=text, sources=tuple(sources))


@dataclass(frozen=True, slots=True)
class ActiveDocument:
    """The document chat turns are currently grounded in."""

    document_id: str
    name: str


@dataclass(frozen=True, slots=True)
class SessionState:
    messages: tuple[ChatMessage, ...] = ()
    active_document: Optional[ActiveDocument] = None
    loading: bool = False

    @property
    def grounded(self) -> bool:
        return self.active_document is not None


def initial_state() -> SessionState:
    return SessionState(messages=(ChatMessage.assistant(GREETING),))


def append_message(state: SessionState, message: ChatMessage) -> SessionState:
    return replace(state, messages=state.messages + (message,))


def set_active_document(state: SessionState, document: ActiveDocument) -> SessionState:
    return replace(state, active_document=document)


def clear_active_document(state: SessionState) -> SessionState:
    """Return to ungrounded chat; purely local, no request is made."""

    cleared = replace(state, active_document=None)
    return append_message(cleared, ChatMessage.assistant(GENERAL_CHAT_NOTICE))


def begin_request(state: SessionState) -> SessionState:
    if state.loading:
        raise RuntimeError("a request is already in flight")
    return replace(state, loading=True)


def end_request(state: SessionState) -> SessionState:
    return replace(state, loading=False)


__all__ = [
    "ActiveDocument",
    "CHAT_FAILED_MESSAGE",
    "ChatMessage",
    "GENERAL_CHAT_NOTICE",
    "GREETING",
    "SessionState",
    "SourceReference",
    "UPLOAD_FAILED_MESSAGE",
    "append_message",
    "begin_request",
    "clear_active_document",
    "end_request",
    "initial_state",
    "set_active_document",
    "upload_succeeded_message",
]
