"""Chat client: immutable session state, HTTP client and terminal UI."""

from .api import ChatReply, ClientRequestError, DocChatClient, UploadedDocument
from .controller import ChatController
from .state import ActiveDocument, ChatMessage, SessionState, SourceReference, initial_state

__all__ = [
    "ActiveDocument",
    "ChatController",
    "ChatMessage",
    "ChatReply",
    "ClientRequestError",
    "DocChatClient",
    "SessionState",
    "SourceReference",
    "UploadedDocument",
    "initial_state",
]
