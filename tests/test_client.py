import io
import json
from pathlib import Path

import httpx
import pytest
from rich.console import Console

from docchat.client import ChatController, ClientRequestError, DocChatClient
from docchat.client.cli import ChatSession, build_parser
from docchat.client.render import format_text, render_message, truncate_snippet
from docchat.client.state import (
    CHAT_FAILED_MESSAGE,
    GENERAL_CHAT_NOTICE,
    GREETING,
    UPLOAD_FAILED_MESSAGE,
    ActiveDocument,
    ChatMessage,
    SourceReference,
    begin_request,
    clear_active_document,
    end_request,
    initial_state,
    set_active_document,
)

BASE_URL = "http://docchat.test"


class FakeServer:
    """Records requests and answers them like the DocChat API."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.fail_chat = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/upload-document":
            return httpx.Response(
                200,
                json={"message": "Document processed and ready for chat.", "documentId": "doc-42", "originalName": "notes.txt"},
            )
        if request.url.path == "/chat":
            if self.fail_chat:
                return httpx.Response(500, json={"detail": "Failed to get a response from the chatbot."})
            body = json.loads(request.content)
            if "documentId" in body:
                return httpx.Response(
                    200, json={"response": "grounded", "sourceDocuments": [{"content": "The sky is blue.", "metadata": {}}]}
                )
            return httpx.Response(200, json={"response": "ungrounded"})
        if request.method == "DELETE":
            return httpx.Response(200, json={"message": "Document doc-42 deleted successfully."})
        return httpx.Response(404, json={"detail": "Not Found"})


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def controller(server: FakeServer) -> ChatController:
    http_client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(server))
    return ChatController(DocChatClient(http_client=http_client))


@pytest.fixture
def notes(tmp_path: Path) -> Path:
    path = tmp_path / "notes.txt"
    path.write_text("The sky is blue.", encoding="utf-8")
    return path


# --- state -------------------------------------------------------------------


def test_initial_state_greets_in_general_mode() -> None:
    state = initial_state()

    assert [message.text for message in state.messages] == [GREETING]
    assert not state.grounded
    assert not state.loading


def test_reducers_return_new_states() -> None:
    state = initial_state()

    grounded = set_active_document(state, ActiveDocument("doc-1", "a.txt"))
    cleared = clear_active_document(grounded)

    assert state.active_document is None
    assert grounded.grounded
    assert not cleared.grounded
    assert cleared.messages[-1].text == GENERAL_CHAT_NOTICE


def test_only_one_request_may_be_in_flight() -> None:
    busy = begin_request(initial_state())

    with pytest.raises(RuntimeError):
        begin_request(busy)
    assert not end_request(busy).loading


# --- controller --------------------------------------------------------------


@pytest.mark.anyio
async def test_upload_then_chat_is_grounded(controller: ChatController, server: FakeServer, notes: Path) -> None:
    state = await controller.upload(initial_state(), notes)
    state = await controller.send(state, "What colour is the sky?")

    assert state.active_document == ActiveDocument("doc-42", "notes.txt")
    assert 'Document "notes.txt" uploaded successfully' in state.messages[1].text
    assert state.messages[-2] == ChatMessage.user("What colour is the sky?")
    assert state.messages[-1].text == "grounded"
    assert state.messages[-1].sources == (SourceReference("The sky is blue.", {}),)
    assert json.loads(server.requests[-1].content) == {"message": "What colour is the sky?", "documentId": "doc-42"}
    upload_request = server.requests[0]
    assert b'filename="notes.txt"' in upload_request.content
    assert b"Content-Type: text/plain" in upload_request.content
    assert not state.loading


@pytest.mark.anyio
async def test_chat_without_document_omits_document_id(controller: ChatController, server: FakeServer) -> None:
    state = await controller.send(initial_state(), "Hi")

    assert json.loads(server.requests[0].content) == {"message": "Hi"}
    assert state.messages[-1].text == "ungrounded"
    assert state.messages[-1].sources == ()


@pytest.mark.anyio
async def test_clear_is_local_and_next_turn_is_ungrounded(controller: ChatController, server: FakeServer, notes: Path) -> None:
    state = await controller.upload(initial_state(), notes)
    requests_before = len(server.requests)

    state = controller.clear(state)

    assert len(server.requests) == requests_before
    assert state.messages[-1].text == GENERAL_CHAT_NOTICE
    state = await controller.send(state, "Still there?")
    assert "documentId" not in json.loads(server.requests[-1].content)


@pytest.mark.anyio
async def test_blank_or_busy_input_is_ignored(controller: ChatController, server: FakeServer) -> None:
    state = initial_state()

    assert await controller.send(state, "   ") is state
    busy = begin_request(state)
    assert await controller.send(busy, "hello") is busy
    assert server.requests == []


@pytest.mark.anyio
async def test_chat_failure_appends_apology(controller: ChatController, server: FakeServer) -> None:
    server.fail_chat = True

    state = await controller.send(initial_state(), "Hi")

    assert state.messages[-1].text == CHAT_FAILED_MESSAGE
    assert not state.loading


@pytest.mark.anyio
async def test_upload_failure_keeps_general_mode(tmp_path: Path) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"detail": "Invalid file type."})

    http_client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(refuse))
    controller = ChatController(DocChatClient(http_client=http_client))
    path = tmp_path / "image.png"
    path.write_bytes(b"\x89PNG")

    state = await controller.upload(initial_state(), path)

    assert state.active_document is None
    assert state.messages[-1].text == UPLOAD_FAILED_MESSAGE


@pytest.mark.anyio
async def test_delete_active_document(controller: ChatController, server: FakeServer, notes: Path) -> None:
    state = await controller.upload(initial_state(), notes)

    state = await controller.delete_active(state)

    assert server.requests[-1].method == "DELETE"
    assert server.requests[-1].url.path == "/delete-document/doc-42"
    assert state.active_document is None
    assert state.messages[-2].text == "Document doc-42 deleted successfully."
    assert state.messages[-1].text == GENERAL_CHAT_NOTICE


@pytest.mark.anyio
async def test_client_reports_status_and_detail() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"detail": "No document stored under 'doc-x'"})

    client = DocChatClient(http_client=httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler)))

    with pytest.raises(ClientRequestError) as excinfo:
        await client.delete_document("doc-x")

    assert excinfo.value.status_code == 404
    assert "doc-x" in str(excinfo.value)


@pytest.mark.anyio
async def test_non_object_body_is_a_request_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["not", "an", "object"])

    client = DocChatClient(http_client=httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler)))

    with pytest.raises(ClientRequestError, match="unexpected body"):
        await client.chat("Hi")

    state = await ChatController(client).send(initial_state(), "Hi")

    assert state.messages[-1].text == CHAT_FAILED_MESSAGE
    assert not state.loading


@pytest.mark.anyio
async def test_client_against_real_app(manager, notes: Path) -> None:
    from docchat.main import app
    from docchat.services.sessions import get_session_manager

    app.dependency_overrides[get_session_manager] = lambda: manager
    try:
        transport = httpx.ASGITransport(app=app)
        async with DocChatClient(http_client=httpx.AsyncClient(base_url=BASE_URL, transport=transport)) as client:
            uploaded = await client.upload_document(notes)
            reply = await client.chat("What colour is the sky?", uploaded.document_id)
            ungrounded = await client.chat("Hello")
    finally:
        app.dependency_overrides.clear()

    assert uploaded.original_name == "notes.txt"
    assert reply.response == "ANSWER"
    assert reply.sources[0].content == "The sky is blue."
    assert ungrounded.sources == ()


# --- rendering -----------------------------------------------------------------


def test_format_text_recognises_line_styles() -> None:
    blocks = format_text("# Title\n## Section\n### Detail\n**Bold line**\n*Italic line*\nplain **text**")

    assert [(block.kind, block.text) for block in blocks] == [
        ("h1", "Title"),
        ("h2", "Section"),
        ("h3", "Detail"),
        ("bold", "Bold line"),
        ("italic", "Italic line"),
        ("paragraph", "plain **text**"),
    ]


def test_format_text_of_empty_reply() -> None:
    assert format_text("") == []


def test_truncate_snippet() -> None:
    assert truncate_snippet("short\n text") == "short text"
    snippet = truncate_snippet("word " * 50, width=20)
    assert len(snippet) <= 20
    assert snippet.endswith("…")


def test_render_message_lists_references() -> None:
    console = Console(file=io.StringIO(), width=100, color_system=None)
    message = ChatMessage.assistant("Answer", [SourceReference("The sky is blue.")])

    console.print(render_message(message))

    output = console.file.getvalue()
    assert "Assistant" in output
    assert "Document References:" in output
    assert "The sky is blue." in output


# --- terminal session ------------------------------------------------------------


@pytest.mark.anyio
async def test_chat_session_commands(controller: ChatController, server: FakeServer, notes: Path) -> None:
    console = Console(file=io.StringIO(), width=100, color_system=None)
    session = ChatSession(controller, console)

    assert await session.handle(f"/upload {notes}")
    assert "notes.txt" in session.prompt_label()
    assert await session.handle("What colour is the sky?")
    assert await session.handle("/clear")
    assert session.state.active_document is None
    assert await session.handle("/delete")
    assert not await session.handle("/quit")

    session.flush()
    output = console.file.getvalue()
    assert "grounded" in output
    assert "No active document to delete." in output
    assert [request.url.path for request in server.requests] == ["/upload-document", "/chat"]


def test_parser_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOCCHAT_URL", "http://example.test:5000")
    monkeypatch.delenv("CLIENT_TIMEOUT_SECONDS", raising=False)

    args = build_parser().parse_args([])

    assert args.url == "http://example.test:5000"
    assert args.timeout == 120.0
