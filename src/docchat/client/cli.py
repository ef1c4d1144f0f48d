"""Terminal chat client: ``docchat-chat``."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import shlex
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt

from .api import DEFAULT_BASE_URL, DocChatClient
from .controller import ChatController
from .render import render_message
from .state import SessionState, initial_state

LOGGER = logging.getLogger(__name__)

HELP_TEXT = (
    "[bold]/upload <path>[/bold]  index a PDF, TXT or DOCX file and chat about it\n"
    "[bold]/clear[/bold]          stop using the active document (general chat)\n"
    "[bold]/delete[/bold]         delete the active document on the server\n"
    "[bold]/help[/bold]           show this help\n"
    "[bold]/quit[/bold]           exit\n"
    "Anything else is sent as a chat message."
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Chat with your documents from the terminal")
    parser.add_argument(
        "--url",
        default=os.getenv("DOCCHAT_URL", DEFAULT_BASE_URL),
        help="Base URL of the DocChat API (env: DOCCHAT_URL)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=float(os.getenv("CLIENT_TIMEOUT_SECONDS", "120")),
        help="Request timeout in seconds (env: CLIENT_TIMEOUT_SECONDS)",
    )
    return parser


class ChatSession:
    """Owns the console and the current :class:`SessionState`."""

    def __init__(self, controller: ChatController, console: Optional[Console] = None) -> None:
        self.controller = controller
        self.console = console or Console()
        self.state: SessionState = initial_state()
        self._rendered = 0

    def flush(self) -> None:
        for message in self.state.messages[self._rendered :]:
            self.console.print(render_message(message))
        self._rendered = len(self.state.messages)

    def prompt_label(self) -> str:
        document = self.state.active_document
        if document is None:
            return "[bold cyan]You[/bold cyan]"
        return f"[bold cyan]You[/bold cyan] [dim]({document.name})[/dim]"

    async def handle(self, line: str) -> bool:
        """Process one input line; return ``False`` when the user quits."""

        stripped = line.strip()
        if not stripped:
            return True
        if not stripped.startswith("/"):
            with self.console.status("[bold cyan]Thinking...[/bold cyan]", spinner="dots"):
                self.state = await self.controller.send(self.state, line)
            return True

        command, _, argument = stripped.partition(" ")
        command = command.lower()
        if command in {"/quit", "/exit"}:
            return False
        if command == "/help":
            self.console.print(Panel(HELP_TEXT, title="Commands", border_style="yellow"))
        elif command == "/upload":
            paths = shlex.split(argument)
            if len(paths) != 1:
                self.console.print("[yellow]Usage: /upload <path>[/yellow]")
                return True
            with self.console.status("[bold cyan]Uploading...[/bold cyan]", spinner="dots"):
                self.state = await self.controller.upload(self.state, Path(paths[0]).expanduser())
        elif command == "/clear":
            self.state = self.controller.clear(self.state)
        elif command == "/delete":
            if self.state.active_document is None:
                self.console.print("[yellow]No active document to delete.[/yellow]")
                return True
            with self.console.status("[bold cyan]Deleting...[/bold cyan]", spinner="dots"):
                self.state = await self.controller.delete_active(self.state)
        else:
            self.console.print(f"[yellow]Unknown command {command}. Type /help.[/yellow]")
        return True


async def _run(args: argparse.Namespace, console: Console) -> None:
    async with DocChatClient(args.url, timeout=args.timeout) as client:
        session = ChatSession(ChatController(client), console)
        console.print(Panel(f"Connected to {args.url}. Type /help for commands.", title="DocChat"))
        session.flush()
        while True:
            try:
                line = Prompt.ask(session.prompt_label(), console=console)
            except (EOFError, KeyboardInterrupt):
                console.print()
                break
            if not await session.handle(line):
                break
            session.flush()


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Entry point of the ``docchat-chat`` console script."""

    load_dotenv()
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.WARNING)
    asyncio.run(_run(args, Console()))


if __name__ == "__main__":  # pragma: no cover - manual entry point
    main()
