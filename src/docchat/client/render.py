"""Turn assistant replies into terminal renderables."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.text import Text

from .state import ChatMessage, SourceReference

SNIPPET_WIDTH = 96

_STYLES = {
    "h1": "bold underline",
    "h2": "bold",
    "h3": "bold italic",
    "bold": "bold",
    "italic": "italic",
    "paragraph": "",
}


@dataclass(frozen=True, slots=True)
class TextBlock:
    kind: str
    text: str


def format_text(text: str) -> List[TextBlock]:
    """Split a reply into one block per line.

    A line wrapped in ``**`` is bold and one wrapped in ``*`` is italic (the
    markers are dropped); lines starting with ``# ``, ``## `` or ``### `` are
    headings; anything else is a paragraph.
    """

    if not text:
        return []
    blocks: List[TextBlock] = []
    for line in text.split("\n"):
        if line.startswith("**") and line.endswith("**"):
            blocks.append(TextBlock("bold", line.replace("**", "")))
        elif line.startswith("*") and line.endswith("*"):
            blocks.append(TextBlock("italic", line.replace("*", "")))
        elif line.startswith("### "):
            blocks.append(TextBlock("h3", line.replace("### ", "", 1)))
        elif line.startswith("## "):
            blocks.append(TextBlock("h2", line.replace("## ", "", 1)))
        elif line.startswith("# "):
            blocks.append(TextBlock("h1", line.replace("# ", "", 1)))
        else:
            blocks.append(TextBlock("paragraph", line))
    return blocks


def truncate_snippet(content: str, width: int = SNIPPET_WIDTH) -> str:
    """Collapse whitespace and cut ``content`` to one line of ``width`` chars."""

    flattened = " ".join(content.split())
    if len(flattened) <= width:
        return flattened
    return flattened[: max(width - 1, 0)].rstrip() + "…"


def render_sources(sources: Sequence[SourceReference]) -> RenderableType:
    lines = [Text("Document References:", style="dim bold")]
    for source in sources:
        lines.append(Text(f"• {truncate_snippet(source.content)}", style="dim"))
    return Group(*lines)


def render_message(message: ChatMessage) -> RenderableType:
    body: List[RenderableType] = [
        Text(block.text, style=_STYLES[block.kind]) for block in format_text(message.text)
    ]
    if message.sources:
        body.append(Text(""))
        body.append(render_sources(message.sources))
    if message.role == "user":
        return Panel(Group(*body), title="You", title_align="right", border_style="blue")
    return Panel(Group(*body), title="Assistant", title_align="left", border_style="green")


__all__ = ["TextBlock", "format_text", "render_message", "render_sources", "truncate_snippet"]
