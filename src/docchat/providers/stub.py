"""Stub generation provider for offline development and tests."""
from __future__ import annotations

from .base import GenerationProvider


class StubGenerationProvider(GenerationProvider):
    """Return a deterministic response for any prompt."""

    name = "stub"
    model = "stub"

    def __init__(self, prefix: str = "STUB_ANSWER: ", preview_chars: int = 100) -> None:
        self.prefix = prefix
        self.preview_chars = preview_chars

    async def generate(self, prompt: str) -> str:
        return f"{self.prefix}{prompt[: self.preview_chars]}"
