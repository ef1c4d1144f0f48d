"""Split extracted text into overlapping, embedding-sized segments."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from .models import Segment, SegmentMetadata

_SENTENCE_END_RE = re.compile(r"[.!?](?=\s)")
LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChunkingConfig:
    chunk_size: int = 1000
    chunk_overlap: int = 200

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError("chunk_overlap must be between 0 and chunk_size - 1")


class SemanticTextChunker:
    """Cut text into segments of at most ``chunk_size`` characters.

    Each cut prefers a paragraph break, then a sentence end, then a space, as
    long as the break leaves a reasonably sized segment. Consecutive segments
    share up to ``chunk_overlap`` characters so context crossing a cut is not
    lost.
    """

    def __init__(self, config: Optional[ChunkingConfig] = None) -> None:
        self.config = config or ChunkingConfig()

    def split(
        self,
        text: str,
        document_id: str,
        file_name: str,
        language: Optional[str] = None,
    ) -> list[Segment]:
        segments = [
            Segment(
                content=content,
                metadata=SegmentMetadata(
                    document_id=document_id,
                    file_name=file_name,
                    chunk_index=index,
                    char_start=start,
                    char_end=end,
                    language=language,
                ),
            )
            for index, (content, start, end) in enumerate(self.iter_spans(text))
        ]
        LOGGER.debug("Split %s characters of %s into %s segments", len(text), file_name, len(segments))
        return segments

    def iter_spans(self, text: str) -> Iterator[Tuple[str, int, int]]:
        """Yield ``(content, start, end)`` with ``text[start:end] == content``."""

        size = self.config.chunk_size
        overlap = self.config.chunk_overlap
        length = len(text)
        start = 0
        while start < length:
            end = self._find_break(text, start, min(start + size, length))
            raw = text[start:end]
            stripped = raw.strip()
            if not stripped:
                start = end
                continue
            final_start = start + (len(raw) - len(raw.lstrip()))
            final_end = end - (len(raw) - len(raw.rstrip()))
            yield stripped, final_start, final_end
            if end >= length:
                break
            next_start = final_end - overlap
            # Always advance, otherwise a long unbroken run loops forever.
            start = next_start if next_start > final_start else final_end

    def _find_break(self, text: str, start: int, limit: int) -> int:
        if limit >= len(text):
            return len(text)
        window = text[start:limit]
        # Breaks at offset 0 would produce an empty segment.
        third = max(self.config.chunk_size // 3, 1)
        quarter = max(self.config.chunk_size // 4, 1)

        paragraph = window.rfind("\n\n")
        if paragraph != -1 and paragraph >= third:
            return start + paragraph + 2

        sentence = None
        for match in _SENTENCE_END_RE.finditer(window):
            sentence = match.end()
        if sentence is not None and sentence >= quarter:
            return start + sentence

        space = max(window.rfind(" "), window.rfind("\n"))
        if space != -1 and space >= quarter:
            return start + space
        return limit
