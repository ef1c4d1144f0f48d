"""Data models used by the ingestion pipeline."""
from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from typing import NewType, Optional

DocumentId = NewType("DocumentId", str)
"""Opaque identifier of a document namespace.

Values are unique per ingest. Callers must treat them as opaque tokens and
never derive meaning from their format.
"""


def new_document_id() -> DocumentId:
    """Mint a fresh, collision-free document identifier."""

    return DocumentId(f"doc-{uuid.uuid4()}")


@dataclass(frozen=True, slots=True)
class SegmentMetadata:
    """Metadata attached to an individual segment."""

    document_id: str
    file_name: str
    chunk_index: int
    char_start: int
    char_end: int
    language: Optional[str] = None

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class Segment:
    """Container that pairs segment text with associated metadata."""

    content: str
    metadata: SegmentMetadata


@dataclass(frozen=True, slots=True)
class ExtractedDocument:
    """Normalised text of an upload together with what was detected about it."""

    file_name: str
    text: str
    language: Optional[str]
