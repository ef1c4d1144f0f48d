"""High level ingestion pipeline: stored upload in, embedding-ready segments out."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from docchat.errors import ExtractionFailed

from .chunking import ChunkingConfig, SemanticTextChunker
from .extractors import TextExtractorRegistry
from .format_detection import DocumentFormat
from .language import LanguageDetector
from .models import ExtractedDocument, Segment
from .normalization import normalize_text

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IngestPipelineConfig:
    chunk_size: int = 1000
    chunk_overlap: int = 200


class IngestPipeline:
    """Pipeline orchestrating document extraction, normalisation and chunking.

    The pipeline is synchronous and free of I/O other than reading the stored
    upload, so callers run :meth:`extract` in a worker thread.
    """

    def __init__(
        self,
        config: Optional[IngestPipelineConfig] = None,
        *,
        extractors: Optional[TextExtractorRegistry] = None,
        language_detector: Optional[LanguageDetector] = None,
    ) -> None:
        self.config = config or IngestPipelineConfig()
        self.extractors = extractors or TextExtractorRegistry()
        self.language_detector = language_detector or LanguageDetector()
        self.chunker = SemanticTextChunker(
            ChunkingConfig(chunk_size=self.config.chunk_size, chunk_overlap=self.config.chunk_overlap)
        )

    def extract(self, path: Path, document_format: DocumentFormat, file_name: str) -> ExtractedDocument:
        """Read ``path`` and return its normalised text.

        Any extractor failure is reported as :class:`ExtractionFailed`.
        """

        try:
            raw_text = self.extractors.extract(path, document_format)
        except Exception as exc:
            LOGGER.warning("Extraction of %s (%s) failed: %s", file_name, document_format.value, exc)
            raise ExtractionFailed(f"Could not extract text from {file_name!r}", cause=exc) from exc

        text = normalize_text(raw_text)
        language = self.language_detector.detect(text) if text else None
        LOGGER.info(
            "Extracted %s characters from %s (language=%s)", len(text), file_name, language
        )
        return ExtractedDocument(file_name=file_name, text=text, language=language)

    def split(self, document: ExtractedDocument, document_id: str) -> list[Segment]:
        return self.chunker.split(
            document.text,
            document_id=document_id,
            file_name=document.file_name,
            language=document.language,
        )
