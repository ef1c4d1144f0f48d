"""Extractors for supported document types."""
from __future__ import annotations

import codecs
import logging
from pathlib import Path
from typing import Iterator

from docx import Document as load_docx
from pdfminer.high_level import extract_text as pdf_extract_text

from .format_detection import DocumentFormat

LOGGER = logging.getLogger(__name__)


class PDFExtractor:
    """Extract the text layer of PDF documents with pdfminer.six."""

    def extract(self, path: Path) -> str:
        text = pdf_extract_text(str(path)) or ""
        if not text.strip():
            LOGGER.info("PDF %s has no text layer", path.name)
        return text


class DocxExtractor:
    """Extract text from Microsoft Word documents."""

    def extract(self, path: Path) -> str:
        document = load_docx(str(path))
        return "\n\n".join(self._iter_blocks(document))

    @staticmethod
    def _iter_blocks(document) -> Iterator[str]:  # noqa: ANN001 - python-docx document
        for paragraph in document.paragraphs:
            if paragraph.text:
                yield paragraph.text
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    yield " | ".join(cells)


class TextExtractor:
    """Extract text from plaintext documents."""

    def extract(self, path: Path) -> str:
        data = path.read_bytes()
        if data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
            return data.decode("utf-16")
        try:
            return data.decode("utf-8-sig")
        except UnicodeDecodeError:
            LOGGER.warning("Falling back to latin-1 decoding for %s", path.name)
            return data.decode("latin-1")


class TextExtractorRegistry:
    """Dispatch a stored upload to the extractor for its format."""

    def __init__(self) -> None:
        self._extractors = {
            DocumentFormat.PDF: PDFExtractor(),
            DocumentFormat.DOCX: DocxExtractor(),
            DocumentFormat.TXT: TextExtractor(),
        }

    def extract(self, path: Path, document_format: DocumentFormat) -> str:
        return self._extractors[document_format].extract(path)
