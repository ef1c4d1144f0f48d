"""Utilities for mapping declared MIME types to supported document formats."""
from __future__ import annotations

from enum import Enum
from typing import Optional

from docchat.errors import UnsupportedMediaType


class DocumentFormat(str, Enum):
    """Supported document formats."""

    PDF = "pdf"
    DOCX = "docx"
    TXT = "txt"


DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class DocumentFormatDetector:
    """Detects the document format from the MIME type declared by the uploader."""

    _MIME_MAP = {
        "application/pdf": DocumentFormat.PDF,
        DOCX_MIME_TYPE: DocumentFormat.DOCX,
        "text/plain": DocumentFormat.TXT,
    }

    _SUFFIX_MIME_MAP = {
        ".pdf": "application/pdf",
        ".docx": DOCX_MIME_TYPE,
        ".txt": "text/plain",
    }

    @staticmethod
    def normalise_mime(mime_type: Optional[str]) -> str:
        """Strip parameters such as ``; charset=utf-8`` and lower-case the type."""

        if not mime_type:
            return ""
        return mime_type.split(";", 1)[0].strip().lower()

    @classmethod
    def detect(cls, mime_type: Optional[str]) -> DocumentFormat:
        """Return the document format for ``mime_type``.

        Only the declared type is trusted; file names are not consulted, so a
        ``.pdf`` sent as ``application/octet-stream`` is rejected.
        """

        normalised = cls.normalise_mime(mime_type)
        try:
            return cls._MIME_MAP[normalised]
        except KeyError as exc:
            raise UnsupportedMediaType(
                f"Unsupported file type {mime_type or '<none>'!r}. "
                "Only PDF, TXT, and DOCX files are allowed."
            ) from exc

    @classmethod
    def mime_for_suffix(cls, suffix: str) -> Optional[str]:
        """Return the MIME type clients should declare for a file suffix."""

        return cls._SUFFIX_MIME_MAP.get(suffix.lower())
