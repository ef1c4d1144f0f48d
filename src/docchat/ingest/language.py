"""Best-effort language tagging for ingested documents."""
from __future__ import annotations

import logging
from typing import Optional

from langdetect import DetectorFactory, LangDetectException, detect

LOGGER = logging.getLogger(__name__)
DetectorFactory.seed = 0


class LanguageDetector:
    """Detect the dominant language of a document from a leading sample."""

    def __init__(self, sample_chars: int = 5000, min_chars: int = 20) -> None:
        self.sample_chars = sample_chars
        self.min_chars = min_chars

    def detect(self, text: str) -> Optional[str]:
        sample = text[: self.sample_chars].strip()
        if len(sample) < self.min_chars:
            return None
        try:
            return detect(sample)
        except LangDetectException:
            LOGGER.info("Unable to determine language for text of length %s", len(text))
            return None
