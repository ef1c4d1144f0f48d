"""Document ingestion: format detection, extraction and chunking."""

from .chunking import ChunkingConfig, SemanticTextChunker
from .format_detection import DocumentFormat, DocumentFormatDetector
from .models import DocumentId, ExtractedDocument, Segment, SegmentMetadata, new_document_id
from .pipeline import IngestPipeline, IngestPipelineConfig

__all__ = [
    "ChunkingConfig",
    "DocumentFormat",
    "DocumentFormatDetector",
    "DocumentId",
    "ExtractedDocument",
    "IngestPipeline",
    "IngestPipelineConfig",
    "Segment",
    "SegmentMetadata",
    "SemanticTextChunker",
    "new_document_id",
]
