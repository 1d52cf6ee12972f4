"""Data models for the PDF Q&A RAG service."""
from .document import Page, ExtractedDocument, DocumentRecord
from .chunk import ChunkMetadata, Chunk, IndexedVectorRecord, ScoredChunk, ParagraphRange
from .api import (
    AskRequest,
    AskResponse,
    Source,
    UploadResponse,
    DocumentSummary,
    DocumentListResponse,
    DeleteResponse,
    HealthResponse,
)

__all__ = [
    "Page",
    "ExtractedDocument",
    "DocumentRecord",
    "ChunkMetadata",
    "Chunk",
    "IndexedVectorRecord",
    "ScoredChunk",
    "ParagraphRange",
    "AskRequest",
    "AskResponse",
    "Source",
    "UploadResponse",
    "DocumentSummary",
    "DocumentListResponse",
    "DeleteResponse",
    "HealthResponse",
]
