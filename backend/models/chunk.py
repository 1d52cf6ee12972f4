"""Chunk data models."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Union

ParagraphRange = Union[int, str]  # 3 or "3-5"


@dataclass(frozen=True)
class ChunkMetadata:
    """Positional metadata used for citations."""
    page: int
    paragraph_number: int
    paragraph_range: ParagraphRange
    start_char: int
    end_char: int
    chunk_length: int

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys citation rendering expects."""
        return {
            "page": self.page,
            "paragraphNumber": self.paragraph_number,
            "paragraphRange": self.paragraph_range,
            "startChar": self.start_char,
            "endChar": self.end_char,
            "chunkLength": self.chunk_length,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChunkMetadata":
        return cls(
            page=data["page"],
            paragraph_number=data["paragraphNumber"],
            paragraph_range=data["paragraphRange"],
            start_char=data["startChar"],
            end_char=data["endChar"],
            chunk_length=data["chunkLength"],
        )


@dataclass(frozen=True)
class Chunk:
    """Represents a document chunk for retrieval."""
    chunk_index: int  # global across the whole document
    text: str
    metadata: ChunkMetadata


@dataclass
class IndexedVectorRecord:
    """A chunk stored together with its embedding."""
    doc_id: str
    chunk_index: int
    text: str
    embedding: List[float]
    metadata: ChunkMetadata
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_row(self) -> Dict[str, Any]:
        return {
            "doc_id": self.doc_id,
            "chunk_index": self.chunk_index,
            "text": self.text,
            "embedding": list(self.embedding),
            "metadata": self.metadata.to_dict(),
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class ScoredChunk:
    """Chunk with similarity score from a search; higher is better."""
    chunk_index: int
    text: str
    metadata: ChunkMetadata
    score: float
