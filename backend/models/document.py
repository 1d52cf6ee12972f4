"""Document data models."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List


@dataclass(frozen=True)
class Page:
    """A single page of extracted text with its absolute character range."""
    page_number: int  # 1-indexed
    text: str
    start_char: int
    end_char: int


@dataclass
class ExtractedDocument:
    """Output of PDF text extraction."""
    pages: List[Page]
    full_text: str

    @property
    def total_pages(self) -> int:
        return len(self.pages)


@dataclass
class DocumentRecord:
    """Persisted summary of an ingested document."""
    doc_id: str
    filename: str
    text_length: int
    chunk_count: int
    total_pages: int
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: str = "processed"

    def to_row(self) -> Dict[str, Any]:
        """Serialize to a storage row."""
        return {
            "doc_id": self.doc_id,
            "filename": self.filename,
            "text_length": self.text_length,
            "chunk_count": self.chunk_count,
            "total_pages": self.total_pages,
            "uploaded_at": self.uploaded_at.isoformat(),
            "status": self.status,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "DocumentRecord":
        uploaded_at = row["uploaded_at"]
        if isinstance(uploaded_at, str):
            uploaded_at = datetime.fromisoformat(uploaded_at.replace("Z", "+00:00"))
        return cls(
            doc_id=row["doc_id"],
            filename=row["filename"],
            text_length=row["text_length"],
            chunk_count=row["chunk_count"],
            total_pages=row["total_pages"],
            uploaded_at=uploaded_at,
            status=row.get("status", "processed"),
        )
